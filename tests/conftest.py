import pytest

from device_datasource.models import DataSourceRef


def frame(fields, values):
    return {
        "schema": {"fields": [{"name": name, "type": type_} for name, type_ in fields]},
        "data": {"values": values},
    }


def response(frames, ref_id="ref"):
    return {"results": {ref_id: {"frames": frames}}}


DEVICES_FRAME = frame(
    [("id", "number"), ("name", "string"), ("serial_id", "string")],
    [[1, 2], ["press-1", "press-2"], ["SN-001", "SN-002"]],
)

METRICS_FRAME = frame(
    [("id", "number"), ("name", "string"), ("device_id", "number")],
    [[11, 12, 21], ["press-1 - temperature", "press-1 - pressure", "press-2 - temperature"], [1, 1, 2]],
)


class FakeTransport:
    """
    Records every envelope and answers with the queued responses in order.
    A queued exception is raised instead of returned.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.envelopes = []

    async def execute(self, envelope):
        self.envelopes.append(envelope)
        answer = self.responses.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer

    @property
    def last_query(self):
        return self.envelopes[-1]["queries"][0]


@pytest.fixture
def datasource_ref():
    return DataSourceRef(name="devices-db", id=3)
