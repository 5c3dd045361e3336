import asyncio

from conftest import FakeTransport
from device_datasource.datasource import DataSource
from device_datasource.models import DataQueryRequest
from device_datasource.request_builder import build_query
from device_datasource.templating import TemplateVariables

SERIES_RESPONSE = {"results": {"A": {"frames": [{"schema": {"name": "press-1", "fields": []}}]}}}


def test_query_expands_metrics_once(datasource_ref):
    transport = FakeTransport(SERIES_RESPONSE)
    variables = TemplateVariables({"metric": ["11", "12"]})
    datasource = DataSource(transport, datasource_ref, variables)
    target = build_query({"entity": "MetricsData", "refId": "A",
                          "parameters": {"metrics": "$metric", "filter": "metrics"}})
    request = DataQueryRequest(targets=[target])

    result = asyncio.run(datasource.query(request))

    assert result == SERIES_RESPONSE
    assert transport.last_query["parameters"]["metrics"] == "11,12"
    assert request.targets[0].parameters["metrics"] == "$metric"


def test_query_normalizes_targets(datasource_ref):
    transport = FakeTransport(SERIES_RESPONSE)
    datasource = DataSource(transport, datasource_ref)
    target = build_query({"entity": "MetricsData", "refId": "A", "parameters": {"metrics": "11"}})

    asyncio.run(datasource.query(DataQueryRequest(targets=[target])))

    assert transport.last_query["parameters"] == {"metrics": "11", "filter": "metrics"}


def test_query_sends_all_targets_with_request_range(datasource_ref):
    transport = FakeTransport(SERIES_RESPONSE)
    datasource = DataSource(transport, datasource_ref)
    request = DataQueryRequest.model_validate({
        "from": "now-6h",
        "to": "now",
        "targets": [
            {"entity": "Devices", "parameters": {}, "refId": "A", "withStreaming": False},
            {"entity": "MetricsData", "parameters": {"metrics": "11", "filter": "metrics"},
             "refId": "B", "withStreaming": True},
        ],
    })

    asyncio.run(datasource.query(request))

    envelope = transport.envelopes[0]
    assert envelope["from"] == "now-6h"
    assert [(q["refId"], q["withStreaming"]) for q in envelope["queries"]] == [("A", False), ("B", True)]


def test_query_without_targets(datasource_ref):
    transport = FakeTransport()
    datasource = DataSource(transport, datasource_ref)

    assert asyncio.run(datasource.query(DataQueryRequest())) == {"results": {}}
    assert transport.envelopes == []
