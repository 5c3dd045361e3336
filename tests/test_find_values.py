import argparse
import asyncio

import pytest
import yaml

from conftest import METRICS_FRAME, FakeTransport, response
from device_datasource.datasource import DataSource
from device_datasource.models import DataSourceRef
from device_datasource.scripts.find_values import find_values, parse_variable
from device_datasource.templating import TemplateVariables


class ClosingTransport(FakeTransport):
    closed = False

    async def aclose(self):
        self.closed = True


def test_parse_variable():
    assert parse_variable("device=1") == ("device", "1")
    assert parse_variable("device=1,2") == ("device", ["1", "2"])
    with pytest.raises(argparse.ArgumentTypeError):
        parse_variable("device")


def test_find_values(tmp_path, monkeypatch, capsys):
    path = tmp_path / "datasource.yaml"
    path.write_text(yaml.dump({"host": {"base_url": "http://grafana:3000"},
                               "datasource": {"name": "devices-db", "id": 3}}))
    transport = ClosingTransport(response([METRICS_FRAME]))
    monkeypatch.setattr(DataSource, "from_config", classmethod(
        lambda cls, cfg: cls(transport, DataSourceRef(name="devices-db", id=3), TemplateVariables())))

    args = argparse.Namespace(config=str(path), entity="Metrics", devices="$device", var=[("device", ["1", "2"])])
    count = asyncio.run(find_values(args))

    assert count == 3
    assert transport.last_query["parameters"]["devices"] == "1,2"
    assert transport.closed
    assert capsys.readouterr().out.splitlines()[0] == "press-1 - temperature\t11"
