import asyncio

import pytest

from conftest import DEVICES_FRAME, METRICS_FRAME, FakeTransport, response
from device_datasource.datasource import DataSource, EntityResolver
from device_datasource.models import MetricFindValue, VariableQuery
from device_datasource.normalizer import normalize
from device_datasource.templating import TemplateVariables
from device_datasource.utils.exceptions import (NoDataError,
                                                TransportError)


def test_resolve_devices(datasource_ref):
    transport = FakeTransport(response([DEVICES_FRAME]))
    resolver = EntityResolver(transport, TemplateVariables(), datasource_ref)

    values = asyncio.run(resolver.resolve("Devices"))

    assert values == [MetricFindValue(text="press-1", value=1), MetricFindValue(text="press-2", value=2)]
    assert transport.last_query["entity"] == "Devices"
    assert transport.last_query["parameters"] == {}
    assert transport.last_query["datasource"] == "devices-db"
    assert transport.last_query["datasourceId"] == 3
    assert transport.envelopes[0]["from"] == "now-5m"
    assert transport.envelopes[0]["to"] == "now"


def test_resolve_metrics_of_devices(datasource_ref):
    transport = FakeTransport(response([METRICS_FRAME]))
    resolver = EntityResolver(transport, TemplateVariables(), datasource_ref)

    values = asyncio.run(resolver.resolve("Metrics", {"devices": "1,2"}))

    assert transport.last_query["entity"] == "MetricsData"
    assert transport.last_query["parameters"]["devices"] == "1,2"
    assert [(v.text, v.value) for v in values] == [
        ("press-1 - temperature", 11),
        ("press-1 - pressure", 12),
        ("press-2 - temperature", 21),
    ]


def test_resolve_expands_device_variables(datasource_ref):
    transport = FakeTransport(response([METRICS_FRAME]))
    resolver = EntityResolver(transport, TemplateVariables({"device": ["1", "2"]}), datasource_ref)

    asyncio.run(resolver.resolve("Metrics", {"devices": "$device"}))

    assert transport.last_query["parameters"]["devices"] == "1,2"


def test_lookup_is_converged_and_expanded(datasource_ref):
    context = {"devices": "$device"}
    resolver = EntityResolver(FakeTransport(), TemplateVariables({"device": ["1", "2"]}), datasource_ref)

    query = resolver.build_lookup("Metrics", context)

    assert query.entity == "MetricsData"
    assert query.parameters == {"devices": "1,2", "filter": "devices"}
    assert normalize(query) is query
    assert context == {"devices": "$device"}


def test_resolve_expands_devices_only(datasource_ref):
    transport = FakeTransport(response([METRICS_FRAME]))
    resolver = EntityResolver(transport, TemplateVariables({"metric": "11"}), datasource_ref)

    asyncio.run(resolver.resolve("Metrics", {"devices": "1", "metrics": "$metric"}))

    assert transport.last_query["parameters"]["metrics"] == "$metric"


def test_resolve_without_frames_fails(datasource_ref):
    resolver = EntityResolver(FakeTransport(response([])), TemplateVariables(), datasource_ref)

    with pytest.raises(NoDataError):
        asyncio.run(resolver.resolve("Devices"))


def test_resolve_transport_error_is_not_wrapped(datasource_ref):
    error = TransportError("Query endpoint error 502: bad gateway")
    resolver = EntityResolver(FakeTransport(error), TemplateVariables(), datasource_ref)

    with pytest.raises(TransportError) as exc_info:
        asyncio.run(resolver.resolve("Devices"))
    assert exc_info.value is error


def test_metric_find_query(datasource_ref):
    transport = FakeTransport(response([DEVICES_FRAME]), response([METRICS_FRAME]))
    datasource = DataSource(transport, datasource_ref, TemplateVariables({"device": ["1", "2"]}))

    devices = asyncio.run(datasource.metric_find_query(VariableQuery(entity="Devices")))
    metrics = asyncio.run(datasource.metric_find_query(VariableQuery(entity="Metrics", devices="$device")))

    assert [d.value for d in devices] == [1, 2]
    assert [m.value for m in metrics] == [11, 12, 21]
    assert transport.envelopes[0]["queries"][0]["parameters"] == {}
    assert transport.last_query["parameters"] == {"devices": "1,2", "filter": "devices"}


def test_metric_find_query_all_metrics(datasource_ref):
    transport = FakeTransport(response([METRICS_FRAME]))
    datasource = DataSource(transport, datasource_ref)

    asyncio.run(datasource.metric_find_query(VariableQuery(entity="Metrics")))

    assert transport.last_query["entity"] == "Metrics"
