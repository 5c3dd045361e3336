"""
Host facing data source.

``EntityResolver`` answers "which values does entity E have" for template
variables and cascading selects. ``DataSource`` wraps it together with the
graphing path, where queries are forwarded to the backend and the raw
response goes back to the host.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from device_datasource.config import DataSourceConfig
from device_datasource.decoder import decode, frames_for_ref
from device_datasource.models import (DataQueryRequest, DataSourceRef,
                                      MetricFindValue, Query, VariableQuery)
from device_datasource.normalizer import normalize
from device_datasource.request_builder import build_envelope, build_query
from device_datasource.templating import (TemplateExpander, TemplateVariables,
                                          expand_devices, expand_metrics)
from device_datasource.transport import HttpTransport, Transport

logger = logging.getLogger(__name__)


class EntityResolver:
    """
    List the values of an entity as text/value pairs.

    Args:
        transport (Transport): executes envelopes against the backend.
        expander (TemplateExpander): expands variables in the device context.
        datasource (DataSourceRef): identity added to every query.
    """

    def __init__(self, transport: Transport, expander: TemplateExpander, datasource: DataSourceRef) -> None:
        self.transport = transport
        self.expander = expander
        self.datasource = datasource

    def build_lookup(self, entity: str, context: Optional[Mapping[str, str]] = None) -> Query:
        parameters = {key: value for key, value in (context or {}).items() if value}

        partial: Dict[str, Any] = {"entity": entity}
        if parameters:
            partial["parameters"] = parameters
        return expand_devices(normalize(build_query(partial)), self.expander)

    async def resolve(self, entity: str, context: Optional[Mapping[str, str]] = None) -> List[MetricFindValue]:
        """
        Resolve the values of ``entity``, optionally restricted by ``context``
        (e.g. ``{"devices": "1,2"}``).

        Transport and decode errors are raised to the caller as they are.
        """
        query = self.build_lookup(entity, context)
        logger.info("Resolving %s as %s %s", entity, query.entity, query.parameters)

        response = await self.transport.execute(build_envelope(query, self.datasource))
        records = decode(frames_for_ref(response, query.ref_id))

        return [MetricFindValue(text=record.get("name"), value=record.get("id")) for record in records]


class DataSource:
    def __init__(self, transport: Transport, datasource: DataSourceRef,
                 expander: Optional[TemplateExpander] = None) -> None:
        self.transport = transport
        self.datasource = datasource
        self.expander = expander if expander is not None else TemplateVariables()
        self.resolver = EntityResolver(transport, self.expander, datasource)

    @classmethod
    def from_config(cls, cfg: DataSourceConfig) -> "DataSource":
        return cls(HttpTransport.from_config(cfg.host), cfg.datasource, TemplateVariables(cfg.variables))

    async def metric_find_query(self, query: VariableQuery) -> List[MetricFindValue]:
        context = {"devices": query.devices} if query.devices else None
        return await self.resolver.resolve(query.entity, context)

    def prepare_targets(self, request: DataQueryRequest) -> List[Query]:
        return [expand_metrics(normalize(target), self.expander) for target in request.targets]

    async def query(self, request: DataQueryRequest) -> Dict[str, Any]:
        """
        Send every target of ``request`` in one envelope and return the raw
        backend response. The request's targets are not modified.
        """
        targets = self.prepare_targets(request)
        if not targets:
            return {"results": {}}

        envelope = build_envelope(targets, self.datasource, request.range_from, request.range_to)
        return await self.transport.execute(envelope)
