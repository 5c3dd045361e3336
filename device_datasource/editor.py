"""
State behind the query editors, without any rendering.

``QueryEditorModel`` drives the cascading selection devices -> metrics of
the query editor. ``VariableQueryEditorModel`` holds the variable query
of the template variable editor.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from device_datasource.datasource import DataSource
from device_datasource.models import (ALL, DEFAULT_QUERY, DEVICES, METRICS,
                                      VARIABLE_ENTITIES, MetricFindValue,
                                      Query, Selection, VariableQuery)
from device_datasource.normalizer import (EntityChange, ParameterChange,
                                          SelectionMode, cascade_reset,
                                          decode_list, encode_list, normalize)
from device_datasource.request_builder import build_query
from device_datasource.utils.exceptions import DataSourceError

logger = logging.getLogger(__name__)


class QueryEditorModel:
    """
    Args:
        datasource (DataSource): data source resolving the device and metric options.
        query (Query): (optional) query being edited. Defaults to the default editor query.
        on_change (callable): (optional) called with every new query.
        on_run_query (callable): (optional) called when the query should be executed.
    """

    def __init__(self, datasource: DataSource, query: Optional[Query] = None,
                 on_change: Optional[Callable[[Query], None]] = None,
                 on_run_query: Optional[Callable[[], None]] = None) -> None:
        self.datasource = datasource
        self.on_change = on_change
        self.on_run_query = on_run_query

        self.query = normalize(build_query(query if query is not None else DEFAULT_QUERY))

        self.devices_options: Optional[List[MetricFindValue]] = None
        self.metrics_options: Optional[List[MetricFindValue]] = None
        # bumped by every metrics refresh and every device change
        self._metrics_seq = 0

    @property
    def metrics_valid(self) -> bool:
        return self.metrics_options is not None

    def _emit(self, query: Query) -> None:
        previous = self.query
        self.query = query
        if cascade_reset(previous, query):
            # refreshes started for the previous devices are stale now
            self._metrics_seq += 1
            self.metrics_options = None
        if self.on_change is not None:
            self.on_change(query)

    def change_entity(self, entity: str) -> Query:
        self._emit(normalize(self.query, EntityChange(entity=entity)))
        return self.query

    def change_parameter(self, key: str, value: str) -> Query:
        self._emit(normalize(self.query, ParameterChange(key=key, value=value)))
        return self.query

    def toggle_streaming(self, enabled: bool) -> Query:
        self._emit(self.query.model_copy(update={"with_streaming": enabled}, deep=True))
        if self.on_run_query is not None:
            self.on_run_query()
        return self.query

    async def load_devices(self) -> List[MetricFindValue]:
        try:
            self.devices_options = await self.datasource.resolver.resolve(DEVICES)
        except DataSourceError as e:
            logger.warning("Could not load devices: %s", e)
            self.devices_options = []
        return self.devices_options

    async def select_devices(self, selection: Selection) -> Query:
        self.change_parameter("devices", encode_list(selection.as_list()))
        await self.refresh_metrics()
        return self.query

    async def refresh_metrics(self) -> Optional[List[MetricFindValue]]:
        """
        Resolve the metrics of the selected devices. When several refreshes
        overlap, only the most recently started one updates the options. A
        device change made while a refresh runs discards its result as well.
        """
        self._metrics_seq += 1
        seq = self._metrics_seq
        self.metrics_options = None

        devices = self.query.parameters.get("devices")
        context = {"devices": devices} if devices and devices != ALL else None
        try:
            options = await self.datasource.resolver.resolve(METRICS, context)
        except DataSourceError as e:
            if seq == self._metrics_seq:
                logger.warning("Could not load metrics for devices '%s': %s", devices, e)
                self.metrics_options = []
            return self.metrics_options

        if seq != self._metrics_seq:
            logger.warning("Discarding stale metrics of refresh %d (latest %d)", seq, self._metrics_seq)
            return self.metrics_options

        self.metrics_options = options
        self._prune_metrics(options)
        return options

    def _prune_metrics(self, options: List[MetricFindValue]) -> None:
        selected = decode_list(self.query.parameters.get("metrics"))
        if not selected or selected == decode_list(ALL):
            return

        offered = {option.value for option in options}
        kept = [metric for metric in selected if metric in offered]
        if kept == selected:
            return

        logger.info("Dropping metrics %s not offered for the selected devices",
                    [metric for metric in selected if metric not in offered])
        if kept:
            self._emit(normalize(self.query, ParameterChange(key="metrics", value=encode_list(kept)),
                                 mode=SelectionMode.METRICS))
            return

        # nothing left: back to all metrics, filtered by the device context again
        parameters = {key: value for key, value in self.query.parameters.items() if key != "filter"}
        parameters["metrics"] = ALL
        self._emit(normalize(self.query.model_copy(update={"parameters": parameters}, deep=True)))

    def select_metrics(self, selection: Selection) -> Query:
        if not self.metrics_valid:
            raise ValueError("Metrics are not resolved for the selected devices. Refresh metrics first.")
        change = ParameterChange(key="metrics", value=encode_list(selection.as_list()))
        self._emit(normalize(self.query, change, mode=SelectionMode.METRICS))
        return self.query


class VariableQueryEditorModel:
    """
    Args:
        query (VariableQuery): (optional) variable query being edited.
        on_change (callable): (optional) called with the query and its definition string.
    """

    ENTITIES = VARIABLE_ENTITIES

    def __init__(self, query: Optional[VariableQuery] = None,
                 on_change: Optional[Callable[[VariableQuery, str], None]] = None) -> None:
        self.query = query if query is not None else VariableQuery()
        self.on_change = on_change
        self.save()

    @property
    def shows_devices(self) -> bool:
        return self.query.entity == METRICS

    def set_entity(self, entity: Optional[str]) -> None:
        self.query = VariableQuery(entity=entity or self.ENTITIES[0], devices=self.query.devices)
        self.save()

    def set_devices(self, devices: str) -> None:
        self.query = VariableQuery(entity=self.query.entity, devices=devices)
        self.save()

    def save(self) -> None:
        if self.on_change is not None:
            self.on_change(self.query, self.query.definition)
