"""
Query normalization.

A query is edited one parameter at a time, and some edits leave it in a
state the backend cannot answer (metric ids sent to the Devices entity,
a MetricsData query without a filter, ...). ``normalize`` applies the
edit, then runs the rules below until the query stops changing. Each
pass corrects at most one violation, so a correction that exposes
another one is picked up by the next pass.

Rules:

1. entity pinning: metrics selection (an edit of a metric-bearing
   parameter, or ``SelectionMode.METRICS``) and the Metrics entity under a
   device context both force ``entity = "MetricsData"``.
2. filter pinning: a MetricsData query names the parameter holding its
   set value in ``parameters["filter"]``. In metrics selection it is
   always ``"metrics"``.
3. cascade reset: a change of ``devices`` invalidates the metrics
   resolved for the previous devices. See ``cascade_reset``.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, List, Optional, Union

from pydantic import BaseModel

from device_datasource.models import ALL, METRICS, METRICS_DATA, Query
from device_datasource.utils.exceptions import NormalizationError

logger = logging.getLogger(__name__)

MAX_PASSES = 8

FILTER = "filter"
FILTERS = ("devices", "metrics")
METRIC_PARAMETERS = ("metrics",)


class SelectionMode(str, Enum):
    QUERY = "query"
    METRICS = "metrics"


class ParameterChange(BaseModel):
    key: str
    value: str


class EntityChange(BaseModel):
    entity: str


Change = Union[ParameterChange, EntityChange]


def encode_list(values: Iterable) -> str:
    return ",".join(str(value) for value in values)


def decode_list(value: Optional[str]) -> List[Union[int, str]]:
    """
    Split a comma-joined parameter into tokens. Numeric tokens become ints,
    anything else (symbolic names, unexpanded variables) is kept as-is.
    """
    if not value:
        return []

    tokens = []
    for token in value.split(","):
        token = token.strip()
        if not token:
            continue
        try:
            tokens.append(int(token, 10))
        except ValueError:
            tokens.append(token)
    return tokens


def cascade_reset(previous: Query, current: Query) -> bool:
    """
    True when the device context changed between two queries, i.e. the
    metrics resolved for ``previous`` are no longer valid for ``current``.
    """
    return decode_list(previous.parameters.get("devices")) != decode_list(current.parameters.get("devices"))


def _is_set(value: Optional[str]) -> bool:
    # the "all" sentinel is not a filter
    return bool(value) and decode_list(value) != decode_list(ALL)


def _has_device_context(query: Query) -> bool:
    return _is_set(query.parameters.get("devices"))


def _with_parameter(query: Query, key: str, value: str) -> Query:
    return query.model_copy(update={"parameters": {**query.parameters, key: value}}, deep=True)


def _pin_entity(query: Query, mode: SelectionMode) -> Optional[Query]:
    if query.entity == METRICS_DATA:
        return None
    if mode is SelectionMode.METRICS or (query.entity == METRICS and _has_device_context(query)):
        return query.model_copy(update={"entity": METRICS_DATA}, deep=True)
    return None


def _pin_filter(query: Query, mode: SelectionMode) -> Optional[Query]:
    if query.entity != METRICS_DATA:
        return None

    current = query.parameters.get(FILTER)
    if mode is SelectionMode.METRICS:
        expected = "metrics"
    elif current in FILTERS and _is_set(query.parameters.get(current)):
        return None
    else:
        expected = "devices" if _has_device_context(query) else "metrics"

    if current == expected:
        return None
    return _with_parameter(query, FILTER, expected)


RULES = (_pin_entity, _pin_filter)


def apply_rules(query: Query, mode: SelectionMode = SelectionMode.QUERY) -> Query:
    """
    Run a single normalization pass. Returns ``query`` itself when no rule fires.
    """
    for rule in RULES:
        corrected = rule(query, mode)
        if corrected is not None:
            logger.debug("%s corrected query '%s'", rule.__name__, query.ref_id)
            return corrected
    return query


def apply_change(query: Query, change: Change) -> Query:
    if isinstance(change, EntityChange):
        return Query.model_validate({**query.to_payload(), "entity": change.entity})
    return _with_parameter(query, change.key, change.value)


def normalize(query: Query, change: Optional[Change] = None,
              mode: SelectionMode = SelectionMode.QUERY) -> Query:
    """
    Apply ``change`` to ``query`` and return the converged result.

    The input query is never modified. A query that is already consistent
    is returned unchanged, so ``normalize(normalize(q)) == normalize(q)``.

    Raises:
        NormalizationError: the rules did not settle within MAX_PASSES.
    """
    if isinstance(change, ParameterChange) and change.key in METRIC_PARAMETERS:
        mode = SelectionMode.METRICS

    current = query if change is None else apply_change(query, change)
    for _ in range(MAX_PASSES):
        following = apply_rules(current, mode)
        if following == current:
            return current
        current = following

    raise NormalizationError(f"Query '{query.ref_id}' did not converge after {MAX_PASSES} passes")
