"""
Turn partial queries into complete queries and transport envelopes.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Union

from device_datasource.models import DEVICES, DataSourceRef, Query

DEFAULT_ENTITY = DEVICES
DEFAULT_REF_ID = "ref"

LOOKBACK_FROM = "now-5m"
LOOKBACK_TO = "now"

IDENTITY_KEYS = ("datasource", "datasourceId", "datasourceUid")

PartialQuery = Union[Query, Mapping[str, Any], None]


def _get(partial: Mapping[str, Any], *keys: str):
    for key in keys:
        if partial.get(key) is not None:
            return partial[key]
    return None


def build_query(partial: PartialQuery = None) -> Query:
    """
    Fill in defaults for every missing field of ``partial``.

    ``partial`` may be a Query, a mapping in camelCase or snake_case, or None.
    The input is never modified; parameters are copied.
    """
    if isinstance(partial, Query):
        partial = partial.to_payload()
    partial = partial or {}

    entity = _get(partial, "entity")
    parameters = _get(partial, "parameters")
    ref_id = _get(partial, "refId", "ref_id")
    with_streaming = _get(partial, "withStreaming", "with_streaming")

    return Query(
        entity=entity if entity is not None else DEFAULT_ENTITY,
        parameters=dict(parameters) if parameters is not None else {},
        refId=ref_id if ref_id is not None else DEFAULT_REF_ID,
        withStreaming=with_streaming if with_streaming is not None else False,
    )


def build_target(query: Query, datasource: DataSourceRef) -> Dict[str, Any]:
    target = query.to_payload()
    target["datasource"] = datasource.name
    target["datasourceId"] = datasource.id
    if datasource.uid is not None:
        target["datasourceUid"] = datasource.uid
    return target


def build_envelope(query: Union[Query, list], datasource: DataSourceRef,
                   range_from: str = LOOKBACK_FROM, range_to: str = LOOKBACK_TO) -> Dict[str, Any]:
    """
    Wrap one query, or a list of queries, into the body POSTed to the host's
    query endpoint. Entity lookups use the fixed five minute lookback.
    """
    queries = query if isinstance(query, list) else [query]
    return {
        "from": range_from,
        "to": range_to,
        "queries": [build_target(q, datasource) for q in queries],
    }


def decode_partial_query(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Read a query payload back into a partial query, dropping the data source
    identity added by ``build_target``. An envelope is read from its first query.
    """
    if "queries" in payload:
        queries = payload["queries"]
        payload = queries[0] if queries else {}
    return {key: value for key, value in payload.items() if key not in IDENTITY_KEYS}
