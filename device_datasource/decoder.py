"""
Decode backend result frames into row records.

A frame is column oriented::

    {
        "schema": {"fields": [{"name": "id", "type": "number"}, {"name": "name", "type": "string"}]},
        "data": {"values": [[1, 2], ["a", "b"]]}
    }

``decode`` turns the first frame of a response into one dict per row,
``[{"id": 1, "name": "a"}, {"id": 2, "name": "b"}]``.

Cells of "number" fields are parsed as base-10 integers. A cell that
cannot be parsed fails the whole decode with MalformedCoercionError,
null cells stay None. Other field types are returned as sent.
"""

import logging
import math
from typing import Any, List, Mapping, Optional, Sequence, Union

from device_datasource.models import Record, ResultFrame
from device_datasource.utils.exceptions import (MalformedCoercionError,
                                                MalformedFrameError,
                                                NoDataError, TransportError)

logger = logging.getLogger(__name__)

NUMBER = "number"

FrameLike = Union[ResultFrame, Mapping[str, Any]]


def frames_for_ref(response: Mapping[str, Any], ref_id: str) -> List[Mapping[str, Any]]:
    """
    Pick the frames answering ``ref_id`` out of a host query response
    (``{"results": {ref_id: {"frames": [...]}}}``).

    Raises:
        TransportError: the backend reported an error for the query.
    """
    result = (response.get("results") or {}).get(ref_id) or {}
    if result.get("error"):
        raise TransportError(result["error"])
    return result.get("frames") or []


def _to_int(value: Any, field: str, row: int) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise MalformedCoercionError(field, row, value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise MalformedCoercionError(field, row, value)
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip(), 10)
        except ValueError:
            raise MalformedCoercionError(field, row, value) from None
    raise MalformedCoercionError(field, row, value)


def coerce(value: Any, field_type: Optional[str], field: str, row: int) -> Any:
    if field_type == NUMBER:
        return _to_int(value, field, row)
    return value


def decode_frame(frame: FrameLike) -> List[Record]:
    if not isinstance(frame, ResultFrame):
        frame = ResultFrame.model_validate(frame)

    fields = frame.frame_schema.fields
    columns = frame.data.values

    if columns and len(columns) != len(fields):
        raise MalformedFrameError(f"Frame has {len(fields)} fields but {len(columns)} columns")

    row_count = len(columns[0]) if columns else 0
    for index, column in enumerate(columns):
        if len(column) != row_count:
            raise MalformedFrameError(
                f"Column '{fields[index].name}' has {len(column)} rows, expected {row_count}")

    records = []
    for row in range(row_count):
        record = {}
        for field, column in zip(fields, columns):
            record[field.name] = coerce(column[row], field.type, field.name, row)
        records.append(record)

    return records


def decode(frames: Optional[Sequence[Optional[FrameLike]]]) -> List[Record]:
    """
    Decode the first frame of a frame set.

    Raises:
        NoDataError: the frame set is empty or its first frame is missing.
        MalformedFrameError: the data block does not match the schema.
        MalformedCoercionError: a "number" cell is not an integer.
    """
    if not frames or frames[0] is None:
        raise NoDataError("No frames found")

    if len(frames) > 1:
        logger.debug("Decoding first of %d frames", len(frames))
    return decode_frame(frames[0])
