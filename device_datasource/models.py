"""
Query and result models shared by the data source core.

The JSON shapes follow what the host sends and receives: queries use
camelCase keys (``refId``, ``withStreaming``) and result frames carry a
``schema`` block next to a column-oriented ``data`` block.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEVICES = "Devices"
METRICS = "Metrics"
METRICS_DATA = "MetricsData"

ENTITIES = (DEVICES, METRICS, METRICS_DATA)
VARIABLE_ENTITIES = (DEVICES, METRICS)

# "all" sentinel for list-valued parameters
ALL = "-1"

Record = Dict[str, Any]


class Query(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    entity: str = Field(..., description="Entity to query. One of Devices, Metrics, MetricsData.")
    parameters: Dict[str, str] = Field(..., description="Entity dependent parameters. List values are comma-joined.")
    with_streaming: bool = Field(..., alias="withStreaming", description="Forwarded to the host's streaming engine.")
    ref_id: str = Field(..., alias="refId", description="Identifier of the query inside a request.")

    @field_validator("entity")
    @classmethod
    def _known_entity(cls, value: str) -> str:
        if value not in ENTITIES:
            raise ValueError(f"unknown entity '{value}'. Expected one of {list(ENTITIES)}")
        return value

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


DEFAULT_QUERY = {
    "entity": DEVICES,
    "parameters": {
        "devices": ALL,
        "metrics": ALL,
    },
    "withStreaming": False,
}


class VariableQuery(BaseModel):
    entity: str = Field(DEVICES, description="Entity whose values feed the template variable.")
    devices: Optional[str] = Field(None, description="Device ids (or variable references) restricting Metrics.")

    @field_validator("entity")
    @classmethod
    def _variable_entity(cls, value: str) -> str:
        if value not in VARIABLE_ENTITIES:
            raise ValueError(f"unknown variable entity '{value}'. Expected one of {list(VARIABLE_ENTITIES)}")
        return value

    @property
    def definition(self) -> str:
        return f"{self.entity} ({self.devices or ''})"


class FieldSchema(BaseModel):
    name: str
    type: Optional[str] = None


class FrameSchema(BaseModel):
    name: Optional[str] = None
    fields: List[FieldSchema] = Field(default_factory=list)
    meta: Optional[Dict[str, Any]] = None


class FrameData(BaseModel):
    values: List[List[Any]] = Field(default_factory=list)


class ResultFrame(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    frame_schema: FrameSchema = Field(default_factory=FrameSchema, alias="schema")
    data: FrameData = Field(default_factory=FrameData)


class MetricFindValue(BaseModel):
    text: Any = None
    value: Any = None


class DataSourceRef(BaseModel):
    name: str
    id: Optional[int] = None
    uid: Optional[str] = None


class DataQueryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    targets: List[Query] = Field(default_factory=list)
    range_from: str = Field("now-5m", alias="from")
    range_to: str = Field("now", alias="to")


class SingleValue(BaseModel):
    kind: Literal["single"] = "single"
    value: Any = None

    def as_list(self) -> List[Any]:
        return [] if self.value is None else [self.value]


class MultiValue(BaseModel):
    kind: Literal["multi"] = "multi"
    value: List[Any] = Field(default_factory=list)

    def as_list(self) -> List[Any]:
        return list(self.value)


Selection = Annotated[Union[SingleValue, MultiValue], Field(discriminator="kind")]
