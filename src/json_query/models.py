"""Pydantic models for workflow steps and boundary messages.

All data structures crossing the dispatch boundary live here. No business
logic, just shapes. Steps use a discriminated union on the ``kind`` field
so an unknown step kind fails when the request is parsed. Wire names are
camelCase (``stepId``, ``finalOutput``); Python code uses snake_case.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    model_serializer,
)
from pydantic.alias_generators import to_camel


# ── Step definitions ──────────────────────────────────────────────


class _StepBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    config: str = ""
    enabled: bool = True


class MapStep(_StepBase):
    kind: Literal["map"]


class FilterStep(_StepBase):
    kind: Literal["filter"]


class SortStep(_StepBase):
    kind: Literal["sort"]


class PickStep(_StepBase):
    kind: Literal["pick"]


class OmitStep(_StepBase):
    kind: Literal["omit"]


class RenameStep(_StepBase):
    kind: Literal["rename"]


class JqStep(_StepBase):
    kind: Literal["jq"]


class CustomStep(_StepBase):
    kind: Literal["custom"]  # config is a restricted expression


# Discriminated union: Pydantic picks the right model based on `kind`
WorkflowStep = Annotated[
    MapStep
    | FilterStep
    | SortStep
    | PickStep
    | OmitStep
    | RenameStep
    | JqStep
    | CustomStep,
    Field(discriminator="kind"),
]


# ── Boundary messages ─────────────────────────────────────────────


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @model_serializer(mode="wrap")
    def omit_empty_error(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data = handler(self)
        if "error" in data and data["error"] is None:
            del data["error"]
        return data


Dialect = Literal["jq", "jsonata", "mongodb"]


class QueryRequest(WireModel):
    dialect: Dialect
    document: str = Field(alias="json")
    query: str = ""


class QueryResponse(WireModel):
    result: str
    time: float
    error: str | None = None


class WorkflowRequest(WireModel):
    document: str = Field(alias="json")
    steps: list[WorkflowStep]


class StepOutcome(WireModel):
    step_id: str
    output: str
    time: float
    error: str | None = None


class WorkflowResponse(WireModel):
    step_results: list[StepOutcome]
    final_output: str
    total_time: float
    error: str | None = None


class PathExplorerRequest(WireModel):
    document: str = Field(alias="json")
    expression: str = ""


class PathResult(WireModel):
    path: str
    value: Any
    type: str


class PathExplorerResponse(WireModel):
    results: list[PathResult]
    time: float
    error: str | None = None


class ErrorResponse(WireModel):
    message: str
