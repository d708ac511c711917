"""Tests for Pydantic step and message models.

Checks that raw dicts parse into the right step type via the
discriminated union on ``kind``, that invalid data is rejected, and
that responses serialise with camelCase wire names.
"""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from json_query.models import (
    CustomStep,
    MapStep,
    PathExplorerRequest,
    PathExplorerResponse,
    PathResult,
    QueryRequest,
    QueryResponse,
    StepOutcome,
    WorkflowRequest,
    WorkflowResponse,
    WorkflowStep,
)

STEP = TypeAdapter(WorkflowStep)


# ── Steps ─────────────────────────────────────────────────────────


def test_step_defaults():
    step = STEP.validate_python({"id": "s1", "kind": "map"})
    assert isinstance(step, MapStep)
    assert step.name == ""
    assert step.config == ""
    assert step.enabled is True


def test_discriminator_picks_model():
    step = STEP.validate_python({"id": "s1", "kind": "custom", "config": ". | length"})
    assert isinstance(step, CustomStep)


def test_unknown_kind_rejected():
    with pytest.raises(ValidationError):
        STEP.validate_python({"id": "s1", "kind": "explode"})


def test_missing_id_rejected():
    with pytest.raises(ValidationError):
        STEP.validate_python({"kind": "map"})


def test_steps_are_frozen():
    step = MapStep(id="s1", kind="map")
    with pytest.raises(ValidationError):
        step.config = "{a}"


# ── Requests ──────────────────────────────────────────────────────


def test_query_request_uses_json_alias():
    request = QueryRequest.model_validate({"dialect": "jq", "json": "[]", "query": "."})
    assert request.document == "[]"


def test_query_request_rejects_unknown_dialect():
    with pytest.raises(ValidationError):
        QueryRequest.model_validate({"dialect": "xpath", "json": "[]"})


def test_workflow_request_parses_steps():
    request = WorkflowRequest.model_validate(
        {"json": "{}", "steps": [{"id": "a", "kind": "pick", "config": "x"}]}
    )
    assert request.steps[0].kind == "pick"


def test_explorer_request_defaults_expression():
    assert PathExplorerRequest.model_validate({"json": "{}"}).expression == ""


# ── Responses ─────────────────────────────────────────────────────


def test_responses_use_camel_case_and_omit_empty_error():
    response = WorkflowResponse(
        step_results=[StepOutcome(step_id="a", output="1", time=0.5)],
        final_output="1",
        total_time=1.0,
    )
    assert response.model_dump(by_alias=True) == {
        "stepResults": [{"stepId": "a", "output": "1", "time": 0.5}],
        "finalOutput": "1",
        "totalTime": 1.0,
    }


def test_error_is_kept_when_set():
    dumped = QueryResponse(result="", time=0.1, error="boom").model_dump(by_alias=True)
    assert dumped == {"result": "", "time": 0.1, "error": "boom"}


def test_null_path_values_survive_serialisation():
    response = PathExplorerResponse(
        results=[PathResult(path="$.a", value=None, type="null")], time=0.0
    )
    assert response.model_dump(by_alias=True)["results"] == [
        {"path": "$.a", "value": None, "type": "null"}
    ]
