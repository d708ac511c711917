"""Dispatch boundary: request messages in, response messages out.

The only way into the engine from a host. Typed entry points take and
return the models in :mod:`json_query.models`; :func:`handle` routes a raw
message dict and returns a plain dict with camelCase keys. Nothing raises
past this module: every failure becomes an ``error`` field or an
``ErrorResponse``.
"""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from json_query import engine_logger, jq, jsonata_query, mongo
from json_query.errors import QueryEngineError, QueryError
from json_query.executor import run_workflow
from json_query.explorer import explore
from json_query.models import (
    ErrorResponse,
    PathExplorerRequest,
    PathExplorerResponse,
    PathResult,
    QueryRequest,
    QueryResponse,
    StepOutcome,
    WorkflowRequest,
    WorkflowResponse,
)
from json_query.settings import EngineSettings
from json_query.values import ABSENT, NULL, JsonValue, parse, render, to_python


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000


def evaluate_query(
    dialect: str, value: JsonValue, query: str, settings: EngineSettings
) -> JsonValue:
    """Run *query* in the named dialect. Absent JSONata results become null."""
    match dialect:
        case "jq":
            return jq.evaluate(value, query, max_depth=settings.max_depth)
        case "jsonata":
            result = jsonata_query.evaluate(value, query)
            return NULL if result is ABSENT else result
        case "mongodb":
            return mongo.filter(value, query, max_depth=settings.max_depth)
    raise QueryError(f"Unknown query dialect: {dialect}")


def run_query(request: QueryRequest, settings: EngineSettings | None = None) -> QueryResponse:
    settings = settings or EngineSettings()
    start = time.monotonic()
    try:
        value = parse(request.document, max_depth=settings.max_depth)
        result = evaluate_query(request.dialect, value, request.query, settings)
        response = QueryResponse(
            result=render(result, settings.indent), time=_elapsed_ms(start)
        )
    except QueryEngineError as e:
        response = QueryResponse(result="", time=_elapsed_ms(start), error=str(e))
    engine_logger.log_query(request.dialect, request.query, response.time, response.error)
    return response


def run_workflow_request(
    request: WorkflowRequest, settings: EngineSettings | None = None
) -> WorkflowResponse:
    settings = settings or EngineSettings()
    start = time.monotonic()
    try:
        value = parse(request.document, max_depth=settings.max_depth)
    except QueryEngineError as e:
        return WorkflowResponse(
            step_results=[], final_output="", total_time=_elapsed_ms(start), error=str(e)
        )

    run = run_workflow(value, request.steps, settings)
    outcomes = [
        StepOutcome(
            step_id=t.step_id,
            output=render(t.output, settings.indent),
            time=t.elapsed_ms,
            error=t.error.message if t.error else None,
        )
        for t in run.trace
    ]
    final = run.final_output if run.final_output is not None else value
    return WorkflowResponse(
        step_results=outcomes,
        final_output=render(final, settings.indent),
        total_time=_elapsed_ms(start),
        error=str(run.error) if run.error else None,
    )


def explore_paths(
    request: PathExplorerRequest, settings: EngineSettings | None = None
) -> PathExplorerResponse:
    settings = settings or EngineSettings()
    start = time.monotonic()
    try:
        value = parse(request.document, max_depth=settings.max_depth)
        matches = explore(value, request.expression)
    except QueryEngineError as e:
        return PathExplorerResponse(results=[], time=_elapsed_ms(start), error=str(e))

    results = [PathResult(path=m.path, value=to_python(m.value), type=m.type) for m in matches]
    duration_ms = _elapsed_ms(start)
    engine_logger.log_explore(request.expression, len(results), duration_ms)
    return PathExplorerResponse(results=results, time=duration_ms)


def _describe(e: PydanticValidationError) -> str:
    problems = []
    for err in e.errors():
        location = ".".join(str(p) for p in err["loc"]) or "request"
        problems.append(f"{location}: {err['msg']}")
    return "Invalid request: " + "; ".join(problems)


def handle(message: dict[str, Any], settings: EngineSettings | None = None) -> dict[str, Any]:
    """Route a raw request message and return the response as a dict.

    ``dialect`` marks a query, ``steps`` a workflow run and ``expression``
    a path exploration. Anything else gets ``{"message": ...}``.
    """
    response: BaseModel
    try:
        if not isinstance(message, dict):
            response = ErrorResponse(message="Request must be a JSON object")
        elif "dialect" in message:
            response = run_query(QueryRequest.model_validate(message), settings)
        elif "steps" in message:
            response = run_workflow_request(WorkflowRequest.model_validate(message), settings)
        elif "expression" in message:
            response = explore_paths(PathExplorerRequest.model_validate(message), settings)
        else:
            response = ErrorResponse(
                message="Unrecognised request: expected 'dialect', 'steps' or 'expression'"
            )
    except PydanticValidationError as e:
        response = ErrorResponse(message=_describe(e))
    except Exception as e:
        response = ErrorResponse(message=f"Internal error: {type(e).__name__}: {e}")
    return response.model_dump(by_alias=True)
