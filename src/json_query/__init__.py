"""json-query: jq, JSONata and Mongo-style queries and workflows over JSON values."""

from json_query.dispatch import explore_paths, handle, run_query, run_workflow_request
from json_query.engine_logger import configure_logging
from json_query.errors import (
    ConfigError,
    DepthExceeded,
    ParseError,
    QueryEngineError,
    QueryError,
    StepError,
)
from json_query.executor import WorkflowRun, WorkflowStatus, run_workflow, step_ids
from json_query.explorer import PathMatch, explore
from json_query.models import (
    QueryRequest,
    QueryResponse,
    WorkflowRequest,
    WorkflowResponse,
    WorkflowStep,
)
from json_query.settings import EngineSettings, load_settings
from json_query.values import ABSENT, parse, render

__all__ = [
    "ABSENT",
    "configure_logging",
    "ConfigError",
    "DepthExceeded",
    "EngineSettings",
    "explore",
    "explore_paths",
    "handle",
    "load_settings",
    "parse",
    "ParseError",
    "PathMatch",
    "QueryEngineError",
    "QueryError",
    "QueryRequest",
    "QueryResponse",
    "render",
    "run_query",
    "run_workflow",
    "run_workflow_request",
    "step_ids",
    "StepError",
    "WorkflowRequest",
    "WorkflowResponse",
    "WorkflowRun",
    "WorkflowStatus",
    "WorkflowStep",
]
