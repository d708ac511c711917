"""Workflow executor: runs an ordered list of steps over one Value.

Dispatches steps to their executors, records a trace entry per executed
step, and halts on the first failure. The trace and the final output are
built per run and never shared between runs.
"""

from __future__ import annotations

import itertools
import time
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum

from json_query import engine_logger
from json_query.errors import StepError
from json_query.models import (
    CustomStep,
    FilterStep,
    JqStep,
    MapStep,
    OmitStep,
    PickStep,
    RenameStep,
    SortStep,
    WorkflowStep,
)
from json_query.settings import EngineSettings
from json_query.steps.custom import execute_custom
from json_query.steps.fields import execute_omit, execute_pick, execute_rename
from json_query.steps.filter_items import execute_filter
from json_query.steps.jq_step import execute_jq
from json_query.steps.map_fields import execute_map
from json_query.steps.sort_items import execute_sort
from json_query.values import JsonValue


class WorkflowStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    HALTED = "halted"


@dataclass(frozen=True)
class StepTrace:
    step_id: str
    output: JsonValue
    elapsed_ms: float
    error: StepError | None = None


@dataclass
class WorkflowRun:
    status: WorkflowStatus = WorkflowStatus.PENDING
    trace: list[StepTrace] = field(default_factory=list)
    final_output: JsonValue | None = None
    total_ms: float = 0.0

    @property
    def error(self) -> StepError | None:
        """The error that halted the run, if any."""
        if self.status is WorkflowStatus.HALTED and self.trace:
            return self.trace[-1].error
        return None


def step_ids(prefix: str = "step") -> Iterator[str]:
    """Monotonic step ids: ``step-1``, ``step-2``, ...

    For callers that create steps and need ids unique within a workflow.
    """
    return (f"{prefix}-{n}" for n in itertools.count(1))


def execute_step(
    step: WorkflowStep, value: JsonValue, settings: EngineSettings
) -> JsonValue:
    """Run one step over *value* and return its output Value."""
    match step:
        case MapStep():
            return execute_map(step, value, settings)
        case FilterStep():
            return execute_filter(step, value, settings)
        case SortStep():
            return execute_sort(step, value, settings)
        case PickStep():
            return execute_pick(step, value, settings)
        case OmitStep():
            return execute_omit(step, value, settings)
        case RenameStep():
            return execute_rename(step, value, settings)
        case JqStep():
            return execute_jq(step, value, settings)
        case CustomStep():
            return execute_custom(step, value, settings)
        case _:
            raise StepError(
                getattr(step, "id", "unknown"),
                f"Unknown step kind: {getattr(step, 'kind', 'unknown')}",
            )


def run_workflow(
    value: JsonValue,
    steps: Iterable[WorkflowStep],
    settings: EngineSettings | None = None,
) -> WorkflowRun:
    """Execute the enabled steps in order, feeding each the previous output.

    Disabled steps are skipped and leave no trace entry. The first failing
    step gets a trace entry carrying its StepError and the last good Value;
    that Value is also the run's final output.

    Args:
        value: The input Value.
        steps: Steps in execution order. Not modified.
        settings: Engine settings (defaults if omitted).

    Returns:
        WorkflowRun with status COMPLETED or HALTED.
    """
    settings = settings or EngineSettings()
    run = WorkflowRun(status=WorkflowStatus.RUNNING)
    start = time.monotonic()

    current = value
    for step in steps:
        if not step.enabled:
            continue
        step_start = time.monotonic()
        engine_logger.log_step_start(step.id, step.kind)

        error: StepError | None = None
        try:
            current = execute_step(step, current, settings)
        except StepError as e:
            error = e
        except Exception as e:
            error = StepError(step.id, str(e) or type(e).__name__, cause=e)

        duration_ms = (time.monotonic() - step_start) * 1000
        run.trace.append(StepTrace(step.id, current, duration_ms, error))
        if error is not None:
            engine_logger.log_step_error(step.id, error.message)
            run.status = WorkflowStatus.HALTED
            break
        engine_logger.log_step_complete(step.id, duration_ms)
    else:
        run.status = WorkflowStatus.COMPLETED

    run.final_output = current
    run.total_ms = (time.monotonic() - start) * 1000
    engine_logger.log_workflow_complete(run.status.value, len(run.trace), run.total_ms)
    return run
