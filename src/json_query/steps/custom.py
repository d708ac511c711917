"""custom step: evaluate a restricted expression against the current value."""

from __future__ import annotations

from json_query.expressions import evaluate_expression
from json_query.models import CustomStep
from json_query.settings import EngineSettings
from json_query.values import JsonValue


def execute_custom(step: CustomStep, value: JsonValue, settings: EngineSettings) -> JsonValue:
    """Run the step's expression with ``.`` bound to *value*.

    The expression language has no access to host code, files or the
    network; see :mod:`json_query.expressions` for what it supports.
    """
    return evaluate_expression(
        value,
        step.config,
        budget=settings.expression_budget,
        max_depth=settings.max_depth,
    )
