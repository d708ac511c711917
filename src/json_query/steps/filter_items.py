"""filter step: keep array elements where ``field OP value`` holds."""

from __future__ import annotations

from json_query.coercion import compare, loose_equals, parse_literal, to_text
from json_query.errors import QueryError
from json_query.models import FilterStep
from json_query.paths import Accessor, parse_accessor, resolve
from json_query.settings import EngineSettings
from json_query.values import Absent, JsonArray, JsonValue, array

# Tried in this order; the first one found anywhere in the text wins.
OPERATORS = (">=", "<=", "!=", "==", ">", "<", "contains")


def parse_filter(config: str) -> tuple[str, str, JsonValue] | None:
    """Split ``field OP value``. None when no operator is present."""
    for op in OPERATORS:
        field, found, literal = config.partition(op)
        if found:
            return field.strip().removeprefix("."), op, parse_literal(literal.strip())
    return None


def contains(field_value: JsonValue | Absent, needle: JsonValue) -> bool:
    if isinstance(field_value, JsonArray):
        return any(loose_equals(item, needle) for item in field_value)
    if isinstance(field_value, Absent):
        return False
    return to_text(needle) in to_text(field_value)


def _keep(item: JsonValue, accessor: Accessor, op: str, literal: JsonValue) -> bool:
    field_value = resolve(item, accessor)
    if op == "contains":
        return contains(field_value, literal)
    return compare(op, field_value, literal)


def execute_filter(step: FilterStep, value: JsonValue, settings: EngineSettings) -> JsonValue:
    if not isinstance(value, JsonArray):
        raise QueryError(f"filter requires an array, got {value.type_tag}")

    parsed = parse_filter(step.config)
    if parsed is None:
        return value
    field, op, literal = parsed
    accessor = parse_accessor(field)
    return array(item for item in value if _keep(item, accessor, op, literal))
