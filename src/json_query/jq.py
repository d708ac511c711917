"""jq-subset interpreter.

A filter is a chain of stages separated by top-level ``|``. The whole
chain, including ``map(...)`` bodies, is compiled before anything runs, so
a syntax error anywhere fails the query up front.

Stages applied to a value of the wrong type pass it through unchanged
(``keys`` on a number yields the number). Field access on an array maps
over its elements, so ``.items.name`` gives every item's name.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeAlias

from json_query.coercion import compare, parse_literal, to_text, truthy
from json_query.errors import DepthExceeded, QueryError
from json_query.paths import Accessor, parse_accessor, resolve
from json_query.syntax import split_top_level, strip_call
from json_query.values import (
    ABSENT,
    DEFAULT_MAX_DEPTH,
    NULL,
    JsonArray,
    JsonObject,
    JsonString,
    JsonValue,
    array,
    boolean,
    number,
    sort_key,
)

# ── Stages ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Identity:
    pass


@dataclass(frozen=True)
class PathStage:
    accessor: Accessor
    iterate: bool = False


@dataclass(frozen=True)
class IndexStage:
    index: int


@dataclass(frozen=True)
class SliceStage:
    start: int | None
    end: int | None


@dataclass(frozen=True)
class Builtin:
    name: str


@dataclass(frozen=True)
class Condition:
    """``.path OP literal``, or a bare ``.path`` truthiness test when op is None."""

    accessor: Accessor
    op: str | None = None
    literal: JsonValue | None = None


@dataclass(frozen=True)
class MapStage:
    body: tuple[Stage, ...]


@dataclass(frozen=True)
class SelectStage:
    condition: Condition


Stage: TypeAlias = (
    Identity | PathStage | IndexStage | SliceStage | Builtin | MapStage | SelectStage
)


# ── Builtins ──────────────────────────────────────────────────────


def _keys(value: JsonValue) -> JsonValue:
    match value:
        case JsonObject():
            return array(JsonString(k) for k in value.keys())
        case JsonArray():
            return array(number(i) for i in range(len(value)))
    return value


def _values(value: JsonValue) -> JsonValue:
    if isinstance(value, JsonObject):
        return array(value.values())
    return value


def _length(value: JsonValue) -> JsonValue:
    match value:
        case JsonArray() | JsonObject():
            return number(len(value))
        case JsonString(value=s):
            return number(len(s))
    return value


def _sort(value: JsonValue) -> JsonValue:
    if isinstance(value, JsonArray):
        return array(sorted(value, key=sort_key))
    return value


def _unique(value: JsonValue) -> JsonValue:
    if isinstance(value, JsonArray):
        return array(dict.fromkeys(value))
    return value


def _reverse(value: JsonValue) -> JsonValue:
    if isinstance(value, JsonArray):
        return array(reversed(value.items))
    return value


def _first(value: JsonValue) -> JsonValue:
    if isinstance(value, JsonArray):
        return value.items[0] if value.items else NULL
    return value


def _last(value: JsonValue) -> JsonValue:
    if isinstance(value, JsonArray):
        return value.items[-1] if value.items else NULL
    return value


def _to_entries(value: JsonValue) -> JsonValue:
    if isinstance(value, JsonObject):
        return array(
            JsonObject((("key", JsonString(k)), ("value", v))) for k, v in value.entries
        )
    return value


def _from_entries(value: JsonValue) -> JsonValue:
    if not isinstance(value, JsonArray):
        return value
    pairs = []
    for item in value:
        if isinstance(item, JsonObject) and "key" in item and "value" in item:
            pairs.append((to_text(item.get("key")), item.get("value")))
    return JsonObject.from_pairs(pairs)


def _flatten(value: JsonValue) -> JsonValue:
    if not isinstance(value, JsonArray):
        return value
    flat: list[JsonValue] = []
    for item in value:
        if isinstance(item, JsonArray):
            flat.extend(item)
        else:
            flat.append(item)
    return array(flat)


BUILTINS: dict[str, Callable[[JsonValue], JsonValue]] = {
    "keys": _keys,
    "values": _values,
    "length": _length,
    "type": lambda v: JsonString(v.type_tag),
    "sort": _sort,
    "unique": _unique,
    "reverse": _reverse,
    "first": _first,
    "last": _last,
    "not": lambda v: boolean(not truthy(v)),
    "to_entries": _to_entries,
    "from_entries": _from_entries,
    "flatten": _flatten,
}


def apply_builtin(name: str, value: JsonValue) -> JsonValue:
    """Apply a zero-argument stage such as ``keys`` or ``unique``."""
    try:
        fn = BUILTINS[name]
    except KeyError:
        raise QueryError(f"Unknown jq builtin: '{name}'") from None
    return fn(value)


# ── Parsing ───────────────────────────────────────────────────────

_INDEX = re.compile(r"\.?\[\s*(-?\d+)\s*\]")
_SLICE = re.compile(r"\.?\[\s*(-?\d+)?\s*:\s*(-?\d+)?\s*\]")
_CONDITION = re.compile(
    r"(?P<path>\.[^\s=!<>]*)\s*(?P<op>==|!=|>=|<=|>|<)\s*(?P<literal>.+)", re.S
)


def _parse_path(text: str) -> Accessor:
    """Accessor for ``.a.b[0]``-style text (leading dot included)."""
    try:
        return parse_accessor(text[1:])
    except QueryError as e:
        raise QueryError(f"Invalid path '{text}': {e}") from e


def _parse_condition(text: str) -> Condition:
    text = text.strip()
    match = _CONDITION.fullmatch(text)
    if match:
        return Condition(
            _parse_path(match["path"]), match["op"], parse_literal(match["literal"])
        )
    if text.startswith("."):
        return Condition(_parse_path(text))
    raise QueryError(f"Unsupported select condition: '{text}'")


def _parse_stage(segment: str, depth: int, max_depth: int) -> Stage:
    if segment == ".":
        return Identity()
    if segment in BUILTINS:
        return Builtin(segment)
    if segment in ("keys[]", "values[]"):
        return Builtin(segment[:-2])

    if match := _INDEX.fullmatch(segment):
        return IndexStage(int(match[1]))
    if match := _SLICE.fullmatch(segment):
        start, end = match[1], match[2]
        return SliceStage(int(start) if start else None, int(end) if end else None)

    if (inner := strip_call(segment, "map")) is not None:
        return MapStage(_parse_chain(inner, depth + 1, max_depth))
    if (inner := strip_call(segment, "select")) is not None:
        return SelectStage(_parse_condition(inner))

    if segment.startswith("."):
        text, iterate = segment, False
        if text.endswith("[]"):
            text, iterate = text[:-2], True
        return PathStage(_parse_path(text), iterate)

    raise QueryError(f"Unknown jq stage: '{segment}'")


def _parse_chain(text: str, depth: int, max_depth: int) -> tuple[Stage, ...]:
    if depth > max_depth:
        raise DepthExceeded(max_depth)
    stages = []
    for raw in split_top_level(text, "|"):
        segment = raw.strip()
        if not segment:
            raise QueryError(f"Empty stage in jq filter '{text}'")
        stages.append(_parse_stage(segment, depth, max_depth))
    return tuple(stages)


def compile_filter(text: str, *, max_depth: int = DEFAULT_MAX_DEPTH) -> tuple[Stage, ...]:
    """Parse filter text into stages. Blank text is the identity filter.

    Raises:
        QueryError: If any stage is malformed or unknown.
    """
    if not text.strip():
        return (Identity(),)
    return _parse_chain(text, 0, max_depth)


# ── Evaluation ────────────────────────────────────────────────────


def evaluate_condition(item: JsonValue, condition: Condition) -> bool:
    field = resolve(item, condition.accessor)
    if condition.op is None:
        return truthy(field)
    return compare(condition.op, field, condition.literal)


def _iterate(value: JsonValue) -> JsonValue:
    if isinstance(value, JsonObject):
        return array(value.values())
    return value


def _apply(stage: Stage, value: JsonValue, depth: int, max_depth: int) -> JsonValue:
    match stage:
        case Identity():
            return value
        case PathStage(accessor=accessor, iterate=iterate):
            if not isinstance(value, (JsonArray, JsonObject)):
                return value
            result = resolve(value, accessor, distribute=True)
            if result is ABSENT:
                return NULL
            return _iterate(result) if iterate else result
        case IndexStage(index=i):
            if not isinstance(value, JsonArray):
                return value
            if -len(value) <= i < len(value):
                return value.items[i]
            return NULL
        case SliceStage(start=start, end=end):
            match value:
                case JsonArray(items=items):
                    return array(items[start:end])
                case JsonString(value=s):
                    return JsonString(s[start:end])
            return value
        case Builtin(name=name):
            return apply_builtin(name, value)
        case MapStage(body=body):
            if not isinstance(value, JsonArray):
                return value
            return array(_run(body, item, depth + 1, max_depth) for item in value)
        case SelectStage(condition=condition):
            if not isinstance(value, JsonArray):
                return value
            return array(item for item in value if evaluate_condition(item, condition))
    raise QueryError(f"Unsupported stage: {stage!r}")


def _run(
    chain: tuple[Stage, ...], value: JsonValue, depth: int, max_depth: int
) -> JsonValue:
    if depth > max_depth:
        raise DepthExceeded(max_depth)
    current = value
    for stage in chain:
        current = _apply(stage, current, depth, max_depth)
    return current


def run_filter(
    chain: tuple[Stage, ...], value: JsonValue, *, max_depth: int = DEFAULT_MAX_DEPTH
) -> JsonValue:
    """Run an already compiled chain against *value*."""
    return _run(chain, value, 0, max_depth)


def evaluate(value: JsonValue, filter_text: str, *, max_depth: int = DEFAULT_MAX_DEPTH) -> JsonValue:
    """Compile *filter_text* and run it against *value*.

    Raises:
        QueryError: If the filter text is malformed.
        DepthExceeded: If ``map`` nesting goes past *max_depth*.
    """
    return run_filter(compile_filter(filter_text, max_depth=max_depth), value, max_depth=max_depth)
