"""JSONata-subset interpreter.

Supported forms:

* ``$count(path)``, ``$sum(path)``, ``$distinct(path)``
* path navigation ``a.b.c`` with ``$`` as the root and ``*`` for children
* one predicate per segment: ``items[price > 10]`` (``=``, ``!=``, ``>``,
  ``<``, ``>=``, ``<=``) or an index ``items[0]``

Expressions are syntax-checked with the jsonata library before evaluation.
Anything it accepts that falls outside the subset is navigated as a path.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable

import jsonata

from json_query.coercion import compare, parse_literal, to_number
from json_query.errors import QueryError
from json_query.paths import resolve
from json_query.syntax import split_top_level, strip_call
from json_query.values import (
    ABSENT,
    NULL,
    Absent,
    JsonArray,
    JsonObject,
    JsonValue,
    array,
    number,
)

_PREDICATE = re.compile(r"(?P<key>[^\[\]]+)\[(?P<inner>.+)\]", re.S)
_CONDITION = re.compile(
    r"(?P<key>[\w$.\-]+)\s*(?P<op>!=|>=|<=|=|>|<)\s*(?P<literal>.+)", re.S
)
_INTEGER = re.compile(r"-?\d+")
_ROOTS = ("$", "$$")


def check_syntax(expression: str) -> None:
    """Raise QueryError unless *expression* parses as JSONata."""
    try:
        jsonata.Jsonata(expression)
    except Exception as e:
        raise QueryError(f"Invalid JSONata expression '{expression}': {e}") from e


def _wrap(value: JsonValue) -> tuple[JsonValue, ...]:
    return value.items if isinstance(value, JsonArray) else (value,)


def _count(value: JsonValue | Absent) -> JsonValue:
    match value:
        case Absent():
            return number(0)
        case JsonArray() | JsonObject():
            return number(len(value))
    return number(1)


def _sum(value: JsonValue | Absent) -> JsonValue:
    if value is ABSENT:
        return number(0)
    total = math.fsum(to_number(v) for v in _wrap(value))
    return NULL if math.isnan(total) else number(total)


def _distinct(value: JsonValue | Absent) -> JsonValue | Absent:
    if value is ABSENT:
        return ABSENT
    return array(dict.fromkeys(_wrap(value)))


_AGGREGATES: dict[str, Callable[[JsonValue | Absent], JsonValue | Absent]] = {
    "$count": _count,
    "$sum": _sum,
    "$distinct": _distinct,
}


def _field(current: JsonValue, name: str) -> JsonValue | Absent:
    """Field access; on arrays it maps and flattens one level."""
    if len(name) >= 2 and name[0] == name[-1] == "`":
        name = name[1:-1]
    match current:
        case JsonObject():
            return current.get(name)
        case JsonArray():
            out: list[JsonValue] = []
            for item in current:
                if not isinstance(item, JsonObject):
                    continue
                found = item.get(name)
                if isinstance(found, JsonArray):
                    out.extend(found)
                elif found is not ABSENT:
                    out.append(found)
            return array(out)
    return ABSENT


def _predicate(target: JsonValue, inner: str) -> JsonValue | Absent:
    if _INTEGER.fullmatch(inner):
        i = int(inner)
        items = _wrap(target)
        return items[i] if -len(items) <= i < len(items) else ABSENT

    condition = _CONDITION.fullmatch(inner)
    if not condition:
        raise QueryError(f"Unsupported predicate: '[{inner}]'")
    if not isinstance(target, JsonArray):
        return target

    key, op = condition["key"], condition["op"]
    literal = parse_literal(condition["literal"])
    return array(
        item
        for item in target
        if isinstance(item, JsonObject) and compare(op, resolve(item, key), literal)
    )


def _step(current: JsonValue, segment: str) -> JsonValue | Absent:
    if segment == "*":
        if isinstance(current, JsonObject):
            return array(current.values())
        return current

    match = _PREDICATE.fullmatch(segment)
    if match:
        key = match["key"].strip()
        target = current if key in _ROOTS else _field(current, key)
        if target is ABSENT:
            return ABSENT
        return _predicate(target, match["inner"].strip())

    return _field(current, segment)


def resolve_path(value: JsonValue, path: str) -> JsonValue | Absent:
    """Navigate a dotted JSONata path from *value*."""
    segments = [s.strip() for s in split_top_level(path.strip(), ".")]
    if segments and segments[0] in _ROOTS:
        segments = segments[1:]

    current: JsonValue | Absent = value
    for segment in segments:
        if not segment:
            raise QueryError(f"Empty segment in JSONata path '{path}'")
        current = _step(current, segment)
        if current is ABSENT:
            return ABSENT
    return current


def evaluate(value: JsonValue, expression: str) -> JsonValue | Absent:
    """Evaluate a JSONata-subset expression.

    Returns ABSENT when the path does not exist.

    Raises:
        QueryError: On JSONata syntax errors or unsupported predicates.
    """
    text = expression.strip()
    if not text:
        return value
    check_syntax(text)

    for name, aggregate in _AGGREGATES.items():
        inner = strip_call(text, name)
        if inner is not None:
            return aggregate(resolve_path(value, inner))

    return resolve_path(value, text)
