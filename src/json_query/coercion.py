"""Coercion and comparison rules shared by every dialect.

jq ``select``, JSONata predicates, Mongo operators and workflow ``filter``
steps all compare through :func:`compare`, so ``"30" == 30`` or
``.age > "18"`` behave the same whichever dialect the query is written in.

Rules:

* ``to_number``: numbers as-is, ``null`` -> 0, booleans -> 0/1, strings
  holding a decimal literal (blank -> 0), anything else is NaN.
* Equality is structural, except that a number and a numeric string are
  equal when their numeric values match.
* Ordering (``<``, ``<=``, ``>``, ``>=``) is numeric when both sides coerce
  to numbers, lexicographic when both are strings, otherwise false.
* Truthiness: ``null``, ``false``, ``0`` and ``""`` are falsy; absent
  values are falsy; everything else is truthy.
"""

from __future__ import annotations

import json
import math
import re

from json_query.values import (
    ABSENT,
    FALSE,
    NULL,
    TRUE,
    Absent,
    JsonArray,
    JsonBool,
    JsonNull,
    JsonNumber,
    JsonObject,
    JsonString,
    JsonValue,
    number,
    render,
)

_DECIMAL = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

COMPARISON_OPERATORS = ("==", "!=", ">=", "<=", ">", "<")


def to_number(value: JsonValue | Absent) -> float:
    """Numeric view of a value; ``math.nan`` when it has none."""
    match value:
        case JsonNumber(value=n):
            return float(n)
        case JsonNull():
            return 0.0
        case JsonBool(value=b):
            return 1.0 if b else 0.0
        case JsonString(value=s):
            text = s.strip()
            if not text:
                return 0.0
            if _DECIMAL.fullmatch(text):
                return float(text)
            return math.nan
    return math.nan


def truthy(value: JsonValue | Absent) -> bool:
    match value:
        case Absent() | JsonNull():
            return False
        case JsonBool(value=b):
            return b
        case JsonNumber(value=n):
            return n != 0
        case JsonString(value=s):
            return s != ""
    return True


def to_text(value: JsonValue | Absent) -> str:
    """Plain-text form used by substring tests and text sorting."""
    match value:
        case Absent():
            return ""
        case JsonString(value=s):
            return s
        case JsonNull():
            return "null"
        case JsonBool(value=b):
            return "true" if b else "false"
        case JsonNumber(value=n):
            return str(n)
        case JsonArray() | JsonObject():
            return render(value, indent=0)
    return str(value)


def loose_equals(left: JsonValue | Absent, right: JsonValue | Absent) -> bool:
    if left is ABSENT or right is ABSENT:
        return left is right
    if left == right:
        return True
    match (left, right):
        case (JsonNumber(), JsonString()) | (JsonString(), JsonNumber()):
            a, b = to_number(left), to_number(right)
            return not math.isnan(a) and a == b
    return False


def compare(op: str, left: JsonValue | Absent, right: JsonValue | Absent) -> bool:
    """Apply a comparison operator. ``=`` is accepted as an alias of ``==``."""
    if op in ("==", "="):
        return loose_equals(left, right)
    if op == "!=":
        return not loose_equals(left, right)

    a, b = to_number(left), to_number(right)
    if not (math.isnan(a) or math.isnan(b)):
        pair: tuple = (a, b)
    elif isinstance(left, JsonString) and isinstance(right, JsonString):
        pair = (left.value, right.value)
    else:
        return False

    match op:
        case ">":
            return pair[0] > pair[1]
        case ">=":
            return pair[0] >= pair[1]
        case "<":
            return pair[0] < pair[1]
        case "<=":
            return pair[0] <= pair[1]
    raise ValueError(f"Unknown comparison operator: {op}")


def parse_literal(text: str) -> JsonValue:
    """Infer a literal's type from its text.

    ``null``/``true``/``false``, quoted strings (single or double quotes)
    and numbers are recognised; any other word is taken as a string.
    """
    text = text.strip()
    if text == "null":
        return NULL
    if text == "true":
        return TRUE
    if text == "false":
        return FALSE
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        if text[0] == '"':
            try:
                return JsonString(json.loads(text))
            except ValueError:
                pass
        return JsonString(text[1:-1])
    if _DECIMAL.fullmatch(text):
        return number(float(text) if any(c in text for c in ".eE") else int(text))
    return JsonString(text)
