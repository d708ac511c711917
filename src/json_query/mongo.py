"""Mongo-query-subset matcher.

A query document maps field names (dotted paths allowed) to a literal,
which must match exactly, or to an operator object such as
``{"$gt": 18}``. ``$and``, ``$or`` and ``$not`` combine sub-queries.

Query text is parsed, shape-checked against a JSON Schema and its regexes
compiled before any document is looked at, so a bad query fails once
instead of once per document.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

import jsonschema

from json_query.coercion import compare, loose_equals, to_text, truthy
from json_query.errors import DepthExceeded, QueryError
from json_query.values import (
    ABSENT,
    DEFAULT_MAX_DEPTH,
    NULL,
    Absent,
    JsonArray,
    JsonObject,
    JsonString,
    JsonValue,
    array,
    from_python,
)

LOGICAL_OPERATORS = ("$and", "$or", "$not")
FIELD_OPERATORS = (
    "$eq", "$ne", "$gt", "$gte", "$lt", "$lte", "$in", "$nin", "$exists", "$regex",
)

_ORDERING = {"$gt": ">", "$gte": ">=", "$lt": "<", "$lte": "<="}
_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}

QUERY_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$ref": "#/$defs/query",
    "$defs": {
        "query": {
            "type": "object",
            "propertyNames": {
                "anyOf": [{"not": {"pattern": "^\\$"}}, {"enum": list(LOGICAL_OPERATORS)}]
            },
            "properties": {
                "$and": {"type": "array", "minItems": 1, "items": {"$ref": "#/$defs/query"}},
                "$or": {"type": "array", "minItems": 1, "items": {"$ref": "#/$defs/query"}},
                "$not": {"$ref": "#/$defs/query"},
            },
            "additionalProperties": {
                "anyOf": [
                    {"$ref": "#/$defs/operators"},
                    {"not": {"$ref": "#/$defs/operatorLike"}},
                ]
            },
        },
        # Objects whose keys all start with "$" are operator objects.
        "operatorLike": {
            "type": "object",
            "minProperties": 1,
            "propertyNames": {"pattern": "^\\$"},
        },
        "operators": {
            "type": "object",
            "minProperties": 1,
            "properties": {
                **{op: {} for op in ("$eq", "$ne", "$gt", "$gte", "$lt", "$lte", "$exists")},
                "$in": {"type": "array"},
                "$nin": {"type": "array"},
                "$regex": {"type": "string"},
                "$options": {"type": "string", "pattern": "^[imsx]*$"},
            },
            "dependentRequired": {"$options": ["$regex"]},
            "additionalProperties": False,
        },
    },
}


@dataclass(frozen=True)
class MongoQuery:
    """A validated query: its Value form plus compiled regexes by pattern text."""

    document: JsonValue
    regexes: dict[tuple[str, str], re.Pattern[str]]


def _compile_regexes(raw: Any, found: dict[tuple[str, str], re.Pattern[str]]) -> None:
    if isinstance(raw, list):
        for item in raw:
            _compile_regexes(item, found)
        return
    if not isinstance(raw, dict):
        return
    if "$regex" in raw and isinstance(raw["$regex"], str):
        pattern, options = raw["$regex"], raw.get("$options", "")
        flags = 0
        for letter in options:
            flags |= _REGEX_FLAGS[letter]
        try:
            found[(pattern, options)] = re.compile(pattern, flags)
        except re.error as e:
            raise QueryError(f"Invalid MongoDB query: bad $regex '{pattern}': {e}") from e
    for value in raw.values():
        _compile_regexes(value, found)


def parse_query(text: str, *, max_depth: int = DEFAULT_MAX_DEPTH) -> MongoQuery:
    """Parse and validate Mongo query text.

    Nesting is bounded before the schema check runs, so a deep query
    fails with DepthExceeded rather than exhausting the stack.

    Raises:
        QueryError: If the text isn't JSON, isn't a valid query document,
            or contains a regex that doesn't compile.
        DepthExceeded: If the query nests deeper than *max_depth*.
    """
    try:
        raw = json.loads(text) if text.strip() else {}
    except ValueError as e:
        raise QueryError(f"Invalid MongoDB query: {e}") from e
    except RecursionError as e:
        raise DepthExceeded(max_depth) from e

    document = from_python(raw, max_depth=max_depth)

    try:
        jsonschema.validate(instance=raw, schema=QUERY_SCHEMA)
    except jsonschema.ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "query"
        raise QueryError(f"Invalid MongoDB query at {location}: {e.message}") from e
    except RecursionError as e:
        raise DepthExceeded(max_depth) from e

    regexes: dict[tuple[str, str], re.Pattern[str]] = {}
    _compile_regexes(raw, regexes)
    return MongoQuery(document, regexes)


def _is_operator_object(condition: JsonValue) -> bool:
    return (
        isinstance(condition, JsonObject)
        and len(condition) > 0
        and all(k.startswith("$") for k in condition.keys())
    )


def _field_value(item: JsonObject, key: str) -> JsonValue | Absent:
    """Look up a field, following Mongo dot notation (``a.b``, ``tags.0``)."""
    if key in item or "." not in key:
        return item.get(key)
    current: JsonValue | Absent = item
    for part in key.split("."):
        if isinstance(current, JsonObject):
            current = current.get(part)
        elif isinstance(current, JsonArray) and part.isdecimal() and int(part) < len(current):
            current = current.items[int(part)]
        else:
            return ABSENT
    return current


def _contains(candidates: JsonValue, value: JsonValue | Absent) -> bool:
    if not isinstance(candidates, JsonArray):
        return False
    return any(loose_equals(value, c) for c in candidates)


def _match_regex(
    field_value: JsonValue | Absent, operators: JsonObject, query: MongoQuery
) -> bool:
    pattern, options = operators.get("$regex"), operators.get("$options")
    key = (
        pattern.value if isinstance(pattern, JsonString) else "",
        options.value if isinstance(options, JsonString) else "",
    )
    if field_value is ABSENT:
        return False
    return query.regexes[key].search(to_text(field_value)) is not None


def _match_operators(
    field_value: JsonValue | Absent, operators: JsonObject, query: MongoQuery
) -> bool:
    for op, operand in operators.entries:
        match op:
            case "$eq":
                ok = loose_equals(field_value, operand)
            case "$ne":
                ok = not loose_equals(field_value, operand)
            case "$gt" | "$gte" | "$lt" | "$lte":
                ok = compare(_ORDERING[op], field_value, operand)
            case "$in":
                ok = _contains(operand, field_value)
            case "$nin":
                ok = not _contains(operand, field_value)
            case "$exists":
                ok = (field_value is not ABSENT) == truthy(operand)
            case "$regex":
                ok = _match_regex(field_value, operators, query)
            case "$options":
                ok = True
            case _:
                raise QueryError(f"Unknown MongoDB operator: {op}")
        if not ok:
            return False
    return True


def _matches(item: JsonValue, document: JsonValue, query: MongoQuery) -> bool:
    if not isinstance(item, JsonObject) or not isinstance(document, JsonObject):
        return False

    for key, condition in document.entries:
        if key == "$and":
            ok = isinstance(condition, JsonArray) and all(
                _matches(item, sub, query) for sub in condition
            )
        elif key == "$or":
            ok = isinstance(condition, JsonArray) and any(
                _matches(item, sub, query) for sub in condition
            )
        elif key == "$not":
            ok = not _matches(item, condition, query)
        elif isinstance(condition, JsonObject) and _is_operator_object(condition):
            ok = _match_operators(_field_value(item, key), condition, query)
        else:
            ok = loose_equals(_field_value(item, key), condition)
        if not ok:
            return False
    return True


def matches(document: JsonValue, query: MongoQuery | str) -> bool:
    """True when *document* satisfies *query*. Non-objects never match."""
    if isinstance(query, str):
        query = parse_query(query)
    return _matches(document, query.document, query)


def _first_array(value: JsonObject) -> JsonArray | Absent:
    for v in value.values():
        if isinstance(v, JsonArray):
            return v
    return ABSENT


def filter(
    value: JsonValue, query: MongoQuery | str, *, max_depth: int = DEFAULT_MAX_DEPTH
) -> JsonValue:
    """Apply *query* to a collection.

    Arrays are filtered. An object is filtered through its first
    array-valued field; an object without one is returned if it matches,
    otherwise ``null``. Scalars pass through unchanged.
    """
    if isinstance(query, str):
        query = parse_query(query, max_depth=max_depth)

    match value:
        case JsonArray():
            return array(item for item in value if matches(item, query))
        case JsonObject():
            collection = _first_array(value)
            if collection is ABSENT:
                return value if matches(value, query) else NULL
            return array(item for item in collection if matches(item, query))
    return value
