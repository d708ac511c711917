"""Path explorer: find where things live inside a document.

Three modes, picked by the expression's first character:

* ``$.items[*].name``: JSONPath-like walk, one result per match
* ``.items[0]`` or empty: a single resolve from the root
* anything else: case-insensitive key search over the whole document
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from json_query.errors import QueryError
from json_query.paths import format_key, iter_matches, parse_accessor, resolve
from json_query.values import ABSENT, JsonArray, JsonObject, JsonValue


@dataclass(frozen=True)
class PathMatch:
    path: str
    value: JsonValue

    @property
    def type(self) -> str:
        return self.value.type_tag


def _search_keys(value: JsonValue, needle: str, path: str) -> Iterator[PathMatch]:
    match value:
        case JsonArray(items=items):
            for i, item in enumerate(items):
                yield from _search_keys(item, needle, f"{path}[{i}]")
        case JsonObject(entries=entries):
            for key, child in entries:
                child_path = format_key(path, key)
                if needle in key.lower():
                    yield PathMatch(child_path, child)
                yield from _search_keys(child, needle, child_path)


def explore(value: JsonValue, expression: str) -> list[PathMatch]:
    """List the locations *expression* points at.

    Raises:
        QueryError: If a ``$`` or ``.`` expression is not a valid accessor.
    """
    text = expression.strip()

    if text.startswith("$"):
        rest = text[1:]
        if rest.startswith("."):
            rest = rest[1:]
        if rest.startswith("."):
            raise QueryError(f"Recursive descent is not supported: '{text}'")
        return [PathMatch(p, v) for p, v in iter_matches(value, parse_accessor(rest))]

    if not text or text.startswith("."):
        found = resolve(value, text[1:])
        if found is ABSENT:
            return []
        return [PathMatch(text or "$", found)]

    return list(_search_keys(value, text.lower(), "$"))
