"""sort step: order array elements by a field, ``field [asc|desc]``."""

from __future__ import annotations

import re

from json_query.coercion import to_text
from json_query.errors import QueryError
from json_query.models import SortStep
from json_query.paths import parse_accessor, resolve
from json_query.settings import EngineSettings
from json_query.values import JsonArray, JsonValue, array

_CHUNKS = re.compile(r"(\d+)")


def natural_key(text: str) -> tuple[tuple[int, int | str], ...]:
    """Digit-aware, case-insensitive key: ``"item2" < "item10"``."""
    return tuple(
        (0, int(chunk)) if chunk.isdecimal() else (1, chunk.casefold())
        for chunk in _CHUNKS.split(text)
        if chunk
    )


def execute_sort(step: SortStep, value: JsonValue, settings: EngineSettings) -> JsonValue:
    if not isinstance(value, JsonArray):
        raise QueryError(f"sort requires an array, got {value.type_tag}")

    parts = step.config.split()
    field = parts[0].removeprefix(".") if parts else ""
    direction = parts[1].lower() if len(parts) > 1 else "asc"
    if direction not in ("asc", "desc"):
        raise QueryError(f"Unknown sort direction '{parts[1]}', expected asc or desc")

    accessor = parse_accessor(field)
    return array(
        sorted(
            value,
            key=lambda item: natural_key(to_text(resolve(item, accessor))),
            reverse=direction == "desc",
        )
    )
