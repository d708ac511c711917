"""pick, omit and rename steps: reshape objects by field name.

Each applies element-wise to an array, or once to an object.
"""

from __future__ import annotations

from collections.abc import Callable

from json_query.errors import QueryError
from json_query.models import OmitStep, PickStep, RenameStep
from json_query.paths import parse_accessor, resolve
from json_query.settings import EngineSettings
from json_query.values import ABSENT, JsonArray, JsonObject, JsonValue, array


def _field_list(config: str) -> list[str]:
    return [f.strip() for f in config.split(",") if f.strip()]


def _each(value: JsonValue, fn: Callable[[JsonValue], JsonValue]) -> JsonValue:
    if isinstance(value, JsonArray):
        return array(fn(item) for item in value)
    return fn(value)


def execute_pick(step: PickStep, value: JsonValue, settings: EngineSettings) -> JsonValue:
    """Keep only the listed fields. Dotted paths are keyed by the path text."""
    fields = [(f, parse_accessor(f)) for f in _field_list(step.config)]

    def pick(item: JsonValue) -> JsonValue:
        found = ((name, resolve(item, accessor)) for name, accessor in fields)
        return JsonObject.from_pairs((k, v) for k, v in found if v is not ABSENT)

    return _each(value, pick)


def execute_omit(step: OmitStep, value: JsonValue, settings: EngineSettings) -> JsonValue:
    fields = set(_field_list(step.config))

    def omit(item: JsonValue) -> JsonValue:
        if not isinstance(item, JsonObject):
            return item
        return JsonObject(tuple((k, v) for k, v in item.entries if k not in fields))

    return _each(value, omit)


def parse_renames(config: str) -> dict[str, str]:
    renames = {}
    for entry in _field_list(config):
        old, sep, new = entry.partition(":")
        if not sep or not old.strip() or not new.strip():
            raise QueryError(f"Invalid rename '{entry}', expected old:new")
        renames[old.strip()] = new.strip()
    return renames


def execute_rename(step: RenameStep, value: JsonValue, settings: EngineSettings) -> JsonValue:
    renames = parse_renames(step.config)

    def rename(item: JsonValue) -> JsonValue:
        if not isinstance(item, JsonObject):
            return item
        return JsonObject.from_pairs((renames.get(k, k), v) for k, v in item.entries)

    return _each(value, rename)
