"""map step: project fields from every element, or run a jq filter per element."""

from __future__ import annotations

from json_query import jq
from json_query.errors import QueryError
from json_query.models import MapStep
from json_query.paths import Accessor, parse_accessor, resolve
from json_query.settings import EngineSettings
from json_query.syntax import split_top_level
from json_query.values import ABSENT, JsonArray, JsonObject, JsonValue, array


def parse_projection(config: str) -> list[tuple[Accessor, str]] | None:
    """Parse ``{a, c.d: b}`` into (source accessor, target key) pairs.

    Returns None when the config is not brace-delimited.

    Each entry is ``source[:target]``: the value at path *source* is stored
    under key *target*.
    """
    text = config.strip()
    if not (text.startswith("{") and text.endswith("}")):
        return None

    pairs = []
    for raw in split_top_level(text[1:-1], ","):
        entry = raw.strip()
        if not entry:
            continue
        source, sep, target = entry.partition(":")
        source, target = source.strip(), target.strip() if sep else source.strip()
        if not source or not target:
            raise QueryError(f"Invalid map entry '{entry}', expected source[:target]")
        pairs.append((parse_accessor(source), target))
    return pairs


def _project(item: JsonValue, pairs: list[tuple[Accessor, str]]) -> JsonObject:
    picked = ((target, resolve(item, source)) for source, target in pairs)
    return JsonObject.from_pairs((k, v) for k, v in picked if v is not ABSENT)


def execute_map(step: MapStep, value: JsonValue, settings: EngineSettings) -> JsonValue:
    if not isinstance(value, JsonArray):
        raise QueryError(f"map requires an array, got {value.type_tag}")

    pairs = parse_projection(step.config)
    if pairs is not None:
        return array(_project(item, pairs) for item in value)

    if not step.config.strip():
        return value
    chain = jq.compile_filter(step.config, max_depth=settings.max_depth)
    return array(jq.run_filter(chain, item, max_depth=settings.max_depth) for item in value)
