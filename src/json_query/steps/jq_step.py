"""jq step: a plain ``.path`` lookup, or a full jq-subset filter."""

from __future__ import annotations

from json_query import jq
from json_query.models import JqStep
from json_query.paths import is_plain_path, resolve
from json_query.settings import EngineSettings
from json_query.values import ABSENT, NULL, JsonValue


def execute_jq(step: JqStep, value: JsonValue, settings: EngineSettings) -> JsonValue:
    text = step.config.strip()
    if is_plain_path(text):
        found = resolve(value, text[1:])
        return NULL if found is ABSENT else found
    return jq.evaluate(value, text, max_depth=settings.max_depth)
