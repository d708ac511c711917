"""Engine settings and YAML settings loading."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from json_query.errors import ConfigError
from json_query.expressions import DEFAULT_BUDGET
from json_query.values import DEFAULT_MAX_DEPTH


class EngineSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=1, le=10_000)
    expression_budget: int = Field(default=DEFAULT_BUDGET, ge=1)
    indent: int = Field(default=2, ge=0, le=8)


def load_settings(path: str | Path) -> EngineSettings:
    """Load engine settings from a YAML file.

    An empty file gives the defaults.

    Raises:
        ConfigError: If the file doesn't exist, YAML is invalid, or a
            value is out of range.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Settings file not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if raw is None:
        return EngineSettings()
    if not isinstance(raw, dict):
        raise ConfigError(f"Settings YAML must be a mapping, got {type(raw).__name__}")

    try:
        return EngineSettings.model_validate(raw)
    except PydanticValidationError as e:
        raise ConfigError(f"Settings invalid: {e}") from e
