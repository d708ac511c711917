"""Tests for engine settings loading."""

from __future__ import annotations

import pytest

from json_query.errors import ConfigError
from json_query.settings import EngineSettings, load_settings


def test_defaults():
    settings = EngineSettings()
    assert settings.max_depth == 512
    assert settings.expression_budget == 10_000
    assert settings.indent == 2


def test_load_settings(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text("max_depth: 64\nindent: 0\n")
    settings = load_settings(path)
    assert settings.max_depth == 64
    assert settings.indent == 0
    assert settings.expression_budget == 10_000


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text("")
    assert load_settings(path) == EngineSettings()


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_settings(tmp_path / "nope.yaml")


@pytest.mark.parametrize(
    "content",
    ["max_depth: [1\n", "- 1\n- 2\n", "max_depth: 0\n", "indent: 20\n", "colour: blue\n"],
)
def test_invalid_settings(tmp_path, content):
    path = tmp_path / "engine.yaml"
    path.write_text(content)
    with pytest.raises(ConfigError):
        load_settings(path)
