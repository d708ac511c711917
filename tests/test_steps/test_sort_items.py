"""Tests for the sort step executor."""

from __future__ import annotations

import pytest

from json_query.errors import QueryError
from json_query.models import SortStep
from json_query.settings import EngineSettings
from json_query.steps.sort_items import execute_sort, natural_key
from json_query.values import parse

SETTINGS = EngineSettings()
ITEMS = parse(
    '[{"id": 1, "name": "item10"}, {"id": 2, "name": "item2"},'
    ' {"id": 3, "name": "Item1"}, {"id": 4}, {"id": 5, "name": "item2"}]'
)


def _ids(config):
    step = SortStep(id="s", kind="sort", config=config)
    return [item.get("id").value for item in execute_sort(step, ITEMS, SETTINGS)]


def test_natural_case_insensitive_ascending():
    assert _ids("name") == [4, 3, 2, 5, 1]
    assert _ids("name asc") == [4, 3, 2, 5, 1]


def test_descending_is_stable():
    assert _ids("name desc") == [1, 2, 5, 3, 4]


def test_numbers_sort_numerically():
    assert _ids("id desc") == [5, 4, 3, 2, 1]


def test_natural_key():
    assert natural_key("a2") < natural_key("a10")
    assert natural_key("B") > natural_key("a")


def test_bad_direction():
    with pytest.raises(QueryError):
        _ids("name sideways")


def test_requires_array():
    step = SortStep(id="s", kind="sort", config="name")
    with pytest.raises(QueryError, match="sort requires an array"):
        execute_sort(step, parse("{}"), SETTINGS)
