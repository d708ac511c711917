"""Tests for the pick, omit and rename step executors."""

from __future__ import annotations

import pytest

from json_query.errors import QueryError
from json_query.executor import run_workflow
from json_query.models import OmitStep, PickStep, RenameStep
from json_query.settings import EngineSettings
from json_query.steps.fields import execute_omit, execute_pick, execute_rename
from json_query.values import number, parse

SETTINGS = EngineSettings()
RECORD = parse('{"a": 1, "b": 2, "c": 3, "user": {"name": "ann"}}')


def _pick(config, value=RECORD):
    return execute_pick(PickStep(id="p", kind="pick", config=config), value, SETTINGS)


def _omit(config, value=RECORD):
    return execute_omit(OmitStep(id="o", kind="omit", config=config), value, SETTINGS)


def _rename(config, value=RECORD):
    return execute_rename(RenameStep(id="r", kind="rename", config=config), value, SETTINGS)


# ── pick ──────────────────────────────────────────────────────────


def test_pick_fields_in_listed_order():
    assert _pick("b, a") == parse('{"b": 2, "a": 1}')


def test_pick_dotted_path_keyed_by_path_text():
    assert _pick("user.name, missing") == parse('{"user.name": "ann"}')


def test_pick_element_wise():
    rows = parse('[{"a": 1, "b": 2}, {"b": 3}, 7]')
    assert _pick("a", rows) == parse('[{"a": 1}, {}, {}]')


# ── omit ──────────────────────────────────────────────────────────


def test_omit_fields():
    assert _omit("a, user") == parse('{"b": 2, "c": 3}')


def test_omit_passes_non_objects_through():
    assert _omit("a", parse('[{"a": 1, "b": 2}, 5]')) == parse('[{"b": 2}, 5]')


# ── rename ────────────────────────────────────────────────────────


def test_rename_keeps_position():
    assert _rename("a:x, c : z") == parse('{"x": 1, "b": 2, "z": 3, "user": {"name": "ann"}}')


def test_rename_unmatched_keys_unchanged():
    assert _rename("nope:x") == RECORD


def test_rename_bad_pair():
    with pytest.raises(QueryError):
        _rename("a")


# ── step order ────────────────────────────────────────────────────


def test_step_order_is_observable():
    doc = parse('{"a": 1, "b": 2, "c": 3}')
    pick = PickStep(id="1", kind="pick", config="a,b")
    rename = RenameStep(id="2", kind="rename", config="a:x")
    assert run_workflow(doc, [pick, rename]).final_output == parse('{"x": 1, "b": 2}')
    assert run_workflow(doc, [rename, pick]).final_output == parse('{"b": 2}')


def test_pick_scalar_gives_empty_object():
    assert _pick("a", number(3)) == parse("{}")
