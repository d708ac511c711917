"""Tests for the restricted expression language used by custom steps.

Covers literals, paths, arithmetic, logic, construction, the function
vocabulary, and the guards that keep an expression from running away.
"""

from __future__ import annotations

import pytest

from json_query.errors import DepthExceeded, QueryError
from json_query.expressions import compile_expression, evaluate_expression
from json_query.values import NULL, TRUE, JsonString, number, parse

ORDER = parse(
    '{"id": 7, "customer": {"name": "ann", "vip": true},'
    ' "items": [{"sku": "a", "price": 2.5, "qty": 4}, {"sku": "b", "price": 10, "qty": 1}],'
    ' "tags": ["new", "gift"], "note": null, "a b": 1}'
)


def ev(text, value=ORDER, **kwargs):
    return evaluate_expression(value, text, **kwargs)


# ── Literals and paths ────────────────────────────────────────────


def test_literals():
    assert ev("42") == number(42)
    assert ev("1.5e1") == number(15)
    assert ev('"hi"') == JsonString("hi")
    assert ev("'hi'") == JsonString("hi")
    assert ev("true") == TRUE
    assert ev("null") == NULL


def test_blank_expression_is_identity():
    assert ev("   ") == ORDER
    assert ev(".") == ORDER


def test_paths():
    assert ev(".customer.name") == JsonString("ann")
    assert ev(".items[1].sku") == JsonString("b")
    assert ev(".items[-1].qty") == number(1)
    assert ev('.customer["name"]') == JsonString("ann")
    assert ev('."a b"') == number(1)
    assert ev(".items.sku") == parse('["a", "b"]')


def test_missing_paths_are_null():
    assert ev(".missing.deeper") == NULL
    assert ev(".items[9]") == NULL


def test_computed_index():
    doc = parse('{"i": 1, "xs": [10, 20]}')
    assert ev(".xs[.i]", doc) == number(20)


# ── Arithmetic ────────────────────────────────────────────────────


def test_arithmetic_precedence():
    assert ev("1 + 2 * 3") == number(7)
    assert ev("(1 + 2) * 3") == number(9)
    assert ev("-.id + 10") == number(3)
    assert ev("7 % 3") == number(1)
    assert ev("7 / 2") == number(3.5)


def test_addition_by_type():
    assert ev('.customer.name + "!"') == JsonString("ann!")
    assert ev(".tags + [\"x\"]") == parse('["new", "gift", "x"]')
    assert ev('{a: 1} + {b: 2, a: 3}') == parse('{"a": 3, "b": 2}')
    assert ev(".note + 1") == number(1)


def test_array_difference():
    assert ev('.tags - ["new"]') == parse('["gift"]')


def test_division_by_zero():
    with pytest.raises(QueryError, match="Division by zero"):
        ev("1 / 0")


def test_type_errors():
    with pytest.raises(QueryError):
        ev('"a" - 1')
    with pytest.raises(QueryError):
        ev('-"a"')


# ── Logic and conditionals ────────────────────────────────────────


def test_comparisons_use_shared_coercion():
    assert ev('.id == "7"') == TRUE
    assert ev(".id > 5 and .customer.vip") == TRUE
    assert ev(".id < 5 or .note") == parse("false")


def test_not_prefix_and_postfix():
    assert ev("not .customer.vip") == parse("false")
    assert ev(".note | not") == TRUE


def test_if_elif_else():
    text = 'if .id > 10 then "big" elif .id > 5 then "medium" else "small" end'
    assert ev(text) == JsonString("medium")
    assert ev('if .note then "x" end') == ORDER


# ── Construction and pipes ────────────────────────────────────────


def test_object_construction():
    result = ev('{id, name: .customer.name, "n items": (.items | length)}')
    assert result == parse('{"id": 7, "name": "ann", "n items": 2}')


def test_computed_object_key():
    assert ev("{(.customer.name): .id}") == parse('{"ann": 7}')


def test_array_construction():
    assert ev("[.id, .customer.name]") == parse('[7, "ann"]')
    assert ev("[]") == parse("[]")


def test_pipes_rebind_dot():
    assert ev(".customer | .name") == JsonString("ann")


# ── Functions ─────────────────────────────────────────────────────


def test_map_and_sum():
    assert ev(".items | map(.price * .qty) | sum") == number(20)
    assert ev("sum(.items.qty)") == number(5)


def test_select():
    assert ev(".items | select(.price > 5) | map(.sku)") == parse('["b"]')


def test_jq_vocabulary_as_functions():
    assert ev("keys(.customer)") == parse('["name", "vip"]')
    assert ev(".tags | length") == number(2)
    assert ev("reverse(.tags)") == parse('["gift", "new"]')
    assert ev("type(.note)") == JsonString("null")


def test_has_join_min_max():
    assert ev('has("customer")') == TRUE
    assert ev(".tags | has(5)") == parse("false")
    assert ev('.tags | join(", ")') == JsonString("new, gift")
    assert ev("min(.items.price)") == number(2.5)
    assert ev("max(.items.price)") == number(10)
    assert ev("min([])") == NULL


def test_conversions_and_round():
    assert ev('"42" | tonumber') == number(42)
    assert ev("tostring(.id)") == JsonString("7")
    assert ev("round(2.5)") == number(3)
    assert ev("round(-2.5)") == number(-2)
    with pytest.raises(QueryError):
        ev('"abc" | tonumber')


# ── Guards ────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "text",
    ["1 +", "eval(1)", "map()", "__import__('os')", ".a ~ 1", "if 1 then 2", "{1: 2}", "[1, 2"],
)
def test_malformed_expressions_raise(text):
    with pytest.raises(QueryError):
        compile_expression(text)


def test_budget_exhaustion():
    with pytest.raises(QueryError, match="budget"):
        ev(".id + .id + .id", budget=3)


def test_nesting_depth_limit():
    with pytest.raises(DepthExceeded):
        compile_expression("(" * 50 + "1" + ")" * 50, max_depth=10)
