"""Tests for the JSONata-subset interpreter."""

from __future__ import annotations

import pytest

from json_query.errors import QueryError
from json_query.jsonata_query import evaluate
from json_query.values import ABSENT, NULL, JsonString, number, parse

PEOPLE = parse('[{"age": 17}, {"age": 30}, {"age": 45}]')

ORDER = parse(
    '{"customer": {"name": "ann"},'
    ' "items": [{"sku": "a", "price": 5, "tags": ["x", "y"]},'
    '           {"sku": "b", "price": 25, "tags": ["y"]},'
    '           {"sku": "c", "price": 12}]}'
)


def test_sum_over_distributed_field():
    assert evaluate(PEOPLE, "$sum(age)") == number(92)


def test_sum_non_numeric_is_null():
    assert evaluate(parse('[{"v": 1}, {"v": "x"}]'), "$sum(v)") == NULL


def test_count():
    assert evaluate(ORDER, "$count(items)") == number(3)
    assert evaluate(ORDER, "$count(customer)") == number(1)
    assert evaluate(ORDER, "$count(missing)") == number(0)


def test_distinct_flattens_and_dedupes():
    assert evaluate(ORDER, "$distinct(items.tags)") == parse('["x", "y"]')


def test_path_navigation():
    assert evaluate(ORDER, "customer.name") == JsonString("ann")
    assert evaluate(ORDER, "$.customer.name") == JsonString("ann")
    assert evaluate(ORDER, "items.sku") == parse('["a", "b", "c"]')


def test_missing_path_is_absent():
    assert evaluate(ORDER, "customer.email") is ABSENT


def test_predicate_filter():
    assert evaluate(ORDER, "items[price > 10].sku") == parse('["b", "c"]')
    assert evaluate(ORDER, 'items[sku = "a"].price') == parse("[5]")
    assert evaluate(ORDER, "items[price >= 12].sku") == parse('["b", "c"]')


def test_predicate_index():
    assert evaluate(ORDER, "items[0].sku") == JsonString("a")
    assert evaluate(ORDER, "items[-1].sku") == JsonString("c")


def test_root_predicate_on_top_level_array():
    assert evaluate(PEOPLE, "$[age > 18]") == parse('[{"age": 30}, {"age": 45}]')
    assert evaluate(PEOPLE, "$[0]") == parse('{"age": 17}')
    assert evaluate(PEOPLE, "$$[-1].age") == number(45)


def test_wildcard_children():
    doc = parse('{"a": {"x": 1, "y": 2}}')
    assert evaluate(doc, "a.*") == parse("[1, 2]")


def test_empty_expression_is_identity():
    assert evaluate(ORDER, "  ") == ORDER


def test_syntax_error_raises_before_evaluation():
    with pytest.raises(QueryError):
        evaluate(ORDER, "items[")
