"""Tests for the Mongo-query-subset matcher."""

from __future__ import annotations

import pytest

from json_query import jq
from json_query.errors import DepthExceeded, QueryError
from json_query.mongo import filter, matches, parse_query
from json_query.values import NULL, number, parse

PEOPLE = parse('[{"age": 17}, {"age": 30}, {"age": 45}]')

USERS = parse(
    '[{"name": "Ann", "age": 30, "tags": ["admin", "dev"], "address": {"city": "Oslo"}},'
    ' {"name": "bob", "age": 17, "tags": ["dev"]},'
    ' {"name": "Cy", "age": "45", "email": "cy@example.com"}]'
)


def _names(result):
    return [item.get("name").value for item in result]


def test_gt_agrees_with_jq_select():
    expected = jq.evaluate(PEOPLE, ".[] | select(.age > 18)")
    assert filter(PEOPLE, '{"age": {"$gt": 18}}') == expected


def test_literal_equality_coerces_numeric_strings():
    assert _names(filter(USERS, '{"age": 45}')) == ["Cy"]


def test_comparison_operators():
    assert _names(filter(USERS, '{"age": {"$gte": 30}}')) == ["Ann", "Cy"]
    assert _names(filter(USERS, '{"age": {"$lt": 30, "$ne": 17}}')) == []
    assert _names(filter(USERS, '{"name": {"$eq": "bob"}}')) == ["bob"]


def test_in_and_nin():
    assert _names(filter(USERS, '{"name": {"$in": ["bob", "Cy"]}}')) == ["bob", "Cy"]
    assert _names(filter(USERS, '{"name": {"$nin": ["bob"]}}')) == ["Ann", "Cy"]


def test_exists():
    assert _names(filter(USERS, '{"email": {"$exists": true}}')) == ["Cy"]
    assert _names(filter(USERS, '{"email": {"$exists": false}}')) == ["Ann", "bob"]


def test_regex_with_options():
    assert _names(filter(USERS, '{"name": {"$regex": "^[ab]"}}')) == ["bob"]
    assert _names(filter(USERS, '{"name": {"$regex": "^[ab]", "$options": "i"}}')) == [
        "Ann",
        "bob",
    ]


def test_logical_operators():
    query = '{"$or": [{"age": {"$lt": 18}}, {"name": "Cy"}]}'
    assert _names(filter(USERS, query)) == ["bob", "Cy"]
    query = '{"$and": [{"age": {"$gt": 18}}, {"$not": {"name": "Ann"}}]}'
    assert _names(filter(USERS, query)) == ["Cy"]


def test_every_key_must_match():
    assert _names(filter(USERS, '{"age": {"$gt": 10}, "name": "bob"}')) == ["bob"]


def test_dot_notation():
    assert _names(filter(USERS, '{"address.city": "Oslo"}')) == ["Ann"]
    assert _names(filter(USERS, '{"tags.0": "dev"}')) == ["bob"]


def test_blank_query_matches_every_object():
    assert filter(USERS, "") == USERS


def test_object_filters_first_array_field():
    doc = parse('{"meta": {"n": 2}, "users": [{"a": 1}, {"a": 2}], "other": [{"a": 1}]}')
    assert filter(doc, '{"a": 1}') == parse('[{"a": 1}]')


def test_object_without_array_field():
    doc = parse('{"a": 1}')
    assert filter(doc, '{"a": 1}') == doc
    assert filter(doc, '{"a": 2}') == NULL


def test_scalars_pass_through():
    assert filter(number(3), "{}") == number(3)
    assert filter(NULL, '{"a": 1}') == NULL


def test_non_objects_never_match():
    assert not matches(number(1), parse_query("{}"))
    assert matches(parse('{"x": 1}'), "{}")


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        '{"$foo": 1}',
        '{"age": {"$bogus": 1}}',
        '{"name": {"$in": "bob"}}',
        '{"$and": {"a": 1}}',
        '{"name": {"$regex": "("}}',
        '{"name": {"$options": "i"}}',
    ],
)
def test_invalid_queries_raise(text):
    with pytest.raises(QueryError):
        parse_query(text)


def _nested_and(levels):
    return '{"$and": [' * levels + "{}" + "]}" * levels


def test_deep_query_raises_depth_exceeded():
    with pytest.raises(DepthExceeded):
        parse_query(_nested_and(2000))


def test_query_depth_follows_max_depth():
    assert "$and" in parse_query(_nested_and(3), max_depth=10).document
    with pytest.raises(DepthExceeded):
        filter(PEOPLE, _nested_and(10), max_depth=10)
