"""Path resolver: dotted/bracketed accessors over Values.

Accessor text looks like ``a.b[2].c``. Keys that contain dots or brackets
can be written as ``["a.b"]``, and ``*`` / ``[*]`` match every child.
Only non-negative literal indices are allowed here; slicing belongs to the
jq dialect.

A path that does not exist resolves to ``ABSENT``, never to ``null`` and
never to an error. Callers decide what absence means for them.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TypeAlias

from json_query.errors import QueryError
from json_query.values import ABSENT, Absent, JsonArray, JsonObject, JsonValue, array


@dataclass(frozen=True)
class Field:
    name: str


@dataclass(frozen=True)
class Index:
    index: int


@dataclass(frozen=True)
class Wildcard:
    pass


PathStep: TypeAlias = Field | Index | Wildcard
Accessor: TypeAlias = tuple[PathStep, ...]

_TOKEN = re.compile(
    r"""
    \[ \s* (?: "(?:\\.|[^"\\])*" | '(?:\\.|[^'\\])*' | [^\]]* ) \s* \]
  | \.
  | [^.\[\]]+
    """,
    re.VERBOSE,
)
_PLAIN_PATH = re.compile(r"\.[\w$\-.\[\]]*")
_BARE_KEY = re.compile(r"[^.\[\]\s\"']+")


def _bracket_step(inner: str, text: str) -> PathStep:
    if inner == "*":
        return Wildcard()
    if inner.isdecimal():
        return Index(int(inner))
    if len(inner) >= 2 and inner[0] == inner[-1] and inner[0] in "\"'":
        if inner[0] == '"':
            try:
                return Field(json.loads(inner))
            except ValueError:
                pass
        return Field(inner[1:-1])
    if not inner:
        raise QueryError(f"Empty brackets in path '{text}'")
    if inner.lstrip("-").isdecimal():
        raise QueryError(f"Negative index [{inner}] is not supported in path '{text}'")
    if ":" in inner:
        raise QueryError(f"Slice [{inner}] is not supported in path '{text}'")
    raise QueryError(f"Invalid index [{inner}] in path '{text}'")


def parse_accessor(text: str) -> Accessor:
    """Parse accessor text into steps.

    Raises:
        QueryError: On empty segments, stray or unclosed brackets, or
            index forms the resolver does not support.
    """
    steps: list[PathStep] = []
    expect_segment = True
    pos = 0
    while pos < len(text):
        match = _TOKEN.match(text, pos)
        if not match:
            raise QueryError(f"Unexpected '{text[pos]}' at position {pos} in path '{text}'")
        token = match.group()
        pos = match.end()

        if token == ".":
            if expect_segment:
                raise QueryError(f"Empty segment in path '{text}'")
            expect_segment = True
        elif token.startswith("["):
            steps.append(_bracket_step(token[1:-1].strip(), text))
            expect_segment = False
        else:
            if not expect_segment:
                raise QueryError(f"Missing '.' before '{token}' in path '{text}'")
            name = token.strip()
            steps.append(Wildcard() if name == "*" else Field(name))
            expect_segment = False

    if text and expect_segment:
        raise QueryError(f"Path '{text}' ends with '.'")
    return tuple(steps)


def step_into(
    value: JsonValue | Absent, step: PathStep, *, distribute: bool = False
) -> JsonValue | Absent:
    """Apply one accessor step.

    With ``distribute=True`` a field step on an array maps over the
    elements, dropping those where the field is absent.
    """
    match step:
        case Field(name=name):
            if isinstance(value, JsonObject):
                return value.get(name)
            if distribute and isinstance(value, JsonArray):
                picked = (
                    item.get(name) for item in value if isinstance(item, JsonObject)
                )
                return array(v for v in picked if v is not ABSENT)
        case Index(index=i):
            if isinstance(value, JsonArray) and i < len(value):
                return value.items[i]
        case Wildcard():
            if isinstance(value, JsonArray):
                return value
            if isinstance(value, JsonObject):
                return array(value.values())
    return ABSENT


def resolve(
    value: JsonValue,
    accessor: Accessor | str,
    *,
    distribute: bool = False,
) -> JsonValue | Absent:
    """Resolve an accessor against *value*.

    Accessors containing wildcards collect every match into an array.
    """
    if isinstance(accessor, str):
        accessor = parse_accessor(accessor)

    if any(isinstance(s, Wildcard) for s in accessor):
        return array(v for _, v in iter_matches(value, accessor))

    current: JsonValue | Absent = value
    for step in accessor:
        current = step_into(current, step, distribute=distribute)
        if current is ABSENT:
            return ABSENT
    return current


def format_key(path: str, key: str) -> str:
    if _BARE_KEY.fullmatch(key):
        return f"{path}.{key}"
    return f"{path}[{json.dumps(key, ensure_ascii=False)}]"


def iter_matches(
    value: JsonValue, accessor: Accessor, root: str = "$"
) -> Iterator[tuple[str, JsonValue]]:
    """Yield ``(path, value)`` for every location the accessor matches."""
    if not accessor:
        yield root, value
        return

    step, rest = accessor[0], accessor[1:]
    match step:
        case Wildcard():
            if isinstance(value, JsonArray):
                for i, item in enumerate(value):
                    yield from iter_matches(item, rest, f"{root}[{i}]")
            elif isinstance(value, JsonObject):
                for key, child in value.entries:
                    yield from iter_matches(child, rest, format_key(root, key))
        case Field(name=name):
            if isinstance(value, JsonObject) and name in value:
                yield from iter_matches(value.get(name), rest, format_key(root, name))
        case Index(index=i):
            if isinstance(value, JsonArray) and i < len(value):
                yield from iter_matches(value.items[i], rest, f"{root}[{i}]")


def is_plain_path(text: str) -> bool:
    """True for ``.a.b[0]``-style text the resolver can handle alone."""
    if not _PLAIN_PATH.fullmatch(text):
        return False
    try:
        accessor = parse_accessor(text[1:])
    except QueryError:
        return False
    return not any(isinstance(s, Wildcard) for s in accessor)
