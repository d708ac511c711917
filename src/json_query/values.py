"""Tagged value model for parsed JSON.

Every interpreter works on these immutable dataclasses instead of raw
``dict``/``list`` data, so stages pattern-match on the variant rather than
probing Python types at runtime. Values are hashable, which lets
``unique``/``$distinct`` deduplicate with a plain dict.
"""

from __future__ import annotations

import json
import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, TypeAlias

from json_query.errors import DepthExceeded, ParseError

DEFAULT_MAX_DEPTH = 512

# Integral floats inside this range render without a fractional part.
_SAFE_INTEGER = 2**53


class Absent(Enum):
    """Result of resolving a path that does not exist. Never a JSON null."""

    ABSENT = "absent"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = Absent.ABSENT


# ── Variants ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class JsonNull:
    type_tag: ClassVar[str] = "null"


@dataclass(frozen=True)
class JsonBool:
    type_tag: ClassVar[str] = "bool"
    value: bool


@dataclass(frozen=True)
class JsonNumber:
    type_tag: ClassVar[str] = "number"
    value: int | float


@dataclass(frozen=True)
class JsonString:
    type_tag: ClassVar[str] = "string"
    value: str


@dataclass(frozen=True)
class JsonArray:
    type_tag: ClassVar[str] = "array"
    items: tuple[JsonValue, ...] = ()

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[JsonValue]:
        return iter(self.items)


@dataclass(frozen=True)
class JsonObject:
    """Ordered mapping with unique keys. Order is insertion order."""

    type_tag: ClassVar[str] = "object"
    entries: tuple[tuple[str, JsonValue], ...] = ()
    _index: dict[str, JsonValue] = field(
        init=False, repr=False, compare=False, default_factory=dict
    )

    def __post_init__(self) -> None:
        index = dict(self.entries)
        if len(index) != len(self.entries):
            raise ValueError("JsonObject keys must be unique")
        object.__setattr__(self, "_index", index)

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, JsonValue]]) -> JsonObject:
        """Build an object; a repeated key keeps its first position and last value."""
        merged: dict[str, JsonValue] = {}
        for key, value in pairs:
            merged[key] = value
        return cls(tuple(merged.items()))

    def get(self, key: str) -> JsonValue | Absent:
        return self._index.get(key, ABSENT)

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def __len__(self) -> int:
        return len(self.entries)

    def keys(self) -> list[str]:
        return [k for k, _ in self.entries]

    def values(self) -> list[JsonValue]:
        return [v for _, v in self.entries]


JsonValue: TypeAlias = (
    JsonNull | JsonBool | JsonNumber | JsonString | JsonArray | JsonObject
)

NULL = JsonNull()
TRUE = JsonBool(True)
FALSE = JsonBool(False)
EMPTY_ARRAY = JsonArray(())
EMPTY_OBJECT = JsonObject(())


def boolean(flag: bool) -> JsonBool:
    return TRUE if flag else FALSE


def number(n: int | float) -> JsonNumber:
    """Wrap a Python number, normalising integral floats to ``int``."""
    if isinstance(n, bool):
        raise TypeError("booleans are not JSON numbers")
    if isinstance(n, float) and n.is_integer() and abs(n) < _SAFE_INTEGER:
        return JsonNumber(int(n))
    return JsonNumber(n)


def array(items: Iterable[JsonValue]) -> JsonArray:
    return JsonArray(tuple(items))


# ── Conversion ────────────────────────────────────────────────────


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not a valid JSON value")


def parse(text: str, *, max_depth: int = DEFAULT_MAX_DEPTH) -> JsonValue:
    """Parse JSON text into a Value.

    Raises:
        ParseError: If the text is not valid JSON. Position, line and
            column are reported when the decoder knows them.
        DepthExceeded: If the document nests deeper than *max_depth*.
    """
    try:
        raw = json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        raise ParseError(e.msg, position=e.pos, line=e.lineno, column=e.colno) from e
    except ValueError as e:
        raise ParseError(str(e)) from e
    except RecursionError as e:
        raise DepthExceeded(max_depth) from e
    return from_python(raw, max_depth=max_depth)


def from_python(obj: Any, *, max_depth: int = DEFAULT_MAX_DEPTH, _depth: int = 0) -> JsonValue:
    """Convert plain Python JSON data (dict/list/str/...) into a Value."""
    if _depth > max_depth:
        raise DepthExceeded(max_depth)

    match obj:
        case JsonNull() | JsonBool() | JsonNumber() | JsonString() | JsonArray() | JsonObject():
            return obj
        case None:
            return NULL
        case bool():
            return boolean(obj)
        case int():
            return number(obj)
        case float():
            # JSON has no NaN/Infinity; mirror JSON.stringify and use null.
            return number(obj) if math.isfinite(obj) else NULL
        case str():
            return JsonString(obj)
        case list() | tuple():
            return JsonArray(
                tuple(from_python(i, max_depth=max_depth, _depth=_depth + 1) for i in obj)
            )
        case dict():
            return JsonObject.from_pairs(
                (str(k), from_python(v, max_depth=max_depth, _depth=_depth + 1))
                for k, v in obj.items()
            )
        case _:
            raise TypeError(f"Cannot convert {type(obj).__name__} to a JSON value")


def to_python(value: JsonValue) -> Any:
    """Convert a Value back into plain Python JSON data."""
    match value:
        case JsonNull():
            return None
        case JsonBool(value=b):
            return b
        case JsonNumber(value=n):
            return n
        case JsonString(value=s):
            return s
        case JsonArray(items=items):
            return [to_python(i) for i in items]
        case JsonObject(entries=entries):
            return {k: to_python(v) for k, v in entries}
    raise TypeError(f"Not a JSON value: {value!r}")


def render(value: JsonValue, indent: int = 2) -> str:
    """Render a Value as JSON text. ``indent=0`` gives compact output."""
    if indent:
        return json.dumps(to_python(value), indent=indent, ensure_ascii=False)
    return json.dumps(to_python(value), separators=(",", ":"), ensure_ascii=False)


# ── Ordering ──────────────────────────────────────────────────────


def sort_key(value: JsonValue) -> tuple:
    """Total order: null < false < true < numbers < strings < arrays < objects.

    Objects compare by their sorted key list first, then by the values
    under those keys.
    """
    match value:
        case JsonNull():
            return (0,)
        case JsonBool(value=b):
            return (1, b)
        case JsonNumber(value=n):
            return (2, n)
        case JsonString(value=s):
            return (3, s)
        case JsonArray(items=items):
            return (4, tuple(sort_key(i) for i in items))
        case JsonObject():
            keys = sorted(value.keys())
            return (5, tuple(keys), tuple(sort_key(value.get(k)) for k in keys))
    raise TypeError(f"Not a JSON value: {value!r}")
