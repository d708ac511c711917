"""Restricted expression language for ``custom`` workflow steps.

A custom step never runs host code. Its config is an expression over the
current value ``.``, built from:

* literals (numbers, strings, ``true``, ``false``, ``null``)
* paths: ``.``, ``.a.b``, ``.[0]``, ``.["key"]``, ``.items[.i]``
* arithmetic ``+ - * / %``, comparison ``== != < <= > >=``
* ``and``, ``or``, ``not``, ``if ... then ... elif ... else ... end``
* pipes ``a | b`` (``b`` sees ``a``'s result as ``.``)
* array ``[a, b]`` and object ``{a, b: .x, "c d": 1}`` construction
* the jq stage vocabulary as functions (``length``, ``keys(.obj)``, ...)
  plus ``map``, ``select``, ``has``, ``sum``, ``min``, ``max``, ``join``,
  ``tonumber``, ``tostring`` and ``round``

Evaluation is capped by a step budget and the nesting depth limit, so a
pathological expression fails with an error instead of hanging the engine.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass

from json_query import jq
from json_query.coercion import compare, to_number, to_text, truthy
from json_query.errors import DepthExceeded, QueryError
from json_query.paths import Field as FieldStep
from json_query.paths import step_into
from json_query.values import (
    ABSENT,
    DEFAULT_MAX_DEPTH,
    FALSE,
    NULL,
    TRUE,
    JsonArray,
    JsonNull,
    JsonNumber,
    JsonObject,
    JsonString,
    JsonValue,
    array,
    boolean,
    number,
    sort_key,
)

DEFAULT_BUDGET = 10_000

# ── Tokens ────────────────────────────────────────────────────────

# Order matters: multi-char operators first
_TOKEN_REGEX = re.compile(
    r"""
    (?P<WS>\s+)
  | (?P<NUMBER>\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
  | (?P<STRING>"(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*')
  | (?P<FIELD>\.[A-Za-z_][A-Za-z0-9_]*)
  | (?P<EQEQ>==)
  | (?P<NEQ>!=)
  | (?P<GTE>>=)
  | (?P<LTE><=)
  | (?P<GT>>)
  | (?P<LT><)
  | (?P<PIPE>\|)
  | (?P<DOT>\.)
  | (?P<LBRACKET>\[)
  | (?P<RBRACKET>\])
  | (?P<LPAREN>\()
  | (?P<RPAREN>\))
  | (?P<LBRACE>\{)
  | (?P<RBRACE>\})
  | (?P<COMMA>,)
  | (?P<COLON>:)
  | (?P<PLUS>\+)
  | (?P<MINUS>-)
  | (?P<STAR>\*)
  | (?P<SLASH>/)
  | (?P<PERCENT>%)
  | (?P<IDENT>[A-Za-z_][A-Za-z0-9_]*)
    """,
    re.VERBOSE,
)

_KEYWORDS = {"and", "or", "not", "if", "then", "elif", "else", "end"}
_LITERALS = {"true": TRUE, "false": FALSE, "null": NULL}
_COMPARISONS = {"EQEQ": "==", "NEQ": "!=", "GTE": ">=", "LTE": "<=", "GT": ">", "LT": "<"}
_PRIMARY_START = {
    "NUMBER", "STRING", "FIELD", "DOT", "LPAREN", "LBRACKET", "LBRACE", "IDENT", "MINUS",
}

# name -> allowed argument counts
FUNCTIONS: dict[str, tuple[int, ...]] = {
    **{name: (0, 1) for name in jq.BUILTINS},
    "map": (1,),
    "select": (1,),
    "has": (1,),
    "sum": (0, 1),
    "min": (0, 1),
    "max": (0, 1),
    "tonumber": (0, 1),
    "tostring": (0, 1),
    "round": (0, 1),
    "join": (1,),
}


@dataclass(frozen=True)
class Token:
    type: str
    value: str
    position: int


def _tokenize(source: str) -> list[Token]:
    pos = 0
    tokens: list[Token] = []
    while pos < len(source):
        match = _TOKEN_REGEX.match(source, pos)
        if not match:
            raise QueryError(f"Unexpected character at position {pos}: {source[pos]!r}")
        kind = match.lastgroup
        pos = match.end()
        if kind == "WS":
            continue
        tokens.append(Token(kind or "", match.group(), match.start()))
    tokens.append(Token("EOF", "", pos))
    return tokens


def _decode_string(text: str) -> str:
    if text.startswith('"'):
        return json.loads(text)
    return re.sub(r"\\(.)", r"\1", text[1:-1])


# ── AST ───────────────────────────────────────────────────────────


class Node:
    """Base class for expression AST nodes."""


@dataclass(frozen=True)
class Literal(Node):
    value: JsonValue


@dataclass(frozen=True)
class Identity(Node):
    pass


@dataclass(frozen=True)
class Field(Node):
    source: Node
    name: str


@dataclass(frozen=True)
class Index(Node):
    source: Node
    index: Node


@dataclass(frozen=True)
class Pipe(Node):
    left: Node
    right: Node


@dataclass(frozen=True)
class ArrayLiteral(Node):
    items: tuple[Node, ...]


@dataclass(frozen=True)
class ObjectLiteral(Node):
    pairs: tuple[tuple[str | Node, Node], ...]


@dataclass(frozen=True)
class UnaryOp(Node):
    op: str  # "-" or "not"
    operand: Node


@dataclass(frozen=True)
class BinaryOp(Node):
    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class IfElse(Node):
    branches: tuple[tuple[Node, Node], ...]
    otherwise: Node


@dataclass(frozen=True)
class FunctionCall(Node):
    name: str
    args: tuple[Node, ...]


# ── Parser ────────────────────────────────────────────────────────


class ExpressionParser:
    def __init__(self, tokens: list[Token], max_depth: int) -> None:
        self.tokens = tokens
        self.index = 0
        self.max_depth = max_depth
        self._nesting = 0

    @classmethod
    def parse(cls, source: str, *, max_depth: int = DEFAULT_MAX_DEPTH) -> Node:
        parser = cls(_tokenize(source), max_depth)
        node = parser._parse_pipe()
        parser._expect("EOF")
        return node

    # Parsing helpers -------------------------------------------------
    def _current(self) -> Token:
        return self.tokens[self.index]

    def _peek(self) -> Token:
        return self.tokens[min(self.index + 1, len(self.tokens) - 1)]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _match(self, *types: str) -> Token | None:
        if self._current().type in types:
            return self._advance()
        return None

    def _expect(self, type_: str) -> Token:
        token = self._current()
        if token.type != type_:
            shown = token.value or "end of expression"
            raise QueryError(f"Expected {type_} at position {token.position}, got {shown!r}")
        return self._advance()

    def _is_keyword(self, keyword: str) -> bool:
        token = self._current()
        return token.type == "IDENT" and token.value == keyword

    def _expect_keyword(self, keyword: str) -> None:
        if not self._is_keyword(keyword):
            token = self._current()
            raise QueryError(
                f"Expected '{keyword}' at position {token.position}, got {token.value!r}"
            )
        self._advance()

    def _enter(self) -> None:
        self._nesting += 1
        if self._nesting > self.max_depth:
            raise DepthExceeded(self.max_depth)

    def _leave(self) -> None:
        self._nesting -= 1

    # Grammar ---------------------------------------------------------
    def _parse_pipe(self) -> Node:
        node = self._parse_or()
        while self._match("PIPE"):
            node = Pipe(node, self._parse_or())
        return node

    def _parse_or(self) -> Node:
        node = self._parse_and()
        while self._is_keyword("or"):
            self._advance()
            node = BinaryOp("or", node, self._parse_and())
        return node

    def _parse_and(self) -> Node:
        node = self._parse_not()
        while self._is_keyword("and"):
            self._advance()
            node = BinaryOp("and", node, self._parse_not())
        return node

    def _parse_not(self) -> Node:
        if self._is_keyword("not") and self._peek().type in _PRIMARY_START:
            self._advance()
            self._enter()
            operand = self._parse_not()
            self._leave()
            return UnaryOp("not", operand)
        return self._parse_comparison()

    def _parse_comparison(self) -> Node:
        node = self._parse_additive()
        token = self._current()
        if token.type in _COMPARISONS:
            self._advance()
            node = BinaryOp(_COMPARISONS[token.type], node, self._parse_additive())
        return node

    def _parse_additive(self) -> Node:
        node = self._parse_multiplicative()
        while token := self._match("PLUS", "MINUS"):
            node = BinaryOp(token.value, node, self._parse_multiplicative())
        return node

    def _parse_multiplicative(self) -> Node:
        node = self._parse_unary()
        while token := self._match("STAR", "SLASH", "PERCENT"):
            node = BinaryOp(token.value, node, self._parse_unary())
        return node

    def _parse_unary(self) -> Node:
        if self._match("MINUS"):
            self._enter()
            operand = self._parse_unary()
            self._leave()
            return UnaryOp("-", operand)
        return self._parse_postfix()

    def _parse_postfix(self) -> Node:
        node = self._parse_primary()
        while True:
            if token := self._match("FIELD"):
                node = Field(node, token.value[1:])
            elif self._current().type == "DOT" and self._peek().type == "STRING":
                self._advance()
                node = Field(node, _decode_string(self._advance().value))
            elif self._current().type == "DOT" and self._peek().type == "LBRACKET":
                self._advance()
            elif self._match("LBRACKET"):
                self._enter()
                index = self._parse_pipe()
                self._leave()
                self._expect("RBRACKET")
                node = Index(node, index)
            else:
                return node

    def _parse_primary(self) -> Node:
        token = self._current()
        match token.type:
            case "NUMBER":
                self._advance()
                text = token.value
                return Literal(number(float(text) if any(c in text for c in ".eE") else int(text)))
            case "STRING":
                self._advance()
                return Literal(JsonString(_decode_string(token.value)))
            case "FIELD":
                self._advance()
                return Field(Identity(), token.value[1:])
            case "DOT":
                self._advance()
                if self._current().type == "STRING":
                    return Field(Identity(), _decode_string(self._advance().value))
                return Identity()
            case "LPAREN":
                self._advance()
                self._enter()
                node = self._parse_pipe()
                self._leave()
                self._expect("RPAREN")
                return node
            case "LBRACKET":
                return self._parse_array()
            case "LBRACE":
                return self._parse_object()
            case "IDENT":
                return self._parse_identifier()
        shown = token.value or "end of expression"
        raise QueryError(f"Unexpected {shown!r} at position {token.position}")

    def _parse_array(self) -> Node:
        self._expect("LBRACKET")
        self._enter()
        items: list[Node] = []
        if self._current().type != "RBRACKET":
            items.append(self._parse_pipe())
            while self._match("COMMA"):
                items.append(self._parse_pipe())
        self._expect("RBRACKET")
        self._leave()
        return ArrayLiteral(tuple(items))

    def _parse_object(self) -> Node:
        self._expect("LBRACE")
        self._enter()
        pairs: list[tuple[str | Node, Node]] = []
        while self._current().type != "RBRACE":
            token = self._current()
            key: str | Node
            if token.type == "IDENT":
                key = self._advance().value
            elif token.type == "STRING":
                key = _decode_string(self._advance().value)
            elif self._match("LPAREN"):
                key = self._parse_pipe()
                self._expect("RPAREN")
            else:
                raise QueryError(f"Expected an object key at position {token.position}")

            if self._match("COLON"):
                value = self._parse_or()
            elif isinstance(key, str):
                value = Field(Identity(), key)
            else:
                raise QueryError(f"Computed key needs a value at position {token.position}")
            pairs.append((key, value))
            if not self._match("COMMA"):
                break
        self._expect("RBRACE")
        self._leave()
        return ObjectLiteral(tuple(pairs))

    def _parse_if(self) -> Node:
        self._expect_keyword("if")
        self._enter()
        branches: list[tuple[Node, Node]] = []
        condition = self._parse_pipe()
        self._expect_keyword("then")
        branches.append((condition, self._parse_pipe()))
        while self._is_keyword("elif"):
            self._advance()
            condition = self._parse_pipe()
            self._expect_keyword("then")
            branches.append((condition, self._parse_pipe()))
        otherwise: Node = Identity()
        if self._is_keyword("else"):
            self._advance()
            otherwise = self._parse_pipe()
        self._expect_keyword("end")
        self._leave()
        return IfElse(tuple(branches), otherwise)

    def _parse_identifier(self) -> Node:
        token = self._current()
        name = token.value
        if name in _LITERALS:
            self._advance()
            return Literal(_LITERALS[name])
        if name == "if":
            return self._parse_if()
        if name in _KEYWORDS and name != "not":
            raise QueryError(f"Unexpected keyword '{name}' at position {token.position}")
        self._advance()

        args: list[Node] = []
        if self._match("LPAREN"):
            self._enter()
            if self._current().type != "RPAREN":
                args.append(self._parse_pipe())
                while self._match("COMMA"):
                    args.append(self._parse_pipe())
            self._expect("RPAREN")
            self._leave()

        if name not in FUNCTIONS:
            raise QueryError(f"Unknown function '{name}' at position {token.position}")
        if len(args) not in FUNCTIONS[name]:
            raise QueryError(
                f"Function '{name}' takes {' or '.join(map(str, FUNCTIONS[name]))} "
                f"argument(s), got {len(args)}"
            )
        return FunctionCall(name, tuple(args))


def compile_expression(text: str, *, max_depth: int = DEFAULT_MAX_DEPTH) -> Node:
    """Parse expression text. Blank text is the identity expression.

    Raises:
        QueryError: On syntax errors, unknown functions or wrong arity.
    """
    if not text.strip():
        return Identity()
    return ExpressionParser.parse(text, max_depth=max_depth)


# ── Evaluation ────────────────────────────────────────────────────


def _checked(n: int | float) -> JsonValue:
    if isinstance(n, float) and not math.isfinite(n):
        raise QueryError("Arithmetic result is not a finite number")
    return number(n)


def _arithmetic(op: str, left: JsonValue, right: JsonValue) -> JsonValue:
    match (op, left, right):
        case ("+", JsonNull(), _):
            return right
        case ("+", _, JsonNull()):
            return left
        case ("+", JsonNumber(value=a), JsonNumber(value=b)):
            return _checked(a + b)
        case ("+", JsonString(value=a), JsonString(value=b)):
            return JsonString(a + b)
        case ("+", JsonArray(items=a), JsonArray(items=b)):
            return JsonArray(a + b)
        case ("+", JsonObject(entries=a), JsonObject(entries=b)):
            return JsonObject.from_pairs(a + b)
        case ("-", JsonNumber(value=a), JsonNumber(value=b)):
            return _checked(a - b)
        case ("-", JsonArray(items=a), JsonArray(items=b)):
            return array(i for i in a if i not in b)
        case ("*", JsonNumber(value=a), JsonNumber(value=b)):
            return _checked(a * b)
        case ("/" | "%", JsonNumber(), JsonNumber(value=0)):
            raise QueryError(f"Division by zero in '{op}'")
        case ("/", JsonNumber(value=a), JsonNumber(value=b)):
            return _checked(a / b)
        case ("%", JsonNumber(value=a), JsonNumber(value=b)):
            return _checked(math.fmod(a, b))
    raise QueryError(f"Cannot apply '{op}' to {left.type_tag} and {right.type_tag}")


class _Evaluator:
    def __init__(self, budget: int, max_depth: int) -> None:
        self.budget = budget
        self.remaining = budget
        self.max_depth = max_depth

    def eval(self, node: Node, value: JsonValue, depth: int = 0) -> JsonValue:
        self.remaining -= 1
        if self.remaining < 0:
            raise QueryError(f"Expression exceeded its budget of {self.budget} evaluation steps")
        if depth > self.max_depth:
            raise DepthExceeded(self.max_depth)
        d = depth + 1

        match node:
            case Literal(value=literal):
                return literal
            case Identity():
                return value
            case Field(source=source, name=name):
                found = step_into(self.eval(source, value, d), FieldStep(name), distribute=True)
                return NULL if found is ABSENT else found
            case Index(source=source, index=index):
                return self._index(self.eval(source, value, d), self.eval(index, value, d))
            case Pipe(left=left, right=right):
                return self.eval(right, self.eval(left, value, d), d)
            case ArrayLiteral(items=items):
                return array(self.eval(i, value, d) for i in items)
            case ObjectLiteral(pairs=pairs):
                return JsonObject.from_pairs(
                    (self._key(k, value, d), self.eval(v, value, d)) for k, v in pairs
                )
            case UnaryOp(op="not", operand=operand):
                return boolean(not truthy(self.eval(operand, value, d)))
            case UnaryOp(op="-", operand=operand):
                result = self.eval(operand, value, d)
                if not isinstance(result, JsonNumber):
                    raise QueryError(f"Cannot negate {result.type_tag}")
                return number(-result.value)
            case BinaryOp(op="and", left=left, right=right):
                return boolean(
                    truthy(self.eval(left, value, d)) and truthy(self.eval(right, value, d))
                )
            case BinaryOp(op="or", left=left, right=right):
                return boolean(
                    truthy(self.eval(left, value, d)) or truthy(self.eval(right, value, d))
                )
            case BinaryOp(op=op, left=left, right=right) if op in _COMPARISONS.values():
                return boolean(compare(op, self.eval(left, value, d), self.eval(right, value, d)))
            case BinaryOp(op=op, left=left, right=right):
                return _arithmetic(op, self.eval(left, value, d), self.eval(right, value, d))
            case IfElse(branches=branches, otherwise=otherwise):
                for condition, result in branches:
                    if truthy(self.eval(condition, value, d)):
                        return self.eval(result, value, d)
                return self.eval(otherwise, value, d)
            case FunctionCall(name=name, args=args):
                return self._call(name, args, value, d)
        raise QueryError(f"Unsupported expression node: {node!r}")

    def _key(self, key: str | Node, value: JsonValue, depth: int) -> str:
        if isinstance(key, str):
            return key
        result = self.eval(key, value, depth)
        if not isinstance(result, JsonString):
            raise QueryError(f"Object keys must be strings, got {result.type_tag}")
        return result.value

    @staticmethod
    def _index(target: JsonValue, index: JsonValue) -> JsonValue:
        match (target, index):
            case (JsonArray(items=items), JsonNumber(value=i)) if float(i).is_integer():
                i = int(i)
                return items[i] if -len(items) <= i < len(items) else NULL
            case (JsonObject(), JsonString(value=key)):
                found = target.get(key)
                return NULL if found is ABSENT else found
            case (JsonNull(), _):
                return NULL
        raise QueryError(f"Cannot index {target.type_tag} with {index.type_tag}")

    def _call(self, name: str, args: tuple[Node, ...], value: JsonValue, depth: int) -> JsonValue:
        if name == "map":
            if not isinstance(value, JsonArray):
                return value
            return array(self.eval(args[0], item, depth) for item in value)
        if name == "select":
            if isinstance(value, JsonArray):
                return array(item for item in value if truthy(self.eval(args[0], item, depth)))
            return value if truthy(self.eval(args[0], value, depth)) else NULL
        if name == "has":
            key = self.eval(args[0], value, depth)
            match (value, key):
                case (JsonObject(), JsonString(value=k)):
                    return boolean(k in value)
                case (JsonArray(items=items), JsonNumber(value=i)):
                    return boolean(0 <= i < len(items))
            raise QueryError(f"Cannot check {value.type_tag} for a {key.type_tag} key")
        if name == "join":
            separator = self.eval(args[0], value, depth)
            if not isinstance(value, JsonArray) or not isinstance(separator, JsonString):
                raise QueryError("join expects an array input and a string separator")
            return JsonString(separator.value.join(to_text(i) for i in value))

        subject = self.eval(args[0], value, depth) if args else value
        if name in jq.BUILTINS:
            return jq.apply_builtin(name, subject)
        return _SUBJECT_FUNCTIONS[name](subject)


def _sum(subject: JsonValue) -> JsonValue:
    items = subject.items if isinstance(subject, JsonArray) else (subject,)
    total = math.fsum(to_number(i) for i in items)
    if math.isnan(total):
        raise QueryError("sum expects numbers")
    return _checked(total)


def _min(subject: JsonValue) -> JsonValue:
    if not isinstance(subject, JsonArray):
        return subject
    return min(subject, key=sort_key) if subject.items else NULL


def _max(subject: JsonValue) -> JsonValue:
    if not isinstance(subject, JsonArray):
        return subject
    return max(subject, key=sort_key) if subject.items else NULL


def _tonumber(subject: JsonValue) -> JsonValue:
    if isinstance(subject, JsonNumber):
        return subject
    n = to_number(subject)
    if not isinstance(subject, JsonString) or math.isnan(n):
        raise QueryError(f"Cannot convert {subject.type_tag} to a number")
    return _checked(n)


def _round(subject: JsonValue) -> JsonValue:
    if not isinstance(subject, JsonNumber):
        raise QueryError(f"Cannot round {subject.type_tag}")
    return number(math.floor(subject.value + 0.5))


_SUBJECT_FUNCTIONS = {
    "sum": _sum,
    "min": _min,
    "max": _max,
    "tonumber": _tonumber,
    "tostring": lambda v: v if isinstance(v, JsonString) else JsonString(to_text(v)),
    "round": _round,
}


def evaluate_expression(
    value: JsonValue,
    text: str,
    *,
    budget: int = DEFAULT_BUDGET,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> JsonValue:
    """Evaluate a custom expression with ``.`` bound to *value*.

    Raises:
        QueryError: On syntax errors, type errors, or when the evaluation
            budget runs out.
        DepthExceeded: If nesting goes past *max_depth*.
    """
    node = compile_expression(text, max_depth=max_depth)
    return _Evaluator(budget, max_depth).eval(node, value)
