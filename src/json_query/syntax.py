"""Lexical helpers shared by the dialect parsers."""

from __future__ import annotations

from json_query.errors import QueryError

_OPEN = {"(": ")", "[": "]", "{": "}"}
_CLOSE = {v: k for k, v in _OPEN.items()}


def split_top_level(text: str, separator: str) -> list[str]:
    """Split *text* on *separator* where it is not nested or quoted.

    Parentheses, brackets and braces must balance and quotes must close;
    otherwise a QueryError is raised.
    """
    parts: list[str] = []
    stack: list[str] = []
    quote: str | None = None
    start = 0
    i = 0
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch in _OPEN:
            stack.append(ch)
        elif ch in _CLOSE:
            if not stack or stack[-1] != _CLOSE[ch]:
                raise QueryError(f"Unbalanced '{ch}' at position {i}")
            stack.pop()
        elif not stack and text.startswith(separator, i):
            parts.append(text[start:i])
            i += len(separator)
            start = i
            continue
        i += 1

    if quote:
        raise QueryError(f"Unterminated string literal in '{text}'")
    if stack:
        raise QueryError(f"Unclosed '{stack[-1]}' in '{text}'")
    parts.append(text[start:])
    return parts


def strip_call(text: str, name: str) -> str | None:
    """Return the argument text of ``name(...)``, or None if *text* isn't that call."""
    prefix = f"{name}("
    if not (text.startswith(prefix) and text.endswith(")")):
        return None
    inner = text[len(prefix) : -1]
    # "map(.a) + map(.b)" ends in ")" too; its inner text is unbalanced.
    try:
        split_top_level(inner, ",")
    except QueryError:
        return None
    return inner
