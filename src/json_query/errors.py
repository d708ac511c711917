"""Custom exception hierarchy for json-query.

All exceptions inherit from QueryEngineError so callers can catch broadly
or narrowly as needed.
"""

from __future__ import annotations


class QueryEngineError(Exception):
    """Base for all json-query errors."""


class ParseError(QueryEngineError):
    """Input JSON text is malformed."""

    def __init__(
        self,
        message: str,
        position: int | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        self.message = message
        self.position = position
        self.line = line
        self.column = column
        if position is None:
            super().__init__(message)
        else:
            super().__init__(
                f"{message} at line {line}, column {column} (position {position})"
            )


class QueryError(QueryEngineError):
    """Query syntax is malformed or an operator was used in an invalid shape."""


class StepError(QueryEngineError):
    """A workflow step failed during execution."""

    def __init__(
        self,
        step_id: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        self.step_id = step_id
        self.message = message
        self.cause = cause
        super().__init__(f"Step '{step_id}' failed: {message}")


class DepthExceeded(QueryEngineError):
    """Nesting or recursion went past the configured depth ceiling."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Maximum nesting depth of {limit} exceeded")


class ConfigError(QueryEngineError):
    """Engine settings could not be loaded or are invalid."""
