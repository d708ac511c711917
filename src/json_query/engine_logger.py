"""Structured JSON logging for queries and workflow runs.

Writes JSON-lines so a run can be replayed and debugged after the fact.
Each log entry is a single JSON object on one line.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

_logger = logging.getLogger("json_query")


def configure_logging(
    log_dir: str | Path, level: int = logging.DEBUG
) -> None:
    """Set up engine logging to write JSON-lines to a file.

    Args:
        log_dir: Directory to write ``engine.log`` into.
        level: Logging level (default: DEBUG).
    """
    log_path = Path(log_dir) / "engine.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(str(log_path), encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    _logger.addHandler(handler)
    _logger.setLevel(level)


def _log(event: dict[str, Any], level: int = logging.INFO) -> None:
    _logger.log(level, json.dumps(event, default=str))


def log_query(dialect: str, query: str, duration_ms: float, error: str | None = None) -> None:
    _log({
        "event": "query",
        "dialect": dialect,
        "query": query[:200],
        "duration_ms": round(duration_ms, 2),
        "error": error,
    })


def log_step_start(step_id: str, step_kind: str) -> None:
    _log({"event": "step_start", "step_id": step_id, "step_kind": step_kind})


def log_step_complete(step_id: str, duration_ms: float) -> None:
    _log({
        "event": "step_complete",
        "step_id": step_id,
        "duration_ms": round(duration_ms, 2),
    })


def log_step_error(step_id: str, error: str) -> None:
    _log({"event": "step_error", "step_id": step_id, "error": error}, logging.WARNING)


def log_workflow_complete(status: str, steps_run: int, duration_ms: float) -> None:
    _log({
        "event": "workflow_complete",
        "status": status,
        "steps_run": steps_run,
        "duration_ms": round(duration_ms, 2),
    })


def log_explore(expression: str, matches: int, duration_ms: float) -> None:
    _log({
        "event": "explore",
        "expression": expression[:200],
        "matches": matches,
        "duration_ms": round(duration_ms, 2),
    })
