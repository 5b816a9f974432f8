"""
Structured logging helpers and the best-effort operation wrapper.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Emit one structured log line as compact JSON.
    """

    payload = {"event": event, **fields}
    logger.log(level, json.dumps(payload, default=str, sort_keys=True))


class BestEffortOutcome:
    """
    Result of one best-effort block. ``failed`` is set when the block raised.
    """

    def __init__(self, operation: str) -> None:
        self.operation = operation
        self.failed = False
        self.error: str | None = None


@contextmanager
def best_effort(logger: logging.Logger, operation: str, **fields: Any) -> Iterator[BestEffortOutcome]:
    """
    Run a side effect whose failure must never reach the caller.

    Any exception raised inside the block is captured as a structured
    ``best_effort_failed`` log event and suppressed.
    """

    outcome = BestEffortOutcome(operation)
    try:
        yield outcome
    except Exception as exc:  # noqa: BLE001
        outcome.failed = True
        outcome.error = f"{type(exc).__name__}: {exc}"
        log_event(
            logger,
            logging.WARNING,
            "best_effort_failed",
            operation=operation,
            error=outcome.error,
            **fields,
        )
