"""Structured logging setup for eventbench."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TextIO

# LogRecord attributes copied into JSON output when passed via ``extra=``.
_CONTEXT_FIELDS = ("phase", "worker_id", "suite")


class _JsonFormatter(logging.Formatter):
    """One-line JSON formatter.

    Emits objects with keys timestamp, level, logger and message, plus any
    of ``phase``, ``worker_id`` and ``suite`` supplied through ``extra``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Configure and return the root eventbench logger.

    Installs a single handler on the ``eventbench`` namespace. Calling it
    again only updates the level, so suites and the CLI can both call it.

    Args:
        level: Logging level (e.g., ``logging.DEBUG``). Defaults to INFO.
        json_format: Emit one JSON object per line instead of plain text.
        stream: Destination stream. Defaults to ``sys.stderr``.

    Returns:
        The configured ``eventbench`` logger.
    """
    logger = logging.getLogger("eventbench")
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)

    if json_format:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Keep report output on stdout free of duplicated log lines
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under the ``eventbench`` namespace.

    Args:
        name: Dotted suffix, e.g. ``get_logger("engine.worker")`` returns
            ``logging.getLogger("eventbench.engine.worker")``.

    Returns:
        The child logger.
    """
    return logging.getLogger(f"eventbench.{name}")
