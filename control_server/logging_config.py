"""Logging setup for the control server: readable lines on a desk, JSON lines in production."""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

# Context attached with ``logger.info(..., extra={...})`` by the engine and server
CONTEXT_FIELDS = ("item_id", "client", "action")

PRODUCTION_ENVS = ("production", "prod", "staging")

# Libraries whose INFO chatter drowns out the rundown log
QUIET_LOGGERS = ("websockets", "httpx", "httpcore")


def _context(record: logging.LogRecord) -> dict[str, Any]:
    return {key: getattr(record, key) for key in CONTEXT_FIELDS if getattr(record, key, None) is not None}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with rundown context fields at top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Operator-readable line with the context fields appended as key=value."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context(record)
        if context:
            line += " (" + " ".join(f"{key}={value}" for key, value in context.items()) + ")"
        return line


def build_formatter(env: str) -> logging.Formatter:
    if env.lower() in PRODUCTION_ENVS:
        return JSONFormatter()
    return ConsoleFormatter()


def configure_logging(env: str | None = None, level: int = logging.INFO) -> None:
    """Route all logging to stdout with the formatter for ``env`` (default ``$RUNDOWN_ENV``)."""
    if env is None:
        env = os.environ.get("RUNDOWN_ENV", "development")

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(build_formatter(env))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
