"""Structured logging configuration.

stdlib loggers (``logging.getLogger(__name__)``) go through `JsonFormatter`;
structlog event loggers render their own JSON lines. Both write one object
per line to stdout at the same level (LOG_LEVEL, default INFO).
"""
from __future__ import annotations

import json
import logging as _logging
import os
import sys
from datetime import datetime, UTC
from typing import Any, Dict

import structlog

DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Extra record attributes copied into the JSON line when present
CONTEXT_FIELDS = ("request_id", "invoice_id", "invoice_number", "user_id", "trace_id")


class JsonFormatter(_logging.Formatter):
    def format(self, record) -> str:  # noqa: D401 - record is LogRecord
        line: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="seconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        line.update({name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)})
        if record.exc_info:
            line["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(line, ensure_ascii=False, default=str)


def _level_number(level: str) -> int:
    return _logging.getLevelNamesMapping().get(level.upper(), _logging.INFO)


def configure_logging(level: str | None = None) -> None:
    """Install the JSON handler on the root logger and configure structlog to match."""
    level_no = _level_number(level or DEFAULT_LEVEL)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(default=str),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_no),
        logger_factory=structlog.PrintLoggerFactory(sys.stdout),
        cache_logger_on_first_use=True,
    )
    handler = _logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root = _logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level_no)


def bind_context(logger, **kwargs: Any):
    """Attach CONTEXT_FIELDS-style attributes to every record from `logger`."""
    if not kwargs:
        return logger
    return _logging.LoggerAdapter(logger, extra=kwargs)
