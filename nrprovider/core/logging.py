from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from typing import Any

import orjson

from nrprovider.resources.ids import ID_SEPARATOR

_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "relativeCreated",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "pathname",
        "filename",
        "module",
        "levelno",
        "levelname",
        "msecs",
        "thread",
        "threadName",
        "process",
        "processName",
        "message",
        "taskName",
    }
)


class JSONFormatter(logging.Formatter):
    """Produce one JSON object per log line.

    Scalar ``extra`` values become top-level keys. Records carrying both
    ``policy_id`` and ``condition_id`` also get the composite
    ``resource_id`` under which the condition is addressed in state.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            if isinstance(value, str | int | float | bool | type(None)):
                log_entry[key] = value

        policy_id = log_entry.get("policy_id")
        condition_id = log_entry.get("condition_id")
        if policy_id is not None and condition_id is not None:
            log_entry["resource_id"] = f"{policy_id}{ID_SEPARATOR}{condition_id}"

        return orjson.dumps(log_entry).decode("utf-8")


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger with structured JSON output.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Remove any existing handlers to avoid duplicate output
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(numeric_level)
    stream_handler.setFormatter(JSONFormatter())

    root_logger.addHandler(stream_handler)

    # Request/response bodies are logged by the API client itself
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))
    logging.getLogger("httpcore").setLevel(max(numeric_level, logging.WARNING))
