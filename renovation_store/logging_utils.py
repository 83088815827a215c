"""
Structured JSON logging utilities.

Provides a JSON-lines formatter for the command line tool's --verbose mode,
and a component-scoped logger adapter that tags every record with the
component name and a log category (data, ui, network, storage, system).
"""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any, TextIO

LOG_CATEGORIES = ("data", "ui", "network", "storage", "system", "other")

# Attributes every LogRecord carries; anything else came from ``extra``.
STANDARD_RECORD_ATTRS = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "pathname", "process", "processName", "relativeCreated",
        "stack_info", "exc_info", "exc_text", "thread", "threadName",
        "taskName", "message", "asctime",
    }
)


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Return the ``extra`` fields attached to a log record."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in STANDARD_RECORD_ATTRS and not key.startswith("_")
    }


class StructuredJsonFormatter(logging.Formatter):
    """
    Single-line JSON formatter.

    Each line carries ``timestamp`` (record creation time, UTC), ``level``,
    ``logger``, ``category``, ``message``, the ``component`` when a
    ComponentLogger tagged the record, and any other ``extra`` fields
    under ``context``.
    """

    def format(self, record: logging.LogRecord) -> str:
        extras = record_extras(record)
        log_obj: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "category": extras.pop("category", None) or "other",
            "message": record.getMessage(),
        }
        component = extras.pop("component", None)
        if component:
            log_obj["component"] = component
        if extras:
            log_obj["context"] = extras
        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str, ensure_ascii=False)


def configure_structured_logging(
    level: int | str = logging.INFO,
    logger_name: str | None = None,
    stream: TextIO | None = None,
) -> logging.Logger:
    """
    Send JSON lines for ``logger_name`` to ``stream`` (default: stderr).

    Calling it again replaces the previous JSON handler; other handlers,
    such as an attached journal, are left in place.
    """
    logger = logging.getLogger(logger_name)

    for handler in list(logger.handlers):
        if isinstance(handler.formatter, StructuredJsonFormatter):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredJsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)

    return logger


class ComponentLogger(logging.LoggerAdapter):
    """
    Logger adapter that tags records with a component name and category.

    The category defaults to the one given at construction and can be
    overridden per call with ``extra={"category": ...}``.
    """

    def __init__(self, logger: logging.Logger, component: str, category: str = "other"):
        super().__init__(logger, {"component": component, "category": category})

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        """Add component context to the log record."""
        extra = dict(self.extra)
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs
