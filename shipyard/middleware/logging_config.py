"""
Structured logging configuration.

Two output shapes share one set of context fields (request, user, snapshot
view/seq) taken from ``extra=`` on the log call:

- Development / tests: one colored line per record
- Production: one JSON object per record
- LOG_LEVEL overrides the level, LOG_FORMAT ("json" | "readable") the shape
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

CONTEXT_FIELDS = (
    "request_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "user_id",
    "view",
    "seq",
)

QUIET_LOGGERS = ("werkzeug", "sqlalchemy.engine", "alembic.runtime.migration")


def record_context(record: logging.LogRecord) -> dict:
    """Context fields present on ``record``, in CONTEXT_FIELDS order."""
    context = {}
    for key in CONTEXT_FIELDS:
        value = getattr(record, key, None)
        if value is not None:
            context[key] = value
    return context


class JSONFormatter(logging.Formatter):
    """One JSON object per line for the log shipper."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(record_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Colored single-line output for a terminal."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    # Shown after the message; request fields are already in the timing line
    TRAILING = ("user_id", "view", "seq")

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{color}{stamp} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        context = record_context(record)
        if "duration_ms" in context:
            line += f" [{context['duration_ms']:.0f}ms]"
        tail = " ".join(f"{k}={context[k]}" for k in self.TRAILING if k in context)
        if tail:
            line += f" ({tail})"

        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """
    Install a single stderr handler on the root logger.

    Production (neither DEBUG nor TESTING) defaults to JSON at INFO,
    everything else to readable output at DEBUG.
    """
    testing = app.config.get("TESTING", False)
    production = not app.config.get("DEBUG", False) and not testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if production else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)
    shape = os.getenv("LOG_FORMAT", "json" if production else "readable").lower()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if shape == "json" else ReadableFormatter())
    handler.setLevel(level)

    # create_app runs once per test session and per worker; never stack handlers
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not testing:
        app.logger.info("Logging configured: level=%s format=%s", level_name, shape)
