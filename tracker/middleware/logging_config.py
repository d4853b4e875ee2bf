"""
Logging setup for the tracker.

Services attach context through ``extra=`` (workspace_id, user_id, check,
document_kind, ...).  In production those keys become top-level JSON fields;
in development they are appended to the line as ``key=value`` pairs.

LOG_LEVEL overrides the default level (DEBUG in dev/test, INFO otherwise).
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

# Keys promoted from ``extra=`` into the formatted record, in output order
CONTEXT_FIELDS = (
    "request_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "workspace_id",
    "user_id",
    "check",
    "document_kind",
    "document_id",
    "approval_state",
)

# Loggers that drown out request and scan logs at DEBUG
_QUIET_LOGGERS = ("werkzeug", "sqlalchemy.engine")


def _context(record: logging.LogRecord) -> dict:
    return {
        key: getattr(record, key)
        for key in CONTEXT_FIELDS
        if getattr(record, key, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }
        entry.update(_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Colored single-line format for a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        context = _context(record)
        # Request method/path are already in the timing message
        for key in ("method", "path", "remote_addr"):
            context.pop(key, None)
        if "duration_ms" in context:
            context["duration_ms"] = f"{context['duration_ms']:.0f}"
        if context:
            line += "  " + " ".join(f"{k}={v}" for k, v in context.items())

        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install a single stderr handler on the root logger.

    Production (not DEBUG, not TESTING) logs JSON; everything else logs the
    readable format.  Existing root handlers are replaced so building several
    apps in one process (the test suite does) never duplicates output.
    """
    testing = app.config.get("TESTING", False)
    production = not app.config.get("DEBUG", False) and not testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if production else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if production else ReadableFormatter())
    handler.setLevel(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not testing:
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "json" if production else "readable")
