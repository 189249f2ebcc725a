"""
Log output for the tracker.

Production writes one JSON object per line; development and tests get a
short coloured line. Request, client and job context travels on records as
``extra=`` fields and is rendered by both formatters.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

# Context fields copied from a record when set
CONTEXT_FIELDS = (
    "request_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "client_id",
    "job_name",
    "event_type",
)

QUIET_LOGGERS = ("werkzeug", "sqlalchemy.engine", "urllib3")


def _context(record: logging.LogRecord) -> dict:
    return {k: getattr(record, k) for k in CONTEXT_FIELDS if getattr(record, k, None) is not None}


class JSONFormatter(logging.Formatter):
    """One JSON document per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger: message client=.. job=.. [Nms]``"""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        parts = [f"{color}{stamp} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"]

        ctx = _context(record)
        if "client_id" in ctx:
            parts.append(f"client={ctx['client_id']}")
        if "job_name" in ctx:
            parts.append(f"job={ctx['job_name']}")
        if "duration_ms" in ctx:
            parts.append(f"[{ctx['duration_ms']:.0f}ms]")

        line = " ".join(parts)
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Attach a single stderr handler to the root logger.

    JSON when the app is neither in debug nor testing mode. ``LOG_LEVEL``
    overrides the default level (INFO for JSON, DEBUG otherwise).
    """
    testing = app.config.get("TESTING", False)
    structured = not app.config.get("DEBUG", False) and not testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if structured else "DEBUG").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if structured else ReadableFormatter())
    handler.setLevel(level)

    # Replaced, not appended: tests build the app more than once.
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not testing:
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "json" if structured else "readable")
