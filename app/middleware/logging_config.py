"""
Structured logging configuration.

Every record emitted while a request is active is tagged with the request
id, the calling user (X-User) and, on item or document routes, the
meeting item / document id, so a single item's history can be followed
through the logs.

- Development: human-readable colored lines prefixed with ``[request user]``
- Production: one JSON object per line
- Level: ``LOG_LEVEL`` from config or environment
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context, request

# Attributes set by RequestContextFilter.
CONTEXT_FIELDS = ("request_id", "user", "meeting_item_id", "document_id")

# Attributes passed via ``extra=`` by the timing middleware.
REQUEST_FIELDS = ("method", "path", "status", "duration_ms", "remote_addr")

_VIEW_ARG_FIELDS = {"item_id": "meeting_item_id", "document_id": "document_id"}


class RequestContextFilter(logging.Filter):
    """Copy request identity onto the record; values given via ``extra=`` win."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not has_request_context():
            return True
        context = {
            "request_id": getattr(g, "request_id", None),
            "user": request.headers.get("X-User", "").strip() or None,
        }
        for arg, field in _VIEW_ARG_FIELDS.items():
            context[field] = (request.view_args or {}).get(arg)
        for key, value in context.items():
            if getattr(record, key, None) is None:
                setattr(record, key, value)
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        for key in CONTEXT_FIELDS + REQUEST_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Colored single-line output for development."""

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
        ts = datetime.now().strftime("%H:%M:%S")
        request_id = getattr(record, "request_id", None)
        context = f" [{request_id} {getattr(record, 'user', None) or '-'}]" if request_id else ""
        duration = getattr(record, "duration_ms", None)
        timing = f" [{duration:.0f}ms]" if duration is not None else ""
        line = (f"{color}{ts} {record.levelname:<8}{self.RESET}{context} "
                f"{record.name}: {record.getMessage()}{timing}")
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install one stderr handler on the root logger for *app*.

    JSON in production, readable lines in development and tests. Existing
    root handlers are replaced so repeated app creation does not duplicate
    output.
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = app.config.get("LOG_LEVEL") or os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG")
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if is_prod else ReadableFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("werkzeug", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "JSON" if is_prod else "readable")
