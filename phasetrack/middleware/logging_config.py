"""
Structured logging for the phase scheduling service.

Two output shapes, one handler on the root logger:
    readable  coloured single line with request scope, for local work
    json      one object per line for log shipping

LOG_FORMAT (json | readable) overrides the per-environment default and
LOG_LEVEL sets the threshold.  Every record emitted while a request is
active is stamped with the request id and acting user by
``RequestContextFilter``, so service-level logs (lifecycle writes, CPM
runs, cascade analyses) can be correlated with the HTTP access line.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Scope attributes copied from a LogRecord when set
_CONTEXT_FIELDS = (
    "request_id",
    "actor_id",
    "project_id",
    "phase_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
)

_NOISY_LOGGERS = ("werkzeug", "sqlalchemy.engine", "urllib3")


class RequestContextFilter(logging.Filter):
    """Attach ``request_id`` and ``actor_id`` from ``flask.g`` to records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "request_id", None) is None:
                record.request_id = g.get("request_id")
            if getattr(record, "actor_id", None) is None:
                record.actor_id = g.get("actor_id")
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        payload.update({
            key: getattr(record, key)
            for key in _CONTEXT_FIELDS
            if getattr(record, key, None) is not None
        })
        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Coloured line: time, level, logger, message, then any request scope."""

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
        line = f"{color}{stamp} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        scope = [
            f"{key}={getattr(record, key)}"
            for key in ("request_id", "actor_id", "project_id", "phase_id")
            if getattr(record, key, None) is not None
        ]
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            scope.append(f"{duration:.0f}ms")
        if scope:
            line += f" [{' '.join(scope)}]"

        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _resolve_format(is_prod: bool) -> str:
    fmt = os.getenv("LOG_FORMAT", "").lower()
    if fmt in ("json", "readable"):
        return fmt
    return "json" if is_prod else "readable"


def configure_logging(app):
    """
    Install the root handler for ``app``.

    Defaults: DEBUG + readable outside production, INFO + json in
    production.  Replaces any previously installed root handlers, so
    building several apps in one process (tests) never duplicates output.
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)
    fmt = _resolve_format(is_prod)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if fmt == "json" else ReadableFormatter())
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s", level_name, fmt)
