"""
Logging setup for Print Bridge.

Log records come from two places: Flask request handlers and the dispatch
worker thread. RequestIdFilter stamps request-scoped fields on the former, and
job-scoped records carry a `job_id` passed through `extra=`. Both show up in the
plain and JSON formats.

Environment:
- PRINTBRIDGE_LOG_LEVEL: DEBUG, INFO (default), WARNING, ...
- PRINTBRIDGE_JSON_LOGS: emit one JSON object per line when true
"""

from __future__ import annotations

import json
import logging
import os
from typing import Optional

from flask import g, has_request_context, request

PLAIN_FORMAT = "[%(asctime)s] %(levelname)s %(threadName)s req=%(request_id)s job=%(job_id)s %(name)s: %(message)s"


class RequestIdFilter(logging.Filter):
    """
    Fill in request_id and path from the active Flask request, and default
    job_id, so format strings can reference all three on every record.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if has_request_context():
            record.request_id = getattr(g, "request_id", "-")
            record.path = request.path
        else:
            record.request_id = "-"
            record.path = "-"
        if not hasattr(record, "job_id"):
            record.job_id = "-"
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record; job_id and path only when known."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        out = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }
        for key in ("job_id", "path"):
            value = getattr(record, key, "-")
            if value != "-":
                out[key] = value
        if record.exc_info:
            out["exc"] = self.formatException(record.exc_info)
        return json.dumps(out, ensure_ascii=False)


def _level_from_env(default: int) -> int:
    name = os.environ.get("PRINTBRIDGE_LOG_LEVEL")
    if not name:
        return default
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else default


def configure_logging(level: Optional[int] = None) -> logging.Logger:
    """
    Configure root logging for the bridge and return the root logger.

    Replaces existing root handlers, so calling it again (one call per app
    created) does not duplicate output. Uses journald when systemd-python is
    installed, otherwise stderr.
    """
    root = logging.getLogger()
    root.setLevel(level if level is not None else _level_from_env(logging.INFO))
    root.handlers = []

    json_logs = os.environ.get("PRINTBRIDGE_JSON_LOGS", "false").lower() in ("1", "true", "yes")
    formatter = JsonFormatter() if json_logs else logging.Formatter(PLAIN_FORMAT)

    try:
        from systemd.journal import JournalHandler  # type: ignore

        handler: logging.Handler = JournalHandler(SYSLOG_IDENTIFIER="print-bridge")
    except ImportError:
        handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)

    # Flask's app logger and werkzeug's access log go through the root handler.
    for name in ("flask.app", "werkzeug"):
        lg = logging.getLogger(name)
        lg.handlers = []
        lg.propagate = True

    return root


__all__ = ["JsonFormatter", "PLAIN_FORMAT", "RequestIdFilter", "configure_logging"]
