"""Structured Logging — JSON formatter and setup for production observability.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - Extra fields (error_code, logical_table, record_id, action, check, fix) surfaced when present
    - JSON format in production, human-readable in development
    - setup_logging is idempotent: repeated calls replace its own handler, never stack them

Design Decisions:
    - JSONFormatter over third-party libs: zero dependencies, full control
    - Timestamp taken from the LogRecord, not format time: ordering survives buffering
    - setup_logging called once on startup by bootstrap.create_services
"""

import json
import logging
from datetime import datetime, timezone

_EXTRA_FIELDS = (
    "error_code", "logical_table", "record_id", "action",
    "check", "fix", "duration_ms",
)


class RecordVaultHandler(logging.StreamHandler):
    """Stream handler installed by setup_logging; replaced, never stacked."""


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    """Configure root logging for the engine and return the installed handler."""
    for existing in list(logging.root.handlers):
        if isinstance(existing, RecordVaultHandler):
            logging.root.removeHandler(existing)
    handler = RecordVaultHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s — %(message)s",
        ))
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return handler
