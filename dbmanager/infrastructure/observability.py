"""Structured Logging — JSON / key=value formatters for CLI and test-harness runs.

Invariants:
    - Every record carries timestamp, level, logger name and message
    - Lifecycle extras (database, operation, attempt, locale, table_count,
      error_code) are surfaced by both formats when present
    - setup_logging() replaces its own handler on repeated calls, never stacks them

Design Decisions:
    - JSONFormatter on stdlib logging, one object per line
    - Text format keeps extras as key=value suffixes so grep works on CI logs
"""

import json
import logging
from datetime import datetime, timezone

EXTRA_FIELDS = (
    "database", "operation", "attempt", "locale", "table_count", "error_code",
)

_HANDLER_NAME = "dbmanager"


def _extras(record: logging.LogRecord) -> dict:
    return {
        key: record.__dict__[key]
        for key in EXTRA_FIELDS
        if record.__dict__.get(key) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_extras(record),
        }
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable line with lifecycle extras appended as key=value."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = _extras(record)
        if extras:
            line += " " + " ".join(f"{k}={v}" for k, v in extras.items())
        return line


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    """Install (or replace) the package's root handler."""
    for existing in list(logging.root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            logging.root.removeHandler(existing)
    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return handler
