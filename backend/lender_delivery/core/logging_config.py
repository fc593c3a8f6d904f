"""
Structured logging configuration.

Provides:
    • JSON-formatted logs for production (machine-parseable)
    • Pretty console logs for development (human-readable)
    • Submission-scoped correlation context (application_id, lender_id)

Usage:
    from backend.lender_delivery.core.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
    logger.info("Appended row", extra={"application_id": "app-1", "spreadsheet_id": "s-1"})
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

from backend.lender_delivery.core.config import Settings, get_settings

# ── Context variable for submission-scoped data ──
_submission_context: ContextVar[Optional[Dict[str, Any]]] = ContextVar(
    "submission_context", default=None
)

# Extra fields the JSON formatter lifts onto the log entry
CORRELATION_FIELDS = (
    "application_id", "lender_id", "spreadsheet_id", "sheet_title",
    "channel", "attempt", "failure_reason", "status_code", "duration_ms",
)


def get_log_context() -> Dict[str, Any]:
    """Copy of the current correlation context."""
    return dict(_submission_context.get() or {})


@contextmanager
def submission_log_context(**kwargs: Any) -> Iterator[Dict[str, Any]]:
    """Bind correlation fields for the duration of one delivery."""
    merged = {**get_log_context(), **{k: v for k, v in kwargs.items() if v is not None}}
    token = _submission_context.set(merged)
    try:
        yield merged
    finally:
        _submission_context.reset(token)


# ── JSON Formatter (Production) ──

def _exception_summary(record: logging.LogRecord) -> Optional[Dict[str, str]]:
    if not (record.exc_info and record.exc_info[1]):
        return None
    exc = record.exc_info[1]
    return {"type": type(exc).__name__, "message": str(exc)}


class JSONFormatter(logging.Formatter):
    """One JSON object per line; correlation fields at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        bound = get_log_context()
        if bound:
            entry["context"] = bound

        entry.update(
            (field, getattr(record, field))
            for field in CORRELATION_FIELDS
            if hasattr(record, field)
        )

        error = _exception_summary(record)
        if error:
            entry["exception"] = error

        return json.dumps(entry, default=str)


# ── Pretty Formatter (Development) ──

class PrettyFormatter(logging.Formatter):
    """Coloured console lines prefixed with the delivery being worked on."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    @staticmethod
    def _delivery_tag(bound: Dict[str, Any]) -> str:
        app_id = bound.get("application_id")
        if not app_id:
            return ""
        tag = str(app_id)[:12]
        if bound.get("channel"):
            tag += f" {bound['channel']}"
        if bound.get("attempt") is not None:
            tag += f"#{bound['attempt']}"
        return f" [{tag}]"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, self.RESET)
        line = (
            f"{color}{self.formatTime(record, '%H:%M:%S')} {record.levelname:<8}{self.RESET}"
            f"{self._delivery_tag(get_log_context())} {record.name}: {record.getMessage()}"
        )
        error = _exception_summary(record)
        if error:
            line += f"\n  {error['type']}: {error['message']}"
        return line


# ── Setup ──

_QUIET_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "googleapiclient.discovery": logging.WARNING,
    "googleapiclient.discovery_cache": logging.ERROR,
}


def setup_logging(config: Optional[Settings] = None) -> None:
    """Install one stdout handler: JSON in production, coloured otherwise."""
    config = config or get_settings()
    root = logging.getLogger()
    root.setLevel(getattr(logging, config.LOG_LEVEL.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if config.is_production else PrettyFormatter())
    root.addHandler(handler)

    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
