"""
Structured logging for the alert service.

Two renderings of the same records:
    • production  — one JSON object per line, alert fields as top-level keys
    • elsewhere   — coloured console lines with a short alert tag

Alert code logs through plain module loggers and attaches its fields via
``extra``; the formatters pick them up:

    logger.info(
        "Dispatching alert", extra={"trigger_source": "voice", "lat": 37.77, "lon": -122.42},
    )

Phone numbers never appear in full. Messages mask them with ``mask_phone``
and the JSON formatter masks a raw ``phone`` field itself.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from backend.app.core.config import settings

# Set per request by RequestLoggingMiddleware
_request_context: ContextVar[Dict[str, Any]] = ContextVar("request_context", default={})

ALERT_FIELDS = ("trigger_source", "outcome", "channel", "phone", "lat", "lon")
HTTP_FIELDS = ("endpoint", "status_code", "duration_ms")


def set_request_context(**kwargs: Any) -> None:
    """Replace the request context; no arguments clears it."""
    _request_context.set(kwargs)


def get_request_context() -> Dict[str, Any]:
    return _request_context.get()


def mask_phone(phone: Optional[str]) -> str:
    """
    Hide all but the last four digits of a phone number.

    >>> mask_phone("+15551234567")
    '********4567'
    """
    if not phone:
        return "<none>"
    return "*" * max(len(phone) - 4, 0) + phone[-4:]


def record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Alert and HTTP fields present on a record, phone masked."""
    fields: Dict[str, Any] = {}
    for key in ALERT_FIELDS + HTTP_FIELDS:
        if hasattr(record, key):
            value = getattr(record, key)
            fields[key] = mask_phone(value) if key == "phone" else value
    return fields


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shipping in production."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        ctx = get_request_context()
        if ctx:
            entry["context"] = ctx
        entry.update(record_fields(record))

        if record.exc_info and record.exc_info[1]:
            exc = record.exc_info[1]
            entry["exception"] = {"type": type(exc).__name__, "message": str(exc)}

        return json.dumps(entry, default=str, ensure_ascii=False)


class PrettyFormatter(logging.Formatter):
    """Coloured console output; alert records get a ``{source→outcome}`` tag."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    @staticmethod
    def _alert_tag(record: logging.LogRecord) -> str:
        source = getattr(record, "trigger_source", None)
        outcome = getattr(record, "outcome", None)
        if source and outcome:
            return f" {{{source}→{outcome}}}"
        if source or outcome:
            return f" {{{source or outcome}}}"
        return ""

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        request_id = get_request_context().get("request_id")
        req = f" [{request_id[:8]}]" if request_id else ""

        line = (
            f"{color}{self.formatTime(record, '%H:%M:%S')} {record.levelname:8s}{self.RESET}"
            f"{req}{self._alert_tag(record)} {record.name}: {record.getMessage()}"
        )
        if record.exc_info and record.exc_info[1]:
            exc = record.exc_info[1]
            line += f"\n  {type(exc).__name__}: {exc}"
        return line


def setup_logging() -> None:
    """Install a single stdout handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if settings.is_production else PrettyFormatter())
    root.addHandler(handler)

    for noisy in ("uvicorn.access", "httpx", "httpcore", "twilio.http_client"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
