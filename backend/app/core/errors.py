"""
Centralised error handling — exception hierarchy + FastAPI handlers.

Provides:
    • Domain-specific exception classes
    • Flat JSON error bodies: {"message": ..., **details}
    • Automatic logging of unhandled errors

The body shape is the one the alert client already understands: it reads
``message`` for display and, on provider failures, ``error`` for detail.

Usage:
    from backend.app.core.errors import (
        SafetyAlertError,
        ValidationError,
        ProviderError,
        register_error_handlers,
    )

    raise ValidationError("Missing required fields!")
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from backend.app.core.config import settings

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class SafetyAlertError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class ValidationError(SafetyAlertError):
    """Request is missing required fields or carries bad values (400)."""

    def __init__(self, message: str, *, field: Optional[str] = None, **details: Any):
        d = {**details}
        if field:
            d["field"] = field
        super().__init__(
            message=message,
            status_code=400,
            error_code="VALIDATION_ERROR",
            details=d,
        )


class LocationUnavailable(SafetyAlertError):
    """No position fix yet — recoverable by waiting (409)."""

    def __init__(self, message: str = "location pending", **details: Any):
        super().__init__(
            message=message,
            status_code=409,
            error_code="LOCATION_PENDING",
            details=details,
        )


class ContactMissing(SafetyAlertError):
    """No stored emergency contact — recoverable by prompting (409)."""

    def __init__(self, message: str = "contact required", **details: Any):
        super().__init__(
            message=message,
            status_code=409,
            error_code="CONTACT_REQUIRED",
            details=details,
        )


class ProviderError(SafetyAlertError):
    """Delivery provider failed; may be partial (500)."""

    def __init__(
        self,
        error: str,
        *,
        text_sent: bool = False,
        call_placed: bool = False,
        message: str = "Error sending alert",
    ):
        super().__init__(
            message=message,
            status_code=500,
            error_code="PROVIDER_ERROR",
            details={
                "error": error,
                "text_sent": text_sent,
                "call_placed": call_placed,
            },
        )


class GatewayError(Exception):
    """
    Raised by a message gateway when the provider rejects a request.

    Carries the provider's own error code / HTTP status when known so the
    full detail can be logged server-side.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str = "unknown",
        code: Optional[int] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.code = code
        self.status = status


# ═══════════════════════════════════════════════════════════════════════════
# Error Response Builder
# ═══════════════════════════════════════════════════════════════════════════

def _build_error_response(
    status_code: int,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Build a flat JSON error response."""
    body: Dict[str, Any] = {"message": message}
    if details:
        body.update(details)
    return JSONResponse(status_code=status_code, content=body)


# ═══════════════════════════════════════════════════════════════════════════
# FastAPI Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════

def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""

    @app.exception_handler(SafetyAlertError)
    async def handle_app_error(request: Request, exc: SafetyAlertError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "API Error [%s] %s %s: %s | details=%s",
            exc.error_code, request.method, request.url.path,
            exc.message, exc.details,
        )
        return _build_error_response(exc.status_code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        logger.warning("Request validation failed: %s", exc.errors())
        return _build_error_response(400, "Invalid request body")

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.critical(
            "Unhandled exception: %s\n%s",
            exc, traceback.format_exc(),
        )
        message = str(exc) if settings.DEBUG else "Internal server error"
        return _build_error_response(500, message)
