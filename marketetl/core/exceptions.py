"""Custom exceptions and centralized exception handlers.

Two families live here:

- ``AppException`` and its subclasses cross the HTTP boundary and are
  rendered as structured error bodies by ``register_exception_handlers``.
- ``ProviderError`` / ``PersistenceError`` are instrument-level failures
  inside a batch. They are caught at the instrument boundary and only
  surface as counts and per-instrument results.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class AppException(Exception):
    """Base application exception with structured error response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.status_code = status_code or self.status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to RFC 7807 problem+json style response."""
        return {
            "error": self.error_code,
            "message": self.message,
            "status": self.status_code,
            **({"details": self.details} if self.details else {}),
        }


class AuthenticationError(AppException):
    """Missing or mismatched shared secret."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "UNAUTHORIZED"
    message = "Invalid or missing authorization token"


class ConfigurationError(AppException):
    """Required external credentials are not configured."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "CONFIGURATION_ERROR"
    message = "Service is not configured"


class StoreError(AppException):
    """Record store operation failed outside an instrument boundary."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "STORE_ERROR"
    message = "Record store operation failed"


# =============================================================================
# Instrument-level failures
# =============================================================================


class FailureReason(str, Enum):
    """Why a provider call produced no usable payload."""

    TRANSPORT_ERROR = "transport_error"
    RATE_LIMITED = "rate_limited"
    MALFORMED_RESPONSE = "malformed_response"
    NO_DATA = "no_data"


class ProviderError(Exception):
    """Base class for provider failures; carries a ``FailureReason``."""

    reason: FailureReason = FailureReason.TRANSPORT_ERROR

    def __init__(self, provider: str, message: str):
        self.provider = provider
        self.message = message
        super().__init__(f"{provider}: {message}")


class TransportError(ProviderError):
    """Network or HTTP failure talking to a provider."""

    reason = FailureReason.TRANSPORT_ERROR


class RateLimitedError(ProviderError):
    """Provider answered 429."""

    reason = FailureReason.RATE_LIMITED


class MalformedResponseError(ProviderError):
    """Non-JSON or schema-violating payload."""

    reason = FailureReason.MALFORMED_RESPONSE


class SentinelDataError(ProviderError):
    """Provider returned its "unknown symbol" sentinel (e.g. an all-zero quote)."""

    reason = FailureReason.NO_DATA


class PersistenceError(Exception):
    """Writing one instrument's merged record failed."""

    def __init__(self, symbol: str, message: str):
        self.symbol = symbol
        self.message = message
        super().__init__(f"{symbol}: {message}")


def register_exception_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers."""

    @app.exception_handler(AppException)
    async def app_exception_handler(
        request: Request, exc: AppException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers={"X-Request-ID": getattr(request.state, "request_id", "unknown")},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger = logging.getLogger("marketetl.error")
        logger.exception(
            "Unhandled exception",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "path": request.url.path,
                "method": request.method,
            },
        )

        from .config import settings

        if settings.debug:
            message = str(exc)
        else:
            message = f"{request.url.path} failed: {type(exc).__name__}"

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "INTERNAL_ERROR",
                "message": message,
                "status": 500,
            },
            headers={"X-Request-ID": getattr(request.state, "request_id", "unknown")},
        )
