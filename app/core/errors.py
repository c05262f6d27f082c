"""Application-level exception types.

This module defines domain errors raised by the link lifecycle, QR renderer
and rate guard. The HTTP layer maps each subclass to a status code in
``app.core.exception_handlers``; the core itself stays transport-agnostic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    field: str
    value: str
    allowed: list[str]
    attempts: int
    retry_after: int
    limit: int
    path: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when a URL, TTL preset or other input fails validation."""


class NotFoundAppError(AppError):
    """Raised for unknown or expired short codes and unknown link ids."""


class ConflictAppError(AppError):
    """Raised when no unique short code could be allocated; safe to retry."""


class AuthenticationAppError(AppError):
    """Raised when the admin secret is required but missing or wrong."""


class RateLimitedAppError(AppError):
    """Raised when the rate guard denies a request.

    Attributes:
        retry_after_seconds: Seconds until the client may retry (>= 1).
        headers: Extra response headers describing the limit state.
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: ErrorDetails | None = None,
        *,
        retry_after_seconds: int = 1,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(code=code, message=message, details=details)
        self.retry_after_seconds = max(1, retry_after_seconds)
        self.headers = headers or {}


class RenderAppError(AppError):
    """Raised when the branding logo is unreadable or QR encoding fails."""


class StorageAppError(AppError):
    """Raised when the backing database fails; the message is never exposed."""
