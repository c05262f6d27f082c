"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Explicit ownership: the limiter is created in the application lifespan and
  stored on ``app.state``; there is no module-level singleton, so tests can
  build an app with a fake clock.
- Swap-friendly: storage backend can be replaced behind an abstract interface.

Rate limiting strategy:
- Per-client window keyed by source IP.
- Optionally keyed by the first X-Forwarded-For hop when running behind a
  trusted proxy.
"""

from __future__ import annotations

import hashlib
import logging

from fastapi import Request

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.core.config import AppSettings
from app.core.errors import RateLimitedAppError

logger = logging.getLogger(__name__)


def build_rate_limiter(app_settings: AppSettings) -> AbstractRateLimiter:
    """Create the limiter configured by ``app_settings``.

    Returns:
        AbstractRateLimiter: Configured limiter instance.
    """

    return InMemoryFixedWindowRateLimiter(
        limit=app_settings.rate_limit_per_minute,
        window_seconds=app_settings.rate_limit_window_seconds,
    )


def build_rate_limit_key(request: Request, *, trust_forwarded_for: bool = False) -> str:
    """Build the limiter key for the current request.

    Args:
        request: FastAPI request.
        trust_forwarded_for: Use the first X-Forwarded-For hop when present.

    Returns:
        str: Namespaced limiter key.
    """

    if trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return f"ip:{first_hop}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


def _hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing client addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency enforcing rate limits.

    When enabled, consumes 1 unit from the requester's budget. If the requester
    exceeds the configured rate, raises RateLimitedAppError (HTTP 429).

    Args:
        request: FastAPI request.

    Raises:
        RateLimitedAppError: When the rate limit is exceeded.
    """

    app_settings: AppSettings = request.app.state.settings.app
    if not app_settings.rate_limit_enabled:
        return

    limiter: AbstractRateLimiter = request.app.state.rate_limiter
    key = build_rate_limit_key(request, trust_forwarded_for=app_settings.trust_forwarded_for)
    key_hash = _hash_limiter_key(key)

    result = limiter.consume(key)
    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_hash": key_hash,
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return

    retry_after = result.retry_after_seconds or 1
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_hash": key_hash,
            "limit": result.limit,
            "remaining": result.remaining,
            "window_s": app_settings.rate_limit_window_seconds,
            "retry_after_s": retry_after,
            "path": request.url.path,
        },
    )

    headers: dict[str, str] = {}
    if app_settings.rate_limit_include_headers:
        headers["X-RateLimit-Limit"] = str(result.limit)
        headers["X-RateLimit-Remaining"] = str(result.remaining)
        headers["X-RateLimit-Reset"] = str(result.reset_at)

    raise RateLimitedAppError(
        code="rate_limit_exceeded",
        message=f"Rate limit exceeded. Retry after {retry_after} seconds.",
        details={"retry_after": retry_after, "limit": result.limit},
        retry_after_seconds=retry_after,
        headers=headers,
    )
