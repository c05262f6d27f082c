"""Admin secret gate for link listing and deletion.

When ``APP_ADMIN_SECRET`` is configured, ``GET /api/v1/links`` and
``DELETE /api/v1/links/{id}`` require the same value in the
``X-Delete-Secret`` header. When it is not configured both are open.

Design principles:
- Capability value: the gate (secret present or absent) is built once from
  configuration and stored on ``app.state``; handlers never branch on settings.
- Pure check logic without FastAPI dependencies for easy testing.
- Constant-time comparison of the provided value.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Annotated

from fastapi import Header, Request

from app.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)

ADMIN_SECRET_HEADER = "X-Delete-Secret"


class AdminGate:
    """Optional shared-secret capability.

    Attributes:
        enabled: True when a non-empty secret is configured.
    """

    def __init__(self, secret: str | None = None) -> None:
        self._secret = secret or None

    @property
    def enabled(self) -> bool:
        return self._secret is not None

    def __repr__(self) -> str:
        return f"AdminGate(enabled={self.enabled})"

    def check(self, provided: str | None) -> None:
        """Validate ``provided`` against the configured secret.

        Args:
            provided: Header value supplied by the caller, if any.

        Raises:
            AuthenticationAppError: If the gate is enabled and the value is
                missing or does not match.
        """
        if self._secret is None:
            return

        if not provided:
            logger.warning(
                "admin_auth.failed",
                extra={"reason": "missing_secret"},
            )
            raise AuthenticationAppError(
                code="admin_secret_required",
                message=f"Admin secret required. Provide the {ADMIN_SECRET_HEADER} header.",
            )

        if not hmac.compare_digest(provided.encode(), self._secret.encode()):
            logger.warning(
                "admin_auth.failed",
                extra={
                    "reason": "invalid_secret",
                    "provided_hash": hashlib.sha256(provided.encode()).hexdigest()[:16],
                },
            )
            raise AuthenticationAppError(
                code="invalid_admin_secret",
                message="Invalid admin secret",
            )


def require_admin_secret(
    request: Request,
    x_delete_secret: Annotated[str | None, Header(alias=ADMIN_SECRET_HEADER)] = None,
) -> None:
    """FastAPI dependency enforcing the admin gate.

    Usage:
        @router.get("/links", dependencies=[Depends(require_admin_secret)])

    Raises:
        AuthenticationAppError: 401 when the gate is enabled and the header
            is missing or wrong.
    """
    gate: AdminGate = request.app.state.admin_gate
    gate.check(x_delete_secret)
    if gate.enabled:
        logger.info("admin_auth.success", extra={"path": request.url.path})
