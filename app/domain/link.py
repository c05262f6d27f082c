"""The Link entity."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Link:
    """A shortened link.

    Attributes:
        id: Opaque UUID string assigned at creation.
        short_code: Public 7-character Base56 code.
        target_url: Absolute http/https URL the code redirects to.
        created_at: UTC creation time.
        expires_at: UTC expiry time, or None if the link never expires.
    """

    id: str
    short_code: str
    target_url: str
    created_at: datetime
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        """A link is logically dead from its expiry instant onwards."""
        return self.expires_at is not None and now >= self.expires_at
