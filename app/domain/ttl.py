"""TTL presets resolved once, at creation time, into an absolute expiry."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum

from app.core.errors import ValidationAppError


class Ttl(str, Enum):
    """Fixed link lifetimes accepted by the API."""

    ONE_WEEK = "1_week"
    ONE_MONTH = "1_month"
    ONE_YEAR = "1_year"
    NEVER = "never"

    @classmethod
    def parse(cls, value: "str | Ttl") -> "Ttl":
        """Return the preset for ``value``.

        Raises:
            ValidationAppError: If ``value`` names no preset.
        """
        if isinstance(value, Ttl):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValidationAppError(
                code="invalid_ttl",
                message=f"Unsupported ttl value: {value!r}",
                details={"field": "ttl", "allowed": [t.value for t in cls]},
            ) from None

    def expires_at(self, now: datetime) -> datetime | None:
        """Absolute expiry for a link created at ``now`` (None = never)."""
        delta = _DURATIONS.get(self)
        if delta is None:
            return None
        return now + delta


_DURATIONS: dict[Ttl, timedelta] = {
    Ttl.ONE_WEEK: timedelta(weeks=1),
    Ttl.ONE_MONTH: timedelta(days=30),
    Ttl.ONE_YEAR: timedelta(days=365),
}
