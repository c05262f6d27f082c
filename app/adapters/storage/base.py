"""Link store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from app.domain.link import Link


class DuplicateShortCodeError(Exception):
    """Raised by ``insert`` when the short code is already taken.

    This is the store's signal to the caller that it should resample a code;
    it never reaches the HTTP layer.
    """

    def __init__(self, short_code: str) -> None:
        super().__init__(f"short code already exists: {short_code}")
        self.short_code = short_code


class AbstractLinkStore(ABC):
    """Persistence contract for links.

    Implementations must enforce short-code uniqueness atomically inside
    ``insert`` and raise ``StorageAppError`` for any other backend failure.
    """

    @abstractmethod
    def insert(self, link: Link) -> Link:
        """Persist a new link.

        Raises:
            DuplicateShortCodeError: If ``link.short_code`` already exists.
        """
        raise NotImplementedError

    @abstractmethod
    def get_by_short_code(self, short_code: str) -> Link | None:
        raise NotImplementedError

    @abstractmethod
    def list_active(self, now: datetime) -> list[Link]:
        """Return links not expired at ``now``, newest first."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, link_id: str) -> bool:
        """Delete by id; return True if a row was removed."""
        raise NotImplementedError

    @abstractmethod
    def delete_expired(self, now: datetime) -> int:
        """Delete rows with a non-null ``expires_at <= now``; return the count."""
        raise NotImplementedError

    def close(self) -> None:  # pragma: no cover - optional hook
        """Release backend resources."""
