"""Link lifecycle service: create, resolve, list, delete and sweep.

This service owns the rules that make short links safe under concurrency:
- Short codes are sampled fresh for every attempt and the store's UNIQUE
  constraint is the only collision check (no read-before-write).
- Collision retries are bounded; exhaustion surfaces as ConflictAppError.
- Expiry is decided against the injected clock, so a row that is logically
  expired behaves as missing even before the sweep deletes it.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable

from app.adapters.storage.base import AbstractLinkStore, DuplicateShortCodeError
from app.core.errors import ConflictAppError, NotFoundAppError
from app.domain.link import Link
from app.domain.short_code import generate_short_code, is_valid_short_code
from app.domain.ttl import Ttl
from app.utils.url_validators import validate_target_url

logger = logging.getLogger(__name__)

DEFAULT_MAX_COLLISION_RETRIES = 5


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _link_not_found() -> NotFoundAppError:
    return NotFoundAppError(code="link_not_found", message="Link not found")


class LinkService:
    """Business operations on short links.

    Attributes:
        store: Persistence adapter.
        base_url: Public base URL used to build ``short_url`` values.
        default_ttl: Preset applied when ``create`` receives no ttl.
        max_collision_retries: Insert attempts before giving up.
    """

    def __init__(
        self,
        store: AbstractLinkStore,
        *,
        base_url: str,
        default_ttl: Ttl | str = Ttl.ONE_WEEK,
        max_collision_retries: int = DEFAULT_MAX_COLLISION_RETRIES,
        clock: Callable[[], datetime] = utcnow,
        code_generator: Callable[[], str] = generate_short_code,
    ) -> None:
        if max_collision_retries < 1:
            raise ValueError("max_collision_retries must be >= 1")

        self.store = store
        self.base_url = base_url.rstrip("/")
        self.default_ttl = Ttl.parse(default_ttl)
        self.max_collision_retries = max_collision_retries
        self._clock = clock
        self._generate_code = code_generator

    def short_url(self, link: Link) -> str:
        """Public URL that redirects to ``link.target_url``."""
        return f"{self.base_url}/{link.short_code}"

    def create(self, url: str, ttl: Ttl | str | None = None) -> Link:
        """Create a short link for ``url``.

        Args:
            url: Absolute http/https target URL.
            ttl: TTL preset (enum or its string value); defaults to
                ``default_ttl``.

        Returns:
            The persisted Link.

        Raises:
            ValidationAppError: If the URL or ttl is invalid.
            ConflictAppError: If every attempt collided with an existing code.
            StorageAppError: If the store fails.
        """
        target_url = validate_target_url(url)
        preset = self.default_ttl if ttl is None else Ttl.parse(ttl)

        now = self._clock()
        expires_at = preset.expires_at(now)

        for attempt in range(1, self.max_collision_retries + 1):
            candidate = Link(
                id=str(uuid.uuid4()),
                short_code=self._generate_code(),
                target_url=target_url,
                created_at=now,
                expires_at=expires_at,
            )
            try:
                link = self.store.insert(candidate)
            except DuplicateShortCodeError:
                logger.warning(
                    "link.short_code_collision",
                    extra={"attempt": attempt, "max_attempts": self.max_collision_retries},
                )
                continue

            logger.info(
                "link.created",
                extra={
                    "link_id": link.id,
                    "short_code": link.short_code,
                    "ttl": preset.value,
                    "attempt": attempt,
                },
            )
            return link

        logger.error(
            "link.short_code_exhausted",
            extra={"attempts": self.max_collision_retries},
        )
        raise ConflictAppError(
            code="short_code_exhausted",
            message="Could not allocate a unique short code. Please retry.",
            details={"attempts": self.max_collision_retries},
        )

    def resolve(self, short_code: str) -> Link:
        """Return the live link for ``short_code``.

        Raises:
            NotFoundAppError: If the code is unknown, malformed or expired.
        """
        if not is_valid_short_code(short_code):
            raise _link_not_found()

        link = self.store.get_by_short_code(short_code)
        if link is None:
            raise _link_not_found()

        if link.is_expired(self._clock()):
            logger.info("link.resolve_expired", extra={"short_code": short_code})
            raise _link_not_found()

        return link

    def list(self) -> list[Link]:
        """Return all links that are not logically expired, newest first."""
        return self.store.list_active(self._clock())

    def delete(self, link_id: str) -> None:
        """Delete a link by id.

        Raises:
            NotFoundAppError: If no link has this id.
        """
        if not self.store.delete(link_id):
            raise _link_not_found()
        logger.info("link.deleted", extra={"link_id": link_id})

    def sweep(self, now: datetime | None = None) -> int:
        """Delete every link whose expiry is at or before ``now``.

        Idempotent: a second call with the same ``now`` removes nothing.

        Returns:
            Number of rows removed.
        """
        cutoff = now or self._clock()
        removed = self.store.delete_expired(cutoff)
        logger.info(
            "sweep.completed",
            extra={"removed": removed, "cutoff": cutoff.isoformat()},
        )
        return removed
