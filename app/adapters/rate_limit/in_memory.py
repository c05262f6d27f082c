"""In-memory per-client rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe without a global lock: keys are hashed onto a fixed pool of
  lock stripes, so unrelated clients rarely contend.
- Memory is bounded by active clients: states whose window has ended are
  pruned at most once per window.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult

DEFAULT_LOCK_STRIPES = 64


@dataclass
class _WindowState:
    window_start: float
    count: int


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed window per key, opened by the key's first call.

    Each key gets its own window of ``window_seconds`` starting at its first
    request (e.g. 60 requests per rolling 60 seconds). Once the window has
    elapsed the next request opens a fresh one.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
        lock_stripes: int = DEFAULT_LOCK_STRIPES,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of allowed units per window.
            window_seconds: Size of each key's window in seconds.
            clock: Time source function returning UNIX time in seconds.
            lock_stripes: Number of locks keys are spread across.

        Raises:
            ValueError: If limit, window_seconds or lock_stripes are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")
        if lock_stripes < 1:
            raise ValueError("lock_stripes must be >= 1")

        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._stripes = [threading.Lock() for _ in range(lock_stripes)]
        self._state_by_key: dict[str, _WindowState] = {}
        self._prune_lock = threading.Lock()
        self._last_prune = clock()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def __len__(self) -> int:
        return len(self._state_by_key)

    def _lock_for(self, key: str) -> threading.Lock:
        return self._stripes[hash(key) % len(self._stripes)]

    def _get_or_reset_state(self, key: str, now: float) -> _WindowState:
        """Get the current state for key or open a new window when it has elapsed.

        Must be called with the key's stripe lock held.
        """
        state = self._state_by_key.get(key)
        if state is None or now - state.window_start >= self._window_seconds:
            state = _WindowState(window_start=now, count=0)
            self._state_by_key[key] = state
        return state

    def _build_allowed_result(self, *, remaining: int, reset_at: float) -> RateLimitResult:
        """Build a RateLimitResult for an allowed request."""
        return RateLimitResult(
            allowed=True,
            limit=self._limit,
            remaining=remaining,
            reset_at=int(math.ceil(reset_at)),
            retry_after_seconds=None,
        )

    def _build_blocked_result(self, *, now: float, remaining: int, reset_at: float) -> RateLimitResult:
        """Build a RateLimitResult for a blocked request."""
        retry_after = max(1, int(math.ceil(reset_at - now)))
        return RateLimitResult(
            allowed=False,
            limit=self._limit,
            remaining=remaining,
            reset_at=int(math.ceil(reset_at)),
            retry_after_seconds=retry_after,
        )

    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume rate limit budget for the provided key.

        This method both checks the current window usage and mutates the state
        if the request is allowed.

        Args:
            key: Unique identifier for rate limiting (e.g., client IP).
            cost: Units to consume (default 1).

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If key is empty or cost is invalid.
        """
        if cost < 1:
            raise ValueError("cost must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()
        self._maybe_prune(now)

        with self._lock_for(key):
            state = self._get_or_reset_state(key, now)
            reset_at = state.window_start + self._window_seconds

            if state.count + cost <= self._limit:
                state.count += cost
                remaining = max(0, self._limit - state.count)
                return self._build_allowed_result(remaining=remaining, reset_at=reset_at)

            remaining = max(0, self._limit - state.count)
            return self._build_blocked_result(now=now, remaining=remaining, reset_at=reset_at)

    def prune(self, now: float | None = None) -> int:
        """Drop states whose window has ended.

        Args:
            now: Reference time; defaults to the limiter clock.

        Returns:
            Number of keys evicted.
        """
        now = self._clock() if now is None else now
        evicted = 0
        # Snapshot of the keys: list(dict) is a single atomic copy under the
        # GIL. Keys inserted by concurrent consumers after this point are left
        # for the next prune; each candidate is re-checked under its stripe.
        keys = list(self._state_by_key)
        for key in keys:
            with self._lock_for(key):
                state = self._state_by_key.get(key)
                if state is not None and now - state.window_start >= self._window_seconds:
                    del self._state_by_key[key]
                    evicted += 1
        return evicted

    def _maybe_prune(self, now: float) -> None:
        if now - self._last_prune < self._window_seconds:
            return
        # Only one thread prunes; others carry on serving.
        if not self._prune_lock.acquire(blocking=False):
            return
        try:
            if now - self._last_prune >= self._window_seconds:
                self._last_prune = now
                self.prune(now)
        finally:
            self._prune_lock.release()
