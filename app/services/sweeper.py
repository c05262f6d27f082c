"""Background expiry sweep.

Runs ``LinkService.sweep`` on a fixed interval in its own asyncio task,
independent of request handling. The blocking database call is pushed to a
worker thread so the event loop keeps serving requests while a sweep runs.
A failed tick is logged and retried on the next tick.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from app.services.link_service import LinkService

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Cancellable periodic sweeper.

    Attributes:
        interval_seconds: Delay between ticks; 0 disables the sweeper.
    """

    def __init__(self, service: LinkService, *, interval_seconds: float) -> None:
        if interval_seconds < 0:
            raise ValueError("interval_seconds must be >= 0")
        self._service = service
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def enabled(self) -> bool:
        return self.interval_seconds > 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int | None:
        """Run a single sweep; return rows removed, or None if it failed."""
        try:
            return await asyncio.to_thread(self._service.sweep)
        except Exception as exc:
            logger.error(
                "sweep.failed",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            return None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.run_once()

    def start(self) -> None:
        """Start the sweep loop on the running event loop (no-op when disabled)."""
        if not self.enabled:
            logger.info("sweep.disabled")
            return
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(), name="expiry-sweeper")
        logger.info("sweep.started", extra={"interval_s": self.interval_seconds})

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("sweep.stopped")
