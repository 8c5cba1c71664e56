"""Debouncer that groups rapid file-system events into a single callback."""

import asyncio
from collections.abc import Awaitable, Callable

from docsync.domain.constants import DEBOUNCE_SECONDS
from docsync.logging_config import get_logger

logger = get_logger(__name__)


class Debouncer:
    """Coalesce rapid events per key into a single callback after a quiet period.

    When `trigger(key)` is called, the callback is scheduled on the running
    event loop to run after `delay` seconds. If `trigger(key)` is called again
    before the timer fires, the timer resets. Must be called from the loop's
    thread.
    """

    def __init__(
        self,
        callback: Callable[[str], Awaitable[None]],
        delay: float = DEBOUNCE_SECONDS,
    ) -> None:
        self._callback = callback
        self._delay = delay
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._running: set[asyncio.Task[None]] = set()

    def trigger(self, key: str) -> None:
        """Schedule (or reschedule) the callback for the given key."""
        existing = self._timers.get(key)
        if existing is not None:
            existing.cancel()
            logger.debug("Debounce reset for: %s", key)

        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(self._delay, self._fire, key)

    def _fire(self, key: str) -> None:
        """Start the callback task and clean up the timer entry."""
        self._timers.pop(key, None)
        logger.info("Debounce fired for: %s", key)
        task = asyncio.get_running_loop().create_task(self._run(key))
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _run(self, key: str) -> None:
        try:
            await self._callback(key)
        except Exception:
            logger.exception("Debounce callback failed for: %s", key)

    def cancel(self, key: str) -> None:
        """Drop the pending timer for one key, if any."""
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()

    def cancel_all(self) -> None:
        """Cancel all pending timers. Called during shutdown."""
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        logger.info("All debounce timers cancelled")

    async def drain(self) -> None:
        """Wait for callbacks that already fired to finish."""
        if self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    @property
    def pending_count(self) -> int:
        """Return the number of keys with pending timers."""
        return len(self._timers)
