"""Debouncer that groups rapid file-system events into a single callback."""

import asyncio
from collections.abc import Awaitable, Callable

from vector_search.domain.constants import FILE_DEBOUNCE_MS
from vector_search.logging_config import get_logger

logger = get_logger(__name__)


class Debouncer:
    """Coalesce rapid events per key into a single async callback.

    When `trigger(key)` is called, the callback is scheduled on the running
    event loop to run after `delay` seconds. If `trigger(key)` is called again
    before the timer fires, the timer resets. Rapid saves of one note therefore
    cause a single re-index of its latest content.

    Must be used from the event loop thread; other threads go through
    `loop.call_soon_threadsafe(debouncer.trigger, key)`.
    """

    def __init__(
        self,
        callback: Callable[[str], Awaitable[None]],
        delay: float = FILE_DEBOUNCE_MS / 1000,
    ) -> None:
        self._callback = callback
        self._delay = delay
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def delay(self) -> float:
        return self._delay

    @delay.setter
    def delay(self, value: float) -> None:
        """Change the quiet period; applies to triggers made afterwards."""
        self._delay = value

    def trigger(self, key: str) -> None:
        """Schedule (or reschedule) the callback for the given key."""
        loop = asyncio.get_running_loop()
        existing = self._timers.pop(key, None)
        if existing is not None:
            existing.cancel()
            logger.debug("Debounce reset for: %s", key)

        self._timers[key] = loop.call_later(self._delay, self._fire, key)

    def cancel(self, key: str) -> bool:
        """Drop the pending timer for one key. Returns whether one existed."""
        timer = self._timers.pop(key, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def _fire(self, key: str) -> None:
        """Start the callback as a task and clean up the timer entry."""
        self._timers.pop(key, None)
        logger.info("Debounce fired for: %s", key)
        task = asyncio.get_running_loop().create_task(self._run(key))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, key: str) -> None:
        try:
            await self._callback(key)
        except Exception:
            logger.exception("Debounce callback failed for: %s", key)

    def cancel_all(self) -> None:
        """Cancel all pending timers. Called during shutdown."""
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        logger.info("All debounce timers cancelled")

    async def wait_idle(self) -> None:
        """Wait until callbacks already started have finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending_count(self) -> int:
        """Return the number of keys with pending timers."""
        return len(self._timers)
