import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

OnFire = Callable[[str], Awaitable[object]]


class ExpiryClock:
    """In-process expiry schedule: one pending timer per storage key.

    Timers are armed on ``loop`` (the running loop by default). When a timer
    fires it drops out of the schedule and ``on_fire(key)`` runs as a task.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._firing: set[asyncio.Task] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def schedule(self, key: str, ttl_seconds: float, on_fire: OnFire) -> None:
        """Arm a timer for key, replacing any timer it already has."""
        self.cancel(key)
        self._timers[key] = self.loop.call_later(
            max(ttl_seconds, 0), self._fire, key, on_fire
        )

    def cancel(self, key: str) -> bool:
        handle = self._timers.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def deadline(self, key: str) -> float | None:
        """Loop time at which key's timer fires, if one is pending."""
        handle = self._timers.get(key)
        return handle.when() if handle else None

    def keys(self) -> list[str]:
        return list(self._timers)

    def __contains__(self, key: str) -> bool:
        return key in self._timers

    def __len__(self) -> int:
        return len(self._timers)

    def _fire(self, key: str, on_fire: OnFire) -> None:
        self._timers.pop(key, None)
        logger.debug("Expiry timer fired for %s", key)
        task = self.loop.create_task(on_fire(key))
        self._firing.add(task)
        task.add_done_callback(self._on_fired)

    def _on_fired(self, task: asyncio.Task) -> None:
        self._firing.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Expiry callback failed: %s", exc, exc_info=exc)

    async def drain(self) -> None:
        """Wait for callbacks that have already fired."""
        while self._firing:
            await asyncio.gather(*list(self._firing), return_exceptions=True)

    async def close(self) -> None:
        """Cancel every pending timer and wait for in-flight callbacks."""
        for handle in self._timers.values():
            handle.cancel()
        cancelled = len(self._timers)
        self._timers.clear()
        await self.drain()
        if cancelled:
            logger.info("Expiry clock closed, %d pending timers cancelled", cancelled)
