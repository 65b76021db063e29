"""
Kitchen Timer — Timer tick loop

One shared asyncio task drives KitchenService.tick() on a fixed cadence while
at least one consumer holds a reference. acquire() starts the loop on the
first reference, release() stops it when the last one goes away.
"""
import asyncio
import contextlib
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class TimerTicker:
    def __init__(self, tick: Callable[[], Awaitable[Any]], interval: float = 1.0):
        self._tick = tick
        self.interval = interval
        self._refs = 0
        self._task: asyncio.Task | None = None

    @property
    def references(self) -> int:
        return self._refs

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def acquire(self) -> None:
        self._refs += 1
        if not self.is_running:
            self._task = asyncio.create_task(self._run(), name="kitchen-timer-tick")
            logger.info("Timer tick loop started (every %.1fs)", self.interval)

    def release(self) -> None:
        if self._refs == 0:
            return
        self._refs -= 1
        if self._refs == 0 and self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info("Timer tick loop stopped (no consumers)")

    async def stop(self) -> None:
        self._refs = 0
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time()
        while True:
            try:
                await self._tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Timer tick failed")
            next_at += self.interval
            delay = next_at - loop.time()
            if delay < 0:
                # fell behind (e.g. event loop stall); skip missed slots
                next_at = loop.time()
                delay = 0
            await asyncio.sleep(delay)
