from __future__ import annotations

"""
File: robofleet/scheduler.py
Purpose: Cancellable asyncio task that drives the simulation tick.
Key responsibilities:
- Call the tick coroutine at a fixed interval, compensating for tick duration.
- Keep ticking when a tick fails.
- Stop deterministically (cancel + await) so no tick runs after stop().
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger("robofleet.scheduler")


class TickScheduler:
    """Runs `tick()` every `interval_s` seconds on the running event loop."""
    def __init__(self, tick: Callable[[], Awaitable[object]], interval_s: float) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self.tick = tick
        self.interval_s = interval_s
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Start ticking; returns False when already running."""
        if self.running:
            return False
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("scheduler started interval_s=%s", self.interval_s)
        return True

    async def stop(self) -> bool:
        """Cancel the loop and wait for it to exit; returns False when not running."""
        task = self._task
        self._task = None
        if task is None or task.done():
            return False
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("scheduler stopped")
        return True

    async def _run(self) -> None:
        while True:
            started = time.monotonic()
            try:
                await self.tick()
            except Exception as exc:  # noqa: BLE001
                logger.exception("tick failed err=%s", exc)
            elapsed = time.monotonic() - started
            await asyncio.sleep(max(0.0, self.interval_s - elapsed))
