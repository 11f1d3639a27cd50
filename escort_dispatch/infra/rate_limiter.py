# escort_dispatch/infra/rate_limiter.py
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from escort_dispatch.infra.logging_config import get_logger

logger = get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class FixedWindowPacer:
    """
    Fixed-window pacing for bulk sends.

    After every ``batch_size`` processed items (0-indexed positions
    batch_size-1, 2*batch_size-1, ...) wait ``pause_seconds`` before the next
    one. Not adaptive: the pause does not depend on latency or error rate.

    ``sleep`` is injectable so tests can count pauses without waiting.
    """

    def __init__(
        self,
        batch_size: int = 5,
        pause_seconds: float = 1.0,
        sleep: SleepFunc = asyncio.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.batch_size = batch_size
        self.pause_seconds = pause_seconds
        self._sleep = sleep
        self.pauses = 0

    def should_pause(self, index: int) -> bool:
        return index % self.batch_size == self.batch_size - 1

    async def after_item(self, index: int) -> bool:
        """Call once per processed item; returns True if it paused."""
        if not self.should_pause(index):
            return False

        logger.debug(f"Pacing bulk send: pause {self.pause_seconds}s after item {index}")
        await self._sleep(self.pause_seconds)
        self.pauses += 1
        return True
