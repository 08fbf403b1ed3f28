"""Start-spacing rate limiter for outbound RPC and Bot API calls."""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimiter:
    """
    Dispatches operations in arrival order, starting each one no sooner than
    ``min_interval_ms`` after the previous start.

    Only starts are spaced. The queue is released before the operation is
    awaited, so a slow call does not hold up the next dispatch, and a failing
    call only fails for its own caller.
    """

    def __init__(self, min_interval_ms: int = 1000):
        if min_interval_ms < 0:
            raise ValueError("min_interval_ms must be >= 0")
        self.min_interval = min_interval_ms / 1000.0
        self._queue = asyncio.Lock()  # FIFO wake-up order
        self._next_start: float | None = None

    async def _wait_turn(self) -> None:
        async with self._queue:
            loop = asyncio.get_running_loop()
            if self._next_start is not None:
                delay = self._next_start - loop.time()
                if delay > 0:
                    logger.debug("rate limit: waiting %.3fs", delay)
                    await asyncio.sleep(delay)
            self._next_start = loop.time() + self.min_interval

    async def schedule(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        await self._wait_turn()
        return await fn(*args, **kwargs)

    def wrap(self, fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await self.schedule(fn, *args, **kwargs)

        return wrapper
