"""Client-side sliding-window rate limiter."""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


class SlidingWindowRateLimiter:
    """Allow at most *max_requests* acquisitions per *window* seconds.

    ``acquire()`` waits until a slot is free.  Callers share one limiter per
    remote host; it is safe to use from concurrent tasks on one event loop.
    """

    def __init__(
        self,
        max_requests: int = 60,
        window: float = 60.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_requests < 1:
            msg = "max_requests must be >= 1"
            raise ValueError(msg)
        self._max_requests = max_requests
        self._window = window
        self._clock = clock
        self._sleep = sleep
        self._timestamps: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= self._window:
            self._timestamps.popleft()

    def is_limited(self) -> bool:
        """Return whether an ``acquire()`` right now would have to wait."""
        self._prune(self._clock())
        return len(self._timestamps) >= self._max_requests

    async def acquire(self) -> None:
        async with self._lock:
            while True:
                now = self._clock()
                self._prune(now)
                if len(self._timestamps) < self._max_requests:
                    self._timestamps.append(now)
                    return
                wait = self._window - (now - self._timestamps[0])
                await self._sleep(max(wait, 0.01))
