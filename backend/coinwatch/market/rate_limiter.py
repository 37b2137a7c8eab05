"""Per-minute request quota for the market data API."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from .errors import RateLimitExceeded

logger = logging.getLogger(__name__)


class RateLimiter:
    """Fixed-window request quota.

    The window starts at the last reset and is cleared wholesale once
    ``window`` seconds have elapsed, so up to 2x ``quota`` requests can pass
    across a window boundary. acquire() never waits: it either takes a slot
    or raises RateLimitExceeded with the time left in the current window.
    """

    def __init__(
        self,
        quota: int = 25,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if quota < 1:
            raise ValueError("quota must be at least 1")
        self._quota = quota
        self._window = window
        self._clock = clock
        self._count = 0
        self._window_start = clock()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            now = self._clock()
            elapsed = now - self._window_start
            if elapsed >= self._window:
                self._count = 0
                self._window_start = now
                elapsed = 0.0

            if self._count >= self._quota:
                retry_after = self._window - elapsed
                logger.warning(
                    "Local rate limit reached (%d/%d), retry in %.1fs",
                    self._count,
                    self._quota,
                    retry_after,
                )
                raise RateLimitExceeded(retry_after)

            self._count += 1

    @property
    def remaining(self) -> int:
        """Slots available to the next acquire(). A full quota once the window has expired."""
        if self._clock() - self._window_start >= self._window:
            return self._quota
        return max(self._quota - self._count, 0)

    @property
    def quota(self) -> int:
        return self._quota
