"""Process-wide spacing of outbound API requests."""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from tweetrater.utils.logging import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """
    Enforce a minimum interval between request grants across all callers.

    The lock serializes the read-modify-write of the last grant time, so
    concurrent callers are released one interval apart in roughly the
    order they arrived.

    Example:
        >>> limiter = RateLimiter(min_interval=0.25)
        >>> await limiter.acquire()  # returns immediately
        >>> await limiter.acquire()  # waits ~250 ms
    """

    def __init__(
        self,
        min_interval: float = 0.25,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Args:
            min_interval: Minimum seconds between consecutive grants
            clock: Monotonic time source
            sleep: Coroutine used to wait
        """
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_grant: Optional[float] = None
        self.grants = 0

    @property
    def last_grant(self) -> Optional[float]:
        return self._last_grant

    async def acquire(self) -> None:
        """Wait until min_interval has elapsed since the previous grant, then grant."""
        async with self._lock:
            if self._last_grant is not None:
                wait = self.min_interval - (self._clock() - self._last_grant)
                if wait > 0:
                    logger.debug("rate_limit_wait", wait_seconds=round(wait, 3))
                    await self._sleep(wait)
            self._last_grant = self._clock()
            self.grants += 1
