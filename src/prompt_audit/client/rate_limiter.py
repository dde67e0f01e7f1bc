"""Minimum-interval rate limiting for provider requests."""

import asyncio
from collections.abc import Awaitable, Callable
import logging
import time

from prompt_audit.constants import RATE_LIMIT_WINDOW

log = logging.getLogger(__name__)


class RateLimiter:
    """Spaces calls at least ``60 / requests_per_minute`` seconds apart.

    The timestamp is taken just before the operation starts, so the interval
    is measured start-to-start. The clock is injectable for tests.
    """

    def __init__(
        self,
        requests_per_minute: int,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if requests_per_minute < 1:
            raise ValueError(
                f"requests_per_minute: must be >= 1, got {requests_per_minute}"
            )
        self.requests_per_minute = requests_per_minute
        self.min_interval = RATE_LIMIT_WINDOW / requests_per_minute
        self._clock = clock
        self._last_call: float | None = None

    async def throttle[T](self, operation: Callable[[], Awaitable[T]]) -> T:
        """Wait out the remaining interval, then run ``operation``."""
        if self._last_call is not None:
            wait = self.min_interval - (self._clock() - self._last_call)
            if wait > 0:
                log.debug("Rate limit: waiting %.2fs", wait)
                await asyncio.sleep(wait)
        self._last_call = self._clock()
        return await operation()

    def reset(self) -> None:
        self._last_call = None
