"""Sliding-window rate limiting for outbound API calls."""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """
    Allows at most ``max_requests`` calls per ``window_seconds``.

    ``wait()`` blocks (sleeping until the oldest request leaves the window,
    then re-checking) instead of failing when the budget is exhausted.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._requests: deque[float] = deque()

    def _clear_old_requests(self, now: float):
        while self._requests and now - self._requests[0] >= self.window_seconds:
            self._requests.popleft()

    @property
    def in_window(self) -> int:
        self._clear_old_requests(self._clock())
        return len(self._requests)

    async def wait(self) -> None:
        """Wait until a request can be made within the limit, then record it."""
        while True:
            now = self._clock()
            self._clear_old_requests(now)
            if len(self._requests) < self.max_requests:
                self._requests.append(now)
                return

            time_to_wait = self.window_seconds - (now - self._requests[0])
            logger.debug(f"Rate limit reached, waiting {time_to_wait:.2f}s")
            await self._sleep(max(time_to_wait, 0.0))

    def reset(self) -> None:
        self._requests.clear()
