"""Implementation of a rate limiter.

Caps the rate of outgoing requests so the client stays under the upstream
API's own limits. Uses a sliding window: recorded timestamps older than the
window are discarded before every check, with no background timers.
"""

import logging
import math
import time
from collections import deque
from typing import Callable, Deque

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 30          # Max 30 requests...
DEFAULT_TIME_WINDOW_SECONDS = 60.0  # ...per 60 seconds


class RateLimiter:
    """Simple sliding window rate limiter."""

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        time_window: float = DEFAULT_TIME_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initializes the rate limiter.

        Args:
            max_requests: Maximum number of requests allowed in the time window.
            time_window: The time window in seconds.
            clock: Monotonic time source, injectable for tests.
        """
        self.max_requests = max_requests
        self.time_window = time_window
        self.timestamps: Deque[float] = deque()
        self._clock = clock
        logger.info(f"RateLimiter initialized: {max_requests} requests / {time_window} seconds")

    def _cleanup_timestamps(self, now: float) -> None:
        """Removes timestamps that have left the time window."""
        while self.timestamps and now - self.timestamps[0] >= self.time_window:
            self.timestamps.popleft()

    def can_make_request(self) -> bool:
        """Returns True if a request would be admitted right now."""
        self._cleanup_timestamps(self._clock())
        return len(self.timestamps) < self.max_requests

    def record_request(self) -> None:
        """Records an admitted request at the current time."""
        now = self._clock()
        self._cleanup_timestamps(now)
        self.timestamps.append(now)

    def get_retry_after(self) -> int:
        """Seconds until the next request would be admitted (0 if now)."""
        if self.can_make_request():
            return 0
        oldest_timestamp = self.timestamps[0]
        wait_time = oldest_timestamp + self.time_window - self._clock()
        return max(0, math.ceil(wait_time))

    def reset(self) -> None:
        """Forgets every recorded request."""
        self.timestamps.clear()
        logger.debug("RateLimiter reset.")
