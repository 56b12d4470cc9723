"""In-memory sliding-window rate limiter.

Notes:
- Per-process only: running several bot processes multiplies the limit.
- Thread-safe: one lock guards the whole window map. Each consume holds it
  for O(window size), which is negligible at chat-message rates.
- Windows are created lazily and never evicted.
"""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from typing import Callable, Hashable

from rolebot.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


class InMemorySlidingWindowRateLimiter(AbstractRateLimiter):
    """Admit at most ``limit`` requests per key in any trailing ``window_seconds``.

    Each key keeps the timestamps of its admitted requests. On every consume,
    timestamps at or before ``now - window_seconds`` are dropped; a request is
    rejected when the remaining count already equals the limit.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the limiter.

        Args:
            limit: Maximum number of admitted requests per window.
            window_seconds: Size of the trailing window in seconds.
            clock: Time source in seconds; monotonic by default.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")

        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[Hashable, deque[float]] = {}

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def tracked_keys(self) -> int:
        """Number of keys with a window in memory."""
        with self._lock:
            return len(self._windows)

    def _prune(self, window: deque[float], now: float) -> None:
        cutoff = now - self._window_seconds
        # Strictly after the cutoff survives; the boundary itself is expired.
        while window and window[0] <= cutoff:
            window.popleft()

    def consume(self, key: Hashable) -> RateLimitResult:
        """Check the key's window and record the request when admitted.

        Raises:
            ValueError: If key is None or an empty string.
        """
        if key is None or key == "":
            raise ValueError("key must be non-empty")

        with self._lock:
            now = self._clock()
            window = self._windows.get(key)
            if window is None:
                window = deque()
                self._windows[key] = window

            self._prune(window, now)

            if len(window) >= self._limit:
                reset_at = window[0] + self._window_seconds
                return RateLimitResult(
                    allowed=False,
                    limit=self._limit,
                    remaining=0,
                    reset_at=int(math.ceil(reset_at)),
                    retry_after_seconds=max(0, int(math.ceil(reset_at - now))),
                )

            window.append(now)
            return RateLimitResult(
                allowed=True,
                limit=self._limit,
                remaining=self._limit - len(window),
                reset_at=int(math.ceil(window[0] + self._window_seconds)),
                retry_after_seconds=None,
            )
