"""In-process sliding window rate limiter."""

import time
from collections import deque
from collections.abc import Callable

from trackerbase.core.exceptions import RateLimitError


class SlidingWindowRateLimiter:
    """
    Allows ``limit`` hits per key within a rolling window.

    Args:
        limit: Hits allowed per window
        window_seconds: Window length
        clock: Monotonic time source
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._next_sweep = clock() + window_seconds

    def hit(self, key: str) -> None:
        """
        Record one hit.

        Raises:
            RateLimitError: When the key already used its window
        """
        now = self._clock()
        if now >= self._next_sweep:
            self._sweep(now)
        hits = self._hits.setdefault(key, deque())
        while hits and hits[0] <= now - self.window_seconds:
            hits.popleft()
        if len(hits) >= self.limit:
            raise RateLimitError(retry_after=max(1, int(hits[0] + self.window_seconds - now + 0.999)))
        hits.append(now)

    def _sweep(self, now: float) -> None:
        # Drops keys whose window emptied; runs at most once per window
        cutoff = now - self.window_seconds
        for key in list(self._hits):
            hits = self._hits[key]
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if not hits:
                del self._hits[key]
        self._next_sweep = now + self.window_seconds

    def __len__(self) -> int:
        return len(self._hits)

    def reset(self) -> None:
        self._hits.clear()
