"""Unit tests for the sliding window rate limiter."""

import pytest

from trackerbase.core.exceptions import RateLimitError
from trackerbase.core.rate_limit import SlidingWindowRateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestSlidingWindowRateLimiter:
    """Tests for SlidingWindowRateLimiter."""

    def test_limit_per_key(self):
        """Test hits over the limit raise and keys are independent."""
        limiter = SlidingWindowRateLimiter(limit=2, window_seconds=60, clock=FakeClock())
        limiter.hit("a")
        limiter.hit("a")
        limiter.hit("b")

        with pytest.raises(RateLimitError) as exc_info:
            limiter.hit("a")

        assert exc_info.value.status_code == 429
        assert exc_info.value.details["retry_after"] == 60

    def test_window_slides(self):
        """Test old hits expire."""
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(limit=1, window_seconds=60, clock=clock)
        limiter.hit("a")

        clock.now += 30
        with pytest.raises(RateLimitError) as exc_info:
            limiter.hit("a")
        assert exc_info.value.details["retry_after"] == 30

        clock.now += 30
        limiter.hit("a")

    def test_reset(self):
        """Test reset forgets every key."""
        limiter = SlidingWindowRateLimiter(limit=1, clock=FakeClock())
        limiter.hit("a")
        limiter.reset()
        limiter.hit("a")

    def test_idle_keys_are_dropped(self):
        """Test keys with no hits left in the window are forgotten."""
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(limit=5, window_seconds=60, clock=clock)
        for i in range(100):
            limiter.hit(f"fn-{i}")
        assert len(limiter) == 100

        clock.now += 61
        limiter.hit("fresh")

        assert len(limiter) == 1
