"""
Unit tests for the bounded windowed rate limiter.
"""

import pytest

from services.rate_limiter import WindowedRateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def make(clock, max_requests=3, window_seconds=60, max_keys=100) -> WindowedRateLimiter:
    return WindowedRateLimiter(
        max_requests=max_requests,
        window_seconds=window_seconds,
        max_keys=max_keys,
        clock=clock,
    )


class TestWindow:
    def test_allows_up_to_max_requests(self, clock):
        limiter = make(clock)
        for _ in range(3):
            assert limiter.check("1.1.1.1")
            limiter.record("1.1.1.1")

        assert limiter.check("1.1.1.1") is False

    def test_keys_are_independent(self, clock):
        limiter = make(clock, max_requests=1)
        limiter.record("a")

        assert limiter.check("a") is False
        assert limiter.check("b") is True

    def test_window_resets_after_expiry(self, clock):
        limiter = make(clock, max_requests=1)
        limiter.record("a")
        clock.advance(59)
        assert limiter.check("a") is False

        clock.advance(1)
        assert limiter.check("a") is True

    def test_hit_combines_check_and_record(self, clock):
        limiter = make(clock, max_requests=2)

        assert limiter.hit("a") is True
        assert limiter.hit("a") is True
        assert limiter.hit("a") is False

    def test_retry_after(self, clock):
        limiter = make(clock, max_requests=1, window_seconds=60)
        assert limiter.retry_after("a") == 0

        limiter.record("a")
        clock.advance(20)
        assert limiter.retry_after("a") == 41

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_requests": 0, "window_seconds": 1},
            {"max_requests": 1, "window_seconds": 0},
            {"max_requests": 1, "window_seconds": 1, "max_keys": 0},
        ],
    )
    def test_rejects_non_positive_limits(self, kwargs):
        with pytest.raises(ValueError):
            WindowedRateLimiter(**kwargs)


class TestMemoryBounds:
    def test_evicts_least_recently_used_key(self, clock):
        limiter = make(clock, max_requests=5, max_keys=2)
        limiter.record("a")
        limiter.record("b")
        limiter.record("a")
        limiter.record("c")

        assert len(limiter) == 2
        # "b" was least recently used, so it starts a fresh window
        assert limiter.retry_after("b") == 0
        assert limiter.retry_after("a") > 0

    def test_sweep_removes_only_expired_windows(self, clock):
        limiter = make(clock, window_seconds=60)
        limiter.record("old")
        clock.advance(30)
        limiter.record("new")
        clock.advance(31)

        assert limiter.sweep() == 1
        assert len(limiter) == 1
        assert limiter.check("new")

    def test_sweep_on_empty_limiter(self, clock):
        assert make(clock).sweep() == 0

    def test_reset_clears_everything(self, clock):
        limiter = make(clock, max_requests=1)
        limiter.record("a")
        limiter.reset()

        assert len(limiter) == 0
        assert limiter.check("a")
