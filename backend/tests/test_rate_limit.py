"""Sliding-window rate limiter tests driven by a fake clock."""

import pytest

from plugin_api_server.plugin_runtime.descriptor import RateLimitSpec
from plugin_api_server.plugin_runtime.rate_limit import RateLimiter


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return RateLimiter(clock=clock)


class TestRateLimiter:
    def test_allows_up_to_limit(self, limiter):
        spec = RateLimitSpec(limit=3, window_ms=1000)
        results = [limiter.check('c1', 'ping', spec).allowed for _ in range(4)]
        assert results == [True, True, True, False]

    def test_retry_after_is_time_until_oldest_expires(self, limiter, clock):
        spec = RateLimitSpec(limit=2, window_ms=10_000)
        limiter.check('c1', 'ping', spec)
        clock.advance(2500)
        limiter.check('c1', 'ping', spec)
        clock.advance(1000)
        decision = limiter.check('c1', 'ping', spec)
        assert not decision.allowed
        # oldest request is 3.5s old in a 10s window
        assert decision.retry_after == 7

    def test_window_slides(self, limiter, clock):
        spec = RateLimitSpec(limit=2, window_ms=1000)
        limiter.check('c1', 'ping', spec)
        clock.advance(600)
        limiter.check('c1', 'ping', spec)
        assert not limiter.check('c1', 'ping', spec).allowed
        clock.advance(400)
        # the first request is now exactly one window old and no longer counts
        assert limiter.check('c1', 'ping', spec).allowed
        assert not limiter.check('c1', 'ping', spec).allowed

    def test_denial_does_not_consume_quota(self, limiter, clock):
        spec = RateLimitSpec(limit=1, window_ms=1000)
        limiter.check('c1', 'ping', spec)
        for _ in range(5):
            clock.advance(100)
            assert not limiter.check('c1', 'ping', spec).allowed
        clock.advance(500)
        assert limiter.check('c1', 'ping', spec).allowed

    def test_keys_are_independent(self, limiter):
        spec = RateLimitSpec(limit=1, window_ms=1000)
        assert limiter.check('c1', 'ping', spec).allowed
        assert limiter.check('c2', 'ping', spec).allowed
        assert limiter.check('c1', 'echo', spec).allowed
        assert not limiter.check('c1', 'ping', spec).allowed
        assert len(limiter) == 3

    def test_reset(self, limiter):
        spec = RateLimitSpec(limit=1, window_ms=1000)
        limiter.check('c1', 'ping', spec)
        limiter.check('c1', 'echo', spec)
        limiter.reset('ping')
        assert limiter.check('c1', 'ping', spec).allowed
        assert not limiter.check('c1', 'echo', spec).allowed
        limiter.reset()
        assert len(limiter) == 0
