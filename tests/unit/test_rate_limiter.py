"""Unit tests for the NVD rate limiters."""

import threading
from collections import Counter

import pytest

from cvelookup.enrichment.rate_limiter import (
    FixedWindowRateLimiter,
    SlidingWindowRateLimiter,
    create_rate_limiter,
)


def _fixed(clock, max_requests=5, window=30.0):
    return FixedWindowRateLimiter(max_requests, window, clock=clock, sleep=clock.sleep)


def test_fixed_window_allows_burst_then_blocks_until_reset(fake_clock):
    limiter = _fixed(fake_clock)

    for _ in range(5):
        assert limiter.acquire() == 0.0
    assert fake_clock.sleeps == []

    fake_clock.advance(10)
    waited = limiter.acquire()

    assert waited == pytest.approx(20.0)
    assert fake_clock.sleeps == [pytest.approx(20.0)]
    window = limiter.get_window()
    assert window.count == 1
    assert window.started_at == fake_clock.now


def test_fixed_window_expires_without_waiting(fake_clock):
    limiter = _fixed(fake_clock)
    for _ in range(5):
        limiter.acquire()

    fake_clock.advance(30)

    assert limiter.get_wait_time() == 0.0
    assert limiter.acquire() == 0.0
    assert limiter.get_window().count == 1


def test_get_wait_time_does_not_consume_a_slot(fake_clock):
    limiter = _fixed(fake_clock, max_requests=1)

    assert limiter.get_wait_time() == 0.0
    assert limiter.get_window() is None

    limiter.acquire()
    fake_clock.advance(12)
    assert limiter.get_wait_time() == pytest.approx(18.0)


def test_endpoints_are_limited_independently(fake_clock):
    limiter = _fixed(fake_clock, max_requests=1)

    limiter.acquire("nvd_api")
    assert limiter.acquire("other_api") == 0.0
    assert fake_clock.sleeps == []


def test_fixed_window_allows_double_burst_across_boundary(fake_clock):
    limiter = _fixed(fake_clock, max_requests=2)

    limiter.acquire()
    fake_clock.advance(29)
    limiter.acquire()
    fake_clock.advance(1)

    # Fresh window: four grants within one second, use the sliding strategy to avoid this
    assert limiter.acquire() == 0.0
    assert limiter.acquire() == 0.0
    assert fake_clock.sleeps == []


def test_sliding_window_blocks_bursts_across_boundary(fake_clock):
    limiter = SlidingWindowRateLimiter(2, 30.0, clock=fake_clock, sleep=fake_clock.sleep)

    limiter.acquire()
    fake_clock.advance(29)
    limiter.acquire()
    fake_clock.advance(1)

    # First grant has just left the window, second is still inside
    assert limiter.acquire() == 0.0
    assert limiter.acquire() == pytest.approx(29.0)


def test_create_rate_limiter_by_strategy():
    assert isinstance(create_rate_limiter("fixed"), FixedWindowRateLimiter)
    assert isinstance(create_rate_limiter("sliding", max_requests=50), SlidingWindowRateLimiter)

    with pytest.raises(ValueError):
        create_rate_limiter("token-bucket")


@pytest.mark.parametrize("max_requests,window", [(0, 30), (5, 0)])
def test_invalid_limits_are_rejected(max_requests, window):
    with pytest.raises(ValueError):
        FixedWindowRateLimiter(max_requests, window)


class RecordingFixedLimiter(FixedWindowRateLimiter):
    """Records the window each grant was counted in."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.grants = []

    def _try_acquire(self, key, now):
        wait = super()._try_acquire(key, now)
        if wait is None:
            self.grants.append(self._windows[key].started_at)
        return wait


class RecordingSlidingLimiter(SlidingWindowRateLimiter):
    """Records the time of every grant."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.grants = []

    def _try_acquire(self, key, now):
        wait = super()._try_acquire(key, now)
        if wait is None:
            self.grants.append(now)
        return wait


def _hammer(limiter, threads=10, per_thread=1):
    barrier = threading.Barrier(threads)

    def worker():
        barrier.wait()
        for _ in range(per_thread):
            limiter.acquire()

    pool = [threading.Thread(target=worker) for _ in range(threads)]
    for t in pool:
        t.start()
    for t in pool:
        t.join(timeout=10)


def test_fixed_window_ceiling_under_concurrency():
    limiter = RecordingFixedLimiter(max_requests=3, window_seconds=0.2)

    _hammer(limiter, threads=10)

    assert len(limiter.grants) == 10
    per_window = Counter(limiter.grants)
    assert max(per_window.values()) <= 3
    # 10 grants at 3 per window need at least 4 windows
    assert len(per_window) >= 4
    starts = sorted(per_window)
    assert all(b - a >= 0.2 - 1e-9 for a, b in zip(starts, starts[1:]))


def test_sliding_window_ceiling_under_concurrency():
    limiter = RecordingSlidingLimiter(max_requests=3, window_seconds=0.2)

    _hammer(limiter, threads=10)

    grants = sorted(limiter.grants)
    assert len(grants) == 10
    # Any interval of 0.2s holds at most 3 grants
    assert all(grants[i + 3] - grants[i] >= 0.2 for i in range(len(grants) - 3))
