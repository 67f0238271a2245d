"""Process-wide rate limiting for NVD requests."""

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional

from ..utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_KEY = "nvd_api"


@dataclass
class RateWindow:
    started_at: float
    count: int = 0


class RateLimiter:
    """
    Blocking gate shared by every thread in the process.

    Callers get no FIFO guarantee. Each endpoint key is limited
    independently.
    """

    def __init__(
        self,
        max_requests: int = 5,
        window_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize the rate limiter.

        Args:
            max_requests: Requests allowed per window
            window_seconds: Window length in seconds
            clock: Monotonic time source
            sleep: Blocking sleep used while waiting for capacity
        """
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()

        logger.info(
            f"{type(self).__name__} initialized: "
            f"{max_requests} requests / {window_seconds:g} seconds"
        )

    def acquire(self, key: str = DEFAULT_KEY) -> float:
        """
        Block until a request for key is permitted.

        Returns:
            Total seconds spent waiting
        """
        waited = 0.0
        while True:
            with self._lock:
                wait_time = self._try_acquire(key, self._clock())

            if wait_time is None:
                if waited:
                    logger.debug(f"Rate limit slot granted for {key} after {waited:.2f}s")
                return waited

            logger.warning(
                f"Rate limit reached for {key}. Waiting {wait_time:.2f}s before next request"
            )
            self._sleep(wait_time)
            waited += wait_time

    def get_wait_time(self, key: str = DEFAULT_KEY) -> float:
        """Seconds until a request for key would be permitted (0 if now)."""
        with self._lock:
            return self._peek_wait(key, self._clock())

    def _try_acquire(self, key: str, now: float) -> Optional[float]:
        """Record a grant and return None, or return how long to wait. Lock held."""
        raise NotImplementedError

    def _peek_wait(self, key: str, now: float) -> float:
        raise NotImplementedError


class FixedWindowRateLimiter(RateLimiter):
    """
    N requests per fixed window W.

    A window opens with the first request after the previous one expired.
    A caller arriving at a full window sleeps until its reset time and
    re-checks; only the first to re-check opens the fresh window, so the
    count never exceeds N within one window.

    A rolling interval of length W that straddles a window boundary can see
    up to 2N requests. Use ``rate_limit_strategy: sliding``
    (``SlidingWindowRateLimiter``) when N must hold for any interval W.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._windows: Dict[str, RateWindow] = {}

    def _active_window(self, key: str, now: float) -> Optional[RateWindow]:
        window = self._windows.get(key)
        if window is not None and now >= window.started_at + self.window_seconds:
            del self._windows[key]
            return None
        return window

    def _try_acquire(self, key: str, now: float) -> Optional[float]:
        window = self._active_window(key, now)

        if window is None:
            self._windows[key] = RateWindow(started_at=now, count=1)
            return None

        if window.count < self.max_requests:
            window.count += 1
            return None

        return max(window.started_at + self.window_seconds - now, 0.0)

    def _peek_wait(self, key: str, now: float) -> float:
        window = self._active_window(key, now)
        if window is None or window.count < self.max_requests:
            return 0.0
        return max(window.started_at + self.window_seconds - now, 0.0)

    def get_window(self, key: str = DEFAULT_KEY) -> Optional[RateWindow]:
        """Snapshot of the active window for key, if any."""
        with self._lock:
            window = self._active_window(key, self._clock())
            return RateWindow(window.started_at, window.count) if window else None


class SlidingWindowRateLimiter(RateLimiter):
    """
    At most N requests in any interval of length W.

    Stricter than the fixed window: bursts straddling a window boundary
    are not allowed.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._timestamps: Dict[str, Deque[float]] = {}

    def _cleanup(self, key: str, now: float) -> Deque[float]:
        timestamps = self._timestamps.setdefault(key, deque())
        while timestamps and now - timestamps[0] >= self.window_seconds:
            timestamps.popleft()
        return timestamps

    def _try_acquire(self, key: str, now: float) -> Optional[float]:
        timestamps = self._cleanup(key, now)
        if len(timestamps) < self.max_requests:
            timestamps.append(now)
            return None
        return max(timestamps[0] + self.window_seconds - now, 0.0)

    def _peek_wait(self, key: str, now: float) -> float:
        timestamps = self._cleanup(key, now)
        if len(timestamps) < self.max_requests:
            return 0.0
        return max(timestamps[0] + self.window_seconds - now, 0.0)


RATE_LIMIT_STRATEGIES = {
    "fixed": FixedWindowRateLimiter,
    "sliding": SlidingWindowRateLimiter,
}


def create_rate_limiter(
    strategy: str = "fixed",
    max_requests: int = 5,
    window_seconds: float = 30.0,
    **kwargs
) -> RateLimiter:
    """Build a rate limiter by strategy name ("fixed" or "sliding")."""
    try:
        limiter_cls = RATE_LIMIT_STRATEGIES[strategy]
    except KeyError:
        raise ValueError(
            f"Unknown rate limit strategy: {strategy} "
            f"(expected one of {', '.join(RATE_LIMIT_STRATEGIES)})"
        )
    return limiter_cls(max_requests=max_requests, window_seconds=window_seconds, **kwargs)
