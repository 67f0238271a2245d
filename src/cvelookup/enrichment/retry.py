"""Bounded exponential backoff around a single NVD fetch."""

import time
from typing import Any, Callable, Optional, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..utils.exceptions import NVDHTTPError
from ..utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def is_retryable(exc: BaseException) -> bool:
    """Rate limited, unavailable, server error or network failure."""
    return isinstance(exc, NVDHTTPError) and exc.retryable


class RetryPolicy:
    """
    Retry transient NVD failures with exponential backoff.

    Delay before retry n (0-based) is ``base_delay * 2**n``: 1s, 2s, 4s by
    default. Only ``NVDHTTPError`` with ``retryable`` set is retried; any
    other exception, and the last transient error once retries run out,
    propagates unchanged. No jitter is applied.
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Args:
            max_retries: Additional attempts after the first (default: 3)
            base_delay: Delay before the first retry, in seconds
            sleep: Blocking sleep (tests inject a recorder)
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Backoff before retrying after the given 0-based attempt."""
        return self.base_delay * (2 ** attempt)

    def _retrying(self, label: str) -> Retrying:
        def log_retry(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception()
            logger.warning(
                f"Retrying {label} after {retry_state.next_action.sleep:.1f}s "
                f"(attempt {retry_state.attempt_number}/{self.max_retries}, "
                f"status: {getattr(error, 'status_code', None)})"
            )

        return Retrying(
            retry=retry_if_exception(is_retryable),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.base_delay, exp_base=2),
            sleep=self._sleep,
            before_sleep=log_retry,
            reraise=True,
        )

    def execute(
        self,
        func: Callable[..., T],
        *args: Any,
        description: Optional[str] = None,
        **kwargs: Any
    ) -> T:
        """
        Call func until it succeeds, fails permanently, or retries run out.

        Raises:
            NVDHTTPError: Last transient error after max_retries retries
            Exception: Any non-retryable error from func, immediately
        """
        label = description or getattr(func, "__name__", "request")

        try:
            return self._retrying(label)(func, *args, **kwargs)
        except NVDHTTPError as e:
            if e.retryable:
                logger.error(
                    f"Giving up on {label} after {self.max_retries + 1} attempts "
                    f"(status: {e.status_code})"
                )
            raise
