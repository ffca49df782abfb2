"""
Retry with backoff.

Wraps any callable so transient failures are retried a bounded number
of times. Whether an exception is transient is decided by the caller's
predicate; everything else propagates on the first attempt.

Usage:
    @retry(max_attempts=3, backoff=linear_backoff(2.0), should_retry=is_transient)
    def fetch_page(page): ...
"""

import functools
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Backoff = Callable[[int], float]


def linear_backoff(base_seconds: float) -> Backoff:
    """Delay grows by base_seconds per failed attempt: 2s, 4s, 6s..."""
    return lambda attempt: attempt * base_seconds


def no_backoff(attempt: int) -> float:
    return 0.0


def retry(
    max_attempts: int,
    backoff: Backoff = no_backoff,
    should_retry: Callable[[Exception], bool] = lambda e: True,
    sleep: Callable[[float], None] = time.sleep,
    operation: Optional[str] = None,
):
    """
    Decorator retrying a callable up to max_attempts times in total.

    Args:
        max_attempts: Total attempts including the first (>= 1)
        backoff: Maps the failed attempt number (1-based) to a delay in seconds
        should_retry: Predicate on the raised exception; False re-raises immediately
        sleep: Delay function (injectable for tests and cancellation)
        operation: Name used in log events (defaults to the function name)
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    def decorator(fn: Callable[..., T]) -> Callable[..., T]:
        name = operation or getattr(fn, "__name__", type(fn).__name__)

        @functools.wraps(fn)
        def wrapper(*args, **kwargs) -> T:
            attempt = 1
            while True:
                try:
                    return fn(*args, **kwargs)
                except Exception as e:
                    if attempt >= max_attempts or not should_retry(e):
                        raise
                    delay = backoff(attempt)
                    logger.warning(
                        "retrying_after_failure",
                        operation=name,
                        attempt=attempt,
                        max_attempts=max_attempts,
                        delay_seconds=delay,
                        error=str(e),
                        error_type=type(e).__name__
                    )
                    if delay > 0:
                        sleep(delay)
                    attempt += 1

        return wrapper

    return decorator


@dataclass(frozen=True)
class RetryPolicy:
    """Retry settings for one run: retries after the first attempt, linear backoff."""

    max_retries: int = 2
    backoff_seconds: float = 2.0

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def wrap(
        self,
        fn: Callable[..., T],
        should_retry: Callable[[Exception], bool],
        sleep: Callable[[float], None] = time.sleep,
        operation: Optional[str] = None,
    ) -> Callable[..., T]:
        """Apply this policy to fn."""
        return retry(
            max_attempts=self.max_attempts,
            backoff=linear_backoff(self.backoff_seconds),
            should_retry=should_retry,
            sleep=sleep,
            operation=operation,
        )(fn)
