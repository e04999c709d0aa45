"""
Retry policy for flaky network calls.

A RetryPolicy bundles the attempt limit, the delay to wait before each retry
and the predicate deciding which exceptions are worth retrying. The sleep
function is injectable so callers (and tests) control how waiting happens.
"""

import logging
import time
from typing import Callable, Optional, Tuple, Type, TypeVar, cast

logger = logging.getLogger(__name__)

T = TypeVar("T")


def linear_backoff(step: float) -> Callable[[int], float]:
    """Returns a backoff function waiting `step * attempt` seconds."""

    def backoff(attempt: int) -> float:
        return step * attempt

    return backoff


class RetryError(Exception):
    """Raised when every attempt of a retried call failed."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class RetryPolicy:
    """Runs a callable until it succeeds or the attempts run out."""

    def __init__(
        self,
        max_attempts: int = 3,
        backoff: Optional[Callable[[int], float]] = None,
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff = backoff or linear_backoff(2.0)
        self.retry_on = retry_on
        self.sleep = sleep

    def is_retryable(self, error: BaseException) -> bool:
        """Returns True if the error should trigger another attempt."""
        return isinstance(error, self.retry_on)

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before the given 0-based attempt."""
        if attempt == 0:
            return 0.0
        return max(0.0, self.backoff(attempt))

    def call(self, func: Callable[[int], T], label: str = "call") -> T:
        """
        Calls `func(attempt)` until it returns without a retryable error.

        Non-retryable exceptions propagate immediately. When the last attempt
        fails, RetryError is raised with the final error attached.
        """
        last_error: Optional[BaseException] = None
        for attempt in range(self.max_attempts):
            delay = self.delay_before(attempt)
            if delay:
                self.sleep(delay)
            try:
                return func(attempt)
            except Exception as e:  # pylint: disable=broad-exception-caught
                if not self.is_retryable(e):
                    raise
                last_error = e
                if attempt < self.max_attempts - 1:
                    logger.warning(
                        "Attempt %d failed for %s, retrying: %s", attempt + 1, label, e
                    )
        raise RetryError(self.max_attempts, cast(BaseException, last_error)) from last_error
