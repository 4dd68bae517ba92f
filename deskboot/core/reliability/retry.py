"""
Retry policy — bounded attempts with additive backoff.

Package-manager and download failures are usually short-lived (a held
database lock, a flaky mirror), so the delay grows by a fixed increment
per attempt instead of exponentially:

    attempt 1 → fail → sleep(initial_delay)
    attempt 2 → fail → sleep(initial_delay + increment)
    attempt 3 → fail → raise the last error

Only externally caused failures are retried (``retry_on``).  Anything
else, e.g. a program that does not exist, propagates on the first
attempt.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Generic, TypeVar

from deskboot.core.errors import CommandFailed, CommandTimedOut

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (CommandFailed, CommandTimedOut)


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    """Successful result plus the number of attempts it took."""

    value: T
    attempts: int


@dataclass(frozen=True)
class RetryPolicy:
    """Retry an action up to ``max_attempts`` times.

    Args:
        max_attempts: Total attempts, including the first one.
        initial_delay: Seconds to sleep after the first failure.
        increment: Seconds added to the delay after each further failure.
        retry_on: Exception types considered transient.
        sleep: Sleep function (injectable for tests).
    """

    max_attempts: int = 3
    initial_delay: float = 2.0
    increment: float = 3.0
    retry_on: tuple[type[BaseException], ...] = RETRYABLE_ERRORS
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial_delay < 0 or self.increment < 0:
            raise ValueError("delays must be >= 0")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after failed attempt number ``attempt`` (1-based)."""
        return self.initial_delay + (attempt - 1) * self.increment

    def run_with_retry(self, action: Callable[[], T], label: str = "") -> RetryOutcome[T]:
        """Run ``action`` until it succeeds or attempts are exhausted.

        Returns:
            RetryOutcome with the action's return value.

        Raises:
            The last retryable error once attempts are exhausted (its
            ``attempts`` attribute is set when it has one), or any
            non-retryable error immediately.
        """
        name = label or getattr(action, "__name__", "action")
        attempt = 1
        while True:
            try:
                return RetryOutcome(value=action(), attempts=attempt)
            except self.retry_on as e:
                if hasattr(e, "attempts"):
                    e.attempts = attempt
                if attempt >= self.max_attempts:
                    logger.warning(
                        "%s failed after %d attempt(s): %s", name, attempt, e,
                    )
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                    name, attempt, self.max_attempts, delay, e,
                )
                self.sleep(delay)
                attempt += 1
