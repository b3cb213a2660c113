"""Bounded retry for optimistic-concurrency conflicts."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Attempt budget and exponential backoff schedule."""

    max_attempts: int = 3
    base_delay_seconds: float = 0.01

    def delay_for(self, attempt: int) -> float:
        """Delay after the zero-based failed attempt: 10ms, 20ms, 40ms..."""
        return self.base_delay_seconds * (2**attempt)


@dataclass(slots=True, frozen=True)
class RetryExhaustedError(Exception):
    """Raised when a retryable failure persists through every attempt."""

    operation: str
    attempts: int
    last_error: str

    def __str__(self) -> str:
        return f"{self.operation} failed after {self.attempts} attempt(s): {self.last_error}"


def run_with_retry(
    operation: Callable[[], T],
    *,
    is_retryable: Callable[[BaseException], bool],
    policy: RetryPolicy | None = None,
    before_attempt: Callable[[], None] | None = None,
    description: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run an operation, retrying only failures the predicate accepts.

    ``before_attempt`` runs ahead of every attempt so callers can reacquire
    the latest view of a versioned resource. Non-retryable errors propagate
    unchanged.
    """
    effective = policy or RetryPolicy()
    attempts = max(1, effective.max_attempts)
    for attempt in range(attempts):
        if before_attempt is not None:
            before_attempt()
        try:
            return operation()
        except Exception as error:
            if not is_retryable(error):
                raise
            if attempt == attempts - 1:
                raise RetryExhaustedError(
                    operation=description,
                    attempts=attempts,
                    last_error=str(error),
                ) from error
            delay = effective.delay_for(attempt)
            logger.debug(
                "Retrying %s after conflict (attempt %d/%d, sleeping %.3fs)",
                description,
                attempt + 1,
                attempts,
                delay,
            )
            sleep(delay)
    raise AssertionError("unreachable")
