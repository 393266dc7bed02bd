"""Retry strategies with exponential backoff, jitter, and bounded attempts.

Row writes rejected by the table store with a conflict are re-issued under
:class:`ExponentialBackoff` restricted to ``ConflictError``; copy-completion
polling in the archive processor uses :class:`ConstantBackoff`.

Example:
    >>> from review_spine.core.retry import ExponentialBackoff, RetryContext
    >>>
    >>> strategy = ExponentialBackoff(max_retries=5, base_delay=1.0, max_delay=8.0)
    >>> for attempt in range(5):
    ...     delay = strategy.next_delay(attempt)
"""

from __future__ import annotations

import random
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, TypeVar

from review_spine.core.timestamps import utc_now

T = TypeVar("T")


class RetryStrategy(ABC):
    """Abstract base for retry strategies."""

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Calculate delay before the next attempt.

        Args:
            attempt: Zero-based retry number (0 = first retry)

        Returns:
            Delay in seconds before next attempt
        """
        ...

    @abstractmethod
    def should_retry(self, attempts_made: int, error: Exception | None = None) -> bool:
        """Determine if another attempt should be made.

        Args:
            attempts_made: Number of attempts already made (>= 1)
            error: The exception that caused the last failure
        """
        ...


@dataclass
class ExponentialBackoff(RetryStrategy):
    """Exponential backoff with optional jitter.

    Delay = min(base_delay * (multiplier ** attempt), max_delay) +/- jitter

    Attributes:
        max_retries: Maximum number of retries after the first attempt
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap in seconds
        multiplier: Exponential multiplier (default: 2)
        jitter: Add randomness so concurrent writers do not retry in lockstep
        jitter_range: Range of jitter as fraction of delay (0.0-1.0)
        retryable_errors: Exception types that are retryable (None = all);
            subclasses match
    """

    max_retries: int = 5
    base_delay: float = 1.0
    max_delay: float = 8.0
    multiplier: float = 2.0
    jitter: bool = True
    jitter_range: float = 0.5
    retryable_errors: tuple[type[BaseException], ...] | None = None

    def next_delay(self, attempt: int) -> float:
        delay = min(self.base_delay * (self.multiplier**attempt), self.max_delay)
        if self.jitter:
            jitter_amount = delay * self.jitter_range
            delay += random.uniform(-jitter_amount, jitter_amount)
            delay = max(0.0, delay)
        return delay

    def should_retry(self, attempts_made: int, error: Exception | None = None) -> bool:
        if attempts_made > self.max_retries:
            return False
        if error is not None and self.retryable_errors is not None:
            return isinstance(error, self.retryable_errors)
        return True


@dataclass
class ConstantBackoff(RetryStrategy):
    """Constant delay between attempts."""

    max_retries: int = 3
    delay: float = 1.0

    def next_delay(self, attempt: int) -> float:
        return self.delay

    def should_retry(self, attempts_made: int, error: Exception | None = None) -> bool:
        return attempts_made <= self.max_retries


@dataclass
class RetryContext:
    """Runs a callable under a retry strategy and tracks attempt history.

    Example:
        >>> ctx = RetryContext(ExponentialBackoff(max_retries=3), sleep=lambda s: None)
        >>> result = ctx.run(lambda: 42)
        >>> ctx.attempts
        1
    """

    strategy: RetryStrategy
    on_retry: Callable[[int, Exception, float], None] | None = None
    sleep: Callable[[float], None] = time.sleep
    attempt: int = field(default=0, init=False)
    last_error: Exception | None = field(default=None, init=False)
    started_at: datetime = field(default_factory=utc_now, init=False)
    errors: list[tuple[int, Exception, datetime]] = field(default_factory=list, init=False)

    @property
    def attempts(self) -> int:
        """Number of attempts made."""
        return self.attempt

    @property
    def elapsed_seconds(self) -> float:
        return (utc_now() - self.started_at).total_seconds()

    def run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Execute ``func`` with retry logic.

        Raises:
            The last exception once the strategy refuses another attempt.
        """
        while True:
            self.attempt += 1
            try:
                return func(*args, **kwargs)
            except Exception as e:
                self.last_error = e
                self.errors.append((self.attempt, e, utc_now()))

                if not self.strategy.should_retry(self.attempt, e):
                    raise

                delay = self.strategy.next_delay(self.attempt - 1)
                if self.on_retry:
                    self.on_retry(self.attempt, e, delay)
                self.sleep(delay)


__all__ = ["ConstantBackoff", "ExponentialBackoff", "RetryContext", "RetryStrategy"]
