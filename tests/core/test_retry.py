"""Tests for ``review_spine.core.retry``: bounded backoff strategies."""

from __future__ import annotations

import pytest

from review_spine.core.errors import ConflictError, TransportError
from review_spine.core.retry import ConstantBackoff, ExponentialBackoff, RetryContext


class TestExponentialBackoff:
    def test_delays_double_up_to_cap(self):
        strategy = ExponentialBackoff(base_delay=1.0, max_delay=8.0, jitter=False)
        assert [strategy.next_delay(i) for i in range(5)] == [1.0, 2.0, 4.0, 8.0, 8.0]

    def test_jitter_stays_in_range(self):
        strategy = ExponentialBackoff(base_delay=2.0, max_delay=8.0, jitter_range=0.5)
        for _ in range(50):
            assert 1.0 <= strategy.next_delay(0) <= 3.0

    def test_retry_budget(self):
        strategy = ExponentialBackoff(max_retries=2)
        assert strategy.should_retry(1) is True
        assert strategy.should_retry(2) is True
        assert strategy.should_retry(3) is False

    def test_retryable_errors_filter(self):
        strategy = ExponentialBackoff(retryable_errors=(ConflictError,))
        assert strategy.should_retry(1, ConflictError("409")) is True
        assert strategy.should_retry(1, TransportError("503")) is False


class TestRetryContext:
    def test_success_first_try(self):
        ctx = RetryContext(ExponentialBackoff(), sleep=lambda s: None)
        assert ctx.run(lambda: 42) == 42
        assert ctx.attempts == 1

    def test_retries_then_succeeds(self):
        outcomes = [ConflictError("a"), ConflictError("b"), "ok"]
        sleeps: list[float] = []
        retries: list[int] = []

        def flaky():
            result = outcomes.pop(0)
            if isinstance(result, Exception):
                raise result
            return result

        ctx = RetryContext(
            ExponentialBackoff(max_retries=5, jitter=False),
            on_retry=lambda attempt, err, delay: retries.append(attempt),
            sleep=sleeps.append,
        )
        assert ctx.run(flaky) == "ok"
        assert ctx.attempts == 3
        assert retries == [1, 2]
        assert sleeps == [1.0, 2.0]

    def test_reraises_after_budget(self):
        def always_conflicts():
            raise ConflictError("409")

        ctx = RetryContext(ConstantBackoff(max_retries=2, delay=0.0), sleep=lambda s: None)
        with pytest.raises(ConflictError):
            ctx.run(always_conflicts)
        assert ctx.attempts == 3
        assert len(ctx.errors) == 3

    def test_non_retryable_raises_immediately(self):
        def boom():
            raise TransportError("down")

        ctx = RetryContext(ExponentialBackoff(retryable_errors=(ConflictError,)), sleep=lambda s: None)
        with pytest.raises(TransportError):
            ctx.run(boom)
        assert ctx.attempts == 1
