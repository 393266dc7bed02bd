"""Tests for ``review_spine.core.errors``: typed error taxonomy."""

from __future__ import annotations

import pytest

from review_spine.core.errors import (
    ArchiveInvariantViolation,
    ConflictError,
    ConflictRetryExhaustedError,
    ErrorCategory,
    InvalidTransitionError,
    NotFoundError,
    ParseError,
    ReviewSpineError,
    TransportError,
    is_retryable,
)


class TestCategoriesAndRetry:
    @pytest.mark.parametrize(
        "error_cls, category, retryable",
        [
            (ParseError, ErrorCategory.PARSE, False),
            (NotFoundError, ErrorCategory.SOURCE, False),
            (TransportError, ErrorCategory.NETWORK, True),
            (ConflictError, ErrorCategory.CONCURRENCY, True),
            (ArchiveInvariantViolation, ErrorCategory.ARCHIVE, False),
        ],
    )
    def test_defaults(self, error_cls, category, retryable):
        err = error_cls("boom")
        assert err.category == category
        assert err.retryable is retryable
        assert is_retryable(err) is retryable

    def test_exhausted_conflict_is_terminal(self):
        err = ConflictRetryExhaustedError("still conflicting", attempts=6)
        assert isinstance(err, ConflictError)
        assert err.retryable is False
        assert err.to_dict()["attempts"] == 6

    def test_retryable_override(self):
        assert TransportError("bad request", retryable=False).retryable is False

    def test_builtin_network_errors(self):
        assert is_retryable(TimeoutError()) is True
        assert is_retryable(KeyError("x")) is False


class TestContext:
    def test_with_context_sets_known_fields(self):
        err = NotFoundError("gone").with_context(file_id="01ABC", table="Step1_Review")
        assert err.context.file_id == "01ABC"
        assert err.context.table == "Step1_Review"

    def test_unknown_keys_land_in_metadata(self):
        err = ReviewSpineError("x").with_context(sprint="2025-09")
        assert err.context.metadata == {"sprint": "2025-09"}
        assert err.to_dict()["context"] == {"sprint": "2025-09"}

    def test_cause_is_chained(self):
        cause = OSError("socket closed")
        err = TransportError("move failed", cause=cause)
        assert err.__cause__ is cause
        assert err.to_dict()["cause"] == "socket closed"

    def test_to_dict_omits_empty_context(self):
        data = ParseError("bad name").to_dict()
        assert data["error_type"] == "ParseError"
        assert data["category"] == "PARSE"
        assert "context" not in data


def test_invalid_transition_message():
    err = InvalidTransitionError("running", "starting")
    assert err.current == "running"
    assert "running → starting" in str(err)
