"""
Structured error types for review-spine.

Every failure the pipeline can observe maps onto one of a small number of
typed errors.  Each error carries a category, an explicit retry flag, and a
structured context naming the file, table or folder it concerns, so that the
narrowest enclosing scope can log it against its owning FileID and move on.

Manifesto:
    - **Typed taxonomy:** ParseError, NotFoundError, ConflictError,
      TransportError and ArchiveInvariantViolation are distinct types
    - **Explicit retry semantics:** only conflicts and transport failures
      are retryable; exhausted conflict retries are terminal
    - **Rich context:** file_id / table / folder_id travel with the error
    - **Error chaining:** the underlying exception is kept as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                     ReviewSpineError                         │
        │          (category, retryable, context, cause)               │
        ├─────────────────────────────────────────────────────────────┤
        │  ParseError          NotFoundError       TransportError      │
        │  (PARSE)             (SOURCE)            (NETWORK, retry)    │
        │                                                              │
        │  ConflictError ──► ConflictRetryExhaustedError               │
        │  (CONCURRENCY, retry)   (terminal)                           │
        │                                                              │
        │  ArchiveInvariantViolation   ArchiveInProgressError          │
        │  (ARCHIVE)                   (ARCHIVE)                       │
        │                                                              │
        │  SchemaMismatchError  ConfigError  InvalidTransitionError    │
        │  (SCHEMA)             (CONFIG)     (LIFECYCLE)               │
        └─────────────────────────────────────────────────────────────┘

Usage:
    from review_spine.core.errors import NotFoundError, TransportError

    try:
        store.move(file_id, closed_folder_id)
    except httpx.TimeoutException as exc:
        raise TransportError("move timed out", cause=exc).with_context(file_id=file_id)

Tags:
    error-handling, exception-hierarchy, retry-logic, review-spine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for classification, logging and retry decisions."""

    NETWORK = "NETWORK"
    SOURCE = "SOURCE"
    PARSE = "PARSE"
    CONCURRENCY = "CONCURRENCY"
    SCHEMA = "SCHEMA"
    ARCHIVE = "ARCHIVE"
    CONFIG = "CONFIG"
    LIFECYCLE = "LIFECYCLE"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Attributes:
        file_id: Document Store id of the file the error concerns
        file_name: Human-readable file name
        table: Table id the operation targeted
        folder_id: Document Store folder id
        operation: Name of the failing operation (e.g. ``update_row``)
        url: Remote URL, when the error came from an HTTP call
        http_status: HTTP status code, when applicable
        metadata: Any additional key/value pairs
    """

    file_id: str | None = None
    file_name: str | None = None
    table: str | None = None
    folder_id: str | None = None
    operation: str | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ["file_id", "file_name", "table", "folder_id", "operation", "url", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ReviewSpineError(Exception):
    """Base exception for all review-spine errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers
    may override either per instance.

    Example:
        >>> err = ReviewSpineError("boom").with_context(file_id="01ABC")
        >>> err.context.file_id
        '01ABC'
        >>> err.to_dict()["category"]
        'INTERNAL'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ReviewSpineError:
        """Add context to this error (fluent API)."""
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# ITEM-LEVEL ERRORS
# =============================================================================


class ParseError(ReviewSpineError):
    """A filename did not match any accepted naming pattern.

    The file is skipped and logged; it is never retried automatically.
    """

    default_category = ErrorCategory.PARSE
    default_retryable = False


class NotFoundError(ReviewSpineError):
    """A referenced remote object (file, folder, row) does not exist."""

    default_category = ErrorCategory.SOURCE
    default_retryable = False


class TransportError(ReviewSpineError):
    """Network or remote-service failure."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class ConflictError(ReviewSpineError):
    """Optimistic-concurrency rejection of a row write (HTTP 409/412)."""

    default_category = ErrorCategory.CONCURRENCY
    default_retryable = True


class ConflictRetryExhaustedError(ConflictError):
    """A conflicting write kept failing after the retry budget was spent."""

    default_retryable = False

    def __init__(self, message: str, *, attempts: int, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.attempts = attempts

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["attempts"] = self.attempts
        return result


# =============================================================================
# ARCHIVE ERRORS
# =============================================================================


class ArchiveInvariantViolation(ReviewSpineError):
    """The archive append for a source table failed.

    Deletion of that table's rows is withheld; other tables are unaffected.
    """

    default_category = ErrorCategory.ARCHIVE
    default_retryable = False


class ArchiveInProgressError(ReviewSpineError):
    """An archive run was requested while another one is still in flight."""

    default_category = ErrorCategory.ARCHIVE
    default_retryable = False


# =============================================================================
# SETUP / LIFECYCLE ERRORS
# =============================================================================


class SchemaMismatchError(ReviewSpineError):
    """A live table's columns disagree with the schema registry."""

    default_category = ErrorCategory.SCHEMA
    default_retryable = False


class ConfigError(ReviewSpineError):
    """Missing or inconsistent configuration."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidTransitionError(ReviewSpineError):
    """Raised when an illegal lifecycle transition is attempted."""

    default_category = ErrorCategory.LIFECYCLE
    default_retryable = False

    def __init__(self, current: str, target: str, enum_name: str = "LoopState") -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid {enum_name} transition: {current} → {target}")


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, ReviewSpineError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


__all__ = [
    "ArchiveInProgressError",
    "ArchiveInvariantViolation",
    "ConfigError",
    "ConflictError",
    "ConflictRetryExhaustedError",
    "ErrorCategory",
    "ErrorContext",
    "InvalidTransitionError",
    "NotFoundError",
    "ParseError",
    "ReviewSpineError",
    "SchemaMismatchError",
    "TransportError",
    "is_retryable",
]
