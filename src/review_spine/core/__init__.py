"""Core primitives shared by every review-spine component."""

from review_spine.core.errors import (
    ArchiveInProgressError,
    ArchiveInvariantViolation,
    ConfigError,
    ConflictError,
    ConflictRetryExhaustedError,
    ErrorCategory,
    ErrorContext,
    InvalidTransitionError,
    NotFoundError,
    ParseError,
    ReviewSpineError,
    SchemaMismatchError,
    TransportError,
    is_retryable,
)
from review_spine.core.lifecycle import LoopState, validate_loop_transition
from review_spine.core.schema import SCHEMAS, TableSchema, TableVariant, get_schema

__all__ = [
    "ArchiveInProgressError",
    "ArchiveInvariantViolation",
    "ConfigError",
    "ConflictError",
    "ConflictRetryExhaustedError",
    "ErrorCategory",
    "ErrorContext",
    "InvalidTransitionError",
    "LoopState",
    "NotFoundError",
    "ParseError",
    "ReviewSpineError",
    "SCHEMAS",
    "SchemaMismatchError",
    "TableSchema",
    "TableVariant",
    "TransportError",
    "get_schema",
    "is_retryable",
    "validate_loop_transition",
]
