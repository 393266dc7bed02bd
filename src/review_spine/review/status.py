"""Review status vocabulary.

The router matches Status cells exactly against a canonical value or one of
its legacy aliases.  Anything else (including reviewer-specific values such
as "In review") is a deliberate no-op.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from review_spine.review.models import ReviewRow


class ReviewStatus(str, Enum):
    """Canonical status values."""

    PENDING = "pending"
    NEEDS_SECONDARY_REVIEW = "needs-secondary-review"
    FAST_TRACK = "fast-track"


STATUS_ALIASES: dict[str, ReviewStatus] = {
    "Needs Med/Reg/Leg Review": ReviewStatus.NEEDS_SECONDARY_REVIEW,
    "Needs MRL Review": ReviewStatus.NEEDS_SECONDARY_REVIEW,
    "Fast track": ReviewStatus.FAST_TRACK,
}


def canonical_status(value: object) -> ReviewStatus | None:
    """Canonical status for a raw cell value, or None if unrecognised."""
    if not isinstance(value, str):
        return None
    try:
        return ReviewStatus(value)
    except ValueError:
        return STATUS_ALIASES.get(value)


RowPredicate = Callable[["ReviewRow"], bool]


def status_is(status: ReviewStatus) -> RowPredicate:
    """Predicate selecting rows whose Status resolves to ``status``."""

    def _predicate(row: ReviewRow) -> bool:
        return canonical_status(row.status) is status

    _predicate.__name__ = f"status_is_{status.name.lower()}"
    return _predicate


def select_all(row: ReviewRow) -> bool:
    """Predicate selecting every row."""
    return True


__all__ = ["ReviewStatus", "RowPredicate", "STATUS_ALIASES", "canonical_status", "select_all", "status_is"]
