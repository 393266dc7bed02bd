"""
Timestamp helpers.

All timestamps written to tables and event logs are ISO 8601 UTC strings.
Components take an injectable ``clock`` defaulting to :func:`utc_now` so
tests can pin time.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def to_iso8601(dt: datetime | None) -> str | None:
    """Convert datetime to ISO 8601 string."""
    if dt is None:
        return None
    return dt.isoformat()


def from_iso8601(s: str | None) -> datetime | None:
    """Parse ISO 8601 string to datetime."""
    if not s:
        return None
    return datetime.fromisoformat(s)


def iso_now(clock: Clock = utc_now) -> str:
    """Current time from ``clock`` as an ISO 8601 string."""
    return clock().isoformat()


__all__ = ["Clock", "from_iso8601", "iso_now", "to_iso8601", "utc_now"]
