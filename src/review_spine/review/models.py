"""Row and report models shared by the review components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from review_spine.core.schema import TableVariant


@dataclass
class ReviewRow:
    """One row of a review table, addressed by field name.

    ``index`` is the row's position in its table at the time it was listed;
    it is only valid until the next append or delete on that table.
    """

    variant: TableVariant
    fields: dict[str, Any]
    index: int | None = None

    def get(self, name: str, default: Any = "") -> Any:
        value = self.fields.get(name, default)
        return default if value is None else value

    @property
    def file_id(self) -> str:
        return str(self.get("file_id"))

    @property
    def file_name(self) -> str:
        return str(self.get("file_name"))

    @property
    def file_url(self) -> str:
        return str(self.get("file_url"))

    @property
    def status(self) -> str:
        return str(self.get("status"))

    @property
    def routed_on(self) -> str:
        return str(self.get("routed_on"))

    @property
    def is_routed(self) -> bool:
        """True once the router has stamped RoutedOn."""
        return bool(self.routed_on.strip())


@dataclass
class IntakeCycleReport:
    """Outcome of one intake cycle."""

    files_seen: int = 0
    ingested: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "files_seen": self.files_seen,
            "ingested": list(self.ingested),
            "skipped": list(self.skipped),
            "failed": [{"file_id": fid, "error": msg} for fid, msg in self.failed],
        }


@dataclass
class RouterCycleReport:
    """Outcome of one router cycle."""

    rows_seen: int = 0
    routed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows_seen": self.rows_seen,
            "routed": list(self.routed),
            "skipped": list(self.skipped),
            "failed": [{"file_id": fid, "error": msg} for fid, msg in self.failed],
        }


__all__ = ["IntakeCycleReport", "ReviewRow", "RouterCycleReport"]
