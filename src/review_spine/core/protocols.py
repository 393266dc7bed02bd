"""
Collaborator contracts for review-spine.

The intake monitor, status router and archive processor never reach for a
process-wide client: each receives a :class:`DocumentStore`,
:class:`TableStore` and :class:`EventLogStore` at construction.  Anything
matching these shapes works, which is how the in-memory collaborators stand
in for Microsoft Graph in tests and dry runs.

Architecture:
    ::

        protocols.py
        ├── DriveItem / FileMetadata / CopyOperation  : document store values
        ├── ProcessingLogEntry / ErrorLogEntry        : event log values
        ├── DocumentStore   : list/move/copy/exists over a file tree
        ├── TableStore      : positional CRUD over named tables
        └── EventLogStore   : append-only audit log

Guardrails:
    ❌ DON'T: Address table cells by position outside the schema registry
    ✅ DO: Go through ``TableStoreAdapter`` which owns name→index mapping

Tags:
    protocol, contracts, document-store, table-store, event-log, review-spine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Protocol, runtime_checkable

from review_spine.core.timestamps import iso_now

# ---------------------------------------------------------------------------
# Document store values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DriveItem:
    """A file or folder in the document store."""

    id: str
    name: str
    parent_id: str | None = None
    url: str = ""
    is_folder: bool = False
    created_at: str = ""
    uploader: str = ""
    size: int = 0


@dataclass(frozen=True)
class FileMetadata:
    """Metadata fetched for a single file."""

    file_id: str
    name: str
    url: str = ""
    created_at: str = ""
    uploader: str = ""
    size: int = 0


@dataclass(frozen=True)
class CopyOperation:
    """Handle for an asynchronous copy that was accepted by the store.

    The copied item is not guaranteed to be visible until some time later;
    callers locate it by ``dest_name`` under ``dest_parent_id``.
    """

    source_id: str
    dest_parent_id: str
    dest_name: str
    monitor_url: str | None = None


# ---------------------------------------------------------------------------
# Event log values
# ---------------------------------------------------------------------------


@dataclass
class ProcessingLogEntry:
    """One decision taken by the intake monitor or status router.

    Never mutated after it is written.
    """

    file_id: str
    file_name: str
    action: str
    status: str
    details: str = ""
    timestamp: str = field(default_factory=iso_now)
    retry_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ErrorLogEntry:
    """A failure worth surfacing on its own, outside the per-file log."""

    action: str
    error: str
    file_id: str | None = None
    timestamp: str = field(default_factory=iso_now)
    level: str = "error"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Collaborator protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class DocumentStore(Protocol):
    """Hierarchical file store (e.g. a SharePoint document library)."""

    def list_children(self, folder_id: str) -> list[DriveItem]:
        """Direct children of ``folder_id`` (files and folders)."""
        ...

    def get_metadata(self, file_id: str) -> FileMetadata:
        """Raises ``NotFoundError`` if the item does not exist."""
        ...

    def exists(self, file_id: str) -> bool: ...

    def move(self, file_id: str, new_parent_id: str) -> None: ...

    def copy_async(self, file_id: str, dest_parent_id: str, dest_name: str) -> CopyOperation: ...

    def create_folder(self, parent_id: str, name: str, on_conflict: str = "rename") -> str:
        """Create a folder and return its id."""
        ...

    def find_child_by_name(self, parent_id: str, name: str) -> DriveItem | None: ...


@runtime_checkable
class TableStore(Protocol):
    """Remote tabular store addressed by table id and row position."""

    def list_rows(self, table_id: str) -> list[list[Any]]: ...

    def append_row(self, table_id: str, values: list[Any]) -> None: ...

    def update_row_at(self, table_id: str, index: int, partial: dict[int, Any]) -> None:
        """Overwrite only the cells named in ``partial`` (column index → value)."""
        ...

    def delete_row_at(self, table_id: str, index: int) -> None: ...

    def get_columns(self, table_id: str) -> list[str]: ...


@runtime_checkable
class EventLogStore(Protocol):
    """Append-only audit log of processing decisions and errors."""

    def insert(self, entry: ProcessingLogEntry) -> None: ...

    def insert_error(self, entry: ErrorLogEntry) -> None: ...

    def query(self, filter: dict[str, Any] | None = None, limit: int = 100) -> list[ProcessingLogEntry]:
        """Entries matching every ``filter`` key, newest first."""
        ...

    def errors(self, limit: int = 50) -> list[ErrorLogEntry]: ...

    def latest_for_file(self, file_id: str, action: str | None = None) -> ProcessingLogEntry | None: ...

    def stats(self) -> list[dict[str, Any]]: ...


__all__ = [
    "CopyOperation",
    "DocumentStore",
    "DriveItem",
    "ErrorLogEntry",
    "EventLogStore",
    "FileMetadata",
    "ProcessingLogEntry",
    "TableStore",
]
