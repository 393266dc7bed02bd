"""In-memory collaborators.

Deterministic stand-ins for the document store and table store.  Every
mutating call is recorded in ``calls`` so callers can assert exactly which
remote effects a cycle produced.  Failure injection hooks cover the cases
the pipeline must survive: conflicting updates, failed appends, failed
moves and deletes, and copies that become visible late or never.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import replace
from typing import Any

from review_spine.core.errors import ConflictError, NotFoundError, TransportError
from review_spine.core.protocols import CopyOperation, DriveItem, FileMetadata
from review_spine.core.timestamps import iso_now


class InMemoryDocumentStore:
    """Folder tree held in a dict.

    Args:
        copy_visible_after: Number of ``find_child_by_name`` lookups of a
            copied name before the copy appears. 0 means immediately.
        copies_complete: When False, accepted copies never appear.
    """

    def __init__(self, *, copy_visible_after: int = 0, copies_complete: bool = True):
        self.items: dict[str, DriveItem] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.copy_visible_after = copy_visible_after
        self.copies_complete = copies_complete
        self.fail_moves: set[str] = set()
        self.fail_copies: set[str] = set()
        self._pending: list[list[Any]] = []
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    # ── Seeding ──────────────────────────────────────────────────

    def add_folder(self, name: str, parent_id: str | None = None, folder_id: str | None = None) -> str:
        with self._lock:
            folder_id = folder_id or self._next_id("folder")
            self.items[folder_id] = DriveItem(id=folder_id, name=name, parent_id=parent_id, is_folder=True)
            return folder_id

    def add_file(
        self,
        parent_id: str,
        name: str,
        *,
        file_id: str | None = None,
        uploader: str = "",
        created_at: str | None = None,
        size: int = 0,
    ) -> str:
        with self._lock:
            file_id = file_id or self._next_id("file")
            self.items[file_id] = DriveItem(
                id=file_id,
                name=name,
                parent_id=parent_id,
                url=f"https://files.example/{file_id}/{name}",
                created_at=created_at or iso_now(),
                uploader=uploader,
                size=size,
            )
            return file_id

    def remove(self, item_id: str) -> None:
        """Delete an item out-of-band (simulates an external deletion)."""
        with self._lock:
            self.items.pop(item_id, None)

    def children(self, folder_id: str) -> list[DriveItem]:
        with self._lock:
            return [item for item in self.items.values() if item.parent_id == folder_id]

    # ── DocumentStore ────────────────────────────────────────────

    def list_children(self, folder_id: str) -> list[DriveItem]:
        with self._lock:
            if folder_id not in self.items:
                raise NotFoundError(f"Folder {folder_id} not found").with_context(folder_id=folder_id)
            return self.children(folder_id)

    def get_metadata(self, file_id: str) -> FileMetadata:
        with self._lock:
            item = self.items.get(file_id)
            if item is None:
                raise NotFoundError(f"Item {file_id} not found").with_context(file_id=file_id)
            return FileMetadata(
                file_id=item.id,
                name=item.name,
                url=item.url,
                created_at=item.created_at,
                uploader=item.uploader,
                size=item.size,
            )

    def exists(self, file_id: str) -> bool:
        with self._lock:
            return file_id in self.items

    def move(self, file_id: str, new_parent_id: str) -> None:
        with self._lock:
            self.calls.append(("move", file_id, new_parent_id))
            if file_id in self.fail_moves:
                raise TransportError(f"Move of {file_id} failed").with_context(file_id=file_id)
            item = self.items.get(file_id)
            if item is None:
                raise NotFoundError(f"Item {file_id} not found").with_context(file_id=file_id)
            self.items[file_id] = replace(item, parent_id=new_parent_id)

    def copy_async(self, file_id: str, dest_parent_id: str, dest_name: str) -> CopyOperation:
        with self._lock:
            self.calls.append(("copy", file_id, dest_parent_id, dest_name))
            if file_id in self.fail_copies:
                raise TransportError(f"Copy of {file_id} failed").with_context(file_id=file_id)
            source = self.items.get(file_id)
            if source is None:
                raise NotFoundError(f"Item {file_id} not found").with_context(file_id=file_id)
            new_id = self._next_id("copy")
            copied = replace(
                source,
                id=new_id,
                name=dest_name,
                parent_id=dest_parent_id,
                url=f"https://files.example/{new_id}/{dest_name}",
            )
            if self.copies_complete:
                if self.copy_visible_after <= 0:
                    self.items[new_id] = copied
                else:
                    self._pending.append([self.copy_visible_after, copied])
            return CopyOperation(
                source_id=file_id,
                dest_parent_id=dest_parent_id,
                dest_name=dest_name,
                monitor_url=f"https://files.example/monitor/{new_id}",
            )

    def create_folder(self, parent_id: str, name: str, on_conflict: str = "rename") -> str:
        with self._lock:
            self.calls.append(("create_folder", parent_id, name))
            taken = {item.name for item in self.children(parent_id)}
            final = name
            if final in taken:
                if on_conflict != "rename":
                    raise ConflictError(f"{name} already exists").with_context(folder_id=parent_id)
                n = 1
                while f"{name} {n}" in taken:
                    n += 1
                final = f"{name} {n}"
            return self.add_folder(final, parent_id=parent_id)

    def find_child_by_name(self, parent_id: str, name: str) -> DriveItem | None:
        with self._lock:
            self._advance_pending(parent_id, name)
            for item in self.children(parent_id):
                if item.name == name:
                    return item
            return None

    def _advance_pending(self, parent_id: str, name: str) -> None:
        still_pending = []
        for remaining, copied in self._pending:
            if copied.parent_id == parent_id and copied.name == name:
                remaining -= 1
            if remaining <= 0:
                self.items[copied.id] = copied
            else:
                still_pending.append([remaining, copied])
        self._pending = still_pending


class InMemoryTableStore:
    """Named tables of positional rows."""

    def __init__(self) -> None:
        self.tables: dict[str, list[list[Any]]] = {}
        self.columns: dict[str, list[str]] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.fail_appends: set[str] = set()
        self.fail_deletes: set[tuple[str, int]] = set()
        self.conflicts: dict[tuple[str, int], int] = {}
        self._lock = threading.RLock()

    def create_table(self, table_id: str, headers: list[str], rows: list[list[Any]] | None = None) -> None:
        with self._lock:
            self.columns[table_id] = list(headers)
            self.tables[table_id] = [list(r) for r in rows or []]

    def calls_for(self, op: str, table_id: str | None = None) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == op and (table_id is None or c[1] == table_id)]

    def _table(self, table_id: str) -> list[list[Any]]:
        try:
            return self.tables[table_id]
        except KeyError:
            raise NotFoundError(f"Table {table_id} not found").with_context(table=table_id) from None

    # ── TableStore ───────────────────────────────────────────────

    def list_rows(self, table_id: str) -> list[list[Any]]:
        with self._lock:
            return [list(r) for r in self._table(table_id)]

    def append_row(self, table_id: str, values: list[Any]) -> None:
        with self._lock:
            self.calls.append(("append", table_id, list(values)))
            if table_id in self.fail_appends:
                raise TransportError(f"Append to {table_id} failed").with_context(table=table_id)
            self._table(table_id).append(list(values))

    def update_row_at(self, table_id: str, index: int, partial: dict[int, Any]) -> None:
        with self._lock:
            self.calls.append(("update", table_id, index, dict(partial)))
            remaining = self.conflicts.get((table_id, index), 0)
            if remaining:
                self.conflicts[(table_id, index)] = remaining - 1
                raise ConflictError(f"Row {index} in {table_id} was modified").with_context(table=table_id)
            rows = self._table(table_id)
            if not 0 <= index < len(rows):
                raise NotFoundError(f"Row {index} not in {table_id}").with_context(table=table_id)
            row = rows[index]
            for col, value in partial.items():
                while len(row) <= col:
                    row.append("")
                row[col] = value

    def delete_row_at(self, table_id: str, index: int) -> None:
        with self._lock:
            self.calls.append(("delete", table_id, index))
            if (table_id, index) in self.fail_deletes:
                raise TransportError(f"Delete of row {index} in {table_id} failed").with_context(table=table_id)
            rows = self._table(table_id)
            if not 0 <= index < len(rows):
                raise NotFoundError(f"Row {index} not in {table_id}").with_context(table=table_id)
            del rows[index]

    def get_columns(self, table_id: str) -> list[str]:
        with self._lock:
            if table_id not in self.columns:
                raise NotFoundError(f"Table {table_id} not found").with_context(table=table_id)
            return list(self.columns[table_id])


__all__ = ["InMemoryDocumentStore", "InMemoryTableStore"]
