"""
Event log stores.

Append-only record of every intake and routing decision (processing log)
and of failures worth surfacing on their own (error log).  The intake
monitor consults the processing log for idempotency; the API and CLI read
both for auditing and statistics.

Tables:
    - **review_processing_log:** one row per decision, never updated
    - **review_error_log:** one row per surfaced failure

Tags:
    event-log, audit, sqlite, review-spine
"""

from __future__ import annotations

import sqlite3
import threading
from collections import defaultdict
from pathlib import Path
from typing import Any

from review_spine.core.protocols import ErrorLogEntry, ProcessingLogEntry


EVENT_LOG_TABLES = {
    "processing": "review_processing_log",
    "errors": "review_error_log",
}

EVENT_LOG_DDL = {
    "processing": """
        CREATE TABLE IF NOT EXISTS review_processing_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            file_id TEXT NOT NULL,
            file_name TEXT NOT NULL DEFAULT '',
            action TEXT NOT NULL,
            status TEXT NOT NULL,
            details TEXT NOT NULL DEFAULT '',
            timestamp TEXT NOT NULL,
            retry_count INTEGER NOT NULL DEFAULT 0
        )
    """,
    "processing_file_idx": """
        CREATE INDEX IF NOT EXISTS idx_review_processing_log_file
        ON review_processing_log(file_id, action)
    """,
    "errors": """
        CREATE TABLE IF NOT EXISTS review_error_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            action TEXT NOT NULL,
            error TEXT NOT NULL,
            file_id TEXT,
            timestamp TEXT NOT NULL,
            level TEXT NOT NULL DEFAULT 'error'
        )
    """,
}

# Columns ``query`` may filter on.
FILTERABLE = ("file_id", "file_name", "action", "status")


def create_tables(conn: sqlite3.Connection) -> None:
    """Create the event log tables. Safe to call multiple times."""
    for _name, ddl in EVENT_LOG_DDL.items():
        conn.execute(ddl)
    conn.commit()


def _check_filter(filter: dict[str, Any] | None) -> dict[str, Any]:
    filter = dict(filter or {})
    unknown = set(filter) - set(FILTERABLE)
    if unknown:
        raise ValueError(f"Cannot filter event log on {sorted(unknown)}")
    return filter


def _aggregate(entries: list[ProcessingLogEntry]) -> list[dict[str, Any]]:
    buckets: dict[tuple[str, str], dict[str, Any]] = defaultdict(lambda: {"count": 0, "last_timestamp": None})
    for entry in entries:
        bucket = buckets[(entry.action, entry.status)]
        bucket["count"] += 1
        if bucket["last_timestamp"] is None or entry.timestamp > bucket["last_timestamp"]:
            bucket["last_timestamp"] = entry.timestamp
    return [
        {"action": action, "status": status, **bucket}
        for (action, status), bucket in sorted(buckets.items(), key=lambda kv: (-kv[1]["count"], kv[0]))
    ]


class SqliteEventLog:
    """Event log backed by a SQLite file (``":memory:"`` allowed)."""

    def __init__(self, path: str = ":memory:"):
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self.path = path
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        if path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        create_tables(self._conn)
        self._lock = threading.Lock()

    def close(self) -> None:
        self._conn.close()

    def __repr__(self) -> str:
        return f"SqliteEventLog({self.path!r})"

    def insert(self, entry: ProcessingLogEntry) -> None:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO review_processing_log
                    (file_id, file_name, action, status, details, timestamp, retry_count)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.file_id,
                    entry.file_name,
                    entry.action,
                    entry.status,
                    entry.details,
                    entry.timestamp,
                    entry.retry_count,
                ),
            )
            self._conn.commit()

    def insert_error(self, entry: ErrorLogEntry) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT INTO review_error_log (action, error, file_id, timestamp, level) VALUES (?, ?, ?, ?, ?)",
                (entry.action, entry.error, entry.file_id, entry.timestamp, entry.level),
            )
            self._conn.commit()

    def query(self, filter: dict[str, Any] | None = None, limit: int = 100) -> list[ProcessingLogEntry]:
        filter = _check_filter(filter)
        where = " AND ".join(f"{key} = ?" for key in filter)
        sql = "SELECT * FROM review_processing_log"
        if where:
            sql += f" WHERE {where}"
        sql += " ORDER BY id DESC LIMIT ?"
        with self._lock:
            rows = self._conn.execute(sql, (*filter.values(), limit)).fetchall()
        return [self._to_entry(r) for r in rows]

    def errors(self, limit: int = 50) -> list[ErrorLogEntry]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT action, error, file_id, timestamp, level FROM review_error_log ORDER BY id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [ErrorLogEntry(**dict(r)) for r in rows]

    def latest_for_file(self, file_id: str, action: str | None = None) -> ProcessingLogEntry | None:
        filter: dict[str, Any] = {"file_id": file_id}
        if action is not None:
            filter["action"] = action
        found = self.query(filter, limit=1)
        return found[0] if found else None

    def stats(self) -> list[dict[str, Any]]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT action, status, COUNT(*) AS count, MAX(timestamp) AS last_timestamp
                FROM review_processing_log
                GROUP BY action, status
                ORDER BY count DESC, action, status
                """
            ).fetchall()
        return [dict(r) for r in rows]

    @staticmethod
    def _to_entry(row: sqlite3.Row) -> ProcessingLogEntry:
        data = dict(row)
        data.pop("id", None)
        return ProcessingLogEntry(**data)


class InMemoryEventLog:
    """Event log held in lists; used by tests and the memory backend."""

    def __init__(self) -> None:
        self.entries: list[ProcessingLogEntry] = []
        self.error_entries: list[ErrorLogEntry] = []
        self._lock = threading.Lock()

    def insert(self, entry: ProcessingLogEntry) -> None:
        with self._lock:
            self.entries.append(entry)

    def insert_error(self, entry: ErrorLogEntry) -> None:
        with self._lock:
            self.error_entries.append(entry)

    def query(self, filter: dict[str, Any] | None = None, limit: int = 100) -> list[ProcessingLogEntry]:
        filter = _check_filter(filter)
        with self._lock:
            matched = [e for e in reversed(self.entries) if all(getattr(e, k) == v for k, v in filter.items())]
        return matched[:limit]

    def errors(self, limit: int = 50) -> list[ErrorLogEntry]:
        with self._lock:
            return list(reversed(self.error_entries))[:limit]

    def latest_for_file(self, file_id: str, action: str | None = None) -> ProcessingLogEntry | None:
        filter: dict[str, Any] = {"file_id": file_id}
        if action is not None:
            filter["action"] = action
        found = self.query(filter, limit=1)
        return found[0] if found else None

    def stats(self) -> list[dict[str, Any]]:
        with self._lock:
            return _aggregate(list(self.entries))


__all__ = [
    "EVENT_LOG_DDL",
    "EVENT_LOG_TABLES",
    "InMemoryEventLog",
    "SqliteEventLog",
    "create_tables",
]
