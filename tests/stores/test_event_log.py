"""Tests for ``review_spine.stores.event_log``: SQLite and in-memory event logs."""

from __future__ import annotations

import pytest

from review_spine.core.protocols import ErrorLogEntry, EventLogStore, ProcessingLogEntry
from review_spine.stores.event_log import InMemoryEventLog, SqliteEventLog


@pytest.fixture(params=["sqlite", "memory"])
def log(request, tmp_path):
    if request.param == "sqlite":
        store = SqliteEventLog(str(tmp_path / "events" / "review.db"))
        yield store
        store.close()
    else:
        yield InMemoryEventLog()


def _entry(file_id: str, action: str = "intake", status: str = "success", ts: str = "2025-09-01T00:00:00") -> ProcessingLogEntry:
    return ProcessingLogEntry(file_id=file_id, file_name=f"{file_id}.docx", action=action, status=status, timestamp=ts)


class TestEventLog:
    def test_satisfies_protocol(self, log):
        assert isinstance(log, EventLogStore)

    def test_query_newest_first(self, log):
        log.insert(_entry("a", ts="2025-09-01T00:00:01"))
        log.insert(_entry("b", ts="2025-09-01T00:00:02"))
        assert [e.file_id for e in log.query()] == ["b", "a"]

    def test_query_filter_and_limit(self, log):
        for i in range(5):
            log.insert(_entry("a", status="error" if i % 2 else "success"))
        assert len(log.query({"file_id": "a", "status": "error"})) == 2
        assert len(log.query(limit=3)) == 3

    def test_unknown_filter_key(self, log):
        with pytest.raises(ValueError):
            log.query({"details": "x"})

    def test_latest_for_file_per_action(self, log):
        log.insert(_entry("a", action="intake", status="success"))
        log.insert(_entry("a", action="fast_tracked", status="error"))
        assert log.latest_for_file("a").action == "fast_tracked"
        assert log.latest_for_file("a", action="intake").status == "success"
        assert log.latest_for_file("missing") is None

    def test_errors_newest_first(self, log):
        log.insert_error(ErrorLogEntry(action="intake", error="one", file_id="a"))
        log.insert_error(ErrorLogEntry(action="archive", error="two"))
        errors = log.errors()
        assert [e.error for e in errors] == ["two", "one"]
        assert errors[0].file_id is None
        assert len(log.errors(limit=1)) == 1

    def test_stats_grouped_by_action_and_status(self, log):
        log.insert(_entry("a", ts="2025-09-01T00:00:01"))
        log.insert(_entry("b", ts="2025-09-01T00:00:03"))
        log.insert(_entry("c", action="parse_rejected", status="error"))
        stats = log.stats()
        assert stats[0] == {
            "action": "intake",
            "status": "success",
            "count": 2,
            "last_timestamp": "2025-09-01T00:00:03",
        }
        assert {(s["action"], s["status"]) for s in stats} == {("intake", "success"), ("parse_rejected", "error")}


def test_sqlite_persists_across_connections(tmp_path):
    path = str(tmp_path / "review.db")
    first = SqliteEventLog(path)
    first.insert(_entry("a"))
    first.close()

    second = SqliteEventLog(path)
    assert second.latest_for_file("a").status == "success"
    second.close()
