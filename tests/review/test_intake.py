"""Tests for ``review_spine.review.intake``: intake monitor cycles."""

from __future__ import annotations

import pytest

from review_spine.core.schema import TableVariant
from review_spine.review.intake import IntakeMonitor

GOOD_NAME = "FAQ - NonHCP - OA - 20250826 - V2.docx"


@pytest.fixture
def monitor(documents, tables, event_log, fixed_clock):
    return IntakeMonitor(documents, tables, event_log, "intake", clock=fixed_clock)


def _intake_rows(tables):
    return tables.list_rows(TableVariant.INTAKE)


class TestRegistration:
    def test_new_file_becomes_pending_row(self, monitor, documents, tables, event_log):
        documents.add_file("intake", GOOD_NAME, file_id="f1", uploader="Dana", created_at="2025-08-26T10:00:00Z")

        report = monitor.check_for_new_files()

        assert report.ingested == ["f1"]
        rows = _intake_rows(tables)
        assert len(rows) == 1
        fields = rows[0].fields
        assert fields["file_id"] == "f1"
        assert fields["file_name"] == "FAQ - NonHCP - OA - 20250826 - V2"
        assert fields["file_url"] == "https://files.example/f1/" + GOOD_NAME
        assert fields["target_audience"] == "NonHCP"
        assert fields["version_date"] == "2025-08-26"
        assert fields["uploader"] == "Dana"
        assert fields["created_at"] == "2025-08-26T10:00:00Z"
        assert fields["priority"] == "Normal"
        assert fields["status"] == "pending"
        assert fields["routed_on"] == ""
        assert fields["last_action"] == "Intake row created"

        [entry] = event_log.entries
        assert (entry.file_id, entry.action, entry.status) == ("f1", "intake", "success")
        assert entry.timestamp == "2025-09-01T12:00:00+00:00"

    def test_folders_are_ignored(self, monitor, documents, tables):
        documents.add_folder("Drafts", parent_id="intake")
        report = monitor.check_for_new_files()
        assert report.files_seen == 0
        assert _intake_rows(tables) == []

    def test_multiple_files_in_one_cycle(self, monitor, documents, tables):
        documents.add_file("intake", GOOD_NAME, file_id="f1")
        documents.add_file("intake", "Toolkit - MSCs Facts sheet - 20250820 - V1.docx", file_id="f2")
        report = monitor.check_for_new_files()
        assert sorted(report.ingested) == ["f1", "f2"]
        assert sorted(r.file_id for r in _intake_rows(tables)) == ["f1", "f2"]


class TestIdempotency:
    def test_second_cycle_is_a_no_op(self, monitor, documents, table_store, event_log):
        documents.add_file("intake", GOOD_NAME, file_id="f1")
        monitor.check_for_new_files()
        appends_before = len(table_store.calls_for("append"))
        entries_before = len(event_log.entries)

        report = monitor.check_for_new_files()

        assert report.ingested == []
        assert report.skipped == ["f1"]
        assert len(table_store.calls_for("append")) == appends_before
        assert len(event_log.entries) == entries_before

    def test_existing_row_without_log_is_recorded_once(self, monitor, documents, table_store, event_log, intake_values):
        documents.add_file("intake", GOOD_NAME, file_id="f1")
        table_store.tables["Step1_Review"].append(intake_values(file_id="f1"))

        monitor.check_for_new_files()
        monitor.check_for_new_files()

        assert table_store.calls_for("append") == []
        assert [(e.action, e.status, e.details) for e in event_log.entries] == [
            ("intake", "success", "already existed")
        ]


class TestParseRejection:
    def test_logged_once_and_not_retried(self, monitor, documents, tables, event_log):
        documents.add_file("intake", "random notes.docx", file_id="bad")

        first = monitor.check_for_new_files()
        second = monitor.check_for_new_files()

        assert [fid for fid, _ in first.failed] == ["bad"]
        assert second.skipped == ["bad"]
        assert _intake_rows(tables) == []
        rejected = [e for e in event_log.entries if e.action == "parse_rejected"]
        assert len(rejected) == 1
        assert rejected[0].status == "error"
        assert "pattern" in rejected[0].details

    def test_renamed_file_is_picked_up(self, monitor, documents, tables):
        documents.add_file("intake", "random notes.docx", file_id="f1")
        monitor.check_for_new_files()

        documents.remove("f1")
        documents.add_file("intake", GOOD_NAME, file_id="f1")
        report = monitor.check_for_new_files()

        assert report.ingested == ["f1"]
        assert [r.file_id for r in _intake_rows(tables)] == ["f1"]

    def test_bad_file_does_not_block_good_one(self, monitor, documents, tables):
        documents.add_file("intake", "random notes.docx", file_id="bad")
        documents.add_file("intake", GOOD_NAME, file_id="good")
        report = monitor.check_for_new_files()
        assert report.ingested == ["good"]
        assert [r.file_id for r in _intake_rows(tables)] == ["good"]


class TestFailures:
    def test_append_failure_is_logged_and_retried_next_cycle(self, monitor, documents, table_store, event_log, tables):
        documents.add_file("intake", GOOD_NAME, file_id="f1")
        table_store.fail_appends.add("Step1_Review")

        report = monitor.check_for_new_files()

        assert [fid for fid, _ in report.failed] == ["f1"]
        assert event_log.entries[-1].status == "error"
        assert event_log.error_entries[-1].file_id == "f1"

        table_store.fail_appends.clear()
        assert monitor.check_for_new_files().ingested == ["f1"]
        assert len(_intake_rows(tables)) == 1

    def test_list_intake_files_only_returns_files(self, monitor, documents):
        documents.add_file("intake", GOOD_NAME, file_id="f1")
        documents.add_folder("Drafts", parent_id="intake")
        assert [f.id for f in monitor.list_intake_files()] == ["f1"]
