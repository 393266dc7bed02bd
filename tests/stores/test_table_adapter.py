"""Tests for ``review_spine.stores.table``: name-addressed table access."""

from __future__ import annotations

import pytest

from review_spine.core.errors import ConfigError, ConflictRetryExhaustedError, SchemaMismatchError
from review_spine.core.retry import ExponentialBackoff
from review_spine.core.schema import TableVariant, get_schema
from review_spine.stores.table import TableStoreAdapter

INTAKE = TableVariant.INTAKE


class TestReads:
    def test_list_rows_by_name(self, tables, table_store, intake_values):
        table_store.tables["Step1_Review"].append(intake_values(file_id="f1", status="fast-track"))
        rows = tables.list_rows(INTAKE)
        assert len(rows) == 1
        assert rows[0].file_id == "f1"
        assert rows[0].status == "fast-track"
        assert rows[0].index == 0
        assert rows[0].is_routed is False

    def test_find_by_file_id(self, tables, table_store, intake_values):
        table_store.tables["Step1_Review"].extend([intake_values(file_id="a"), intake_values(file_id="b")])
        assert tables.find_by_file_id(INTAKE, "b").index == 1
        assert tables.find_by_file_id(INTAKE, "zzz") is None

    def test_file_ids_skips_blank(self, tables, table_store, intake_values):
        table_store.tables["Step1_Review"].extend([intake_values(file_id="a"), intake_values(file_id="")])
        assert tables.file_ids(INTAKE) == {"a"}

    def test_unconfigured_variant(self, table_store):
        adapter = TableStoreAdapter(table_store, {INTAKE: "Step1_Review"})
        with pytest.raises(ConfigError):
            adapter.table_id(TableVariant.ARCHIVE)


class TestWrites:
    def test_append_uses_registry_order(self, tables, table_store):
        tables.append_row(INTAKE, {"file_id": "f1", "status": "pending"})
        row = table_store.tables["Step1_Review"][0]
        schema = get_schema(INTAKE)
        assert row[schema.index_of("file_id")] == "f1"
        assert row[schema.index_of("priority")] == "Normal"

    def test_update_touches_only_named_cells(self, tables, table_store, intake_values):
        table_store.tables["Step1_Review"].append(intake_values(file_id="f1", reviewer_notes="keep me"))
        attempts = tables.update_row(INTAKE, 0, {"routed_on": "now", "last_action": "done"})
        assert attempts == 1
        update = table_store.calls_for("update")[0]
        assert update[3] == {13: "now", 14: "done"}
        assert tables.list_rows(INTAKE)[0].fields["reviewer_notes"] == "keep me"

    def test_conflicts_are_retried(self, tables, table_store, intake_values):
        table_store.tables["Step1_Review"].append(intake_values(file_id="f1"))
        table_store.conflicts[("Step1_Review", 0)] = 2
        assert tables.update_row(INTAKE, 0, {"error": "x"}) == 3
        assert tables.list_rows(INTAKE)[0].fields["error"] == "x"

    def test_conflict_retry_is_bounded(self, tables, table_store, intake_values):
        table_store.tables["Step1_Review"].append(intake_values(file_id="f1"))
        table_store.conflicts[("Step1_Review", 0)] = 100
        with pytest.raises(ConflictRetryExhaustedError) as exc_info:
            tables.update_row(INTAKE, 0, {"error": "x"})
        # max_retries=3 in the fixture: 1 attempt + 3 retries
        assert exc_info.value.attempts == 4
        assert exc_info.value.context.table == "Step1_Review"
        assert len(table_store.calls_for("update")) == 4

    def test_backoff_sleeps_between_attempts(self, table_store, intake_values):
        sleeps: list[float] = []
        adapter = TableStoreAdapter(
            table_store,
            {INTAKE: "Step1_Review"},
            conflict_strategy=ExponentialBackoff(max_retries=5, base_delay=1.0, max_delay=8.0, jitter=False),
            sleep=sleeps.append,
        )
        table_store.tables["Step1_Review"].append(intake_values(file_id="f1"))
        table_store.conflicts[("Step1_Review", 0)] = 5
        adapter.update_row(INTAKE, 0, {"error": "x"})
        assert sleeps == [1.0, 2.0, 4.0, 8.0, 8.0]

    def test_callers_strategy_is_left_untouched(self, table_store):
        strategy = ExponentialBackoff(max_retries=2, jitter=False, retryable_errors=(RuntimeError,))
        TableStoreAdapter(table_store, {INTAKE: "Step1_Review"}, conflict_strategy=strategy)
        assert strategy.retryable_errors == (RuntimeError,)


class TestDelete:
    def test_deletes_highest_index_first(self, tables, table_store, intake_values):
        table_store.tables["Step1_Review"].extend(intake_values(file_id=f"f{i}") for i in range(5))
        deleted, failed = tables.delete_rows(INTAKE, [1, 3, 0])
        assert deleted == [3, 1, 0]
        assert failed == []
        assert [r.file_id for r in tables.list_rows(INTAKE)] == ["f2", "f4"]

    def test_failed_delete_does_not_stop_the_rest(self, tables, table_store, intake_values):
        table_store.tables["Step1_Review"].extend(intake_values(file_id=f"f{i}") for i in range(3))
        table_store.fail_deletes.add(("Step1_Review", 1))
        deleted, failed = tables.delete_rows(INTAKE, [0, 1, 2])
        assert deleted == [2, 0]
        assert [index for index, _ in failed] == [1]
        assert [r.file_id for r in tables.list_rows(INTAKE)] == ["f1"]


class TestVerifySchema:
    def test_matching(self, tables):
        tables.verify_schema(INTAKE)

    def test_mismatch_names_table(self, tables, table_store):
        table_store.columns["Step1_Review"] = ["FileID", "FileName"]
        with pytest.raises(SchemaMismatchError) as exc_info:
            tables.verify_schema(INTAKE)
        assert exc_info.value.context.table == "Step1_Review"
