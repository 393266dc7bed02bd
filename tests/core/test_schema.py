"""Tests for ``review_spine.core.schema``: name↔index registry and remapping."""

from __future__ import annotations

import pytest

from review_spine.core.errors import SchemaMismatchError
from review_spine.core.schema import NOT_ASSESSED, TableVariant, get_schema


class TestRegistry:
    def test_column_counts(self):
        assert len(get_schema(TableVariant.INTAKE)) == 16
        assert len(get_schema(TableVariant.SECONDARY_REVIEW)) == 22
        assert len(get_schema(TableVariant.ARCHIVE)) == 22

    def test_trailing_columns_shift_between_variants(self):
        intake = get_schema(TableVariant.INTAKE)
        archive = get_schema(TableVariant.ARCHIVE)
        assert intake.index_of("routed_on") == 13
        assert archive.index_of("routed_on") == 19
        assert intake.headers[-3:] == archive.headers[-3:] == ["RoutedOn", "LastAction", "Error"]

    def test_index_of_unknown_field(self):
        with pytest.raises(KeyError):
            get_schema(TableVariant.INTAKE).index_of("medical_risk")


class TestValues:
    def test_to_values_fills_defaults(self):
        schema = get_schema(TableVariant.SECONDARY_REVIEW)
        values = schema.to_values({"file_id": "f1"})
        assert values[0] == "f1"
        assert values[schema.index_of("priority")] == "Normal"
        assert values[schema.index_of("legal_risk")] == NOT_ASSESSED

    def test_to_values_rejects_unknown_fields(self):
        with pytest.raises(KeyError):
            get_schema(TableVariant.INTAKE).to_values({"legal_risk": "High"})

    def test_from_values_pads_short_rows(self):
        fields = get_schema(TableVariant.INTAKE).from_values(["f1", "name"])
        assert fields["file_id"] == "f1"
        assert fields["priority"] == "Normal"
        assert fields["error"] == ""

    def test_partial_update(self):
        schema = get_schema(TableVariant.INTAKE)
        assert schema.partial_update({"routed_on": "t", "error": ""}) == {13: "t", 15: ""}


class TestRemap:
    def test_intake_to_archive_by_name(self):
        intake = get_schema(TableVariant.INTAKE)
        archive = get_schema(TableVariant.ARCHIVE)
        fields = intake.from_values(intake.to_values({
            "file_id": "f1",
            "status": "fast-track",
            "routed_on": "2025-09-01T12:00:00+00:00",
            "last_action": "Fast-tracked / moved to closed",
            "error": "",
        }))

        remapped = archive.to_values(intake.remap(fields, archive))

        assert remapped[archive.index_of("routed_on")] == "2025-09-01T12:00:00+00:00"
        assert remapped[archive.index_of("last_action")] == "Fast-tracked / moved to closed"
        assert remapped[archive.index_of("medical_risk")] == NOT_ASSESSED
        assert remapped[archive.index_of("medical_comment")] == ""

    def test_secondary_to_archive_keeps_reviewer_fields(self):
        secondary = get_schema(TableVariant.SECONDARY_REVIEW)
        archive = get_schema(TableVariant.ARCHIVE)
        fields = secondary.from_values(secondary.to_values({"file_id": "f2", "legal_risk": "High"}))
        assert secondary.remap(fields, archive)["legal_risk"] == "High"


class TestVerify:
    def test_matching_headers(self):
        schema = get_schema(TableVariant.INTAKE)
        schema.verify(schema.headers)

    def test_mismatch_reports_missing_and_extra(self):
        schema = get_schema(TableVariant.INTAKE)
        headers = schema.headers[:-1] + ["Notes"]
        with pytest.raises(SchemaMismatchError) as exc_info:
            schema.verify(headers)
        assert "Error" in exc_info.value.message
        assert exc_info.value.context.metadata["actual"] == headers
