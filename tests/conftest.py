"""
Shared pytest fixtures for review-spine tests.

This module provides:
- In-memory document, table and event-log collaborators seeded with the
  intake / closed / archive folders and the three review tables
- A table adapter whose conflict retries never sleep
- A pinned clock and helpers for building physical rows by field name

Usage:
    def test_something(documents, tables, event_log, intake_values):
        ...
"""

import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

# Ensure review_spine package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from review_spine.core.retry import ExponentialBackoff
from review_spine.core.schema import TableVariant, get_schema
from review_spine.stores.event_log import InMemoryEventLog
from review_spine.stores.memory import InMemoryDocumentStore, InMemoryTableStore
from review_spine.stores.table import TableStoreAdapter

INTAKE_TABLE = "Step1_Review"
SECONDARY_TABLE = "MRL_Review"
ARCHIVE_TABLE = "Content_Review_Archives"

TABLE_IDS = {
    TableVariant.INTAKE: INTAKE_TABLE,
    TableVariant.SECONDARY_REVIEW: SECONDARY_TABLE,
    TableVariant.ARCHIVE: ARCHIVE_TABLE,
}

FIXED_NOW = datetime(2025, 9, 1, 12, 0, 0, tzinfo=UTC)


def no_sleep(seconds: float) -> None:
    """Sleep replacement that returns immediately."""


@pytest.fixture
def fixed_clock():
    """Clock pinned to 2025-09-01T12:00:00Z."""
    return lambda: FIXED_NOW


@pytest.fixture
def documents() -> InMemoryDocumentStore:
    store = InMemoryDocumentStore()
    store.add_folder("Content Review", folder_id="root")
    store.add_folder("Intake", parent_id="root", folder_id="intake")
    store.add_folder("Closed", parent_id="root", folder_id="closed")
    store.add_folder("Archive", parent_id="root", folder_id="archive")
    return store


@pytest.fixture
def table_store() -> InMemoryTableStore:
    store = InMemoryTableStore()
    for variant, table_id in TABLE_IDS.items():
        store.create_table(table_id, get_schema(variant).headers)
    return store


@pytest.fixture
def tables(table_store: InMemoryTableStore) -> TableStoreAdapter:
    return TableStoreAdapter(
        table_store,
        TABLE_IDS,
        conflict_strategy=ExponentialBackoff(max_retries=3, base_delay=0.01, jitter=False),
        sleep=no_sleep,
    )


@pytest.fixture
def event_log() -> InMemoryEventLog:
    return InMemoryEventLog()


def row_values(variant: TableVariant, **fields: Any) -> list[Any]:
    """Physical row for ``variant`` with the given fields set by name."""
    return get_schema(variant).to_values(fields)


@pytest.fixture
def intake_values():
    """Factory: ``intake_values(file_id="f1", status="fast-track")``."""

    def _make(**fields: Any) -> list[Any]:
        fields.setdefault("file_name", f"FAQ - OA - 20250826 - {fields.get('file_id', 'x')}")
        fields.setdefault("status", "pending")
        return row_values(TableVariant.INTAKE, **fields)

    return _make


@pytest.fixture
def secondary_values():
    """Factory for SecondaryReview rows."""

    def _make(**fields: Any) -> list[Any]:
        fields.setdefault("file_name", f"Toolkit - Sheet - 20250820 - {fields.get('file_id', 'x')}")
        return row_values(TableVariant.SECONDARY_REVIEW, **fields)

    return _make
