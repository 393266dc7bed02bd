"""Tests for ``review_spine.stores.memory``: in-memory collaborators."""

from __future__ import annotations

import pytest

from review_spine.core.errors import ConflictError, NotFoundError, TransportError
from review_spine.core.protocols import DocumentStore, TableStore
from review_spine.stores.memory import InMemoryDocumentStore, InMemoryTableStore


class TestInMemoryDocumentStore:
    def test_satisfies_protocol(self, documents):
        assert isinstance(documents, DocumentStore)

    def test_list_children_includes_folders(self, documents):
        documents.add_file("intake", "a.docx", file_id="f1")
        documents.add_folder("Sub", parent_id="intake")
        children = documents.list_children("intake")
        assert sorted((c.name, c.is_folder) for c in children) == [("Sub", True), ("a.docx", False)]

    def test_list_unknown_folder(self, documents):
        with pytest.raises(NotFoundError):
            documents.list_children("nope")

    def test_move(self, documents):
        documents.add_file("intake", "a.docx", file_id="f1")
        documents.move("f1", "closed")
        assert documents.items["f1"].parent_id == "closed"
        assert documents.calls == [("move", "f1", "closed")]

    def test_move_failure_injection(self, documents):
        documents.add_file("intake", "a.docx", file_id="f1")
        documents.fail_moves.add("f1")
        with pytest.raises(TransportError):
            documents.move("f1", "closed")

    def test_create_folder_renames_on_conflict(self, documents):
        first = documents.create_folder("archive", "Sprint_1")
        second = documents.create_folder("archive", "Sprint_1")
        assert documents.items[first].name == "Sprint_1"
        assert documents.items[second].name == "Sprint_1 1"

    def test_create_folder_fail_on_conflict(self, documents):
        documents.create_folder("archive", "Sprint_1")
        with pytest.raises(ConflictError):
            documents.create_folder("archive", "Sprint_1", on_conflict="fail")

    def test_delayed_copy_visibility(self):
        store = InMemoryDocumentStore(copy_visible_after=2)
        store.add_folder("dest", folder_id="dest")
        store.add_file("dest", "other.docx", file_id="src")
        store.copy_async("src", "dest", "copy.docx")
        assert store.find_child_by_name("dest", "copy.docx") is None
        assert store.find_child_by_name("dest", "copy.docx") is not None

    def test_copy_that_never_completes(self):
        store = InMemoryDocumentStore(copies_complete=False)
        store.add_folder("dest", folder_id="dest")
        store.add_file("dest", "src.docx", file_id="src")
        op = store.copy_async("src", "dest", "copy.docx")
        assert op.monitor_url
        for _ in range(5):
            assert store.find_child_by_name("dest", "copy.docx") is None


class TestInMemoryTableStore:
    def test_satisfies_protocol(self):
        assert isinstance(InMemoryTableStore(), TableStore)

    def test_update_pads_short_rows(self):
        store = InMemoryTableStore()
        store.create_table("t", ["A", "B", "C"], rows=[["a"]])
        store.update_row_at("t", 0, {2: "c"})
        assert store.list_rows("t") == [["a", "", "c"]]

    def test_bad_index(self):
        store = InMemoryTableStore()
        store.create_table("t", ["A"])
        with pytest.raises(NotFoundError):
            store.delete_row_at("t", 0)

    def test_unknown_table(self):
        with pytest.raises(NotFoundError):
            InMemoryTableStore().list_rows("missing")
