"""
Archive processor.

Moves closed review rows and their files into the unified archive for one
sprint.

Run outline:
    ::

        1. resolve/create  {prefix}{sprint}  under the archive root
        2. select candidates per source table (predicate per source)
        3. copy each file into the sprint folder (skip if already there)
        4. wait, then poll for each copy; placeholder URL on timeout
        5. rewrite FileURL, remap each row to the archive layout by name
        6. append each source table's rows to the archive table
        7. delete a source table's rows ONLY if its append fully succeeded,
           highest index first
        8. summary: per-table counts, file failures, total archived

Safety:
    A failed append for one source table withholds that table's deletions
    and nothing else.  Rows whose file copy could not be started are held
    back from both append and delete.  Only one run may be in flight per
    processor (``ArchiveInProgressError`` otherwise).

Tags:
    archive, batch, write-before-delete, review-spine

Doc-Types:
    - API Reference
    - Operations Guide
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from review_spine.core.errors import ArchiveInProgressError, ArchiveInvariantViolation, NotFoundError
from review_spine.core.logging import LogContext, get_logger
from review_spine.core.protocols import DocumentStore
from review_spine.core.retry import ConstantBackoff, RetryContext
from review_spine.core.schema import TableVariant, get_schema
from review_spine.review.models import ReviewRow
from review_spine.review.status import ReviewStatus, RowPredicate, select_all, status_is
from review_spine.stores.table import TableStoreAdapter

logger = get_logger(__name__)

SUMMARY_RULE = "====================================="
NOT_DELETED = "Rows NOT deleted due to archive failure - data preserved"


def copy_placeholder(name: str) -> str:
    """FileURL written when a copy is still not visible after polling."""
    return f"[Archive URL - Copy in progress for {name}]"


@dataclass(frozen=True)
class ArchiveSource:
    """A source table feeding the archive and the rule selecting its rows."""

    variant: TableVariant
    predicate: RowPredicate
    label: str | None = None


def default_archive_sources() -> list[ArchiveSource]:
    """Fast-tracked Intake rows, and every SecondaryReview row."""
    return [
        ArchiveSource(TableVariant.INTAKE, status_is(ReviewStatus.FAST_TRACK)),
        ArchiveSource(TableVariant.SECONDARY_REVIEW, select_all),
    ]


@dataclass
class FileFailure:
    file_id: str
    file_name: str
    error: str


@dataclass
class TableArchiveResult:
    """Outcome for one source table."""

    label: str
    variant: TableVariant
    candidates: int = 0
    held_back: int = 0
    appended: int = 0
    append_succeeded: bool = False
    deleted: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def processed(self) -> int:
        """Rows archived and eligible for deletion."""
        return self.appended if self.append_succeeded else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "variant": self.variant.value,
            "candidates": self.candidates,
            "held_back": self.held_back,
            "appended": self.appended,
            "append_succeeded": self.append_succeeded,
            "processed": self.processed,
            "deleted": self.deleted,
            "errors": list(self.errors),
        }


@dataclass
class ArchiveBatch:
    """Everything one archive run did, plus its human-readable summary."""

    sprint_name: str
    folder_id: str = ""
    tables: list[TableArchiveResult] = field(default_factory=list)
    files_processed: int = 0
    files_already_archived: int = 0
    placeholders: int = 0
    file_failures: list[FileFailure] = field(default_factory=list)
    summary: str = ""

    @property
    def total_archived(self) -> int:
        return sum(t.processed for t in self.tables)

    @property
    def has_failures(self) -> bool:
        return bool(self.file_failures) or any(t.errors for t in self.tables)

    def table(self, label: str) -> TableArchiveResult:
        for result in self.tables:
            if result.label == label:
                return result
        raise KeyError(label)

    def render_summary(self) -> str:
        lines = [f"Archive Process Summary for Sprint: {self.sprint_name}", SUMMARY_RULE]
        for result in self.tables:
            line = f"{result.label} rows processed: {result.processed} (deleted: {result.deleted}"
            if result.held_back:
                line += f", held back: {result.held_back}"
            lines.append(line + ")")
        lines.append(f"Files processed: {self.files_processed}")
        for result in self.tables:
            if result.errors:
                lines.append(f"{result.label} errors: {', '.join(result.errors)}")
        if self.file_failures:
            lines.append(f"File errors: {len(self.file_failures)}")
            for failure in self.file_failures:
                lines.append(f"  - {failure.file_name}: {failure.error}")
        if self.placeholders:
            lines.append(f"Copies still in progress: {self.placeholders}")
        lines.append(f"Total rows archived: {self.total_archived}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sprint_name": self.sprint_name,
            "folder_id": self.folder_id,
            "tables": [t.to_dict() for t in self.tables],
            "files_processed": self.files_processed,
            "files_already_archived": self.files_already_archived,
            "placeholders": self.placeholders,
            "file_failures": [vars(f).copy() for f in self.file_failures],
            "total_archived": self.total_archived,
            "has_failures": self.has_failures,
            "summary": self.summary,
        }


class ArchiveRunGuard:
    """In-process lock allowing a single archive run at a time."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._holder: str | None = None

    def acquire(self, sprint_name: str) -> bool:
        if not self._lock.acquire(blocking=False):
            return False
        self._holder = sprint_name
        return True

    def release(self) -> None:
        self._holder = None
        self._lock.release()

    def is_locked(self) -> bool:
        return self._lock.locked()

    @property
    def holder(self) -> str | None:
        return self._holder


@dataclass
class _Candidate:
    source: ArchiveSource
    row: ReviewRow
    file_name: str = ""
    url: str | None = None
    failed: bool = False
    twin: _Candidate | None = None


class _CopyNotVisible(NotFoundError):
    pass


class ArchiveProcessor:
    """Archives closed rows and their files for a sprint.

    Args:
        documents: Document store holding source files and the archive root.
        tables: Table adapter serving the source and archive tables.
        archive_root_id: Folder under which sprint folders are created.
        sources: Source tables and their selection predicates.
        folder_prefix: Prepended to the sprint name for the folder name.
        settle_seconds: Wait after starting copies, before the first poll.
        poll_attempts: Lookups per copy before falling back to a placeholder.
        poll_delay_seconds: Delay between lookups.
        sleep: Sleep function (injected in tests).
    """

    def __init__(
        self,
        documents: DocumentStore,
        tables: TableStoreAdapter,
        archive_root_id: str,
        *,
        sources: Sequence[ArchiveSource] | None = None,
        folder_prefix: str = "Sprint_",
        settle_seconds: float = 5.0,
        poll_attempts: int = 10,
        poll_delay_seconds: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.documents = documents
        self.tables = tables
        self.archive_root_id = archive_root_id
        self.sources = list(sources) if sources is not None else default_archive_sources()
        self.folder_prefix = folder_prefix
        self.settle_seconds = settle_seconds
        self.poll_attempts = max(1, poll_attempts)
        self.poll_delay_seconds = poll_delay_seconds
        self.sleep = sleep
        self.guard = ArchiveRunGuard()

    @property
    def in_progress(self) -> bool:
        return self.guard.is_locked()

    def process_archive(self, sprint_name: str) -> ArchiveBatch:
        """Run one archive batch for ``sprint_name``.

        Raises:
            ValueError: ``sprint_name`` is blank.
            ArchiveInProgressError: Another run is in flight.
        """
        sprint_name = sprint_name.strip()
        if not sprint_name:
            raise ValueError("sprint_name must not be empty")
        if not self.guard.acquire(sprint_name):
            raise ArchiveInProgressError(
                f"Archive run for {self.guard.holder!r} is still in progress"
            ).with_context(operation="process_archive", requested=sprint_name)
        try:
            with LogContext(sprint=sprint_name):
                return self._run(sprint_name)
        finally:
            self.guard.release()

    # ── Steps ────────────────────────────────────────────────────

    def resolve_sprint_folder(self, sprint_name: str) -> str:
        """Existing sprint folder id, or a newly created one."""
        name = f"{self.folder_prefix}{sprint_name}"
        existing = self.documents.find_child_by_name(self.archive_root_id, name)
        if existing is not None and existing.is_folder:
            logger.info("archive_folder_found", folder=name, folder_id=existing.id)
            return existing.id
        folder_id = self.documents.create_folder(self.archive_root_id, name, on_conflict="rename")
        logger.info("archive_folder_created", folder=name, folder_id=folder_id)
        return folder_id

    def select_candidates(self) -> dict[str, list[ReviewRow]]:
        """Rows each source contributes, keyed by source label."""
        selected: dict[str, list[ReviewRow]] = {}
        for source in self.sources:
            rows = self.tables.list_rows(source.variant)
            selected[self._label(source)] = [row for row in rows if source.predicate(row)]
        return selected

    def _run(self, sprint_name: str) -> ArchiveBatch:
        batch = ArchiveBatch(sprint_name=sprint_name)
        batch.folder_id = self.resolve_sprint_folder(sprint_name)

        selected = self.select_candidates()
        candidates: list[_Candidate] = []
        for source in self.sources:
            label = self._label(source)
            result = TableArchiveResult(label=label, variant=source.variant, candidates=len(selected[label]))
            batch.tables.append(result)
            candidates.extend(_Candidate(source=source, row=row) for row in selected[label])
        logger.info("archive_candidates_selected", counts={t.label: t.candidates for t in batch.tables})

        pending = self._start_copies(candidates, batch)
        if pending:
            self.sleep(self.settle_seconds)
            for candidate in pending:
                candidate.url = self._locate_copy(candidate, batch)
        for candidate in candidates:
            if candidate.twin is not None:
                candidate.file_name = candidate.twin.file_name
                candidate.url = candidate.twin.url
                candidate.failed = candidate.twin.failed

        for result, source in zip(batch.tables, self.sources, strict=True):
            mine = [c for c in candidates if c.source is source]
            ready = [c for c in mine if not c.failed]
            result.held_back = len(mine) - len(ready)
            self._archive_table(source, result, ready)

        batch.summary = batch.render_summary()
        log = logger.warning if batch.has_failures else logger.info
        log("archive_run_complete", total_archived=batch.total_archived, file_failures=len(batch.file_failures))
        return batch

    def _start_copies(self, candidates: list[_Candidate], batch: ArchiveBatch) -> list[_Candidate]:
        """Start a copy per distinct file; returns candidates awaiting a URL."""
        pending: list[_Candidate] = []
        by_file: dict[str, _Candidate] = {}
        for candidate in candidates:
            row = candidate.row
            candidate.file_name = row.file_name
            if not row.file_id:
                self._fail(candidate, batch, "Row has no FileID")
                continue

            first = by_file.get(row.file_id)
            if first is not None:
                candidate.twin = first
                continue
            by_file[row.file_id] = candidate

            try:
                candidate.file_name = self._source_name(row)
                existing = self.documents.find_child_by_name(batch.folder_id, candidate.file_name)
                if existing is not None:
                    candidate.url = existing.url
                    batch.files_already_archived += 1
                    logger.info("archive_copy_skipped_existing", file_id=row.file_id, file_name=candidate.file_name)
                else:
                    self.documents.copy_async(row.file_id, batch.folder_id, candidate.file_name)
                    pending.append(candidate)
                batch.files_processed += 1
            except Exception as exc:
                self._fail(candidate, batch, str(exc))
        return pending

    def _source_name(self, row: ReviewRow) -> str:
        try:
            return self.documents.get_metadata(row.file_id).name
        except NotFoundError:
            return row.file_name

    def _locate_copy(self, candidate: _Candidate, batch: ArchiveBatch) -> str:
        def _lookup() -> str:
            item = self.documents.find_child_by_name(batch.folder_id, candidate.file_name)
            if item is None:
                raise _CopyNotVisible(f"{candidate.file_name} not yet in archive folder")
            return item.url

        strategy = ConstantBackoff(max_retries=self.poll_attempts - 1, delay=self.poll_delay_seconds)
        ctx = RetryContext(strategy=strategy, sleep=self.sleep)
        try:
            return ctx.run(_lookup)
        except Exception as exc:
            batch.placeholders += 1
            logger.warning(
                "archive_copy_not_visible",
                file_id=candidate.row.file_id,
                file_name=candidate.file_name,
                attempts=ctx.attempts,
                error=str(exc),
            )
            return copy_placeholder(candidate.file_name)

    def _archive_table(self, source: ArchiveSource, result: TableArchiveResult, ready: list[_Candidate]) -> None:
        if not ready:
            return

        source_schema = get_schema(source.variant)
        archive_schema = get_schema(TableVariant.ARCHIVE)
        try:
            for candidate in ready:
                fields = dict(candidate.row.fields)
                if candidate.url is not None:
                    fields["file_url"] = candidate.url
                self.tables.append_row(TableVariant.ARCHIVE, source_schema.remap(fields, archive_schema))
                result.appended += 1
        except Exception as exc:
            violation = ArchiveInvariantViolation(
                f"Archive append for {result.label} failed after {result.appended} of {len(ready)} rows: {exc}",
                cause=exc,
            ).with_context(table=result.label, operation="archive_append")
            logger.error("archive_append_failed", **violation.to_dict())
            result.errors.append(violation.message)
            result.errors.append(NOT_DELETED)
            return

        result.append_succeeded = True

        indices = [c.row.index for c in ready if c.row.index is not None]
        deleted, failed = self.tables.delete_rows(source.variant, indices)
        result.deleted = len(deleted)
        for index, error in failed:
            result.errors.append(f"Deletion error (row {index}): {error}")
        logger.info("archive_table_done", table=result.label, appended=result.appended, deleted=result.deleted)

    def _fail(self, candidate: _Candidate, batch: ArchiveBatch, error: str) -> None:
        candidate.failed = True
        batch.file_failures.append(
            FileFailure(file_id=candidate.row.file_id, file_name=candidate.file_name, error=error)
        )
        logger.error("archive_file_failed", file_id=candidate.row.file_id, file_name=candidate.file_name, error=error)

    def _label(self, source: ArchiveSource) -> str:
        return source.label or self.tables.table_id(source.variant)


__all__ = [
    "ArchiveBatch",
    "ArchiveProcessor",
    "ArchiveRunGuard",
    "ArchiveSource",
    "FileFailure",
    "TableArchiveResult",
    "copy_placeholder",
    "default_archive_sources",
]
