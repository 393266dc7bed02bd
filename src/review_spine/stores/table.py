"""
Schema-aware table store adapter.

Wraps a positional :class:`~review_spine.core.protocols.TableStore` so that
callers read and write :class:`~review_spine.review.models.ReviewRow` fields
by name.  Row updates rejected with a conflict are re-issued under bounded
exponential backoff; exhausting the budget raises
:class:`~review_spine.core.errors.ConflictRetryExhaustedError`.

Architecture:
    ::

        IntakeMonitor / StatusRouter / ArchiveProcessor
                        │  fields by name
                        ▼
        TableStoreAdapter ── SCHEMAS[variant] (name ↔ index)
                        │  positional values
                        ▼
        TableStore (Graph workbook | in-memory)

Tags:
    table-store, adapter, conflict-retry, review-spine
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import replace
from typing import Any

from review_spine.core.errors import ConfigError, ConflictError, ConflictRetryExhaustedError, SchemaMismatchError
from review_spine.core.logging import get_logger
from review_spine.core.protocols import TableStore
from review_spine.core.retry import ExponentialBackoff, RetryContext, RetryStrategy
from review_spine.core.schema import TableSchema, TableVariant, get_schema
from review_spine.review.models import ReviewRow

logger = get_logger(__name__)


def default_conflict_strategy() -> ExponentialBackoff:
    return ExponentialBackoff(max_retries=5, base_delay=1.0, max_delay=8.0, retryable_errors=(ConflictError,))


class TableStoreAdapter:
    """Name-addressed CRUD over the review tables.

    Args:
        store: Positional table store.
        table_ids: Table id for each variant this adapter serves.
        conflict_strategy: Retry policy for conflicting row updates. It is
            forced to retry only on ``ConflictError``.
        sleep: Sleep function used between retries.
    """

    def __init__(
        self,
        store: TableStore,
        table_ids: Mapping[TableVariant, str],
        *,
        conflict_strategy: RetryStrategy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._store = store
        self._table_ids = dict(table_ids)
        strategy = conflict_strategy or default_conflict_strategy()
        if isinstance(strategy, ExponentialBackoff):
            strategy = replace(strategy, retryable_errors=(ConflictError,))
        self._conflict_strategy = strategy
        self._sleep = sleep

    @property
    def store(self) -> TableStore:
        return self._store

    def table_id(self, variant: TableVariant) -> str:
        try:
            return self._table_ids[variant]
        except KeyError:
            raise ConfigError(f"No table configured for {variant.value}") from None

    def schema(self, variant: TableVariant) -> TableSchema:
        return get_schema(variant)

    # ── Reads ────────────────────────────────────────────────────

    def list_rows(self, variant: TableVariant) -> list[ReviewRow]:
        schema = self.schema(variant)
        values = self._store.list_rows(self.table_id(variant))
        return [ReviewRow(variant=variant, fields=schema.from_values(v), index=i) for i, v in enumerate(values)]

    def find_by_file_id(self, variant: TableVariant, file_id: str) -> ReviewRow | None:
        """First row whose FileID equals ``file_id``, or None."""
        for row in self.list_rows(variant):
            if row.file_id == file_id:
                return row
        return None

    def file_ids(self, variant: TableVariant) -> set[str]:
        return {row.file_id for row in self.list_rows(variant) if row.file_id}

    # ── Writes ───────────────────────────────────────────────────

    def append_row(self, variant: TableVariant, fields: Mapping[str, Any]) -> None:
        values = self.schema(variant).to_values(fields)
        self._store.append_row(self.table_id(variant), values)
        logger.debug("row_appended", table=self.table_id(variant), file_id=fields.get("file_id"))

    def update_row(self, variant: TableVariant, index: int, fields: Mapping[str, Any]) -> int:
        """Patch the named fields of the row at ``index``.

        Returns:
            Number of attempts it took.

        Raises:
            ConflictRetryExhaustedError: Every attempt hit a conflict.
        """
        table = self.table_id(variant)
        partial = self.schema(variant).partial_update(fields)

        def _on_retry(attempt: int, error: Exception, delay: float) -> None:
            logger.warning(
                "row_update_conflict",
                table=table,
                index=index,
                attempt=attempt,
                retry_in=round(delay, 2),
                error=str(error),
            )

        ctx = RetryContext(strategy=self._conflict_strategy, on_retry=_on_retry, sleep=self._sleep)
        try:
            ctx.run(self._store.update_row_at, table, index, partial)
        except ConflictError as exc:
            raise ConflictRetryExhaustedError(
                f"Update of row {index} in {table} still conflicting after {ctx.attempts} attempts",
                attempts=ctx.attempts,
                cause=exc,
            ).with_context(table=table, operation="update_row") from exc
        return ctx.attempts

    def delete_rows(self, variant: TableVariant, indices: Iterable[int]) -> tuple[list[int], list[tuple[int, str]]]:
        """Delete rows highest index first.

        A failed delete is recorded and the remaining rows are still
        deleted.

        Returns:
            ``(deleted_indices, [(index, error), ...])``
        """
        table = self.table_id(variant)
        deleted: list[int] = []
        failed: list[tuple[int, str]] = []
        for index in sorted(set(indices), reverse=True):
            try:
                self._store.delete_row_at(table, index)
            except Exception as exc:
                logger.error("row_delete_failed", table=table, index=index, error=str(exc))
                failed.append((index, str(exc)))
                continue
            deleted.append(index)
        return deleted, failed

    def verify_schema(self, variant: TableVariant) -> None:
        """Raise ``SchemaMismatchError`` if the live columns differ from the registry."""
        table = self.table_id(variant)
        try:
            self.schema(variant).verify(self._store.get_columns(table))
        except SchemaMismatchError as exc:
            raise exc.with_context(table=table)


__all__ = ["TableStoreAdapter", "default_conflict_strategy"]
