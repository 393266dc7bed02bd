"""
Status router.

Evaluates every Intake row once per cycle::

    RoutedOn set            → skip (no reads beyond the listing, no writes)
    needs-secondary-review  → ensure a SecondaryReview row exists for FileID,
                              then stamp RoutedOn / LastAction
    fast-track              → verify the file exists, move it to the closed
                              folder, clear Error, stamp RoutedOn / LastAction
    pending / anything else → no-op

RoutedOn is the single idempotency marker for both transitions.  A failed
fast-track still stamps RoutedOn so the row is not retried every cycle; the
failure lands in the Error column and the event log.

Tags:
    routing, state-machine, idempotency, review-spine
"""

from __future__ import annotations

from review_spine.core.errors import NotFoundError, ReviewSpineError
from review_spine.core.logging import get_logger
from review_spine.core.protocols import DocumentStore, ErrorLogEntry, EventLogStore, ProcessingLogEntry
from review_spine.core.schema import TableVariant, get_schema
from review_spine.core.timestamps import Clock, utc_now
from review_spine.review.models import ReviewRow, RouterCycleReport
from review_spine.review.status import ReviewStatus, canonical_status
from review_spine.stores.table import TableStoreAdapter

logger = get_logger(__name__)

SECONDARY_REVIEW_ACTION = "routed_to_secondary_review"
FAST_TRACK_ACTION = "fast_tracked"
ROUTER_ACTION = "route_row"

SENT_EXISTING = "Sent to secondary review (already existed)"
SENT_NEW = "Sent to secondary review (added new row)"
ADDED_FROM_INTAKE = "Added from intake"
FAST_TRACKED = "Fast-tracked / moved to closed"
FAST_TRACK_NOT_MOVED = "Fast-track attempted, not moved"

# Set on an error's context when the handler already wrote it to the row.
_ERROR_RECORDED = "error_recorded"


class StatusRouter:
    """Routes Intake rows by Status.

    Args:
        documents: Document store (for fast-track moves).
        tables: Table adapter serving Intake and SecondaryReview.
        event_log: Processing/error log.
        closed_folder_id: Destination folder for fast-tracked files.
        clock: Time source for RoutedOn stamps.
    """

    def __init__(
        self,
        documents: DocumentStore,
        tables: TableStoreAdapter,
        event_log: EventLogStore,
        closed_folder_id: str,
        *,
        clock: Clock = utc_now,
    ):
        self.documents = documents
        self.tables = tables
        self.event_log = event_log
        self.closed_folder_id = closed_folder_id
        self.clock = clock

    def process_status_changes(self) -> RouterCycleReport:
        """Run one routing cycle over the Intake table."""
        report = RouterCycleReport()
        rows = self.tables.list_rows(TableVariant.INTAKE)
        report.rows_seen = len(rows)
        secondary_ids: set[str] | None = None

        for row in rows:
            if not row.file_id:
                continue
            if row.is_routed:
                report.skipped.append(row.file_id)
                continue

            status = canonical_status(row.status)
            if status not in (ReviewStatus.NEEDS_SECONDARY_REVIEW, ReviewStatus.FAST_TRACK):
                continue

            try:
                if status is ReviewStatus.NEEDS_SECONDARY_REVIEW:
                    if secondary_ids is None:
                        secondary_ids = self.tables.file_ids(TableVariant.SECONDARY_REVIEW)
                    self.route_to_secondary_review(row, secondary_ids)
                else:
                    self.fast_track(row)
            except Exception as exc:
                self._handle_row_failure(row, exc)
                report.failed.append((row.file_id, str(exc)))
                continue
            report.routed.append(row.file_id)

        logger.info(
            "router_cycle_complete",
            rows_seen=report.rows_seen,
            routed=len(report.routed),
            failed=len(report.failed),
        )
        return report

    def route_to_secondary_review(self, row: ReviewRow, secondary_ids: set[str] | None = None) -> bool:
        """Ensure a SecondaryReview row exists for ``row`` and stamp it routed.

        Returns:
            True if a new SecondaryReview row was appended.
        """
        if secondary_ids is None:
            secondary_ids = self.tables.file_ids(TableVariant.SECONDARY_REVIEW)

        existed = row.file_id in secondary_ids
        try:
            if not existed:
                target = get_schema(TableVariant.SECONDARY_REVIEW)
                fields = get_schema(TableVariant.INTAKE).remap(row.fields, target)
                fields["last_action"] = ADDED_FROM_INTAKE
                self.tables.append_row(TableVariant.SECONDARY_REVIEW, fields)
                secondary_ids.add(row.file_id)

            self._update(
                row,
                routed_on=self._now(),
                last_action=SENT_EXISTING if existed else SENT_NEW,
                error="",
            )
        except Exception as exc:
            self._log(row, SECONDARY_REVIEW_ACTION, "error", str(exc))
            raise

        details = "Already existed in secondary review" if existed else "Added to secondary review"
        self._log(row, SECONDARY_REVIEW_ACTION, "success", details)
        logger.info("row_routed_secondary_review", file_id=row.file_id, existed=existed)
        return not existed

    def fast_track(self, row: ReviewRow) -> None:
        """Move ``row``'s file to the closed folder and stamp it routed."""
        try:
            if not self.documents.exists(row.file_id):
                raise NotFoundError("File not found in document store").with_context(file_id=row.file_id)
            self.documents.move(row.file_id, self.closed_folder_id)
        except Exception as exc:
            self._update(row, routed_on=self._now(), last_action=FAST_TRACK_NOT_MOVED, error=str(exc))
            self._log(row, FAST_TRACK_ACTION, "error", str(exc))
            if isinstance(exc, ReviewSpineError):
                exc.with_context(**{_ERROR_RECORDED: True})
            raise

        try:
            self._update(row, routed_on=self._now(), last_action=FAST_TRACKED, error="")
        except Exception as exc:
            self._log(row, FAST_TRACK_ACTION, "error", str(exc))
            raise
        self._log(row, FAST_TRACK_ACTION, "success", "File moved to closed folder")
        logger.info("row_fast_tracked", file_id=row.file_id)

    def _handle_row_failure(self, row: ReviewRow, exc: Exception) -> None:
        logger.error("row_routing_failed", file_id=row.file_id, index=row.index, error=str(exc))
        self.event_log.insert_error(
            ErrorLogEntry(action=ROUTER_ACTION, error=str(exc), file_id=row.file_id, timestamp=self._now())
        )
        recorded = isinstance(exc, ReviewSpineError) and exc.context.metadata.get(_ERROR_RECORDED)
        if recorded or row.index is None:
            return
        try:
            self._update(row, error=str(exc))
        except Exception as write_exc:
            logger.error("row_error_write_failed", file_id=row.file_id, error=str(write_exc))

    def _update(self, row: ReviewRow, **fields: str) -> None:
        if row.index is None:
            raise ValueError(f"Row for {row.file_id} has no index")
        self.tables.update_row(TableVariant.INTAKE, row.index, fields)
        row.fields.update(fields)

    def _now(self) -> str:
        return self.clock().isoformat()

    def _log(self, row: ReviewRow, action: str, status: str, details: str) -> None:
        self.event_log.insert(
            ProcessingLogEntry(
                file_id=row.file_id,
                file_name=row.file_name,
                action=action,
                status=status,
                details=details,
                timestamp=self._now(),
            )
        )


__all__ = ["StatusRouter"]
