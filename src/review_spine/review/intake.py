"""
Intake monitor.

Each cycle lists the intake folder and registers every new, well-named
file as an Intake row with Status ``pending`` and an empty RoutedOn.

Idempotency:
    A file is a no-op when either
      - its latest ``intake`` log entry is a success, or
      - the intake table already holds a row with its FileID
        (recorded once as a success with detail "already existed").
    A filename the parser rejected is recorded once under
    ``parse_rejected`` and not retried while its name is unchanged.

Tags:
    intake, polling, idempotency, review-spine
"""

from __future__ import annotations

from review_spine.core.errors import ParseError
from review_spine.core.logging import get_logger
from review_spine.core.protocols import DocumentStore, DriveItem, ErrorLogEntry, EventLogStore, ProcessingLogEntry
from review_spine.core.schema import TableVariant
from review_spine.core.timestamps import Clock, utc_now
from review_spine.review.filenames import parse_filename
from review_spine.review.models import IntakeCycleReport
from review_spine.review.status import ReviewStatus
from review_spine.stores.table import TableStoreAdapter

logger = get_logger(__name__)

INTAKE_ACTION = "intake"
PARSE_REJECTED_ACTION = "parse_rejected"
INTAKE_ROW_CREATED = "Intake row created"
ALREADY_EXISTED = "already existed"


class IntakeMonitor:
    """Registers new intake files as Intake rows.

    Args:
        documents: Document store holding the intake folder.
        tables: Table adapter serving the Intake variant.
        event_log: Processing/error log.
        intake_folder_id: Folder to poll.
        clock: Time source for log timestamps.
    """

    def __init__(
        self,
        documents: DocumentStore,
        tables: TableStoreAdapter,
        event_log: EventLogStore,
        intake_folder_id: str,
        *,
        clock: Clock = utc_now,
    ):
        self.documents = documents
        self.tables = tables
        self.event_log = event_log
        self.intake_folder_id = intake_folder_id
        self.clock = clock

    def list_intake_files(self) -> list[DriveItem]:
        """Files (not folders) currently in the intake folder."""
        return [item for item in self.documents.list_children(self.intake_folder_id) if not item.is_folder]

    def check_for_new_files(self) -> IntakeCycleReport:
        """Run one intake cycle."""
        report = IntakeCycleReport()
        files = self.list_intake_files()
        report.files_seen = len(files)
        known_ids = self.tables.file_ids(TableVariant.INTAKE)

        for item in files:
            try:
                if self._already_handled(item, known_ids):
                    report.skipped.append(item.id)
                    continue
                self._register(item)
            except ParseError as exc:
                self._log(item, PARSE_REJECTED_ACTION, "error", exc.message)
                logger.warning("intake_parse_rejected", file_id=item.id, file_name=item.name, error=exc.message)
                report.failed.append((item.id, exc.message))
                continue
            except Exception as exc:
                self._log(item, INTAKE_ACTION, "error", str(exc))
                self.event_log.insert_error(
                    ErrorLogEntry(action=INTAKE_ACTION, error=str(exc), file_id=item.id, timestamp=self._now())
                )
                logger.error("intake_file_failed", file_id=item.id, file_name=item.name, error=str(exc))
                report.failed.append((item.id, str(exc)))
                continue
            known_ids.add(item.id)
            report.ingested.append(item.id)

        logger.info(
            "intake_cycle_complete",
            files_seen=report.files_seen,
            ingested=len(report.ingested),
            skipped=len(report.skipped),
            failed=len(report.failed),
        )
        return report

    def _already_handled(self, item: DriveItem, known_ids: set[str]) -> bool:
        latest = self.event_log.latest_for_file(item.id, action=INTAKE_ACTION)
        if latest is not None and latest.status == "success":
            logger.debug("intake_skip_logged", file_id=item.id)
            return True

        rejected = self.event_log.latest_for_file(item.id, action=PARSE_REJECTED_ACTION)
        if rejected is not None and rejected.file_name == item.name:
            logger.debug("intake_skip_rejected", file_id=item.id, file_name=item.name)
            return True

        if item.id in known_ids:
            self._log(item, INTAKE_ACTION, "success", ALREADY_EXISTED)
            logger.info("intake_skip_existing_row", file_id=item.id)
            return True
        return False

    def _register(self, item: DriveItem) -> None:
        parsed = parse_filename(item.name)
        metadata = self.documents.get_metadata(item.id)
        fields = {
            "file_id": item.id,
            "file_name": parsed.stem,
            "file_url": metadata.url or item.url,
            "target_audience": parsed.target_audience,
            "purpose": parsed.purpose,
            "descriptive_name": parsed.descriptive_name,
            "version_date": parsed.version_date,
            "version": parsed.version,
            "uploader": metadata.uploader,
            "created_at": metadata.created_at,
            "priority": "Normal",
            "status": ReviewStatus.PENDING.value,
            "reviewer_notes": "",
            "routed_on": "",
            "last_action": INTAKE_ROW_CREATED,
            "error": "",
        }
        self.tables.append_row(TableVariant.INTAKE, fields)
        self._log(item, INTAKE_ACTION, "success", INTAKE_ROW_CREATED)
        logger.info("intake_row_created", file_id=item.id, file_name=parsed.stem)

    def _now(self) -> str:
        return self.clock().isoformat()

    def _log(self, item: DriveItem, action: str, status: str, details: str) -> None:
        self.event_log.insert(
            ProcessingLogEntry(
                file_id=item.id,
                file_name=item.name,
                action=action,
                status=status,
                details=details,
                timestamp=self._now(),
            )
        )


__all__ = ["IntakeMonitor"]
