"""
Review service manager.

Composition root for review-spine: owns the intake and router polling
loops, the archive processor, and the read-side queries the API and CLI
expose.  Every collaborator is injected; :func:`build_manager` wires them
from :class:`~review_spine.core.settings.ReviewSpineSettings`.

Architecture:
    ::

        ReviewServiceManager
        ├── intake_loop  : PollingLoop(IntakeMonitor.check_for_new_files)
        ├── router_loop  : PollingLoop(StatusRouter.process_status_changes)
        ├── archive      : ArchiveProcessor (single in-flight run)
        ├── tables       : TableStoreAdapter
        └── event_log    : EventLogStore

Tags:
    service-manager, composition-root, review-spine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from review_spine.core.errors import ConfigError, ConflictError
from review_spine.core.logging import get_logger
from review_spine.core.protocols import (
    DocumentStore,
    DriveItem,
    ErrorLogEntry,
    EventLogStore,
    ProcessingLogEntry,
    TableStore,
)
from review_spine.core.retry import ExponentialBackoff
from review_spine.core.schema import TableVariant, get_schema
from review_spine.core.settings import ReviewSpineSettings, StoreBackend
from review_spine.review.archive import ArchiveBatch, ArchiveProcessor
from review_spine.review.intake import IntakeMonitor
from review_spine.review.models import IntakeCycleReport, ReviewRow, RouterCycleReport
from review_spine.review.router import StatusRouter
from review_spine.scheduling.polling import PollingLoop
from review_spine.stores.event_log import InMemoryEventLog, SqliteEventLog
from review_spine.stores.graph import GraphClient, GraphDocumentStore, GraphWorkbookTableStore
from review_spine.stores.memory import InMemoryDocumentStore, InMemoryTableStore
from review_spine.stores.table import TableStoreAdapter

logger = get_logger(__name__)

ARCHIVE_ACTION = "archive"


@dataclass
class ServiceHealth:
    """Health of the whole service."""

    healthy: bool
    loops: dict[str, dict[str, Any]]
    archive_in_progress: bool = False
    recent_error_count: int = 0
    stats: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.healthy,
            "loops": self.loops,
            "archive_in_progress": self.archive_in_progress,
            "recent_error_count": self.recent_error_count,
            "stats": self.stats,
        }


class ReviewServiceManager:
    """Starts, stops and inspects the review pipeline."""

    def __init__(
        self,
        *,
        intake_monitor: IntakeMonitor,
        status_router: StatusRouter,
        archive_processor: ArchiveProcessor,
        tables: TableStoreAdapter,
        event_log: EventLogStore,
        intake_interval_seconds: float = 120.0,
        router_interval_seconds: float = 300.0,
        run_on_start: bool = True,
        stop_timeout_seconds: float | None = None,
        on_close: Iterable[Callable[[], None]] = (),
    ):
        self.intake_monitor = intake_monitor
        self.status_router = status_router
        self.archive_processor = archive_processor
        self.tables = tables
        self.event_log = event_log
        self.intake_loop = PollingLoop(
            "intake",
            intake_monitor.check_for_new_files,
            intake_interval_seconds,
            run_on_start=run_on_start,
            stop_timeout_seconds=stop_timeout_seconds,
        )
        self.router_loop = PollingLoop(
            "router",
            status_router.process_status_changes,
            router_interval_seconds,
            run_on_start=run_on_start,
            stop_timeout_seconds=stop_timeout_seconds,
        )
        self._on_close = list(on_close)

    @property
    def loops(self) -> list[PollingLoop]:
        return [self.intake_loop, self.router_loop]

    # ── Lifecycle ────────────────────────────────────────────────

    def verify_schemas(self) -> None:
        """Check every review table against the schema registry.

        Raises:
            SchemaMismatchError: A live table's columns differ from the registry.
        """
        for variant in TableVariant:
            self.tables.verify_schema(variant)
        logger.debug("review_schemas_verified")

    def start(self) -> dict[str, Any]:
        """Verify the table schemas, then start both loops."""
        self.verify_schemas()
        for loop in self.loops:
            loop.start()
        logger.info("review_service_started")
        return self.status()

    def stop(self) -> dict[str, Any]:
        for loop in self.loops:
            if loop.is_running:
                loop.stop()
        logger.info("review_service_stopped")
        return self.status()

    def restart(self) -> dict[str, Any]:
        self.stop()
        return self.start()

    def close(self) -> None:
        """Stop the loops and release remote clients and files."""
        self.stop()
        for closer in self._on_close:
            closer()
        self._on_close.clear()

    # ── Inspection ───────────────────────────────────────────────

    def status(self) -> dict[str, Any]:
        return {
            "running": any(loop.is_running for loop in self.loops),
            "loops": {
                loop.name: {"state": loop.state.value, "interval_seconds": loop.interval_seconds}
                for loop in self.loops
            },
            "archive_in_progress": self.archive_processor.in_progress,
        }

    def health(self) -> ServiceHealth:
        loop_health = [loop.health() for loop in self.loops]
        return ServiceHealth(
            healthy=all(h.healthy for h in loop_health),
            loops={h.name: h.to_dict() for h in loop_health},
            archive_in_progress=self.archive_processor.in_progress,
            recent_error_count=len(self.error_logs()),
            stats=self.processing_stats(),
        )

    # ── Manual operations ────────────────────────────────────────

    def trigger_intake(self) -> IntakeCycleReport:
        return self.intake_loop.trigger()

    def trigger_routing(self) -> RouterCycleReport:
        return self.router_loop.trigger()

    def run_archive(self, sprint_name: str) -> ArchiveBatch:
        """Run an archive batch; ``ArchiveInProgressError`` if one is in flight."""
        batch = self.archive_processor.process_archive(sprint_name)
        if batch.has_failures:
            self.event_log.insert_error(
                ErrorLogEntry(action=ARCHIVE_ACTION, error=f"Archive run {batch.sprint_name} reported failures")
            )
        return batch

    # ── Queries ──────────────────────────────────────────────────

    def processing_logs(self, limit: int = 100) -> list[ProcessingLogEntry]:
        return self.event_log.query(limit=limit)

    def error_logs(self, limit: int = 50) -> list[ErrorLogEntry]:
        return self.event_log.errors(limit=limit)

    def processing_stats(self) -> list[dict[str, Any]]:
        return self.event_log.stats()

    def intake_rows(self) -> list[ReviewRow]:
        return self.tables.list_rows(TableVariant.INTAKE)

    def secondary_review_rows(self) -> list[ReviewRow]:
        return self.tables.list_rows(TableVariant.SECONDARY_REVIEW)

    def intake_files(self) -> list[DriveItem]:
        return self.intake_monitor.list_intake_files()


# =============================================================================
# FACTORY
# =============================================================================


def table_ids(settings: ReviewSpineSettings) -> dict[TableVariant, str]:
    return {
        TableVariant.INTAKE: settings.intake_table,
        TableVariant.SECONDARY_REVIEW: settings.secondary_review_table,
        TableVariant.ARCHIVE: settings.archive_table,
    }


def _memory_collaborators(settings: ReviewSpineSettings) -> tuple[DocumentStore, TableStore, dict[str, str]]:
    documents = InMemoryDocumentStore()
    folders = {
        "intake": documents.add_folder(settings.intake_folder_path, folder_id="intake"),
        "closed": documents.add_folder(settings.closed_folder_path, folder_id="closed"),
        "archive": documents.add_folder(settings.archive_root_path, folder_id="archive"),
    }
    store = InMemoryTableStore()
    for variant, table_id in table_ids(settings).items():
        store.create_table(table_id, get_schema(variant).headers)
    return documents, store, folders


def build_manager(
    settings: ReviewSpineSettings,
    *,
    transport: Any = None,
) -> ReviewServiceManager:
    """Wire a :class:`ReviewServiceManager` from settings.

    Raises:
        ConfigError: The graph backend is selected without ``graph_site``.
    """
    on_close: list[Callable[[], None]] = []

    if settings.store_backend == StoreBackend.MEMORY:
        documents, store, folders = _memory_collaborators(settings)
        event_log: EventLogStore = InMemoryEventLog()
    else:
        if not settings.graph_site:
            raise ConfigError("REVIEW_SPINE_GRAPH_SITE is required for the graph backend")
        token = settings.graph_access_token.get_secret_value() if settings.graph_access_token else None
        client = GraphClient(
            settings.graph_site,
            token,
            base_url=settings.graph_base_url,
            timeout=settings.graph_timeout_seconds,
            transport=transport,
        )
        on_close.append(client.close)
        try:
            graph_documents = GraphDocumentStore(client)
            documents = graph_documents
            store = GraphWorkbookTableStore(
                client,
                {
                    settings.intake_table: settings.intake_workbook_path,
                    settings.secondary_review_table: settings.secondary_review_workbook_path,
                    settings.archive_table: settings.archive_workbook_path,
                },
            )
            folders = {
                "intake": graph_documents.resolve_path(settings.intake_folder_path),
                "closed": graph_documents.resolve_path(settings.closed_folder_path),
                "archive": graph_documents.resolve_path(settings.archive_root_path),
            }
            sqlite_log = SqliteEventLog(settings.event_log_path)
            on_close.append(sqlite_log.close)
            event_log = sqlite_log
        except Exception:
            logger.error("review_manager_build_failed", backend=settings.store_backend.value)
            for closer in reversed(on_close):
                closer()
            raise

    tables = TableStoreAdapter(
        store,
        table_ids(settings),
        conflict_strategy=ExponentialBackoff(
            max_retries=settings.conflict_max_retries,
            base_delay=settings.conflict_base_delay,
            max_delay=settings.conflict_max_delay,
            jitter_range=settings.conflict_jitter,
            retryable_errors=(ConflictError,),
        ),
    )
    return ReviewServiceManager(
        intake_monitor=IntakeMonitor(documents, tables, event_log, folders["intake"]),
        status_router=StatusRouter(documents, tables, event_log, folders["closed"]),
        archive_processor=ArchiveProcessor(
            documents,
            tables,
            folders["archive"],
            folder_prefix=settings.archive_folder_prefix,
            settle_seconds=settings.copy_settle_seconds,
            poll_attempts=settings.copy_poll_attempts,
            poll_delay_seconds=settings.copy_poll_delay_seconds,
        ),
        tables=tables,
        event_log=event_log,
        intake_interval_seconds=settings.intake_interval_seconds,
        router_interval_seconds=settings.router_interval_seconds,
        run_on_start=settings.run_on_start,
        stop_timeout_seconds=settings.stop_timeout_seconds,
        on_close=on_close,
    )


__all__ = ["ReviewServiceManager", "ServiceHealth", "build_manager", "table_ids"]
