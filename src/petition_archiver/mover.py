"""Archive-then-delete transition of one record category."""

from collections.abc import Awaitable, Callable
from typing import Any, Optional

import structlog

from petition_archiver.audit_log import AuditLog, AuditSeverity
from petition_archiver.categories import RecordCategory
from petition_archiver.metrics import ArchiveMetrics
from petition_archiver.store import RecordStore
from utils.logging import get_logger

StepRunner = Callable[..., Awaitable[Any]]


async def _run_directly(name: str, func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
    return await func(*args)


class TransitionMover:
    """Moves closed records from a processing table to its archive table.

    The move is two independent passes: every closed row is selected and
    inserted into the archive store, then the processing store deletes by the
    same predicate. The stores live in separate databases with no shared
    transaction, so a crash between the passes leaves rows in both places and
    the next run archives them again. Archive tables must tolerate duplicates.
    """

    def __init__(
        self,
        processing_store: RecordStore,
        archive_store: RecordStore,
        audit_log: AuditLog,
        metrics: Optional[ArchiveMetrics] = None,
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        """Initialize transition mover.

        Args:
            processing_store: Store holding the live tables
            archive_store: Store holding the archive tables
            audit_log: Audit log receiving one entry per pass
            metrics: Optional metrics sink
            logger: Optional logger instance
        """
        self.processing_store = processing_store
        self.archive_store = archive_store
        self.audit_log = audit_log
        self.metrics = metrics
        self.logger = logger or get_logger("mover")

    async def move(
        self,
        category: RecordCategory,
        watermark: int,
        archive: bool = True,
        run_step: Optional[StepRunner] = None,
    ) -> int:
        """Archive (if enabled) and then delete every closed record of a category.

        Args:
            category: Record category to move
            watermark: Records with timestamp_validation_close below this are closed
            archive: Copy records into the archive table before deleting them
            run_step: Called as ``run_step(pass_name, func, *args)`` for each
                pass ("archive", "delete") and must await ``func(*args)``.
                Lets callers time and record the passes.

        Returns:
            Number of records archived (0 when archiving is disabled)

        Raises:
            DatabaseError: If any store operation fails; nothing is deleted
                when the archive pass fails
        """
        run_step = run_step or _run_directly
        archived = 0
        if archive:
            archived = await run_step("archive", self.archive, category, watermark)
        await run_step("delete", self.delete, category, watermark)
        return archived

    async def archive(self, category: RecordCategory, watermark: int) -> int:
        """Copy every closed record of a category into its archive table.

        Returns:
            Number of rows inserted
        """
        rows = await self.processing_store.select_closed_before(
            category.processing_table, watermark
        )
        self.logger.debug(
            "Records eligible for archival",
            category=category.name,
            table=category.processing_table,
            count=len(rows),
        )

        archived = 0
        for row in rows:
            await self.archive_store.insert_row(category.archive_table, row)
            archived += 1

        await self.audit_log.record(
            "Archived {count} {label} from {source} to {destination}.",
            {
                "count": archived,
                "label": category.label,
                "source": category.processing_table,
                "destination": category.archive_table,
                "watermark": watermark,
            },
            AuditSeverity.INFO,
        )

        if self.metrics:
            store_size = await self.archive_store.count_rows(category.archive_table)
            self.metrics.record_items_added(category.archive_table, archived, store_size)

        return archived

    async def delete(self, category: RecordCategory, watermark: int) -> int:
        """Delete every closed record of a category from its processing table.

        Returns:
            Number of rows deleted
        """
        deleted = await self.processing_store.delete_closed_before(
            category.processing_table, watermark
        )

        await self.audit_log.record(
            "Deleted {count} {label} from {source}.",
            {
                "count": deleted,
                "label": category.label,
                "source": category.processing_table,
                "watermark": watermark,
            },
            AuditSeverity.INFO,
        )

        if self.metrics:
            store_size = await self.processing_store.count_rows(category.processing_table)
            self.metrics.record_items_removed(category.processing_table, deleted, store_size)

        return deleted
