"""Detection and archival of validations that never matched a signature."""

from collections.abc import Collection
from typing import Any, Optional

import structlog

from petition_archiver.audit_log import AuditLog, AuditSeverity
from petition_archiver.categories import RecordCategory
from petition_archiver.exceptions import DatabaseError
from petition_archiver.metrics import ArchiveMetrics
from petition_archiver.store import RecordStore
from utils.logging import get_logger


class OrphanReconciler:
    """Finds, archives and deletes orphaned validations.

    A validation is orphaned when no pending signature shares its secret
    validation key. Signature intake and validation intake are separate queues
    with no ordering guarantee between them, so a legitimate validation can
    briefly exist before its signature. Detection is therefore limited to
    validations closed before the watermark, where every queue has drained
    and any legitimate pair has settled. What remains unmatched there is
    treated as tampering or a forged or stale validation link.
    """

    def __init__(
        self,
        processing_store: RecordStore,
        archive_store: RecordStore,
        category: RecordCategory,
        pending_table: str,
        key_column: str = "secret_validation_key",
        audit_log: Optional[AuditLog] = None,
        metrics: Optional[ArchiveMetrics] = None,
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        """Initialize orphan reconciler.

        Args:
            processing_store: Store holding validations and pending signatures
            archive_store: Store holding the orphan archive table
            category: Validations table paired with the orphan archive table
            pending_table: Pending signatures table matched against
            key_column: Column shared by validations and pending signatures
            audit_log: Audit log receiving alert-level entries
            metrics: Optional metrics sink
            logger: Optional logger instance
        """
        self.processing_store = processing_store
        self.archive_store = archive_store
        self.category = category
        self.pending_table = pending_table
        self.key_column = key_column
        self.logger = logger or get_logger("orphans")
        self.audit_log = audit_log or AuditLog(logger=self.logger)
        self.metrics = metrics

    async def _orphan_rows(self, watermark: int) -> list[dict[str, Any]]:
        return await self.processing_store.select_unmatched_before(
            self.category.processing_table,
            self.pending_table,
            self.key_column,
            watermark,
        )

    async def find_orphans(self, watermark: int) -> set[str]:
        """Return the secret keys of validations orphaned as of the watermark."""
        rows = await self._orphan_rows(watermark)
        return {row[self.key_column] for row in rows}

    async def archive_orphans(
        self, watermark: int, candidates: Optional[Collection[str]] = None
    ) -> set[str]:
        """Copy orphaned validations into the orphan archive table.

        A key is returned only when every row carrying it was inserted. If any
        row of a key fails, the failure is logged and the whole key is left
        out, so the deletion step that consumes the result never removes a row
        that was not archived.

        Args:
            watermark: Current watermark
            candidates: Keys detected earlier in the run. When given, only
                rows with these keys are archived, so signatures deleted since
                detection cannot turn a matched validation into an orphan.

        Returns:
            Secret keys whose validations were all archived
        """
        rows = await self._orphan_rows(watermark)
        if candidates is not None:
            rows = [row for row in rows if row[self.key_column] in candidates]

        inserted: set[str] = set()
        failed_keys: set[str] = set()
        failed = 0
        for row in rows:
            key = row[self.key_column]
            try:
                await self.archive_store.insert_row(self.category.archive_table, row)
            except DatabaseError as e:
                failed += 1
                failed_keys.add(key)
                self.logger.error(
                    "Failed to archive orphaned validation",
                    table=self.category.archive_table,
                    error=e.message,
                )
                continue
            inserted.add(key)

        archived = inserted - failed_keys
        await self.audit_log.record(
            "Archived {count} {label} from {source} to {destination}.",
            {
                "count": len(rows) - failed,
                "failed": failed,
                "label": self.category.label,
                "source": self.category.processing_table,
                "destination": self.category.archive_table,
                "watermark": watermark,
            },
            AuditSeverity.ALERT,
        )

        if self.metrics:
            store_size = await self.archive_store.count_rows(self.category.archive_table)
            self.metrics.record_items_added(
                self.category.archive_table, len(rows) - failed, store_size
            )

        return archived

    async def delete_orphans(
        self,
        watermark: int,
        keys: Optional[Collection[str]] = None,
        *,
        archived: Optional[bool] = None,
    ) -> int:
        """Delete orphaned validations from the processing store.

        Args:
            watermark: Current watermark
            keys: Keys to delete. When omitted, orphans are detected afresh
                and all of them are deleted.
            archived: Whether the keys were archived first. Deleting orphans
                that were never archived is audited at alert severity.
                Defaults to True when keys are supplied.

        Returns:
            Number of validations deleted
        """
        if archived is None:
            archived = keys is not None
        if keys is None:
            keys = await self.find_orphans(watermark)

        deleted = 0
        if keys:
            deleted = await self.processing_store.delete_keys_closed_before(
                self.category.processing_table,
                self.key_column,
                keys,
                watermark,
            )

        await self.audit_log.record(
            "Deleted {count} {label} from {source}.",
            {
                "count": deleted,
                "label": self.category.label,
                "source": self.category.processing_table,
                "watermark": watermark,
            },
            AuditSeverity.INFO if archived else AuditSeverity.ALERT,
        )

        if self.metrics:
            store_size = await self.processing_store.count_rows(self.category.processing_table)
            self.metrics.record_items_removed(self.category.processing_table, deleted, store_size)

        return deleted
