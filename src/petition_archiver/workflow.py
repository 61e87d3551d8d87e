"""Archive workflow orchestrator."""

import functools
import time
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from prometheus_client import CollectorRegistry

from petition_archiver.audit_log import AuditLog
from petition_archiver.categories import (
    INVALID_SIGNATURES,
    ORPHANED_VALIDATIONS,
    PROCESSED_SIGNATURES,
    PROCESSED_VALIDATIONS,
    build_categories,
)
from petition_archiver.config import ArchiveWorkflowConfig
from petition_archiver.database import DatabaseManager
from petition_archiver.exceptions import ArchiverError
from petition_archiver.locking import LockManager
from petition_archiver.metrics import ArchiveMetrics
from petition_archiver.mover import TransitionMover
from petition_archiver.orphans import OrphanReconciler
from petition_archiver.queue_status import DatabaseQueueStatus, QueueStatusProvider
from petition_archiver.status import StatusCode
from petition_archiver.store import RecordStore
from petition_archiver.watermark import WatermarkCalculator
from utils.logging import bind_run_context, clear_run_context, get_logger


class ArchiveWorkflow:
    """Runs one archive pass over every record category.

    Order of steps:

        compute watermark
        detect orphans against the current pending signatures
        archive invalid signatures (if enabled), delete invalid signatures
        archive the detected orphans then delete the archived keys (if enabled),
            otherwise delete the detected orphans directly
        archive processed signatures (if enabled), delete processed signatures
        archive processed validations (if enabled), delete processed validations

    Steps run one after another. Each commits on its own; a failure stops the
    run and leaves earlier steps in place, and the next run resumes from
    whatever is still in the processing tables.
    """

    def __init__(
        self,
        config: ArchiveWorkflowConfig,
        processing_db: Optional[DatabaseManager] = None,
        archive_db: Optional[DatabaseManager] = None,
        processing_store: Optional[RecordStore] = None,
        archive_store: Optional[RecordStore] = None,
        queue_status: Optional[QueueStatusProvider] = None,
        metrics: Optional[ArchiveMetrics] = None,
        lock_manager: Optional[LockManager] = None,
        clock: Callable[[], float] = time.time,
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        """Initialize archive workflow.

        Args:
            config: Workflow configuration, resolved once and not modified
            processing_db: Processing database (built from config if omitted)
            archive_db: Archive database (built from config if omitted)
            processing_store: Overrides the store built on processing_db
            archive_store: Overrides the store built on archive_db
            queue_status: Overrides the queue-status table reader
            metrics: Overrides the metrics built from config
            lock_manager: Overrides the lock manager built from config
            clock: Returns the current unix time
            logger: Optional logger instance
        """
        self.config = config
        self.logger = logger or get_logger("workflow")
        workflow = config.workflow
        tables = config.tables

        self.processing_db = processing_db or DatabaseManager(
            config.processing_database,
            statement_timeout=workflow.statement_timeout_seconds,
            logger=self.logger,
        )
        self.archive_db = archive_db or DatabaseManager(
            config.archive_database,
            statement_timeout=workflow.statement_timeout_seconds,
            logger=self.logger,
        )
        self.processing_store = processing_store or RecordStore(
            self.processing_db, timestamp_column=tables.timestamp_column, logger=self.logger
        )
        self.archive_store = archive_store or RecordStore(
            self.archive_db, timestamp_column=tables.timestamp_column, logger=self.logger
        )

        if metrics is None and config.monitoring.metrics_enabled:
            metrics = ArchiveMetrics(logger=self.logger, registry=CollectorRegistry())
        self.metrics = metrics

        if lock_manager is None and config.locking.enabled:
            lock_manager = LockManager(
                acquire_timeout_seconds=config.locking.acquire_timeout_seconds,
                poll_interval_seconds=config.locking.poll_interval_seconds,
                logger=self.logger,
            )
        self.lock_manager = lock_manager

        self.audit_log = AuditLog(
            storage_type=config.audit.storage_type,
            db_manager=self.archive_db if config.audit.storage_type == "database" else None,
            table=config.audit.table,
            logger=self.logger,
        )

        self.categories = build_categories(tables)
        self.calculator = WatermarkCalculator(
            queue_status=queue_status
            or DatabaseQueueStatus(
                self.processing_db, table=workflow.queue_status_table, logger=self.logger
            ),
            minimum_lifetime=workflow.minimum_signature_lifetime,
            required_queues=workflow.required_queues,
            clock=clock,
            logger=self.logger,
        )
        self.mover = TransitionMover(
            self.processing_store,
            self.archive_store,
            audit_log=self.audit_log,
            metrics=self.metrics,
            logger=self.logger,
        )
        self.reconciler = OrphanReconciler(
            self.processing_store,
            self.archive_store,
            category=self.categories[ORPHANED_VALIDATIONS],
            pending_table=tables.pending_signatures,
            key_column=tables.secret_key_column,
            audit_log=self.audit_log,
            metrics=self.metrics,
            logger=self.logger,
        )
        self.last_run: dict[str, Any] = {}

    async def run(
        self,
        job_id: str,
        server_name: str,
        worker_name: str,
        options: Optional[dict[str, Any]] = None,
    ) -> StatusCode:
        """Run the workflow once.

        Args:
            job_id: Identifier of this invocation
            server_name: Host the invocation runs on
            worker_name: Worker running the invocation
            options: Reserved; currently ignored

        Returns:
            StatusCode.OK, or StatusCode.SERVER_ERROR if any step failed
        """
        correlation_id = uuid.uuid4().hex
        bind_run_context(
            job_id=job_id,
            server_name=server_name,
            worker_name=worker_name,
            correlation_id=correlation_id,
        )

        stats: dict[str, Any] = {
            "job_id": job_id,
            "correlation_id": correlation_id,
            "archive_enabled": self.config.workflow.archive_invalid_signatures_enabled,
            "watermark": None,
            "categories": {},
            "steps_completed": [],
            "failed_step": None,
            "start_time": datetime.now(timezone.utc).isoformat(),
        }
        self.last_run = stats

        self.logger.info(
            "Starting archive workflow",
            archive_enabled=stats["archive_enabled"],
            options=options or {},
        )

        status = StatusCode.SERVER_ERROR
        try:
            await self.processing_db.connect()
            await self.archive_db.connect()

            if self.lock_manager:
                async with self.lock_manager.hold(self.config.workflow.job_name, self.processing_db):
                    await self._run_steps(stats)
            else:
                await self._run_steps(stats)

            status = StatusCode.OK
        except ArchiverError as e:
            stats["error"] = e.message
            self.logger.error(
                "Archive workflow failed",
                failed_step=stats["failed_step"],
                error=str(e),
                error_type=type(e).__name__,
            )
        except Exception as e:
            stats["error"] = str(e)
            self.logger.exception(
                "Archive workflow failed with unexpected error",
                failed_step=stats["failed_step"],
                error=str(e),
            )
        finally:
            await self._disconnect()
            stats["status"] = "ok" if status is StatusCode.OK else "server_error"
            stats["end_time"] = datetime.now(timezone.utc).isoformat()
            self._publish_metrics(stats["status"])
            self.logger.info(
                "Archive workflow finished",
                status=stats["status"],
                watermark=stats["watermark"],
                categories=stats["categories"],
                steps_completed=len(stats["steps_completed"]),
            )
            clear_run_context()

        return status

    async def _run_steps(self, stats: dict[str, Any]) -> None:
        archive_enabled = stats["archive_enabled"]

        watermark = await self._step(stats, "compute_watermark", self.calculator.calculate)
        stats["watermark"] = watermark
        if self.metrics:
            self.metrics.set_watermark(watermark)

        # Invalid-signature deletion removes potential matches, so orphans are
        # detected against the pending signatures as they stand now.
        orphan_keys = await self._step(
            stats, "detect_orphans", self.reconciler.find_orphans, watermark
        )

        await self._transition(stats, INVALID_SIGNATURES, watermark, archive_enabled)

        orphan_counts = self._category_counts(stats, ORPHANED_VALIDATIONS)
        if archive_enabled:
            keys = await self._step(
                stats, "archive_orphans", self.reconciler.archive_orphans, watermark, orphan_keys
            )
            orphan_counts["archived"] = len(keys)
            orphan_counts["deleted"] = await self._step(
                stats, "delete_orphans", self.reconciler.delete_orphans, watermark, keys
            )
        else:
            orphan_counts["deleted"] = await self._step(
                stats,
                "delete_orphans_direct",
                functools.partial(self.reconciler.delete_orphans, archived=False),
                watermark,
                orphan_keys,
            )

        await self._transition(stats, PROCESSED_SIGNATURES, watermark, archive_enabled)
        await self._transition(stats, PROCESSED_VALIDATIONS, watermark, archive_enabled)

    async def _transition(
        self, stats: dict[str, Any], name: str, watermark: int, archive_enabled: bool
    ) -> None:
        counts = self._category_counts(stats, name)
        passes = {"archive": "archived", "delete": "deleted"}

        async def run_step(
            pass_name: str, func: Callable[..., Awaitable[Any]], *args: Any
        ) -> Any:
            result = await self._step(stats, f"{pass_name}_{name}", func, *args)
            counts[passes[pass_name]] = result
            return result

        await self.mover.move(
            self.categories[name], watermark, archive=archive_enabled, run_step=run_step
        )

    @staticmethod
    def _category_counts(stats: dict[str, Any], name: str) -> dict[str, int]:
        return stats["categories"].setdefault(name, {"archived": 0, "deleted": 0})

    async def _step(
        self,
        stats: dict[str, Any],
        name: str,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> Any:
        """Run one step, recording its duration and completion."""
        self.logger.debug("Workflow step started", step=name)
        started = time.monotonic()
        try:
            result = await func(*args)
        except Exception:
            stats["failed_step"] = name
            raise
        finally:
            if self.metrics:
                self.metrics.record_step_duration(name, time.monotonic() - started)

        stats["steps_completed"].append(name)
        return result

    async def _disconnect(self) -> None:
        for db in (self.processing_db, self.archive_db):
            try:
                await db.disconnect()
            except Exception as e:
                self.logger.warning("Failed to close connection pool", error=str(e))

    def _publish_metrics(self, status: str) -> None:
        if not self.metrics:
            return
        self.metrics.record_run_status(status)
        gateway = self.config.monitoring.pushgateway_url
        if gateway:
            self.metrics.push(gateway, job=self.config.workflow.job_name)


async def run_archive_workflow(
    job_id: str,
    server_name: str,
    worker_name: str,
    options: Optional[dict[str, Any]] = None,
    *,
    config: ArchiveWorkflowConfig,
    logger: Optional[structlog.BoundLogger] = None,
) -> StatusCode:
    """Build a workflow from configuration and run it once.

    Args:
        job_id: Identifier of this invocation
        server_name: Host the invocation runs on
        worker_name: Worker running the invocation
        options: Reserved; currently ignored
        config: Workflow configuration
        logger: Optional logger instance

    Returns:
        Workflow status code
    """
    workflow = ArchiveWorkflow(config, logger=logger)
    return await workflow.run(job_id, server_name, worker_name, options)
