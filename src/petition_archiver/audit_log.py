"""Audit log for record transitions."""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

import structlog

from petition_archiver.database import DatabaseManager
from petition_archiver.exceptions import DatabaseError
from utils import safe_identifier
from utils.logging import get_logger


class AuditSeverity(Enum):
    """Severity of an audit entry (syslog names)."""

    INFO = "info"
    NOTICE = "notice"
    WARNING = "warning"
    ERROR = "error"
    ALERT = "alert"


_LOG_METHODS = {
    AuditSeverity.INFO: "info",
    AuditSeverity.NOTICE: "info",
    AuditSeverity.WARNING: "warning",
    AuditSeverity.ERROR: "error",
    AuditSeverity.ALERT: "critical",
}


class AuditLog:
    """Writes audit entries to the structured log and optionally a table.

    An entry is a message template plus the numeric fields it refers to, e.g.
    ``record("Archived {count} {label}", {"count": 3, "label": "..."})``.
    """

    def __init__(
        self,
        storage_type: str = "log",
        db_manager: Optional[DatabaseManager] = None,
        table: str = "archive_workflow_audit_log",
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        """Initialize audit log.

        Args:
            storage_type: "log" or "database"
            db_manager: Database manager (required if storage_type is "database")
            table: Audit table name for database storage
            logger: Optional logger instance
        """
        if storage_type not in ("log", "database"):
            raise ValueError(f"Invalid storage_type: {storage_type}. Must be 'log' or 'database'")
        if storage_type == "database" and db_manager is None:
            raise ValueError("db_manager is required for database storage type")

        self.storage_type = storage_type
        self.db_manager = db_manager
        self.table = table
        self.logger = logger or get_logger("audit_log")
        self._table_ready = False

    async def record(
        self,
        template: str,
        fields: Optional[dict[str, Any]] = None,
        severity: AuditSeverity = AuditSeverity.INFO,
    ) -> dict[str, Any]:
        """Record one audit entry.

        Args:
            template: Message template using str.format fields
            fields: Values substituted into the template, stored alongside it
            severity: Entry severity

        Returns:
            The entry as written
        """
        fields = fields or {}
        entry = {
            "timestamp": datetime.now(timezone.utc),
            "severity": severity.value,
            "template": template,
            "message": template.format(**fields),
            "fields": fields,
        }

        log = getattr(self.logger, _LOG_METHODS[severity])
        log(entry["message"], audit=True, severity=severity.value, **fields)

        if self.storage_type == "database":
            await self._write_to_database(entry)

        return entry

    async def _write_to_database(self, entry: dict[str, Any]) -> None:
        if self.db_manager is None:
            raise DatabaseError(
                "Audit storage is 'database' but no database manager is configured",
                context={"table": self.table},
            )
        table = safe_identifier(self.table)

        try:
            if not self._table_ready:
                await self.db_manager.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        id BIGSERIAL PRIMARY KEY,
                        timestamp TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                        severity TEXT NOT NULL,
                        template TEXT NOT NULL,
                        message TEXT NOT NULL,
                        fields JSONB
                    )
                    """
                )
                self._table_ready = True

            await self.db_manager.execute(
                f"""
                INSERT INTO {table} (timestamp, severity, template, message, fields)
                VALUES ($1, $2, $3, $4, $5)
                """,
                entry["timestamp"],
                entry["severity"],
                entry["template"],
                entry["message"],
                json.dumps(entry["fields"], default=str),
            )
        except DatabaseError as e:
            raise DatabaseError(
                f"Failed to write audit entry: {e.message}",
                context={"table": self.table, "severity": entry["severity"]},
            ) from e
