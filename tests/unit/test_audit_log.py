"""Unit tests for the audit log."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from petition_archiver.audit_log import AuditLog, AuditSeverity
from petition_archiver.database import DatabaseManager
from petition_archiver.exceptions import DatabaseError


class TestAuditLog:
    """Tests for AuditLog class."""

    def test_init_log_storage(self):
        """Test initialization with log-only storage."""
        audit_log = AuditLog()
        assert audit_log.storage_type == "log"

    def test_init_invalid_storage(self):
        """Test initialization with invalid storage type raises error."""
        with pytest.raises(ValueError, match="Invalid storage_type"):
            AuditLog(storage_type="s3")

    def test_init_database_requires_manager(self):
        """Test database storage without a manager raises error."""
        with pytest.raises(ValueError, match="db_manager is required"):
            AuditLog(storage_type="database")

    @pytest.mark.asyncio
    async def test_record_renders_template(self):
        """Test the message is rendered from template and fields."""
        logger = MagicMock()
        audit_log = AuditLog(logger=logger)

        entry = await audit_log.record(
            "Archived {count} {label}.", {"count": 3, "label": "invalid signatures"}
        )

        assert entry["message"] == "Archived 3 invalid signatures."
        assert entry["severity"] == "info"
        assert entry["fields"] == {"count": 3, "label": "invalid signatures"}
        logger.info.assert_called_once()
        assert logger.info.call_args.args[0] == "Archived 3 invalid signatures."
        assert logger.info.call_args.kwargs["count"] == 3

    @pytest.mark.asyncio
    async def test_alert_logged_as_critical(self):
        """Test alert entries use the highest log level."""
        logger = MagicMock()
        audit_log = AuditLog(logger=logger)

        await audit_log.record("Archived {count} orphans.", {"count": 2}, AuditSeverity.ALERT)

        logger.critical.assert_called_once()
        assert logger.critical.call_args.kwargs["severity"] == "alert"
        logger.info.assert_not_called()

    @pytest.mark.asyncio
    async def test_record_database_storage(self):
        """Test entries are written to the audit table once it exists."""
        db_manager = MagicMock(spec=DatabaseManager)
        db_manager.execute = AsyncMock(return_value="INSERT 0 1")
        audit_log = AuditLog(storage_type="database", db_manager=db_manager, table="audit_entries")

        await audit_log.record("Deleted {count} rows.", {"count": 5})
        await audit_log.record("Deleted {count} rows.", {"count": 6})

        # one CREATE TABLE, two INSERTs
        assert db_manager.execute.call_count == 3
        create_query = db_manager.execute.call_args_list[0].args[0]
        assert 'CREATE TABLE IF NOT EXISTS "audit_entries"' in create_query
        insert_args = db_manager.execute.call_args_list[2].args
        assert insert_args[2] == "info"
        assert insert_args[4] == "Deleted 6 rows."
        assert json.loads(insert_args[5]) == {"count": 6}

    @pytest.mark.asyncio
    async def test_record_database_failure(self):
        """Test database write failures raise DatabaseError."""
        db_manager = MagicMock(spec=DatabaseManager)
        db_manager.execute = AsyncMock(side_effect=DatabaseError("disk full"))
        audit_log = AuditLog(storage_type="database", db_manager=db_manager)

        with pytest.raises(DatabaseError, match="Failed to write audit entry"):
            await audit_log.record("Deleted {count} rows.", {"count": 1})

    @pytest.mark.asyncio
    async def test_record_database_without_manager(self):
        """Test database storage without a manager raises DatabaseError."""
        audit_log = AuditLog(storage_type="log")
        audit_log.storage_type = "database"

        with pytest.raises(DatabaseError, match="no database manager is configured"):
            await audit_log.record("Deleted {count} rows.", {"count": 1})
