"""Pytest configuration and shared fixtures."""

from collections import defaultdict
from collections.abc import Callable, Collection
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from petition_archiver.config import ArchiveWorkflowConfig
from petition_archiver.database import DatabaseManager
from petition_archiver.exceptions import DatabaseError
from petition_archiver.queue_status import QueueStatusProvider

TIMESTAMP_COLUMN = "timestamp_validation_close"


class InMemoryRecordStore:
    """RecordStore stand-in keeping each table as a list of row dictionaries."""

    def __init__(self, name: str, timestamp_column: str = TIMESTAMP_COLUMN) -> None:
        self.name = name
        self.timestamp_column = timestamp_column
        self.tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.fail_insert: Optional[Callable[[str, dict[str, Any]], bool]] = None
        self.calls: list[str] = []

    def add(self, table: str, *rows: dict[str, Any]) -> None:
        self.tables[table].extend(dict(row) for row in rows)

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self.tables[table]

    async def select_closed_before(self, table: str, watermark: int) -> list[dict[str, Any]]:
        self.calls.append(f"select:{table}")
        return [dict(r) for r in self.tables[table] if r[self.timestamp_column] < watermark]

    async def insert_row(self, table: str, row: dict[str, Any]) -> None:
        self.calls.append(f"insert:{table}")
        if self.fail_insert and self.fail_insert(table, row):
            raise DatabaseError("insert failed", context={"table": table})
        self.tables[table].append(dict(row))

    async def delete_closed_before(self, table: str, watermark: int) -> int:
        self.calls.append(f"delete:{table}")
        before = len(self.tables[table])
        self.tables[table] = [
            r for r in self.tables[table] if not r[self.timestamp_column] < watermark
        ]
        return before - len(self.tables[table])

    async def count_rows(self, table: str) -> int:
        return len(self.tables[table])

    async def select_unmatched_before(
        self, table: str, match_table: str, key_column: str, watermark: int
    ) -> list[dict[str, Any]]:
        self.calls.append(f"select_unmatched:{table}")
        matched = {r[key_column] for r in self.tables[match_table]}
        return [
            dict(r)
            for r in self.tables[table]
            if r[self.timestamp_column] < watermark and r[key_column] not in matched
        ]

    async def delete_keys_closed_before(
        self, table: str, key_column: str, keys: Collection[str], watermark: int
    ) -> int:
        self.calls.append(f"delete_keys:{table}")
        if not keys:
            return 0
        before = len(self.tables[table])
        self.tables[table] = [
            r
            for r in self.tables[table]
            if not (r[key_column] in keys and r[self.timestamp_column] < watermark)
        ]
        return before - len(self.tables[table])


class StaticQueueStatus(QueueStatusProvider):
    """Queue status returning a fixed mapping (or raising a fixed error)."""

    def __init__(
        self, timestamps: Optional[dict[str, int]] = None, error: Optional[Exception] = None
    ) -> None:
        self.timestamps = timestamps or {}
        self.error = error

    async def last_emptied_timestamps(self) -> dict[str, int]:
        if self.error:
            raise self.error
        return dict(self.timestamps)


def pending_signature(sid: int, key: str, closes_at: int, **fields: Any) -> dict[str, Any]:
    row = {
        "sid": sid,
        "secret_validation_key": key,
        "source_api_key": "api-key",
        "petition_id": "petition-1",
        "timestamp_petition_close": closes_at,
        "timestamp_validation_close": closes_at,
        "first_name": "Ada",
        "last_name": "Lovelace",
        "zip": "12345",
        "email": f"signer{sid}@example.com",
        "timestamp_initiated_validation": closes_at - 100,
        "timestamp_received_signature": closes_at - 200,
    }
    row.update(fields)
    return row


def validation(vid: int, key: str, closes_at: int, **fields: Any) -> dict[str, Any]:
    row = {
        "vid": vid,
        "secret_validation_key": key,
        "timestamp_received_validation": closes_at - 50,
        "timestamp_validation_close": closes_at,
        "client_ip": "203.0.113.7",
        "petition_id": "petition-1",
    }
    row.update(fields)
    return row


@pytest.fixture
def processing_store() -> InMemoryRecordStore:
    return InMemoryRecordStore("processing")


@pytest.fixture
def archive_store() -> InMemoryRecordStore:
    return InMemoryRecordStore("archive")


@pytest.fixture
def workflow_config_data() -> dict[str, Any]:
    """Raw configuration as it would be parsed from YAML."""
    return {
        "version": "1.0",
        "processing_database": {
            "name": "petitions",
            "host": "localhost",
            "user": "petitions",
            "password": "secret",
        },
        "archive_database": {
            "name": "petitions_archive",
            "host": "localhost",
            "user": "petitions",
            "password": "secret",
        },
        "locking": {"enabled": False},
        "monitoring": {"metrics_enabled": False},
    }


@pytest.fixture
def workflow_config(workflow_config_data: dict[str, Any]) -> ArchiveWorkflowConfig:
    return ArchiveWorkflowConfig.model_validate(workflow_config_data)


@pytest.fixture
def mock_db_manager() -> MagicMock:
    """Database manager whose pool lifecycle calls are no-ops."""
    db_manager = MagicMock(spec=DatabaseManager)
    db_manager.name = "test_db"
    db_manager.connect = AsyncMock()
    db_manager.disconnect = AsyncMock()
    return db_manager
