"""Unit tests for the queue-status reader."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from petition_archiver.database import DatabaseManager
from petition_archiver.exceptions import DatabaseError, QueueStatusError
from petition_archiver.queue_status import DatabaseQueueStatus


@pytest.fixture
def db_manager() -> MagicMock:
    return MagicMock(spec=DatabaseManager)


@pytest.mark.asyncio
async def test_last_emptied_timestamps(db_manager: MagicMock) -> None:
    """Test rows are mapped queue name to integer timestamp."""
    db_manager.fetch = AsyncMock(
        return_value=[
            {"queue_name": "validations_queue", "last_emptied": 1700000000},
            {"queue_name": "signatures_submitted_queue", "last_emptied": None},
        ]
    )

    status = DatabaseQueueStatus(db_manager, table="queue_status")
    timestamps = await status.last_emptied_timestamps()

    assert timestamps == {"validations_queue": 1700000000, "signatures_submitted_queue": 0}
    assert 'FROM "queue_status"' in db_manager.fetch.call_args.args[0]


@pytest.mark.asyncio
async def test_empty_table_returns_empty_mapping(db_manager: MagicMock) -> None:
    """Test an empty table is reported as-is for the caller to reject."""
    db_manager.fetch = AsyncMock(return_value=[])

    assert await DatabaseQueueStatus(db_manager).last_emptied_timestamps() == {}


@pytest.mark.asyncio
async def test_database_failure_raises_queue_status_error(db_manager: MagicMock) -> None:
    """Test database errors become QueueStatusError."""
    db_manager.fetch = AsyncMock(side_effect=DatabaseError("connection lost"))

    with pytest.raises(QueueStatusError, match="connection lost") as exc_info:
        await DatabaseQueueStatus(db_manager, table="queue_status").last_emptied_timestamps()

    assert exc_info.value.context["table"] == "queue_status"
