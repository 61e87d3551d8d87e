"""Queue-status collaborator: when was each intake queue last emptied."""

from abc import ABC, abstractmethod
from typing import Optional

import structlog

from petition_archiver.database import DatabaseManager
from petition_archiver.exceptions import DatabaseError, QueueStatusError
from utils import safe_identifier
from utils.logging import get_logger


class QueueStatusProvider(ABC):
    """Reports the last instant each intake queue was seen empty."""

    @abstractmethod
    async def last_emptied_timestamps(self) -> dict[str, int]:
        """Return a mapping of queue name to unix timestamp.

        Raises:
            QueueStatusError: If the status cannot be read
        """


class DatabaseQueueStatus(QueueStatusProvider):
    """Reads ``queue_name``/``last_emptied`` rows maintained by the intake workers."""

    def __init__(
        self,
        db_manager: DatabaseManager,
        table: str = "queue_status",
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        self.db_manager = db_manager
        self.table = table
        self.logger = logger or get_logger("queue_status")

    async def last_emptied_timestamps(self) -> dict[str, int]:
        query = f"""
            SELECT queue_name, last_emptied
            FROM {safe_identifier(self.table)}
        """

        try:
            rows = await self.db_manager.fetch(query)
        except DatabaseError as e:
            raise QueueStatusError(
                f"Failed to read queue status: {e.message}",
                context={"table": self.table, **e.context},
            ) from e

        timestamps = {row["queue_name"]: int(row["last_emptied"] or 0) for row in rows}
        self.logger.debug("Queue status loaded", table=self.table, queues=len(timestamps))
        return timestamps
