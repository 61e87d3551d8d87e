"""Row-level primitives against the processing and archive tables."""

from collections.abc import Collection
from typing import Any, Optional

import structlog

from petition_archiver.database import DatabaseManager
from petition_archiver.exceptions import DatabaseError
from utils import column_list, placeholders, safe_identifier
from utils.logging import get_logger


def _affected_rows(status: str) -> int:
    """Extract the row count from an asyncpg command status ("DELETE 12")."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


class RecordStore:
    """Select, insert, delete and count rows in one database.

    Every predicate is the same one: ``timestamp_column < watermark``. Rows are
    plain dictionaries keyed by column name, so a row selected from a
    processing table can be inserted unchanged into its archive table.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        timestamp_column: str = "timestamp_validation_close",
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        self.db_manager = db_manager
        self.timestamp_column = timestamp_column
        self.logger = logger or get_logger("store")

    @property
    def name(self) -> str:
        return self.db_manager.name

    async def select_closed_before(self, table: str, watermark: int) -> list[dict[str, Any]]:
        """Return every row of ``table`` closed before the watermark."""
        query = f"""
            SELECT *
            FROM {safe_identifier(table)}
            WHERE {safe_identifier(self.timestamp_column)} < $1
        """
        records = await self.db_manager.fetch(query, watermark)
        return [dict(record) for record in records]

    async def insert_row(self, table: str, row: dict[str, Any]) -> None:
        """Insert one row, column for column."""
        if not row:
            raise DatabaseError("Refusing to insert an empty row", context={"table": table})

        columns = list(row)
        query = f"""
            INSERT INTO {safe_identifier(table)} ({column_list(columns)})
            VALUES ({placeholders(len(columns))})
        """
        await self.db_manager.execute(query, *(row[column] for column in columns))

    async def delete_closed_before(self, table: str, watermark: int) -> int:
        """Delete every row of ``table`` closed before the watermark.

        Returns:
            Number of rows deleted
        """
        query = f"""
            DELETE FROM {safe_identifier(table)}
            WHERE {safe_identifier(self.timestamp_column)} < $1
        """
        status = await self.db_manager.execute(query, watermark)
        return _affected_rows(status)

    async def count_rows(self, table: str) -> int:
        count = await self.db_manager.fetchval(f"SELECT COUNT(*) FROM {safe_identifier(table)}")
        return count or 0

    async def select_unmatched_before(
        self,
        table: str,
        match_table: str,
        key_column: str,
        watermark: int,
    ) -> list[dict[str, Any]]:
        """Left anti-join: rows of ``table`` closed before the watermark with no
        row in ``match_table`` sharing ``key_column``."""
        key = safe_identifier(key_column)
        query = f"""
            SELECT t.*
            FROM {safe_identifier(table)} AS t
            WHERE t.{safe_identifier(self.timestamp_column)} < $1
              AND NOT EXISTS (
                  SELECT 1
                  FROM {safe_identifier(match_table)} AS m
                  WHERE m.{key} = t.{key}
              )
        """
        records = await self.db_manager.fetch(query, watermark)
        return [dict(record) for record in records]

    async def delete_keys_closed_before(
        self,
        table: str,
        key_column: str,
        keys: Collection[str],
        watermark: int,
    ) -> int:
        """Delete the rows whose ``key_column`` is in ``keys``.

        The watermark predicate still applies, so a key reused by a newer row
        never removes that row.

        Returns:
            Number of rows deleted
        """
        if not keys:
            return 0

        query = f"""
            DELETE FROM {safe_identifier(table)}
            WHERE {safe_identifier(key_column)} = ANY($1::text[])
              AND {safe_identifier(self.timestamp_column)} < $2
        """
        status = await self.db_manager.execute(query, sorted(keys), watermark)
        return _affected_rows(status)
