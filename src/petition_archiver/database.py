"""Database connection and query management using asyncpg."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Optional

import asyncpg
from structlog import BoundLogger

from petition_archiver.config import DatabaseConfig
from petition_archiver.exceptions import DatabaseError
from utils.logging import get_logger


class DatabaseManager:
    """Manages one PostgreSQL connection pool.

    The processing and archive stores each get their own manager; nothing
    here spans both, so there is no shared transaction between them.
    """

    def __init__(
        self,
        config: DatabaseConfig,
        statement_timeout: Optional[float] = 60.0,
        logger: Optional[BoundLogger] = None,
    ) -> None:
        """Initialize database manager.

        Args:
            config: Database configuration
            statement_timeout: Seconds before any single query is abandoned
            logger: Optional logger instance
        """
        self.config = config
        self.statement_timeout = statement_timeout
        self.logger = logger or get_logger("database")
        self.pool: Optional[asyncpg.Pool] = None
        self._dsn: Optional[str] = None

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def dsn(self) -> str:
        """Get database connection DSN."""
        if self._dsn is None:
            try:
                password = self.config.get_password()
            except ValueError as e:
                raise DatabaseError(
                    str(e),
                    context={"database": self.config.name},
                ) from e

            self._dsn = (
                f"postgresql://{self.config.user}:{password}@"
                f"{self.config.host}:{self.config.port}/{self.config.name}"
            )
        return self._dsn

    async def connect(self) -> None:
        """Create connection pool."""
        try:
            self.logger.debug(
                "Creating connection pool",
                database=self.config.name,
                host=self.config.host,
                pool_size=self.config.pool_size,
            )

            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=1,
                max_size=self.config.pool_size,
                command_timeout=self.statement_timeout,
                server_settings={
                    "application_name": "petition_archiver",
                },
            )
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(
                f"Failed to create connection pool: {e}",
                context={"database": self.config.name, "host": self.config.host},
            ) from e

    async def disconnect(self) -> None:
        """Close connection pool."""
        if self.pool:
            self.logger.debug("Closing connection pool", database=self.config.name)
            await self.pool.close()
            self.pool = None

    @asynccontextmanager
    async def acquire_connection(self) -> AsyncGenerator[asyncpg.Connection, None]:
        """Acquire a connection from the pool.

        Yields:
            Database connection

        Raises:
            DatabaseError: If pool is not initialized
        """
        if not self.pool:
            raise DatabaseError(
                "Connection pool not initialized. Call connect() first.",
                context={"database": self.config.name},
            )

        try:
            conn = await self.pool.acquire(timeout=self.statement_timeout)
        except asyncio.TimeoutError as e:
            raise DatabaseError(
                f"Timed out acquiring a connection after {self.statement_timeout} seconds",
                context={"database": self.config.name, "pool_size": self.config.pool_size},
            ) from e

        try:
            yield conn
        finally:
            await self.pool.release(conn)

    def _query_error(self, query: str, error: Exception) -> DatabaseError:
        context = {"database": self.config.name, "query": query[:100]}
        if isinstance(error, asyncio.TimeoutError):
            context["timeout_seconds"] = self.statement_timeout
            return DatabaseError(
                f"Query timed out after {self.statement_timeout} seconds", context=context
            )
        return DatabaseError(f"Query execution failed: {error}", context=context)

    async def execute(self, query: str, *args: Any) -> str:
        """Execute a query that doesn't return rows.

        Returns:
            Command status string (e.g. "DELETE 12")

        Raises:
            DatabaseError: If execution fails or times out
        """
        try:
            async with self.acquire_connection() as conn:
                return await conn.execute(query, *args, timeout=self.statement_timeout)
        except DatabaseError:
            raise
        except Exception as e:
            raise self._query_error(query, e) from e

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        """Execute a query and return all rows.

        Raises:
            DatabaseError: If execution fails or times out
        """
        try:
            async with self.acquire_connection() as conn:
                return await conn.fetch(query, *args, timeout=self.statement_timeout)
        except DatabaseError:
            raise
        except Exception as e:
            raise self._query_error(query, e) from e

    async def fetchval(self, query: str, *args: Any) -> Any:
        """Execute a query and return a single value.

        Raises:
            DatabaseError: If execution fails or times out
        """
        try:
            async with self.acquire_connection() as conn:
                return await conn.fetchval(query, *args, timeout=self.statement_timeout)
        except DatabaseError:
            raise
        except Exception as e:
            raise self._query_error(query, e) from e
