"""Advisory locking so overlapping scheduled runs do not both proceed."""

import asyncio
import hashlib
import socket
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import asyncpg
import structlog

from petition_archiver.database import DatabaseManager
from petition_archiver.exceptions import LockError
from utils.logging import get_logger


def advisory_lock_id(lock_key: str) -> int:
    """Map a lock key to a signed 64-bit advisory lock id.

    Uses a stable digest so every process derives the same id for a key.
    """
    digest = hashlib.sha256(lock_key.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


class Lock:
    """Represents a held advisory lock."""

    def __init__(
        self,
        lock_key: str,
        lock_id: int,
        acquired_at: datetime,
        owner: str,
    ) -> None:
        """Initialize lock.

        Args:
            lock_key: Human-readable key (the job name)
            lock_id: Advisory lock id derived from the key
            acquired_at: When lock was acquired
            owner: Lock owner identifier
        """
        self.lock_key = lock_key
        self.lock_id = lock_id
        self.acquired_at = acquired_at
        self.owner = owner

    def held_for(self) -> float:
        """Seconds since the lock was acquired."""
        return (datetime.now(timezone.utc) - self.acquired_at).total_seconds()


class LockManager:
    """Acquires PostgreSQL session advisory locks scoped to a job name.

    Session locks belong to a connection, so the lock is taken and released
    on one connection that stays checked out of the pool while it is held.
    """

    def __init__(
        self,
        acquire_timeout_seconds: float = 5.0,
        poll_interval_seconds: float = 0.5,
        owner: Optional[str] = None,
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        """Initialize lock manager.

        Args:
            acquire_timeout_seconds: Give up after this long instead of queuing
            poll_interval_seconds: Delay between acquisition attempts
            owner: Lock owner identifier (defaults to host and start time)
            logger: Optional logger instance
        """
        self.acquire_timeout_seconds = acquire_timeout_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self.owner = owner or f"{socket.gethostname()}_{int(time.time())}"
        self.logger = logger or get_logger("lock_manager")

    @asynccontextmanager
    async def hold(self, lock_key: str, db_manager: DatabaseManager) -> AsyncGenerator[Lock, None]:
        """Hold the lock for ``lock_key`` for the duration of the block.

        Raises:
            LockError: If the lock is still held elsewhere after the timeout
        """
        async with db_manager.acquire_connection() as conn:
            lock = await self._acquire(lock_key, conn)
            try:
                yield lock
            finally:
                await self._release(lock, conn)

    async def _acquire(self, lock_key: str, conn: asyncpg.Connection) -> Lock:
        lock_id = advisory_lock_id(lock_key)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.acquire_timeout_seconds

        while True:
            try:
                acquired = await conn.fetchval("SELECT pg_try_advisory_lock($1)", lock_id)
            except Exception as e:
                raise LockError(
                    f"Failed to acquire advisory lock: {e}",
                    context={"lock_key": lock_key, "lock_id": lock_id},
                ) from e

            if acquired:
                lock = Lock(
                    lock_key=lock_key,
                    lock_id=lock_id,
                    acquired_at=datetime.now(timezone.utc),
                    owner=self.owner,
                )
                self.logger.debug(
                    "Advisory lock acquired",
                    lock_key=lock_key,
                    lock_id=lock_id,
                    owner=self.owner,
                )
                return lock

            if loop.time() >= deadline:
                raise LockError(
                    f"Lock already held: {lock_key}",
                    context={
                        "lock_key": lock_key,
                        "lock_id": lock_id,
                        "timeout_seconds": self.acquire_timeout_seconds,
                    },
                )
            await asyncio.sleep(self.poll_interval_seconds)

    async def _release(self, lock: Lock, conn: asyncpg.Connection) -> None:
        try:
            released = await conn.fetchval("SELECT pg_advisory_unlock($1)", lock.lock_id)
        except Exception as e:
            # Pool release resets the connection, which drops session locks
            self.logger.warning(
                "Failed to release advisory lock",
                lock_key=lock.lock_key,
                lock_id=lock.lock_id,
                error=str(e),
            )
            return

        if not released:
            self.logger.warning(
                "Advisory lock was not held at release",
                lock_key=lock.lock_key,
                lock_id=lock.lock_id,
            )
        else:
            self.logger.debug(
                "Advisory lock released",
                lock_key=lock.lock_key,
                held_seconds=round(lock.held_for(), 3),
            )
