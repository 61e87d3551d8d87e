"""Watermark calculation: the cutoff below which records are closed."""

import time
from collections.abc import Callable, Iterable
from datetime import timedelta
from typing import Optional

import structlog

from petition_archiver.exceptions import QueueStatusError, WatermarkError
from petition_archiver.queue_status import QueueStatusProvider
from utils.logging import get_logger


class WatermarkCalculator:
    """Derives the watermark for one workflow run.

    The watermark is the oldest of every queue's last-emptied time and the
    minimum-lifetime floor (now - minimum_lifetime). Taking the minimum keeps
    it safe with respect to the slowest queue: if any queue may still hold
    data from before time T, nothing at or after T is final.
    """

    def __init__(
        self,
        queue_status: QueueStatusProvider,
        minimum_lifetime: timedelta = timedelta(days=14),
        required_queues: Iterable[str] = (),
        clock: Callable[[], float] = time.time,
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        """Initialize watermark calculator.

        Args:
            queue_status: Source of per-queue last-emptied timestamps
            minimum_lifetime: Minimum age of a record before it may be moved
            required_queues: Queues that must be reported; missing ones count as never emptied
            clock: Returns the current unix time
            logger: Optional logger instance
        """
        self.queue_status = queue_status
        self.minimum_lifetime = minimum_lifetime
        self.required_queues = tuple(required_queues)
        self.clock = clock
        self.logger = logger or get_logger("watermark")

    def lifetime_floor(self) -> int:
        """Return now minus the minimum lifetime, in unix seconds."""
        return int(self.clock() - self.minimum_lifetime.total_seconds())

    async def calculate(self) -> int:
        """Compute the watermark.

        Returns:
            Unix timestamp; records with timestamp_validation_close below it are closed

        Raises:
            QueueStatusError: If queue status cannot be read
            WatermarkError: If no queue status was reported at all
        """
        try:
            timestamps = dict(await self.queue_status.last_emptied_timestamps())
        except QueueStatusError:
            raise
        except Exception as e:
            raise QueueStatusError(f"Queue status unavailable: {e}") from e

        if not timestamps:
            raise WatermarkError(
                "Queue status reported no queues; refusing to compute a watermark",
                context={"required_queues": list(self.required_queues)},
            )

        for queue in self.required_queues:
            if queue not in timestamps:
                self.logger.warning(
                    "Queue missing from queue status, treating as never emptied",
                    queue=queue,
                )
                timestamps[queue] = 0

        floor = self.lifetime_floor()
        watermark = min([*timestamps.values(), floor])

        self.logger.info(
            "Watermark computed",
            watermark=watermark,
            lifetime_floor=floor,
            queues=timestamps,
        )
        return watermark
