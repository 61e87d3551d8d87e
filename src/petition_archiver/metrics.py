"""Prometheus metrics for monitoring the archive workflow."""

from typing import Optional

import structlog
from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    push_to_gateway,
    start_http_server,
)

from utils.logging import get_logger


class ArchiveMetrics:
    """Prometheus metrics for the archive workflow."""

    def __init__(
        self,
        logger: Optional[structlog.BoundLogger] = None,
        registry: Optional[CollectorRegistry] = None,
    ) -> None:
        """Initialize metrics.

        Args:
            logger: Optional logger instance
            registry: Optional Prometheus registry (defaults to global REGISTRY)
        """
        self.logger = logger or get_logger("metrics")
        self.registry = registry or REGISTRY

        self.items_added_total = Counter(
            "petition_archiver_items_added_total",
            "Rows inserted into a store",
            ["store"],
            registry=self.registry,
        )

        self.items_removed_total = Counter(
            "petition_archiver_items_removed_total",
            "Rows deleted from a store",
            ["store"],
            registry=self.registry,
        )

        self.runs_total = Counter(
            "petition_archiver_runs_total",
            "Total number of workflow runs",
            ["status"],  # ok, server_error
            registry=self.registry,
        )

        self.step_duration_seconds = Histogram(
            "petition_archiver_step_duration_seconds",
            "Duration of workflow steps in seconds",
            ["step"],
            buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 25.0, 50.0, 100.0, 250.0, 500.0],
            registry=self.registry,
        )

        self.store_size = Gauge(
            "petition_archiver_store_size",
            "Row count of a store after the last transition touching it",
            ["store"],
            registry=self.registry,
        )

        self.watermark_timestamp = Gauge(
            "petition_archiver_watermark_timestamp",
            "Watermark used by the last run (unix seconds)",
            registry=self.registry,
        )

        self.last_success_timestamp = Gauge(
            "petition_archiver_last_success_timestamp",
            "Unix timestamp of last successful workflow run",
            registry=self.registry,
        )

    def record_items_added(self, store: str, count: int, store_size: int) -> None:
        """Record rows added to a store and its resulting size."""
        self.items_added_total.labels(store=store).inc(count)
        self.store_size.labels(store=store).set(store_size)

    def record_items_removed(self, store: str, count: int, store_size: int) -> None:
        """Record rows removed from a store and its resulting size."""
        self.items_removed_total.labels(store=store).inc(count)
        self.store_size.labels(store=store).set(store_size)

    def record_step_duration(self, step: str, duration_seconds: float) -> None:
        self.step_duration_seconds.labels(step=step).observe(duration_seconds)

    def set_watermark(self, watermark: int) -> None:
        self.watermark_timestamp.set(watermark)

    def record_run_status(self, status: str) -> None:
        """Record the outcome of a run.

        Args:
            status: "ok" or "server_error"
        """
        self.runs_total.labels(status=status).inc()
        if status == "ok":
            self.last_success_timestamp.set_to_current_time()

    def start_metrics_server(self, port: int) -> None:
        """Start Prometheus metrics HTTP server."""
        start_http_server(port, registry=self.registry)
        self.logger.info("Metrics server started", port=port)

    def push(self, gateway: str, job: str) -> None:
        """Push current values to a pushgateway.

        Failures are logged, not raised.
        """
        try:
            push_to_gateway(gateway, job=job, registry=self.registry)
        except Exception as e:
            self.logger.warning(
                "Failed to push metrics (non-critical)", gateway=gateway, error=str(e)
            )
