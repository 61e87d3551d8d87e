"""Unit tests for Prometheus metrics."""

from unittest.mock import patch

import pytest
from prometheus_client import CollectorRegistry

from petition_archiver.metrics import ArchiveMetrics


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def metrics(registry: CollectorRegistry) -> ArchiveMetrics:
    return ArchiveMetrics(registry=registry)


class TestArchiveMetrics:
    """Tests for ArchiveMetrics class."""

    def test_record_items_added(self, metrics, registry):
        """Test items added increments the counter and sets store size."""
        metrics.record_items_added("signatures_not_validated_archive", 3, 10)
        metrics.record_items_added("signatures_not_validated_archive", 2, 12)

        labels = {"store": "signatures_not_validated_archive"}
        assert registry.get_sample_value("petition_archiver_items_added_total", labels) == 5
        assert registry.get_sample_value("petition_archiver_store_size", labels) == 12

    def test_record_items_removed(self, metrics, registry):
        """Test items removed increments the counter and sets store size."""
        metrics.record_items_removed("validations", 4, 0)

        labels = {"store": "validations"}
        assert registry.get_sample_value("petition_archiver_items_removed_total", labels) == 4
        assert registry.get_sample_value("petition_archiver_store_size", labels) == 0

    def test_record_run_status(self, metrics, registry):
        """Test successful runs update the last success timestamp."""
        metrics.record_run_status("ok")
        metrics.record_run_status("server_error")

        assert registry.get_sample_value("petition_archiver_runs_total", {"status": "ok"}) == 1
        assert (
            registry.get_sample_value("petition_archiver_runs_total", {"status": "server_error"})
            == 1
        )
        assert registry.get_sample_value("petition_archiver_last_success_timestamp") > 0

    def test_set_watermark(self, metrics, registry):
        """Test watermark gauge."""
        metrics.set_watermark(1700000000)
        assert registry.get_sample_value("petition_archiver_watermark_timestamp") == 1700000000

    def test_record_step_duration(self, metrics, registry):
        """Test step durations are observed per step."""
        metrics.record_step_duration("compute_watermark", 0.2)
        assert (
            registry.get_sample_value(
                "petition_archiver_step_duration_seconds_count", {"step": "compute_watermark"}
            )
            == 1
        )

    def test_push_failure_is_logged(self, metrics):
        """Test pushgateway errors do not propagate."""
        with patch(
            "petition_archiver.metrics.push_to_gateway", side_effect=OSError("unreachable")
        ) as mock_push:
            metrics.push("localhost:9091", job="archive_signatures")

        mock_push.assert_called_once()

    def test_start_metrics_server(self, metrics):
        """Test the HTTP exporter is started on the private registry."""
        with patch("petition_archiver.metrics.start_http_server") as mock_server:
            metrics.start_metrics_server(port=9100)

        mock_server.assert_called_once_with(9100, registry=metrics.registry)
