"""Unit tests for logging module."""

import structlog

from utils.logging import bind_run_context, clear_run_context, configure_logging, get_logger


def test_configure_logging_json_format() -> None:
    """Test logging configuration with JSON format."""
    logger = configure_logging(log_level="INFO", log_format="json")
    assert logger is not None
    logger.info("Test message")


def test_configure_logging_console_format() -> None:
    """Test logging configuration with console format."""
    logger = configure_logging(log_level="DEBUG", log_format="console")
    assert logger is not None
    logger.debug("Test message")


def test_configure_logging_with_correlation_id() -> None:
    """Test logging configuration with correlation ID."""
    logger = configure_logging(log_level="INFO", correlation_id="test-123")
    assert logger is not None
    logger.info("Test message")


def test_bind_and_clear_run_context() -> None:
    """Test run identifiers are bound to context variables and cleared."""
    clear_run_context()
    bind_run_context(job_id="job-1", worker_name="cron")
    assert structlog.contextvars.get_contextvars() == {"job_id": "job-1", "worker_name": "cron"}

    clear_run_context()
    assert structlog.contextvars.get_contextvars() == {}


def test_get_logger_with_name() -> None:
    """Test getting named logger instance."""
    assert get_logger("test_module") is not None
    assert get_logger() is not None
