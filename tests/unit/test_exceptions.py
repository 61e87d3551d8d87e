"""Unit tests for exception classes and status codes."""

from petition_archiver.exceptions import (
    ArchiverError,
    ConfigurationError,
    DatabaseError,
    LockError,
    QueueStatusError,
    WatermarkError,
)
from petition_archiver.status import StatusCode


def test_archiver_error_basic() -> None:
    """Test basic ArchiverError."""
    error = ArchiverError("Test error")
    assert str(error) == "Test error"
    assert error.message == "Test error"
    assert error.correlation_id is None
    assert error.context == {}


def test_archiver_error_with_correlation_id() -> None:
    """Test ArchiverError with correlation ID."""
    error = ArchiverError("Test error", correlation_id="abc123")
    assert "abc123" in str(error)


def test_archiver_error_with_context() -> None:
    """Test ArchiverError with context."""
    error = ArchiverError("Test error", context={"table": "validations"})
    assert error.context == {"table": "validations"}
    assert "validations" in str(error)


def test_error_hierarchy() -> None:
    """Test exception hierarchy."""
    for error_class in (
        ConfigurationError,
        DatabaseError,
        LockError,
        QueueStatusError,
        WatermarkError,
    ):
        assert issubclass(error_class, ArchiverError)


def test_status_codes() -> None:
    """Test status codes carry HTTP values."""
    assert StatusCode.OK == 200
    assert StatusCode.BAD_REQUEST == 400
    assert StatusCode.FORBIDDEN == 403
    assert StatusCode.NOT_FOUND == 404
    assert StatusCode.SERVER_ERROR == 500
    assert StatusCode.OK.is_success
    assert not StatusCode.SERVER_ERROR.is_success
