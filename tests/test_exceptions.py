"""Tests for diagnocatio.core.exceptions module."""

from __future__ import annotations

import pytest

from diagnocatio.core import (
    AuthError,
    ConfigurationError,
    ConnectionError,
    DiagnocatError,
    InvalidConfigurationError,
    InvalidIdentifierError,
    InvalidURLError,
    NetworkError,
    OperationCancelledError,
    PathValidationError,
    PollTimeoutError,
    RemoteTerminalError,
    ServerUnreachableError,
    SessionError,
    StageError,
    TransientIOError,
    ValidationError,
)
from diagnocatio.core.exceptions import MAX_BODY_IN_MESSAGE


class TestDiagnocatError:
    """Tests for base DiagnocatError."""

    def test_basic_error(self):
        """Test basic error creation."""
        err = DiagnocatError("Something went wrong")
        assert str(err) == "Something went wrong"
        assert err.message == "Something went wrong"
        assert err.details == {}
        assert err.operation is None

    def test_error_with_details(self):
        """Test error with details and operation."""
        err = DiagnocatError(
            "Upload failed",
            details={"file": "scan.zip"},
            operation="upload",
        )
        assert str(err) == "[upload] Upload failed (file=scan.zip)"
        assert err.operation == "upload"


class TestConfigurationErrors:
    """Tests for configuration-related errors."""

    def test_invalid_configuration(self):
        """Test InvalidConfigurationError."""
        err = InvalidConfigurationError("poll_interval", -5, "must be >= 0")
        assert "poll_interval" in str(err)
        assert "must be >= 0" in str(err)
        assert err.field == "poll_interval"
        assert err.value == -5


class TestConnectionErrors:
    """Tests for connection-related errors."""

    def test_auth_error(self):
        """Test AuthError."""
        err = AuthError("https://diagnocat.example.com", "token request rejected (401)")
        assert "Authentication failed" in str(err)
        assert "401" in str(err)
        assert err.server == "https://diagnocat.example.com"

    def test_server_unreachable(self):
        """Test ServerUnreachableError."""
        cause = Exception("Connection refused")
        err = ServerUnreachableError("https://diagnocat.example.com", cause)
        assert "Cannot reach" in str(err)
        assert err.cause is cause


class TestValidationErrors:
    """Tests for validation-related errors."""

    def test_invalid_identifier(self):
        err = InvalidIdentifierError("report id", "a/b", "contains forbidden characters")
        assert "report id" in str(err)
        assert err.value == "a/b"

    def test_invalid_url(self):
        err = InvalidURLError("not-a-url", "must include scheme")
        assert err.url == "not-a-url"

    def test_path_validation_error(self):
        err = PathValidationError("/nonexistent/scan.zip", "does not exist")
        assert err.path == "/nonexistent/scan.zip"


class TestStageError:
    """Tests for StageError."""

    def test_stage_is_operation(self):
        """The stage name is exposed as both stage and operation."""
        err = StageError("open_session", "unexpected status 500", status_code=500, body="boom")
        assert err.stage == "open_session"
        assert err.operation == "open_session"
        assert err.status_code == 500
        assert err.body == "boom"
        assert "open_session failed: unexpected status 500" in str(err)

    def test_long_body_is_truncated_in_message_only(self):
        """The full body stays on the exception; the message carries a prefix."""
        body = "x" * (MAX_BODY_IN_MESSAGE * 3)
        err = StageError("upload", "rejected", status_code=403, body=body)
        assert err.body == body
        assert len(err.details["body"]) == MAX_BODY_IN_MESSAGE

    def test_transport_failure_has_no_status(self):
        err = StageError("request_analysis", "request failed: timed out")
        assert err.status_code is None
        assert "status" not in err.details


class TestSessionErrors:
    """Tests for session polling errors."""

    def test_poll_timeout(self):
        err = PollTimeoutError("S1", 180, "started")
        assert "180 attempts" in str(err)
        assert err.session_id == "S1"
        assert err.last_status == "started"
        assert err.operation == "poll_session"

    def test_remote_terminal(self):
        err = RemoteTerminalError("S1", "corrupt archive")
        assert "corrupt archive" in str(err)
        assert err.reason == "corrupt archive"


class TestNetworkAndCancellation:
    """Tests for transport and cancellation errors."""

    def test_transient_io_error_keeps_cause(self):
        cause = TimeoutError("read timed out")
        err = TransientIOError("poll_session", cause)
        assert err.cause is cause
        assert "read timed out" in str(err)

    def test_operation_cancelled(self):
        err = OperationCancelledError("upload", "deadline exceeded")
        assert err.operation == "upload"
        assert "deadline exceeded" in str(err)


class TestInheritance:
    """Tests for exception inheritance hierarchy."""

    @pytest.mark.parametrize(
        "exc,parent",
        [
            (InvalidConfigurationError("f", 1, "r"), ConfigurationError),
            (AuthError("s"), ConnectionError),
            (ServerUnreachableError("s"), ConnectionError),
            (InvalidIdentifierError("t", "v", "r"), ValidationError),
            (PollTimeoutError("S", 1), SessionError),
            (RemoteTerminalError("S", "r"), SessionError),
            (TransientIOError("op"), NetworkError),
        ],
    )
    def test_subclass_relationships(self, exc, parent):
        assert isinstance(exc, parent)
        assert isinstance(exc, DiagnocatError)

    def test_catch_all_diagnocat_errors(self):
        """Every pipeline failure can be caught as DiagnocatError."""
        for exc in (
            StageError("upload", "r"),
            OperationCancelledError("upload"),
            TransientIOError("op"),
        ):
            with pytest.raises(DiagnocatError):
                raise exc
