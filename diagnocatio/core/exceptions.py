"""Custom exception hierarchy for diagnocatio.

This module provides a structured exception hierarchy for Diagnocat operations,
so callers get a single descriptive error naming the failed stage and why.
"""

from __future__ import annotations

from typing import Any, Optional

# Response bodies are kept whole on the exception but cut down in messages
MAX_BODY_IN_MESSAGE = 500


class DiagnocatError(Exception):
    """Base exception for all diagnocatio errors.

    All diagnocatio-specific exceptions inherit from this class, allowing
    callers to catch all diagnocatio errors with a single except clause.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context.
        operation: The operation that was being performed when the error occurred.
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        operation: Optional[str] = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        self.operation = operation
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        if self.operation:
            parts.insert(0, f"[{self.operation}]")
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(DiagnocatError):
    """Error in configuration or environment setup."""

    pass


class InvalidConfigurationError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, field: str, value: Any, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(
            f"Invalid configuration for '{field}': {reason}",
            details={"field": field, "value": str(value)[:100]},
            operation="configuration",
        )


# =============================================================================
# Connection Errors
# =============================================================================


class ConnectionError(DiagnocatError):
    """Error establishing or maintaining connection to the Diagnocat API."""

    pass


class AuthError(ConnectionError):
    """No usable credentials, or token issuance was rejected."""

    def __init__(self, server: str, reason: str = "Invalid credentials") -> None:
        self.server = server
        self.reason = reason
        super().__init__(
            f"Authentication failed: {reason}",
            details={"server": server},
            operation="authentication",
        )


class ServerUnreachableError(ConnectionError):
    """Cannot connect to the Diagnocat API."""

    def __init__(self, server: str, cause: Optional[Exception] = None) -> None:
        self.server = server
        self.cause = cause
        msg = f"Cannot reach Diagnocat API at {server}"
        if cause:
            msg += f": {cause}"
        super().__init__(msg, details={"server": server}, operation="connection")


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(DiagnocatError):
    """Input validation failed."""

    pass


class InvalidIdentifierError(ValidationError):
    """Patient, study, session or report identifier is invalid."""

    def __init__(self, identifier_type: str, value: str, reason: str) -> None:
        self.identifier_type = identifier_type
        self.value = value
        super().__init__(
            f"Invalid {identifier_type}: '{value}' - {reason}",
            details={"type": identifier_type, "value": value},
            operation="validation",
        )


class InvalidURLError(ValidationError):
    """URL format is invalid."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        super().__init__(
            f"Invalid URL '{url}': {reason}",
            details={"url": url[:200]},
            operation="validation",
        )


class PathValidationError(ValidationError):
    """File or directory path is invalid or inaccessible."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(
            f"Path error for '{path}': {reason}",
            details={"path": path},
            operation="validation",
        )


# =============================================================================
# Stage Errors
# =============================================================================


class StageError(DiagnocatError):
    """A pipeline stage got a non-success status or an invalid success body.

    Attributes:
        stage: Stage name (create_study, open_session, upload, ...).
        status_code: HTTP status, or None for transport-level failures.
        body: Full response body for diagnostics.
    """

    def __init__(
        self,
        stage: str,
        reason: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        self.stage = stage
        self.reason = reason
        self.status_code = status_code
        self.body = body
        details: dict[str, Any] = {}
        if status_code is not None:
            details["status"] = status_code
        if body:
            details["body"] = body[:MAX_BODY_IN_MESSAGE]
        super().__init__(f"{stage} failed: {reason}", details=details, operation=stage)


# =============================================================================
# Session Errors
# =============================================================================


class SessionError(DiagnocatError):
    """Upload session did not reach a successful terminal state."""

    pass


class PollTimeoutError(SessionError):
    """Polling used its attempt budget without a terminal session state."""

    def __init__(self, session_id: str, attempts: int, last_status: Optional[str] = None) -> None:
        self.session_id = session_id
        self.attempts = attempts
        self.last_status = last_status
        super().__init__(
            f"Session {session_id} did not finish processing after {attempts} attempts",
            details={"session": session_id, "last_status": last_status or "unknown"},
            operation="poll_session",
        )


class RemoteTerminalError(SessionError):
    """The remote service reported status=error for the session."""

    def __init__(self, session_id: str, reason: str) -> None:
        self.session_id = session_id
        self.reason = reason
        super().__init__(
            f"Session processing failed: {reason or 'no error message'}",
            details={"session": session_id},
            operation="poll_session",
        )


# =============================================================================
# Network Errors
# =============================================================================


class NetworkError(DiagnocatError):
    """Network-related error during a Diagnocat operation."""

    pass


class TransientIOError(NetworkError):
    """Transport failure (connection reset, timeout, DNS) on a single call."""

    def __init__(self, operation: str, cause: Optional[Exception] = None) -> None:
        self.cause = cause
        msg = "Network error"
        if cause:
            msg += f": {cause}"
        super().__init__(msg, operation=operation)


# =============================================================================
# Cancellation
# =============================================================================


class OperationCancelledError(DiagnocatError):
    """The caller cancelled the operation or its deadline passed."""

    def __init__(self, operation: str, reason: str = "cancelled") -> None:
        self.reason = reason
        super().__init__(f"Operation {reason}", operation=operation)
