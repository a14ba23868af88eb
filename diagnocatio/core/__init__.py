"""Foundation modules: exceptions, logging, validation, cancellation, utilities."""

from .cancellation import CancelToken
from .exceptions import (
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
from .logging import (
    AuditLogger,
    ContextFilter,
    JSONFormatter,
    LogContext,
    StandardFormatter,
    clear_correlation_id,
    format_bytes,
    generate_correlation_id,
    get_audit_logger,
    get_correlation_id,
    get_logger,
    mask_sensitive,
    sanitize_for_log,
    set_correlation_id,
    setup_logging,
)
from .utils import utc_now, utc_today, zip_dir_to_temp
from .validation import (
    STUDY_TYPES,
    validate_analysis_type,
    validate_file_key,
    validate_identifier,
    validate_output_path,
    validate_path_exists,
    validate_positive_int,
    validate_server_url,
    validate_study_type,
    validate_timeout,
)

__all__ = [
    # Cancellation
    "CancelToken",
    # Exceptions
    "DiagnocatError",
    "ConfigurationError",
    "InvalidConfigurationError",
    "ConnectionError",
    "AuthError",
    "ServerUnreachableError",
    "ValidationError",
    "InvalidIdentifierError",
    "InvalidURLError",
    "PathValidationError",
    "StageError",
    "SessionError",
    "PollTimeoutError",
    "RemoteTerminalError",
    "NetworkError",
    "TransientIOError",
    "OperationCancelledError",
    # Logging
    "AuditLogger",
    "ContextFilter",
    "JSONFormatter",
    "LogContext",
    "StandardFormatter",
    "clear_correlation_id",
    "format_bytes",
    "generate_correlation_id",
    "get_audit_logger",
    "get_correlation_id",
    "get_logger",
    "mask_sensitive",
    "sanitize_for_log",
    "set_correlation_id",
    "setup_logging",
    # Utils
    "utc_now",
    "utc_today",
    "zip_dir_to_temp",
    # Validation
    "STUDY_TYPES",
    "validate_analysis_type",
    "validate_file_key",
    "validate_identifier",
    "validate_output_path",
    "validate_path_exists",
    "validate_positive_int",
    "validate_server_url",
    "validate_study_type",
    "validate_timeout",
]
