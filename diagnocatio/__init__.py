"""diagnocatio - Client and CLI for the Diagnocat partner API.

This package uploads dental imaging studies to Diagnocat, requests AI
analyses on them, and retrieves the resulting reports.

Architecture:
    diagnocatio/
    ├── core/           # Foundation modules (exceptions, logging, validation, cancellation)
    ├── services/       # Service classes (DiagnocatConnection, SessionService, ReportService, ...)
    ├── commands/       # CLI command parsers and handlers
    ├── models.py       # Value objects passed between pipeline stages
    ├── client.py       # Facade running the upload pipeline (DiagnocatClient)
    └── config.py       # Configuration loading
"""

__version__ = "0.1.0"
__description__ = "Client and CLI for the Diagnocat partner API"

from .client import DiagnocatClient
from .config import DiagnocatConfig, load_config
from .core import (
    AuthError,
    CancelToken,
    ConfigurationError,
    DiagnocatError,
    LogContext,
    NetworkError,
    OperationCancelledError,
    PollTimeoutError,
    RemoteTerminalError,
    SessionError,
    StageError,
    TransientIOError,
    ValidationError,
    get_audit_logger,
    get_logger,
    setup_logging,
)
from .models import (
    Analysis,
    Credential,
    Patient,
    RemoteStudy,
    Report,
    ReportExport,
    SessionStatus,
    UploadSession,
    UploadStudyResult,
    UploadTarget,
)
from .services import (
    AnalysisService,
    CredentialCache,
    DiagnocatConnection,
    ReportService,
    SessionPollMonitor,
    SessionService,
    StudyService,
    UploadService,
)

__all__ = [
    # Version info
    "__version__",
    # Configuration
    "DiagnocatConfig",
    "load_config",
    # Client
    "DiagnocatClient",
    # Services
    "CredentialCache",
    "DiagnocatConnection",
    "StudyService",
    "SessionService",
    "UploadService",
    "SessionPollMonitor",
    "AnalysisService",
    "ReportService",
    # Models
    "Analysis",
    "Credential",
    "Patient",
    "RemoteStudy",
    "Report",
    "ReportExport",
    "SessionStatus",
    "UploadSession",
    "UploadStudyResult",
    "UploadTarget",
    # Cancellation
    "CancelToken",
    # Exceptions
    "DiagnocatError",
    "ConfigurationError",
    "AuthError",
    "ValidationError",
    "StageError",
    "SessionError",
    "PollTimeoutError",
    "RemoteTerminalError",
    "NetworkError",
    "TransientIOError",
    "OperationCancelledError",
    # Logging
    "setup_logging",
    "get_logger",
    "LogContext",
    "get_audit_logger",
]
