"""Diagnocat services module.

Each service handles one stage family of the upload/analysis workflow and
shares a single DiagnocatConnection (and through it one CredentialCache).

Services:
    CredentialCache: Token issue, caching and single-flight refresh
    DiagnocatConnection: Base URL, timeouts and authenticated HTTP
    StudyService: Patient and study creation
    SessionService: Upload session open/close/status
    UploadService: Streaming PUT of payloads to presigned URLs
    SessionPollMonitor: Bounded wait for a closing session
    AnalysisService: AI analysis requests
    ReportService: Report status, diagnoses, PDF and export

Usage:
    from diagnocatio.services import DiagnocatConnection, ReportService

    conn = DiagnocatConnection.from_config(cfg)
    reports = ReportService(conn)
    report = reports.get_status("ABC123")

The full upload pipeline is composed by DiagnocatClient.
"""

from .analyses import AnalysisService
from .auth import CredentialCache
from .base import DiagnocatConnection
from .polling import SessionPollMonitor
from .reports import ReportService
from .sessions import SessionService
from .studies import StudyService
from .uploads import ProgressReader, UploadService

__all__ = [
    "CredentialCache",
    "DiagnocatConnection",
    "StudyService",
    "SessionService",
    "UploadService",
    "ProgressReader",
    "SessionPollMonitor",
    "AnalysisService",
    "ReportService",
]
