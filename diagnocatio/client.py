"""DiagnocatClient - facade composing the upload pipeline and report access.

The client owns one DiagnocatConnection and the services built on it. Its
main entry point runs the upload pipeline end to end:

    create_study -> open_session -> request_upload_urls -> upload
        -> close_session -> poll_session -> request_analysis

Usage:
    from diagnocatio import DiagnocatClient, load_config

    cfg = load_config()
    client = DiagnocatClient.from_config(cfg)
    result = client.upload_study("PATIENT_UID", Path("scan.zip"))
    report = client.wait_for_report(result.report_id)

The services remain usable on their own for finer control:

    from diagnocatio.services import DiagnocatConnection, ReportService

    conn = DiagnocatConnection.from_config(cfg)
    ReportService(conn).download_pdf("REPORT_ID", "report.pdf")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

from .config import (
    DEFAULT_ANALYSIS_TYPE,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POLL_MAX_ATTEMPTS,
    DEFAULT_STUDY_TYPE,
    DiagnocatConfig,
)
from .core import (
    CancelToken,
    DiagnocatError,
    LogContext,
    get_audit_logger,
    get_logger,
    validate_file_key,
    validate_identifier,
    validate_path_exists,
    validate_positive_int,
    validate_timeout,
    zip_dir_to_temp,
)
from .models import Analysis, Patient, Report, ReportExport, UploadSession, UploadStudyResult
from .services import (
    AnalysisService,
    DiagnocatConnection,
    ReportService,
    SessionPollMonitor,
    SessionService,
    StudyService,
    UploadService,
)
from .services.uploads import ProgressCallback


class DiagnocatClient:
    """Unified client for Diagnocat operations.

    Delegates to:
    - StudyService (patients, studies)
    - SessionService (upload sessions)
    - UploadService (payload PUT)
    - SessionPollMonitor (waiting for session close)
    - AnalysisService (analysis requests)
    - ReportService (status, diagnoses, PDF, export)

    Several pipelines may run concurrently on one client; they share only
    the connection pool and the credential cache.
    """

    def __init__(
        self,
        connection: DiagnocatConnection,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        poll_max_attempts: int = DEFAULT_POLL_MAX_ATTEMPTS,
        study_type: str = DEFAULT_STUDY_TYPE,
        analysis_type: str = DEFAULT_ANALYSIS_TYPE,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """Create a client on an existing connection.

        Args:
            connection: Connection (and credential cache) to use.
            poll_interval: Seconds between session status checks.
            poll_max_attempts: Session status checks before giving up.
            study_type: Default study type for uploads.
            analysis_type: Default analysis type for uploads.
            logger: Optional logger instance.
        """
        self.log = logger or get_logger(__name__)
        self._audit = get_audit_logger()
        self._conn = connection
        self.study_type = study_type
        self.analysis_type = analysis_type

        self._studies = StudyService(connection)
        self._sessions = SessionService(connection)
        self._uploads = UploadService(connection)
        self._poller = SessionPollMonitor(
            self._sessions, interval=poll_interval, max_attempts=poll_max_attempts
        )
        self._analyses = AnalysisService(connection)
        self._reports = ReportService(connection)

    @classmethod
    def from_config(cls, cfg: DiagnocatConfig) -> "DiagnocatClient":
        """Create client from configuration dictionary.

        Args:
            cfg: Configuration from load_config().
        """
        return cls(
            DiagnocatConnection.from_config(cfg),
            poll_interval=cfg.get("poll_interval", DEFAULT_POLL_INTERVAL),
            poll_max_attempts=cfg.get("poll_max_attempts", DEFAULT_POLL_MAX_ATTEMPTS),
            study_type=cfg.get("study_type", DEFAULT_STUDY_TYPE),
            analysis_type=cfg.get("analysis_type", DEFAULT_ANALYSIS_TYPE),
        )

    # =========================================================================
    # Properties for service access
    # =========================================================================

    @property
    def connection(self) -> DiagnocatConnection:
        """Access the underlying connection."""
        return self._conn

    @property
    def reports(self) -> ReportService:
        return self._reports

    @property
    def api_url(self) -> str:
        return self._conn.api_url

    # =========================================================================
    # Connection and patient operations
    # =========================================================================

    def test_connection(self) -> int:
        """Check API reachability and credentials; return the HTTP status."""
        return self._conn.test_connection()

    def create_patient(
        self,
        first_name: str,
        last_name: str,
        *,
        gender: Optional[str] = None,
        date_of_birth: Optional[str] = None,
        patient_id: Optional[str] = None,
    ) -> Patient:
        """Create a patient."""
        return self._studies.create_patient(
            first_name,
            last_name,
            gender=gender,
            date_of_birth=date_of_birth,
            patient_id=patient_id,
        )

    def list_patients(self, limit: int = 50) -> List[Patient]:
        return self._studies.list_patients(limit)

    # =========================================================================
    # Upload pipeline
    # =========================================================================

    def upload_study(
        self,
        patient_uid: str,
        file_path: Union[str, Path],
        *,
        study_type: Optional[str] = None,
        analysis_type: Optional[str] = None,
        study_name: Optional[str] = None,
        cancel: Optional[CancelToken] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> UploadStudyResult:
        """Upload a study for an existing patient and request its analysis.

        ``file_path`` may be a single archive or a directory; a directory
        is zipped to a temporary file first. The upload key is the file
        name of what is sent.

        Stages run strictly in order. A failure stops the pipeline; remote
        resources already created are left in place and named in a warning.

        Returns:
            Identifiers of everything created, plus the analysis status.

        Raises:
            StageError: If a stage fails; ``operation`` names the stage.
            RemoteTerminalError: If the session ends in error.
            PollTimeoutError: If the session never finishes processing.
            OperationCancelledError: If ``cancel`` fires or expires.
        """
        patient_uid = validate_identifier(patient_uid, "patient uid")
        source = validate_path_exists(file_path, description="upload source")
        cancel = cancel or CancelToken()
        study_type = study_type or self.study_type
        analysis_type = analysis_type or self.analysis_type

        # The same key is sent in the URL request and matched in its answer
        key = validate_file_key(f"{source.name}.zip" if source.is_dir() else source.name)

        payload = source
        temp_zip: Optional[Path] = None
        if source.is_dir():
            temp_zip = zip_dir_to_temp(source)
            payload = temp_zip

        study_uid = ""
        session: Optional[UploadSession] = None
        try:
            with LogContext(
                "upload_study", self.log, patient=patient_uid, file=key
            ) as ctx:
                cancel.raise_if_cancelled("create_study")
                study_kwargs = {"study_type": study_type}
                if study_name:
                    study_kwargs["study_name"] = study_name
                study = self._studies.create_study(patient_uid, **study_kwargs)
                study_uid = study.uid
                ctx.add_detail("study", study_uid)

                cancel.raise_if_cancelled("open_session")
                session = self._sessions.open_session(study_uid)
                ctx.add_detail("session", session.session_id)

                cancel.raise_if_cancelled("request_upload_urls")
                targets = self._sessions.request_upload_targets(session.session_id, [key])
                target = self._sessions.select_target(targets, key)

                cancel.raise_if_cancelled("upload")
                sent = self._uploads.upload_file(
                    target.url, payload, on_progress=on_progress, cancel=cancel
                )

                cancel.raise_if_cancelled("close_session")
                self._sessions.close_session(session)
                self._poller.wait_until_closed(session, cancel=cancel)

                cancel.raise_if_cancelled("request_analysis")
                analysis = self._analyses.request_analysis(study_uid, analysis_type)

        except DiagnocatError as e:
            if study_uid:
                self.log.warning(
                    "Upload pipeline stopped; remote study %s%s left in place",
                    study_uid,
                    f" with session {session.session_id}" if session else "",
                )
            self._audit.log_operation(
                "upload_study",
                patient=patient_uid,
                study=study_uid or None,
                session=session.session_id if session else None,
                details={"file": key, "stage": e.operation},
                success=False,
                error=str(e),
            )
            raise
        finally:
            if temp_zip is not None:
                try:
                    temp_zip.unlink()
                except OSError:
                    self.log.warning("Failed to remove temporary archive %s", temp_zip)

        result = UploadStudyResult(
            patient_uid=patient_uid,
            study_uid=study_uid,
            study_id_v3=study.id_v3,
            session_id=session.session_id,
            analysis_uid=analysis.uid,
            analysis_id_v3=analysis.id_v3,
            status=analysis.status,
            uploaded_bytes=sent,
        )
        self._audit.log_operation(
            "upload_study",
            patient=patient_uid,
            study=study_uid,
            session=session.session_id,
            report=result.report_id or None,
            details={"file": key, "bytes": sent, "analysis_type": analysis_type},
            success=True,
            duration_ms=ctx.elapsed_ms,
        )
        return result

    # =========================================================================
    # Report operations (delegated to ReportService)
    # =========================================================================

    def list_analyses(self, patient_uid: str) -> List[Analysis]:
        """List the analyses requested for a patient."""
        return self._reports.list_analyses(patient_uid)

    def get_status(self, report_id: str) -> Report:
        """Fetch a report with diagnoses attached when complete."""
        return self._reports.get_status(report_id)

    def export_report(self, report_id: str) -> ReportExport:
        """Bundle a report and its diagnoses into a timestamped export."""
        return self._reports.export_report(report_id)

    def download_pdf(self, report_id: str, destination: Union[str, Path]) -> Path:
        """Stream the report PDF to ``destination``."""
        return self._reports.download_pdf(report_id, destination)

    def wait_for_report(
        self,
        report_id: str,
        *,
        interval: float = 10.0,
        max_attempts: int = 60,
        cancel: Optional[CancelToken] = None,
    ) -> Report:
        """Re-check a report until it is complete or carries an error.

        Returns:
            The last report fetched. When the attempts run out it may still
            be incomplete; callers check ``is_complete``.
        """
        interval = validate_timeout(interval, "interval", min_value=0, max_value=3600)
        max_attempts = validate_positive_int(max_attempts, "max_attempts", max_value=100000)
        cancel = cancel or CancelToken()

        report = self._reports.get_status(report_id)
        for attempt in range(2, max_attempts + 1):
            if report.is_complete or report.has_error:
                break
            self.log.info(
                "Report %s not ready (status=%s), check %d/%d",
                report_id,
                report.status or "-",
                attempt - 1,
                max_attempts,
            )
            cancel.wait(interval, "wait_for_report")
            report = self._reports.get_status(report_id)
        return report

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "DiagnocatClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
