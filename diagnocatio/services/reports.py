"""Report retrieval, PDF download and export assembly.

These calls are keyed only by a report id (the analysis ``uid``, or its
``id_v3`` when the uid is empty) and can run long after the upload.

Sub-resource failures are handled differently depending on the caller:
``get_status`` swallows a failed diagnoses fetch and returns the report
without diagnoses; ``export_report`` propagates it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

from ..core import (
    DiagnocatError,
    LogContext,
    StageError,
    TransientIOError,
    ValidationError,
    format_bytes,
    get_audit_logger,
    get_logger,
    utc_now,
    validate_identifier,
    validate_output_path,
)
from ..models import Analysis, Report, ReportExport
from .base import DiagnocatConnection

PDF_ERROR_BODY_LIMIT = 64 * 1024


def _report_path(report_id: str, suffix: str = "") -> str:
    return f"/v2/analyses/{quote(report_id, safe='')}{suffix}"


class ReportService:
    """Fetch reports, their diagnostic sub-resources, PDFs and exports."""

    def __init__(self, connection: DiagnocatConnection) -> None:
        self.conn = connection
        self.log = get_logger(__name__)
        self._audit = get_audit_logger()

    # =========================================================================
    # Report status
    # =========================================================================

    def get_status(self, report_id: str) -> Report:
        """Fetch a report; when complete, attach diagnoses and ortho measurements.

        A failed diagnoses or ortho fetch is logged and the report is
        returned without it.

        Raises:
            StageError: If the report itself cannot be fetched.
        """
        report_id = validate_identifier(report_id, "report id")
        data = self.conn.request_json("GET", _report_path(report_id), stage="get_report")
        report = Report.from_dict(data)
        if not report.id:
            report.id = report_id

        if report.is_complete:
            try:
                report.diagnoses = self.get_diagnoses(report_id)
            except DiagnocatError as e:
                # Only a successful fetch may populate diagnoses
                report.diagnoses = None
                self.log.warning("Report %s: diagnoses unavailable: %s", report_id, e)

            try:
                report.ortho_measurements = self.get_ortho_measurements(report_id)
            except DiagnocatError as e:
                self.log.warning("Report %s: ortho measurements unavailable: %s", report_id, e)

        return report

    def get_diagnoses(self, report_id: str) -> Dict[str, Any]:
        """Fetch tooth-level diagnoses for a completed report.

        Raises:
            StageError: On any failure.
        """
        report_id = validate_identifier(report_id, "report id")
        return self.conn.request_json(
            "GET", _report_path(report_id, "/diagnoses"), stage="get_diagnoses"
        )

    def get_ortho_measurements(self, report_id: str) -> Optional[Dict[str, Any]]:
        """Fetch orthodontic measurements.

        Returns:
            The measurements, or None when the analysis type has none (404).

        Raises:
            StageError: On any other failure.
        """
        report_id = validate_identifier(report_id, "report id")
        stage = "get_ortho_measurements"
        try:
            resp = self.conn.get(_report_path(report_id, "/ortho-measurements"), operation=stage)
        except TransientIOError as e:
            raise StageError(stage, f"request failed: {e.cause}") from e

        if resp.status_code == 404:
            self.log.debug("Report %s has no ortho measurements", report_id)
            return None
        return self.conn.decode_json(resp, stage=stage)

    def list_analyses(self, patient_uid: str) -> List[Analysis]:
        """List the analyses requested for a patient.

        Raises:
            StageError: On a non-200 response or a body that is not a list.
        """
        patient_uid = validate_identifier(patient_uid, "patient uid")
        entries = self.conn.request_json_list(
            "/v2/analyses", stage="list_analyses", params={"patient_uid": patient_uid}
        )
        analyses = [Analysis.from_dict(entry) for entry in entries]
        self.log.info("Patient %s has %d analysis(es)", patient_uid, len(analyses))
        return analyses

    # =========================================================================
    # PDF
    # =========================================================================

    def download_pdf(self, report_id: str, destination: Union[str, Path]) -> Path:
        """Stream the report PDF to ``destination``, creating parent directories.

        Returns:
            Resolved path of the written PDF.

        Raises:
            ValidationError: If the report id or destination is empty.
            StageError: On a non-200 response or a transport failure.
        """
        if not report_id:
            raise ValidationError("report id is required", operation="download_pdf")
        if not destination:
            raise ValidationError("output path is required", operation="download_pdf")

        report_id = validate_identifier(report_id, "report id")
        out_path = validate_output_path(destination, "PDF output path")
        stage = "download_pdf"

        with LogContext(stage, self.log, report=report_id, path=str(out_path)):
            try:
                resp = self.conn.get(
                    _report_path(report_id, "/pdf"),
                    operation=stage,
                    headers={"Accept": "application/pdf"},
                    stream=True,
                )
            except TransientIOError as e:
                raise StageError(stage, f"request failed: {e.cause}") from e

            with resp:
                if resp.status_code != 200:
                    body = next(resp.iter_content(PDF_ERROR_BODY_LIMIT), b"")
                    raise StageError(
                        stage,
                        f"unexpected status {resp.status_code}",
                        status_code=resp.status_code,
                        body=body.decode("utf-8", errors="replace"),
                    )

                total = 0
                try:
                    with open(out_path, "wb") as f:
                        for chunk in resp.iter_content(chunk_size=1024 * 1024):
                            if not chunk:
                                continue
                            f.write(chunk)
                            total += len(chunk)
                except OSError as e:
                    raise StageError(stage, f"failed to write PDF: {e}") from e

            self.log.info("%s: PDF saved (%s)", out_path.name, format_bytes(total))

        self._audit.log_operation(
            stage,
            report=report_id,
            details={"path": str(out_path), "bytes": total},
            success=True,
        )
        return out_path

    # =========================================================================
    # Export
    # =========================================================================

    def export_report(self, report_id: str) -> ReportExport:
        """Bundle a report and its diagnoses into a timestamped export.

        Unlike ``get_status``, a failed diagnoses fetch fails the export.

        Raises:
            StageError: If the report or (for complete reports) the
                diagnoses cannot be fetched.
        """
        report_id = validate_identifier(report_id, "report id")

        with LogContext("export_report", self.log, report=report_id) as ctx:
            try:
                report = self.get_status(report_id)

                diagnoses: Optional[Dict[str, Any]] = None
                if report.is_complete:
                    diagnoses = report.diagnoses
                    if diagnoses is None:
                        diagnoses = self.get_diagnoses(report_id)
                ctx.add_detail("complete", report.is_complete)
            except DiagnocatError as e:
                self._audit.log_operation(
                    "export_report", report=report_id, success=False, error=str(e)
                )
                raise

        self._audit.log_operation(
            "export_report",
            report=report_id,
            details={"complete": report.complete, "with_diagnoses": diagnoses is not None},
            success=True,
        )
        return ReportExport(
            fetched_at=utc_now(),
            source=self.conn.api_url,
            report_id=report_id,
            report=report,
            diagnoses=diagnoses,
        )
