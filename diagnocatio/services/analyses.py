from __future__ import annotations

from urllib.parse import quote

from ..core import get_logger, validate_analysis_type, validate_identifier
from ..models import Analysis
from .base import DiagnocatConnection

DEFAULT_ANALYSIS_TYPE = "GP"


class AnalysisService:
    """Trigger AI analysis on a study whose upload session has closed."""

    def __init__(self, connection: DiagnocatConnection) -> None:
        self.conn = connection
        self.log = get_logger(__name__)

    def request_analysis(
        self, study_uid: str, analysis_type: str = DEFAULT_ANALYSIS_TYPE
    ) -> Analysis:
        """Request an analysis of ``analysis_type`` (GP, CBCT_ORTHO, ...).

        Raises:
            StageError: On a non-2xx response.
        """
        study_uid = validate_identifier(study_uid, "study uid")
        analysis_type = validate_analysis_type(analysis_type)

        data = self.conn.request_json(
            "POST",
            f"/v2/studies/{quote(study_uid, safe='')}/analyses",
            stage="request_analysis",
            expected=(200, 201),
            json={"analysis_type": analysis_type},
        )

        analysis = Analysis.from_dict(data)
        self.log.info(
            "Analysis %s requested: uid=%s id_v3=%s; report id for status checks: %s",
            analysis_type,
            analysis.uid or "-",
            analysis.id_v3 or "-",
            analysis.report_id or "-",
        )
        if not analysis.report_id:
            self.log.warning("Analysis response for study %s carried no identifier", study_uid)
        return analysis
