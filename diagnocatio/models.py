"""Value objects exchanged between the pipeline stages.

Every object here is created from one API response and handed to the next
stage. Only ``UploadSession`` changes after creation, and only forward.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from .core import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class Credential:
    """A user token and the moment it stops being usable."""

    token: str
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return bool(self.token) and now < self.expires_at


@dataclass(frozen=True)
class RemoteStudy:
    uid: str
    id_v3: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RemoteStudy":
        return cls(uid=str(data.get("uid") or ""), id_v3=str(data.get("id_v3") or ""))


@dataclass(frozen=True)
class Patient:
    uid: str
    name_part1: str = ""
    name_part2: str = ""
    gender: str = ""
    date_of_birth: str = ""
    patient_id: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Patient":
        """Build from a create response or a listing entry.

        Listings nest the name as ``{given, family}`` and call the clinic id
        ``external_id``.
        """
        name = data.get("name") if isinstance(data.get("name"), dict) else {}
        return cls(
            uid=str(data.get("uid") or ""),
            name_part1=data.get("name_part1") or name.get("given") or "",
            name_part2=data.get("name_part2") or name.get("family") or "",
            gender=data.get("gender") or "",
            date_of_birth=data.get("date_of_birth") or "",
            patient_id=data.get("patient_id") or data.get("external_id") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {"uid": self.uid}
        for key in ("name_part1", "name_part2", "gender", "date_of_birth", "patient_id"):
            value = getattr(self, key)
            if value:
                data[key] = value
        return data


# =============================================================================
# Upload session state
# =============================================================================


class SessionStatus(enum.Enum):
    OPENED = "opened"
    CLOSING = "closing"
    CLOSED = "closed"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @property
    def terminal(self) -> bool:
        return self in (SessionStatus.CLOSED, SessionStatus.ERROR)

    @classmethod
    def from_remote(cls, value: Optional[str]) -> "SessionStatus":
        """Map a session-info status string to a local status.

        ``started`` and anything unrecognised count as still open.
        """
        normalized = (value or "").strip().lower()
        return _REMOTE_STATUS.get(normalized, cls.OPENED)


_STATUS_RANK = {
    SessionStatus.OPENED: 0,
    SessionStatus.CLOSING: 1,
    SessionStatus.CLOSED: 2,
    SessionStatus.ERROR: 2,
}

_REMOTE_STATUS = {
    "opened": SessionStatus.OPENED,
    "started": SessionStatus.OPENED,
    "closing": SessionStatus.CLOSING,
    "closed": SessionStatus.CLOSED,
    "error": SessionStatus.ERROR,
}


@dataclass
class UploadSession:
    """Server-side upload container, seen only through polling.

    Status only moves forward: OPENED -> CLOSING -> CLOSED | ERROR.
    """

    session_id: str
    status: SessionStatus = SessionStatus.OPENED
    error: str = ""

    def advance(self, new_status: SessionStatus, error: str = "") -> bool:
        """Record ``new_status`` if it moves the session forward.

        Returns:
            True if the recorded status changed. Backward moves, repeats and
            anything after a terminal state are ignored.
        """
        if self.status.terminal or new_status.rank <= self.status.rank:
            if new_status.rank < self.status.rank:
                log.debug(
                    "Ignoring backward session transition %s -> %s for %s",
                    self.status.value,
                    new_status.value,
                    self.session_id,
                )
            return False
        self.status = new_status
        if new_status is SessionStatus.ERROR:
            self.error = error
        return True


@dataclass(frozen=True)
class UploadTarget:
    key: str
    url: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UploadTarget":
        return cls(key=str(data.get("key") or ""), url=str(data.get("url") or ""))


# =============================================================================
# Analyses and reports
# =============================================================================


def resolve_report_id(uid: Optional[str], id_v3: Optional[str]) -> str:
    """The id used for report lookups: ``uid``, else ``id_v3``."""
    return uid or id_v3 or ""


@dataclass(frozen=True)
class Analysis:
    uid: str = ""
    id_v3: str = ""
    status: str = ""
    study_uid: str = ""
    patient_uid: str = ""
    analysis_type: str = ""
    complete: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Analysis":
        return cls(
            uid=str(data.get("uid") or ""),
            id_v3=str(data.get("id_v3") or ""),
            status=str(data.get("status") or ""),
            study_uid=str(data.get("study_uid") or ""),
            patient_uid=str(data.get("patient_uid") or ""),
            analysis_type=str(data.get("analysis_type") or ""),
            complete=bool(data.get("complete", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"report_id": self.report_id, "complete": self.complete}
        for key in ("uid", "id_v3", "status", "study_uid", "patient_uid", "analysis_type"):
            value = getattr(self, key)
            if value:
                data[key] = value
        return data

    @property
    def report_id(self) -> str:
        return resolve_report_id(self.uid, self.id_v3)


@dataclass
class Report:
    """Status/result projection of an analysis.

    ``error`` and ``diagnoses`` are opaque JSON payloads passed through as
    received.
    """

    id: str
    status: str = ""
    complete: bool = False
    pdf_url: str = ""
    webpage_url: str = ""
    preview_url: str = ""
    error: Any = None
    diagnoses: Optional[Dict[str, Any]] = None
    ortho_measurements: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Report":
        report = cls(
            id=str(data.get("id") or ""),
            status=str(data.get("status") or ""),
            complete=bool(data.get("complete", False)),
            pdf_url=data.get("pdf_url") or "",
            webpage_url=data.get("webpage_url") or "",
            preview_url=data.get("preview_url") or "",
            error=data.get("error"),
            diagnoses=data.get("diagnoses") or None,
        )
        if report.status and report.complete != (report.status.lower() == "complete"):
            log.warning(
                "Report %s: complete=%s disagrees with status=%r",
                report.id,
                report.complete,
                report.status,
            )
        return report

    @property
    def is_complete(self) -> bool:
        """True when ``complete`` or ``status == "complete"`` says so.

        Either signal is enough to fetch diagnoses. ``from_dict`` logs a
        disagreement between them once per response.
        """
        return self.complete or self.status.lower() == "complete"

    @property
    def has_error(self) -> bool:
        return self.error not in (None, "", {}, [])

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "status": self.status,
            "complete": self.complete,
        }
        for key in ("pdf_url", "webpage_url", "preview_url"):
            value = getattr(self, key)
            if value:
                data[key] = value
        if self.error is not None:
            data["error"] = self.error
        if self.diagnoses is not None:
            data["diagnoses"] = self.diagnoses
        if self.ortho_measurements is not None:
            data["ortho_measurements"] = self.ortho_measurements
        return data


@dataclass
class ReportExport:
    """Report plus diagnoses, stamped with the time they were fetched."""

    fetched_at: datetime
    source: str
    report_id: str
    report: Report
    diagnoses: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "fetched_at": self.fetched_at.isoformat(),
            "source": self.source,
            "report_id": self.report_id,
            "report": self.report.to_dict(),
        }
        if self.diagnoses is not None:
            data["diagnoses"] = self.diagnoses
        return data


@dataclass
class UploadStudyResult:
    """Identifiers produced by one run of the upload pipeline."""

    patient_uid: str
    study_uid: str
    study_id_v3: str
    session_id: str
    analysis_uid: str
    analysis_id_v3: str
    status: str
    uploaded_bytes: int = 0

    @property
    def report_id(self) -> str:
        return resolve_report_id(self.analysis_uid, self.analysis_id_v3)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patient_uid": self.patient_uid,
            "study_uid": self.study_uid,
            "study_id_v3": self.study_id_v3,
            "session_id": self.session_id,
            "analysis_uid": self.analysis_uid,
            "analysis_id_v3": self.analysis_id_v3,
            "status": self.status,
            "report_id": self.report_id,
        }
