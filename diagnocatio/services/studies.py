"""Study and patient creation on the Diagnocat side."""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import quote

from ..core import (
    StageError,
    get_logger,
    utc_today,
    validate_identifier,
    validate_positive_int,
    validate_study_type,
)
from ..models import Patient, RemoteStudy
from .base import DiagnocatConnection

DEFAULT_STUDY_NAME = "Upload from API"
DEFAULT_PATIENT_LIMIT = 50


class StudyService:
    """Creates the remote resources an upload session hangs off.

    Handles:
    - Study creation scoped to an existing patient uid
    - Patient creation and listing
    """

    def __init__(self, connection: DiagnocatConnection) -> None:
        self.conn = connection
        self.log = get_logger(__name__)

    def create_study(
        self,
        patient_uid: str,
        *,
        study_type: str = "CBCT",
        study_name: Optional[str] = DEFAULT_STUDY_NAME,
        study_date: Optional[str] = None,
    ) -> RemoteStudy:
        """Create a study for ``patient_uid``.

        Args:
            patient_uid: Diagnocat patient uid.
            study_type: CBCT, PANORAMA, FMX or STL.
            study_name: Optional display name.
            study_date: YYYY-MM-DD, defaults to today (UTC).

        Returns:
            The created study.

        Raises:
            StageError: On a non-2xx response or a response without a uid.
        """
        patient_uid = validate_identifier(patient_uid, "patient uid")
        body: Dict[str, Any] = {
            "study_type": validate_study_type(study_type),
            "study_date": study_date or utc_today(),
        }
        if study_name:
            body["study_name"] = study_name

        self.log.info("Creating %s study for patient %s", body["study_type"], patient_uid)
        data = self.conn.request_json(
            "POST",
            f"/v2/patients/{quote(patient_uid, safe='')}/studies",
            stage="create_study",
            expected=(200, 201),
            json=body,
        )

        study = RemoteStudy.from_dict(data)
        if not study.uid:
            raise StageError("create_study", "response has no study uid", body=str(data))

        self.log.info("Study created: uid=%s id_v3=%s", study.uid, study.id_v3 or "-")
        return study

    def create_patient(
        self,
        first_name: str,
        last_name: str,
        *,
        gender: Optional[str] = None,
        date_of_birth: Optional[str] = None,
        patient_id: Optional[str] = None,
    ) -> Patient:
        """Create a patient record and return it with its Diagnocat uid.

        Raises:
            StageError: On a non-2xx response or a response without a uid.
        """
        body: Dict[str, Any] = {"name_part1": first_name, "name_part2": last_name}
        if gender:
            body["gender"] = gender
        if date_of_birth:
            body["date_of_birth"] = date_of_birth
        if patient_id:
            body["patient_id"] = patient_id

        data = self.conn.request_json(
            "POST",
            "/v2/patients",
            stage="create_patient",
            expected=(200, 201),
            json=body,
        )

        patient = Patient.from_dict(data)
        if not patient.uid:
            raise StageError("create_patient", "response has no patient uid", body=str(data))

        self.log.info("Patient created: uid=%s", patient.uid)
        return patient

    def list_patients(self, limit: int = DEFAULT_PATIENT_LIMIT) -> List[Patient]:
        """List patients visible to the account, at most ``limit`` of them.

        Raises:
            StageError: On a non-200 response or a body that is not a list.
        """
        limit = validate_positive_int(limit, "limit", max_value=1000)
        entries = self.conn.request_json_list(
            "/v2/patients", stage="list_patients", params={"limit": limit}
        )
        patients = [Patient.from_dict(entry) for entry in entries]
        self.log.info("Found %d patient(s)", len(patients))
        return patients
