"""Upload session operations.

An upload session is opened for a study, hands out presigned upload URLs per
file key, and is closed to start server-side processing. Closing does not
wait; completion is observed by SessionPollMonitor.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import requests

from ..core import StageError, TransientIOError, get_logger
from ..models import SessionStatus, UploadSession, UploadTarget
from .base import DiagnocatConnection

OPEN_SESSION_PATH = "/v1/upload/open-session"
REQUEST_UPLOAD_URLS_PATH = "/v1/upload/request-upload-urls"
CLOSE_SESSION_PATH = "/v1/upload/start-session-close"
SESSION_INFO_PATH = "/v1/upload/session-info"

# Server-side hiccups worth another poll rather than a hard failure
_TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}


def _require_id(value: object, what: str, stage: str) -> str:
    """Return ``value`` as a non-empty string or fail the stage.

    Ids here come from earlier responses, so a bad one is a protocol
    anomaly rather than a caller mistake.
    """
    if not isinstance(value, str) or not value.strip():
        raise StageError(stage, f"missing or invalid {what}: {value!r}")
    return value


class SessionService:
    """Open, feed and close Diagnocat upload sessions."""

    def __init__(self, connection: DiagnocatConnection) -> None:
        self.conn = connection
        self.log = get_logger(__name__)

    def open_session(self, study_uid: str) -> UploadSession:
        """Open an upload session for ``study_uid``.

        The request carries only ``study_uid``; the endpoint rejects the
        older patient-scoped body.

        Raises:
            StageError: On non-200 or an empty session id.
        """
        study_uid = _require_id(study_uid, "study uid", "open_session")
        data = self.conn.request_json(
            "POST",
            OPEN_SESSION_PATH,
            stage="open_session",
            json={"study_uid": study_uid},
        )

        session_id = str(data.get("session_id") or "")
        if not session_id:
            raise StageError(
                "open_session",
                f"empty session_id (error={data.get('error') or 'none'})",
                body=str(data),
            )

        self.log.info("Upload session opened: %s", session_id)
        return UploadSession(session_id=session_id)

    def request_upload_targets(
        self, session_id: str, keys: Sequence[str]
    ) -> List[UploadTarget]:
        """Request one presigned upload URL per file key.

        Raises:
            StageError: On non-200 or when no targets come back.
        """
        session_id = _require_id(session_id, "session id", "request_upload_urls")
        file_keys = list(keys)
        if not file_keys:
            raise StageError("request_upload_urls", "no file keys given")
        for key in file_keys:
            _require_id(key, "file key", "request_upload_urls")

        data = self.conn.request_json(
            "POST",
            REQUEST_UPLOAD_URLS_PATH,
            stage="request_upload_urls",
            json={"session_id": session_id, "keys": file_keys},
        )

        raw_targets = data.get("upload_urls") or []
        targets = [UploadTarget.from_dict(t) for t in raw_targets if isinstance(t, dict)]
        targets = [t for t in targets if t.url]
        if not targets:
            raise StageError(
                "request_upload_urls",
                f"no upload_urls returned (error={data.get('error') or 'none'})",
                body=str(data),
            )

        self.log.info("Received %d upload URL(s) for session %s", len(targets), session_id)
        return targets

    @staticmethod
    def select_target(targets: Sequence[UploadTarget], key: str) -> UploadTarget:
        """Return the target whose key is exactly ``key``.

        Raises:
            StageError: If no target matches.
        """
        for target in targets:
            if target.key == key:
                return target
        raise StageError(
            "request_upload_urls",
            f"no upload URL for key '{key}' (got: {', '.join(t.key for t in targets)})",
        )

    def close_session(self, session: UploadSession) -> UploadSession:
        """Ask the server to close the session and start processing.

        Returns immediately with the session in CLOSING.

        Raises:
            StageError: On non-200 or an explicit ``ok: false``.
        """
        data = self.conn.request_json(
            "POST",
            CLOSE_SESSION_PATH,
            stage="close_session",
            json={"session_id": session.session_id},
        )
        if data.get("ok") is False:
            raise StageError(
                "close_session",
                f"server refused to close session (error={data.get('error') or 'none'})",
                body=str(data),
            )

        session.advance(SessionStatus.CLOSING)
        self.log.info("Session close started: %s", session.session_id)
        return session

    def get_session_info(self, session_id: str) -> Tuple[str, Optional[str]]:
        """Query the remote status of a session.

        Returns:
            (status, error) as reported in ``session_info``.

        Raises:
            TransientIOError: On transport failures, 429/5xx responses and
                unreadable bodies; these are worth polling again.
            StageError: On any other non-200 response.
        """
        operation = "poll_session"
        resp = self.conn.get(
            SESSION_INFO_PATH,
            operation=operation,
            params={"session_id": session_id},
        )

        if resp.status_code in _TRANSIENT_STATUS_CODES:
            raise TransientIOError(
                operation,
                requests.exceptions.HTTPError(f"status {resp.status_code}", response=resp),
            )

        try:
            data = self.conn.decode_json(resp, stage=operation)
        except StageError as e:
            if resp.status_code == 200:
                raise TransientIOError(operation, e) from e
            raise

        info = data.get("session_info") or {}
        if not isinstance(info, dict):
            info = {}
        status = str(info.get("status") or "")
        error = info.get("error") or data.get("error") or None
        return status, error
