"""Polling of upload session status after close.

The remote side processes a closed session asynchronously; the only way to
see it finish is to ask. SessionPollMonitor asks a bounded number of times:

- ``closed`` ends polling successfully, right away.
- ``error`` ends polling with RemoteTerminalError.
- a transport failure uses up one attempt and polling goes on.
- running out of attempts raises PollTimeoutError.
"""

from __future__ import annotations

from typing import Optional

from ..core import (
    CancelToken,
    PollTimeoutError,
    RemoteTerminalError,
    TransientIOError,
    get_logger,
    validate_positive_int,
    validate_timeout,
)
from ..models import SessionStatus, UploadSession
from .sessions import SessionService

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_MAX_ATTEMPTS = 180


class SessionPollMonitor:
    """Wait for a closing upload session to reach CLOSED or ERROR."""

    def __init__(
        self,
        sessions: SessionService,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self.sessions = sessions
        self.interval = validate_timeout(interval, "poll_interval", min_value=0, max_value=600)
        self.max_attempts = validate_positive_int(max_attempts, "poll_max_attempts", max_value=100000)
        self.log = get_logger(__name__)

    def wait_until_closed(
        self,
        session: UploadSession,
        *,
        cancel: Optional[CancelToken] = None,
    ) -> UploadSession:
        """Poll until ``session`` is closed.

        Waits ``interval`` seconds between queries, never before the first
        query and never after a terminal one.

        Returns:
            The session, now CLOSED.

        Raises:
            RemoteTerminalError: If the server reports status=error.
            PollTimeoutError: If ``max_attempts`` queries pass without a
                terminal status.
            OperationCancelledError: If ``cancel`` fires or its deadline passes.
        """
        cancel = cancel or CancelToken()
        last_status: Optional[str] = None

        self.log.info(
            "Waiting for session %s processing (up to %d checks every %.1fs)",
            session.session_id,
            self.max_attempts,
            self.interval,
        )

        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1:
                cancel.wait(self.interval, "poll_session")
            else:
                cancel.raise_if_cancelled("poll_session")

            try:
                remote_status, error = self.sessions.get_session_info(session.session_id)
            except TransientIOError as e:
                self.log.warning(
                    "Session %s status check %d/%d failed: %s",
                    session.session_id,
                    attempt,
                    self.max_attempts,
                    e,
                )
                continue

            last_status = remote_status or last_status
            observed = SessionStatus.from_remote(remote_status)
            if session.advance(observed, error or ""):
                self.log.info(
                    "Session %s is now %s (check %d)",
                    session.session_id,
                    session.status.value,
                    attempt,
                )
            else:
                self.log.debug(
                    "Session %s check %d: remote status %r",
                    session.session_id,
                    attempt,
                    remote_status,
                )

            if session.status is SessionStatus.CLOSED:
                self.log.info("Session %s processing complete", session.session_id)
                return session
            if session.status is SessionStatus.ERROR:
                raise RemoteTerminalError(session.session_id, session.error)

        raise PollTimeoutError(session.session_id, self.max_attempts, last_status)
