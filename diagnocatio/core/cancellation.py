"""Cooperative cancellation for long-running pipeline calls."""

from __future__ import annotations

import threading
import time
from typing import Optional

from .exceptions import OperationCancelledError


class CancelToken:
    """Cancellation signal with an optional deadline.

    The pipeline checks the token between stages, inside the poll wait and on
    every chunk read during upload. ``cancel()`` may be called from any thread.

    Usage:
        token = CancelToken(timeout=3600)
        client.upload_study(patient_uid, path, cancel=token)

        # elsewhere
        token.cancel()
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, or None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self, operation: str) -> None:
        if self.cancelled:
            raise OperationCancelledError(operation)
        if self.expired:
            raise OperationCancelledError(operation, "deadline exceeded")

    def wait(self, seconds: float, operation: str = "wait") -> None:
        """Sleep up to ``seconds``, waking early on cancel or deadline.

        Raises:
            OperationCancelledError: If cancelled or past the deadline.
        """
        self.raise_if_cancelled(operation)
        remaining = self.remaining()
        timeout = seconds if remaining is None else min(seconds, remaining)
        self._event.wait(timeout)
        self.raise_if_cancelled(operation)
