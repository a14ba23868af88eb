"""Streaming payload upload to presigned storage URLs.

The payload goes up as a single PUT whose body is read from disk in chunks,
so large CBCT archives never sit in memory. Progress is logged at most every
two seconds.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import BinaryIO, Callable, Optional

import requests

from ..core import (
    CancelToken,
    StageError,
    format_bytes,
    get_audit_logger,
    get_logger,
    validate_path_exists,
)
from .base import DiagnocatConnection

ProgressCallback = Callable[[int, int], None]

PROGRESS_INTERVAL = 2.0  # seconds
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class ProgressReader:
    """File wrapper that reports bytes read while requests streams it.

    ``requests`` sizes the body through ``__len__`` and sends it with an
    explicit Content-Length.
    """

    def __init__(
        self,
        stream: BinaryIO,
        total: int,
        *,
        name: str = "payload",
        interval: float = PROGRESS_INTERVAL,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancelToken] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._stream = stream
        self.total = total
        self.name = name
        self.read_bytes = 0
        self._interval = interval
        self._on_progress = on_progress
        self._cancel = cancel
        self._clock = clock
        self._last_report = clock()
        self.log = get_logger(__name__)

    def __len__(self) -> int:
        return self.total

    def read(self, size: int = -1) -> bytes:
        if self._cancel is not None:
            self._cancel.raise_if_cancelled("upload")

        chunk = self._stream.read(size)
        self.read_bytes += len(chunk)

        now = self._clock()
        if now - self._last_report >= self._interval:
            self._last_report = now
            self._report()
        return chunk

    def _report(self) -> None:
        percent = (self.read_bytes / self.total * 100) if self.total else 100.0
        self.log.info(
            "%s: uploaded %s / %s (%.1f%%)",
            self.name,
            format_bytes(self.read_bytes),
            format_bytes(self.total),
            percent,
        )
        if self._on_progress is not None:
            self._on_progress(self.read_bytes, self.total)


class UploadService:
    """PUT payloads to presigned upload targets.

    Presigned URLs carry their own authorization, so no API bearer header is
    sent. The request has a connect timeout but no read timeout: multi-GB
    payloads legitimately take many minutes.
    """

    def __init__(self, connection: DiagnocatConnection) -> None:
        self.conn = connection
        self.log = get_logger(__name__)
        self._audit = get_audit_logger()

    def upload(
        self,
        url: str,
        stream: BinaryIO,
        total_size: int,
        *,
        name: str = "payload",
        content_type: str = DEFAULT_CONTENT_TYPE,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancelToken] = None,
    ) -> int:
        """Stream ``total_size`` bytes from ``stream`` to ``url``.

        Returns:
            Number of bytes sent.

        Raises:
            StageError: On a transport failure or any non-2xx response.
            OperationCancelledError: If ``cancel`` fires mid-transfer.
        """
        reader = ProgressReader(
            stream,
            total_size,
            name=name,
            on_progress=on_progress,
            cancel=cancel,
        )
        headers = {
            "Content-Type": content_type,
            "Content-Length": str(total_size),
        }

        started = time.monotonic()
        try:
            resp = self.conn.session.put(
                url,
                data=reader,
                headers=headers,
                timeout=self.conn.upload_timeouts,
                verify=self.conn.verify_tls,
            )
        except requests.exceptions.RequestException as e:
            raise StageError("upload", f"PUT failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise StageError(
                "upload",
                f"storage rejected upload with status {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text,
            )

        elapsed = time.monotonic() - started
        self.log.info(
            "%s: upload complete (%s in %.1fs, status %d)",
            name,
            format_bytes(reader.read_bytes),
            elapsed,
            resp.status_code,
        )
        return reader.read_bytes

    def upload_file(
        self,
        url: str,
        file_path: Path,
        *,
        content_type: str = DEFAULT_CONTENT_TYPE,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancelToken] = None,
    ) -> int:
        """Stream a local file to ``url``; see ``upload``."""
        file_path = validate_path_exists(file_path, must_be_file=True, description="upload file")
        size = file_path.stat().st_size
        self.log.info("Uploading %s (%s)", file_path.name, format_bytes(size))

        with open(file_path, "rb") as f:
            sent = self.upload(
                url,
                f,
                size,
                name=file_path.name,
                content_type=content_type,
                on_progress=on_progress,
                cancel=cancel,
            )

        self._audit.log_operation(
            "upload_payload",
            details={"file": file_path.name, "size_mb": round(size / (1024 * 1024), 2)},
            success=True,
        )
        return sent
