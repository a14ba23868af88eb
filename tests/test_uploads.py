"""Tests for diagnocatio.services.uploads."""

from __future__ import annotations

import io
from pathlib import Path
from unittest import mock

import pytest
import requests

from diagnocatio.core import (
    CancelToken,
    OperationCancelledError,
    PathValidationError,
    StageError,
)
from diagnocatio.services import ProgressReader, UploadService

PUT_URL = "https://storage.example.com/bucket/scan.zip?X-Amz-Signature=abc"


def _drain(url, data, **kwargs):
    """Read the body the way requests would while sending it."""
    while data.read(4):
        pass
    resp = requests.Response()
    resp.status_code = 200
    resp._content = b""
    return resp


class TestProgressReader:
    """Tests for ProgressReader."""

    def test_len_and_counting(self) -> None:
        reader = ProgressReader(io.BytesIO(b"abcdefghij"), 10)
        assert len(reader) == 10
        assert reader.read(4) == b"abcd"
        assert reader.read() == b"efghij"
        assert reader.read_bytes == 10

    def test_progress_reported_at_interval(self) -> None:
        """Progress fires once the interval has elapsed, not on every chunk."""
        ticks = iter([0.0, 0.5, 1.0, 2.5, 3.0, 5.0])
        progress = mock.Mock()
        reader = ProgressReader(
            io.BytesIO(b"x" * 50),
            50,
            interval=2.0,
            on_progress=progress,
            clock=lambda: next(ticks),
        )

        for _ in range(5):
            reader.read(10)

        assert progress.call_args_list == [mock.call(30, 50), mock.call(50, 50)]

    def test_cancel_stops_reading(self) -> None:
        cancel = CancelToken()
        reader = ProgressReader(io.BytesIO(b"x" * 10), 10, cancel=cancel)
        reader.read(5)
        cancel.cancel()
        with pytest.raises(OperationCancelledError):
            reader.read(5)


class TestUpload:
    """Tests for UploadService.upload."""

    def test_put_without_bearer(self, connection, http_session, make_response) -> None:
        http_session.put.return_value = make_response(200)

        sent = UploadService(connection).upload(PUT_URL, io.BytesIO(b"payload"), 7, name="scan.zip")

        args, kwargs = http_session.put.call_args
        assert args == (PUT_URL,)
        assert isinstance(kwargs["data"], ProgressReader)
        assert kwargs["headers"] == {
            "Content-Type": "application/octet-stream",
            "Content-Length": "7",
        }
        assert kwargs["timeout"] == (60, None)
        assert sent == 0  # the mock never read the body

    def test_streams_whole_body(self, connection, http_session) -> None:
        http_session.put.side_effect = _drain
        sent = UploadService(connection).upload(PUT_URL, io.BytesIO(b"x" * 4096), 4096)
        assert sent == 4096

    @pytest.mark.parametrize("status", [201, 204])
    def test_any_2xx_succeeds(self, connection, http_session, make_response, status) -> None:
        http_session.put.return_value = make_response(status)
        UploadService(connection).upload(PUT_URL, io.BytesIO(b"x"), 1)

    def test_storage_rejection(self, connection, http_session, make_response) -> None:
        http_session.put.return_value = make_response(
            403, content=b"<Error><Code>SignatureDoesNotMatch</Code></Error>"
        )
        with pytest.raises(StageError) as exc_info:
            UploadService(connection).upload(PUT_URL, io.BytesIO(b"x"), 1)
        err = exc_info.value
        assert err.stage == "upload"
        assert err.status_code == 403
        assert "SignatureDoesNotMatch" in err.body

    def test_transport_failure(self, connection, http_session) -> None:
        http_session.put.side_effect = requests.exceptions.ConnectionError("reset by peer")
        with pytest.raises(StageError) as exc_info:
            UploadService(connection).upload(PUT_URL, io.BytesIO(b"x"), 1)
        assert exc_info.value.status_code is None

    def test_cancel_mid_transfer(self, connection, http_session) -> None:
        cancel = CancelToken()

        def put(url, data, **kwargs):
            data.read(4)
            cancel.cancel()
            return _drain(url, data)

        http_session.put.side_effect = put
        with pytest.raises(OperationCancelledError):
            UploadService(connection).upload(PUT_URL, io.BytesIO(b"x" * 64), 64, cancel=cancel)


class TestUploadFile:
    """Tests for UploadService.upload_file."""

    def test_uploads_file(self, connection, http_session, tmp_path: Path) -> None:
        payload = tmp_path / "scan.zip"
        payload.write_bytes(b"z" * 1000)
        http_session.put.side_effect = _drain

        sent = UploadService(connection).upload_file(PUT_URL, payload)

        assert sent == 1000
        assert http_session.put.call_args[1]["headers"]["Content-Length"] == "1000"

    def test_missing_file(self, connection, http_session, tmp_path: Path) -> None:
        with pytest.raises(PathValidationError):
            UploadService(connection).upload_file(PUT_URL, tmp_path / "missing.zip")
        http_session.put.assert_not_called()
