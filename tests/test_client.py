"""Tests for diagnocatio.client module (DiagnocatClient facade)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Tuple
from unittest import mock

import pytest

from diagnocatio.client import DiagnocatClient
from diagnocatio.config import DiagnocatConfig
from diagnocatio.core import (
    CancelToken,
    OperationCancelledError,
    PollTimeoutError,
    RemoteTerminalError,
    StageError,
    zip_dir_to_temp,
)
from diagnocatio.models import Report

API_URL = "https://diagnocat.example.com/partner-api"
PUT_URL = "https://storage.example.com/put?sig=1"


class FakeApi:
    """Routes session.request calls by (method, path) to queued responses."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str]] = []
        self.routes: Dict[Tuple[str, str], list] = {}

    def on(self, method: str, path: str, *responses) -> None:
        self.routes[(method, path)] = list(responses)

    def request(self, method, url, **kwargs):
        path = url[len(API_URL):]
        self.calls.append((method, path))
        queue = self.routes[(method, path)]
        return queue.pop(0) if len(queue) > 1 else queue[0]


@pytest.fixture
def api(http_session, make_response) -> FakeApi:
    fake = FakeApi()
    http_session.request.side_effect = fake.request

    def put(url, data, **kwargs):
        while data.read(64 * 1024):
            pass
        fake.calls.append(("PUT", url))
        return make_response(200)

    http_session.put.side_effect = put

    fake.on("POST", "/v2/patients/PAT1/studies", make_response(201, {"uid": "STU1", "id_v3": "9"}))
    fake.on("POST", "/v1/upload/open-session", make_response(200, {"session_id": "SES1"}))
    fake.on(
        "POST",
        "/v1/upload/request-upload-urls",
        make_response(200, {"upload_urls": [{"key": "scan.zip", "url": PUT_URL}]}),
    )
    fake.on("POST", "/v1/upload/start-session-close", make_response(200, {"ok": True}))
    fake.on(
        "GET",
        "/v1/upload/session-info",
        make_response(200, {"session_info": {"status": "started"}}),
        make_response(200, {"session_info": {"status": "closed"}}),
    )
    fake.on(
        "POST",
        "/v2/studies/STU1/analyses",
        make_response(201, {"uid": "AN1", "id_v3": "501", "status": "pending"}),
    )
    return fake


@pytest.fixture
def client(connection) -> DiagnocatClient:
    return DiagnocatClient(connection, poll_interval=0, poll_max_attempts=5)


@pytest.fixture
def scan(tmp_path: Path) -> Path:
    path = tmp_path / "scan.zip"
    path.write_bytes(b"PK" + b"\x00" * 2046)
    return path


class TestFromConfig:
    def test_from_config(self) -> None:
        cfg: DiagnocatConfig = {
            "api_url": API_URL,
            "api_key": "k",
            "email": None,
            "password": None,
            "client_host_id": "dental-clinic-backend",
            "verify_tls": True,
            "http_timeout": 30,
            "upload_connect_timeout": 60,
            "poll_interval": 1.5,
            "poll_max_attempts": 7,
            "analysis_type": "CBCT_ORTHO",
            "study_type": "PANORAMA",
        }
        client = DiagnocatClient.from_config(cfg)

        assert client.api_url == API_URL
        assert client.analysis_type == "CBCT_ORTHO"
        assert client.study_type == "PANORAMA"

    def test_custom_logger(self, connection) -> None:
        custom = logging.getLogger("custom")
        assert DiagnocatClient(connection, logger=custom).log is custom


class TestUploadStudy:
    """Tests for the upload pipeline."""

    def test_stages_run_in_order(self, client, api, scan) -> None:
        result = client.upload_study("PAT1", scan)

        assert api.calls == [
            ("POST", "/v2/patients/PAT1/studies"),
            ("POST", "/v1/upload/open-session"),
            ("POST", "/v1/upload/request-upload-urls"),
            ("PUT", PUT_URL),
            ("POST", "/v1/upload/start-session-close"),
            ("GET", "/v1/upload/session-info"),
            ("GET", "/v1/upload/session-info"),
            ("POST", "/v2/studies/STU1/analyses"),
        ]
        assert result.patient_uid == "PAT1"
        assert result.study_uid == "STU1"
        assert result.study_id_v3 == "9"
        assert result.session_id == "SES1"
        assert result.report_id == "AN1"
        assert result.status == "pending"
        assert result.uploaded_bytes == 2048

    def test_key_is_file_name_and_type_defaults(self, client, api, http_session, scan) -> None:
        client.upload_study("PAT1", scan, analysis_type="gp")

        bodies = {
            call[0][1][len(API_URL):]: call[1].get("json")
            for call in http_session.request.call_args_list
        }
        assert bodies["/v1/upload/request-upload-urls"]["keys"] == ["scan.zip"]
        assert bodies["/v2/patients/PAT1/studies"]["study_type"] == "CBCT"
        assert bodies["/v2/studies/STU1/analyses"] == {"analysis_type": "GP"}

    def test_report_id_falls_back_to_id_v3(self, client, api, make_response, scan) -> None:
        api.on("POST", "/v2/studies/STU1/analyses", make_response(201, {"uid": "", "id_v3": "X123"}))
        assert client.upload_study("PAT1", scan).report_id == "X123"

    def test_directory_is_zipped(self, client, api, http_session, make_response, tmp_path) -> None:
        series = tmp_path / "CT_SERIES"
        series.mkdir()
        (series / "slice001.dcm").write_bytes(b"d" * 100)
        api.on(
            "POST",
            "/v1/upload/request-upload-urls",
            make_response(200, {"upload_urls": [{"key": "CT_SERIES.zip", "url": PUT_URL}]}),
        )
        created = []
        def tracking_zip(path):
            zip_path = zip_dir_to_temp(path)
            created.append(zip_path)
            return zip_path

        with mock.patch("diagnocatio.client.zip_dir_to_temp", side_effect=tracking_zip):
            result = client.upload_study("PAT1", series)

        assert result.uploaded_bytes > 0
        assert len(created) == 1
        assert not created[0].exists()

    def test_failure_names_orphans(self, client, api, make_response, scan, caplog) -> None:
        """A failed stage leaves created resources in place and says so."""
        api.on("POST", "/v1/upload/start-session-close", make_response(500, {"error": "down"}))

        with caplog.at_level(logging.WARNING, logger="diagnocatio"):
            with pytest.raises(StageError) as exc_info:
                client.upload_study("PAT1", scan)

        assert exc_info.value.stage == "close_session"
        assert "STU1" in caplog.text
        assert "SES1" in caplog.text
        assert ("POST", "/v2/studies/STU1/analyses") not in api.calls

    def test_first_stage_failure_leaves_nothing(self, client, api, make_response, scan, caplog) -> None:
        api.on("POST", "/v2/patients/PAT1/studies", make_response(404, {"error": "no patient"}))

        with caplog.at_level(logging.WARNING, logger="diagnocatio"):
            with pytest.raises(StageError):
                client.upload_study("PAT1", scan)

        assert "left in place" not in caplog.text
        assert api.calls == [("POST", "/v2/patients/PAT1/studies")]

    def test_missing_upload_target(self, client, api, make_response, scan) -> None:
        api.on(
            "POST",
            "/v1/upload/request-upload-urls",
            make_response(200, {"upload_urls": [{"key": "other.zip", "url": PUT_URL}]}),
        )
        with pytest.raises(StageError) as exc_info:
            client.upload_study("PAT1", scan)
        assert exc_info.value.stage == "request_upload_urls"

    def test_session_error_stops_pipeline(self, client, api, make_response, scan) -> None:
        api.on(
            "GET",
            "/v1/upload/session-info",
            make_response(200, {"session_info": {"status": "error", "error": "corrupt archive"}}),
        )
        with pytest.raises(RemoteTerminalError):
            client.upload_study("PAT1", scan)
        assert ("POST", "/v2/studies/STU1/analyses") not in api.calls

    def test_poll_exhaustion(self, connection, api, make_response, scan) -> None:
        api.on(
            "GET",
            "/v1/upload/session-info",
            make_response(200, {"session_info": {"status": "started"}}),
        )
        client = DiagnocatClient(connection, poll_interval=0, poll_max_attempts=3)

        with pytest.raises(PollTimeoutError):
            client.upload_study("PAT1", scan)
        assert api.calls.count(("GET", "/v1/upload/session-info")) == 3

    def test_cancelled_before_start(self, client, api, scan) -> None:
        cancel = CancelToken()
        cancel.cancel()
        with pytest.raises(OperationCancelledError):
            client.upload_study("PAT1", scan, cancel=cancel)
        assert api.calls == []


class TestReports:
    """Tests for report delegation and wait_for_report."""

    def test_wait_for_report_until_complete(self, client, api, make_response) -> None:
        api.on(
            "GET",
            "/v2/analyses/R1",
            make_response(200, {"id": "R1", "status": "in_progress"}),
            make_response(200, {"id": "R1", "status": "complete", "complete": True}),
        )
        api.on("GET", "/v2/analyses/R1/diagnoses", make_response(200, {"teeth": []}))
        api.on("GET", "/v2/analyses/R1/ortho-measurements", make_response(404, {}))

        report = client.wait_for_report("R1", interval=0, max_attempts=5)

        assert isinstance(report, Report)
        assert report.is_complete
        assert report.diagnoses == {"teeth": []}
        assert api.calls.count(("GET", "/v2/analyses/R1")) == 2

    def test_wait_for_report_stops_on_error(self, client, api, make_response) -> None:
        api.on("GET", "/v2/analyses/R1", make_response(200, {"id": "R1", "error": "bad scan"}))
        report = client.wait_for_report("R1", interval=0, max_attempts=5)
        assert report.has_error
        assert api.calls.count(("GET", "/v2/analyses/R1")) == 1

    def test_wait_for_report_gives_up(self, client, api, make_response) -> None:
        api.on("GET", "/v2/analyses/R1", make_response(200, {"id": "R1", "status": "in_progress"}))
        report = client.wait_for_report("R1", interval=0, max_attempts=3)
        assert not report.is_complete
        assert api.calls.count(("GET", "/v2/analyses/R1")) == 3
