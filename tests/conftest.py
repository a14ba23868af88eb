"""Shared fixtures for diagnocatio tests."""

from __future__ import annotations

import json
import logging
from typing import Any, Generator, Optional
from unittest import mock

import pytest
import requests

from diagnocatio.services import CredentialCache, DiagnocatConnection


@pytest.fixture(autouse=True)
def reset_package_loggers() -> Generator[None, None, None]:
    """Undo setup_logging between tests so caplog keeps seeing records."""
    yield
    for name in ("diagnocatio", "diagnocatio.audit"):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.setLevel(logging.NOTSET)
        logger.propagate = True


@pytest.fixture
def make_response():
    """Factory for real ``requests.Response`` objects with a canned body."""

    def _make(status: int = 200, json_body: Any = None, *, content: Optional[bytes] = None):
        resp = requests.Response()
        resp.status_code = status
        if content is None:
            content = b"" if json_body is None else json.dumps(json_body).encode("utf-8")
        resp._content = content
        resp._content_consumed = True
        resp.encoding = "utf-8"
        resp.url = "https://diagnocat.example.com/partner-api"
        return resp

    return _make


API_URL = "https://diagnocat.example.com/partner-api"


@pytest.fixture
def http_session() -> mock.Mock:
    """Stand-in for the shared ``requests.Session``."""
    return mock.Mock(spec=requests.Session)


@pytest.fixture
def connection(http_session: mock.Mock):
    """A DiagnocatConnection authenticated with a static API key."""
    credentials = CredentialCache(API_URL, api_key="test-key", session=http_session)
    return DiagnocatConnection(API_URL, credentials, timeout=30, upload_connect_timeout=60)
