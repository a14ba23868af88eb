"""Tests for diagnocatio.config module."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from diagnocatio.config import (
    DEFAULT_API_URL,
    DEFAULT_CLIENT_HOST_ID,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POLL_MAX_ATTEMPTS,
    _parse_float,
    _parse_int,
    _str_to_bool,
    load_config,
)

ENV_VARS = [
    "DIAGNOCAT_API_URL",
    "DIAGNOCAT_API_KEY",
    "DIAGNOCAT_EMAIL",
    "DIAGNOCAT_PASSWORD",
    "DIAGNOCAT_CLIENT_HOST_ID",
    "DIAGNOCAT_VERIFY_TLS",
    "DIAGNOCAT_HTTP_TIMEOUT",
    "DIAGNOCAT_UPLOAD_CONNECT_TIMEOUT",
    "DIAGNOCAT_POLL_INTERVAL",
    "DIAGNOCAT_POLL_MAX_ATTEMPTS",
    "DIAGNOCAT_ANALYSIS_TYPE",
    "DIAGNOCAT_STUDY_TYPE",
]


class TestStrToBool:
    """Tests for _str_to_bool function."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("1", True),
            ("true", True),
            ("YES", True),
            ("on", True),
            ("0", False),
            ("False", False),
            ("no", False),
            ("off", False),
        ],
    )
    def test_valid_values(self, value: str, expected: bool) -> None:
        """Test that valid string values are parsed correctly."""
        assert _str_to_bool(value) == expected

    def test_none_returns_default(self) -> None:
        """Test that None returns the default value."""
        assert _str_to_bool(None, default=True) is True
        assert _str_to_bool(None, default=False) is False

    def test_invalid_returns_default(self) -> None:
        """Test that invalid values return the default."""
        assert _str_to_bool("maybe", default=False) is False
        assert _str_to_bool("", default=True) is True


class TestParseNumbers:
    """Tests for _parse_int and _parse_float."""

    def test_parse_int(self) -> None:
        assert _parse_int("42", default=0) == 42
        assert _parse_int("  7 ", default=0) == 7
        assert _parse_int(None, default=30) == 30
        assert _parse_int("2.5", default=30) == 30

    def test_parse_float(self) -> None:
        assert _parse_float("0.5", default=2.0) == 0.5
        assert _parse_float("3", default=2.0) == 3.0
        assert _parse_float(None, default=2.0) == 2.0
        assert _parse_float("fast", default=2.0) == 2.0


class TestLoadConfig:
    """Tests for load_config function."""

    @pytest.fixture
    def clean_env(self) -> Generator[None, None, None]:
        """Fixture to clean Diagnocat environment variables."""
        old_values = {k: os.environ.get(k) for k in ENV_VARS}
        for var in ENV_VARS:
            os.environ.pop(var, None)
        yield
        for var, val in old_values.items():
            if val is not None:
                os.environ[var] = val
            else:
                os.environ.pop(var, None)

    def test_load_with_api_key(self, clean_env: None) -> None:
        """An API key alone is enough, and defaults fill everything else."""
        os.environ["DIAGNOCAT_API_KEY"] = "key-123"

        cfg = load_config()

        assert cfg["api_key"] == "key-123"
        assert cfg["email"] is None
        assert cfg["api_url"] == DEFAULT_API_URL
        assert cfg["client_host_id"] == DEFAULT_CLIENT_HOST_ID
        assert cfg["verify_tls"] is True
        assert cfg["http_timeout"] == DEFAULT_HTTP_TIMEOUT
        assert cfg["poll_interval"] == DEFAULT_POLL_INTERVAL
        assert cfg["poll_max_attempts"] == DEFAULT_POLL_MAX_ATTEMPTS
        assert cfg["analysis_type"] == "GP"
        assert cfg["study_type"] == "CBCT"

    def test_load_with_email_password(self, clean_env: None) -> None:
        """Email and password are accepted in place of an API key."""
        os.environ["DIAGNOCAT_EMAIL"] = "doc@example.com"
        os.environ["DIAGNOCAT_PASSWORD"] = "secret"
        os.environ["DIAGNOCAT_POLL_INTERVAL"] = "0.5"
        os.environ["DIAGNOCAT_POLL_MAX_ATTEMPTS"] = "10"
        os.environ["DIAGNOCAT_VERIFY_TLS"] = "false"

        cfg = load_config()

        assert cfg["api_key"] is None
        assert cfg["email"] == "doc@example.com"
        assert cfg["password"] == "secret"
        assert cfg["poll_interval"] == 0.5
        assert cfg["poll_max_attempts"] == 10
        assert cfg["verify_tls"] is False

    def test_missing_credentials_raises(self, clean_env: None) -> None:
        """Missing credentials raise RuntimeError naming what is missing."""
        with pytest.raises(RuntimeError) as exc_info:
            load_config()
        assert "DIAGNOCAT_API_KEY" in str(exc_info.value)
        assert "DIAGNOCAT_EMAIL" in str(exc_info.value)

        os.environ["DIAGNOCAT_EMAIL"] = "doc@example.com"
        with pytest.raises(RuntimeError) as exc_info:
            load_config()
        assert "DIAGNOCAT_PASSWORD" in str(exc_info.value)
        assert "DIAGNOCAT_EMAIL," not in str(exc_info.value)

    def test_credentials_optional(self, clean_env: None) -> None:
        """require_credentials=False returns a config without credentials."""
        cfg = load_config(require_credentials=False)
        assert cfg["api_key"] is None
        assert cfg["password"] is None

    def test_load_from_env_file(self, clean_env: None) -> None:
        """Test loading config from a .env file."""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".env", delete=False) as f:
            f.write("DIAGNOCAT_API_URL=https://diagnocat.example.com/api\n")
            f.write("DIAGNOCAT_API_KEY=filekey\n")
            f.write("DIAGNOCAT_STUDY_TYPE=PANORAMA\n")
            env_path = Path(f.name)

        try:
            cfg = load_config(env_path)
            assert cfg["api_url"] == "https://diagnocat.example.com/api"
            assert cfg["api_key"] == "filekey"
            assert cfg["study_type"] == "PANORAMA"
        finally:
            env_path.unlink()

    def test_env_file_not_found_raises(self, clean_env: None) -> None:
        """Test that non-existent env file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(Path("/nonexistent/.env"))
