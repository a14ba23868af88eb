from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, TypedDict

from dotenv import load_dotenv


class DiagnocatConfig(TypedDict):
    """Configuration dictionary for the Diagnocat partner API.

    Attributes:
        api_url: Base URL of the partner API.
        api_key: Static API key; when set, email/password are not used.
        email: Account email for token issuance.
        password: Account password for token issuance.
        client_host_id: Client identifier sent with token requests.
        verify_tls: Whether to verify TLS certificates (default True).
        http_timeout: Timeout in seconds for metadata calls (default 30).
        upload_connect_timeout: Connect timeout for the payload PUT (default 60).
            The PUT itself has no read timeout.
        poll_interval: Seconds between session status queries (default 2).
        poll_max_attempts: Status query budget before timing out (default 180).
        analysis_type: Analysis requested after upload (default GP).
        study_type: Study type for created studies (default CBCT).
    """

    api_url: str
    api_key: Optional[str]
    email: Optional[str]
    password: Optional[str]
    client_host_id: str
    verify_tls: bool
    http_timeout: int
    upload_connect_timeout: int
    poll_interval: float
    poll_max_attempts: int
    analysis_type: str
    study_type: str


def _str_to_bool(value: Optional[str], default: bool = True) -> bool:
    if value is None:
        return default
    value_norm = value.strip().lower()
    if value_norm in {"1", "true", "yes", "y", "on"}:
        return True
    if value_norm in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _parse_int(value: Optional[str], default: int) -> int:
    """Parse a string to an integer with a fallback default."""
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def _parse_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    try:
        return float(value.strip())
    except ValueError:
        return default


DEFAULT_API_URL = "https://app2.diagnocat.ru/partner-api"
DEFAULT_CLIENT_HOST_ID = "dental-clinic-backend"
DEFAULT_HTTP_TIMEOUT = 30
DEFAULT_UPLOAD_CONNECT_TIMEOUT = 60
DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_POLL_MAX_ATTEMPTS = 180
DEFAULT_ANALYSIS_TYPE = "GP"
DEFAULT_STUDY_TYPE = "CBCT"


def load_config(env_path: Optional[Path] = None, *, require_credentials: bool = True) -> DiagnocatConfig:
    """Load configuration from environment variables, optionally overriding from a .env file.

    Behavior:
        - If env_path is provided, load that .env file with override=True (it overrides OS env).
        - Else, if a .env exists in the current working directory, load it with override=False.
        - Finally, read variables from the environment.

    Credentials (one of):
        DIAGNOCAT_API_KEY: Static API key
        DIAGNOCAT_EMAIL + DIAGNOCAT_PASSWORD: Account used to obtain a user token

    Optional variables:
        DIAGNOCAT_API_URL: Base URL (default: https://app2.diagnocat.ru/partner-api)
        DIAGNOCAT_CLIENT_HOST_ID: client_host_id for token requests
        DIAGNOCAT_VERIFY_TLS: Whether to verify TLS certificates (default: true)
        DIAGNOCAT_HTTP_TIMEOUT: Metadata call timeout in seconds (default: 30)
        DIAGNOCAT_UPLOAD_CONNECT_TIMEOUT: Upload connect timeout (default: 60)
        DIAGNOCAT_POLL_INTERVAL: Seconds between session polls (default: 2)
        DIAGNOCAT_POLL_MAX_ATTEMPTS: Session poll budget (default: 180)
        DIAGNOCAT_ANALYSIS_TYPE: Analysis type requested after upload (default: GP)
        DIAGNOCAT_STUDY_TYPE: Study type for new studies (default: CBCT)

    Returns:
        DiagnocatConfig dictionary with all configuration values.

    Raises:
        FileNotFoundError: If explicit env_path is provided but does not exist.
        RuntimeError: If credentials are required and none are configured.
    """
    if env_path:
        p = Path(env_path).expanduser()
        if not p.exists():
            raise FileNotFoundError(f"Environment file not found: {p}")
        load_dotenv(p, override=True)
    else:
        default_env = Path.cwd() / ".env"
        if default_env.exists():
            load_dotenv(default_env, override=False)

    api_key = os.getenv("DIAGNOCAT_API_KEY") or None
    email = os.getenv("DIAGNOCAT_EMAIL") or None
    password = os.getenv("DIAGNOCAT_PASSWORD") or None

    if require_credentials and not api_key and not (email and password):
        missing = [
            name
            for name, val in (
                ("DIAGNOCAT_EMAIL", email),
                ("DIAGNOCAT_PASSWORD", password),
            )
            if not val
        ]
        raise RuntimeError(
            "Missing Diagnocat credentials: set DIAGNOCAT_API_KEY or "
            f"{', '.join(missing)}"
        )

    return DiagnocatConfig(
        api_url=os.getenv("DIAGNOCAT_API_URL") or DEFAULT_API_URL,
        api_key=api_key,
        email=email,
        password=password,
        client_host_id=os.getenv("DIAGNOCAT_CLIENT_HOST_ID") or DEFAULT_CLIENT_HOST_ID,
        verify_tls=_str_to_bool(os.getenv("DIAGNOCAT_VERIFY_TLS"), default=True),
        http_timeout=_parse_int(os.getenv("DIAGNOCAT_HTTP_TIMEOUT"), DEFAULT_HTTP_TIMEOUT),
        upload_connect_timeout=_parse_int(
            os.getenv("DIAGNOCAT_UPLOAD_CONNECT_TIMEOUT"), DEFAULT_UPLOAD_CONNECT_TIMEOUT
        ),
        poll_interval=_parse_float(os.getenv("DIAGNOCAT_POLL_INTERVAL"), DEFAULT_POLL_INTERVAL),
        poll_max_attempts=_parse_int(
            os.getenv("DIAGNOCAT_POLL_MAX_ATTEMPTS"), DEFAULT_POLL_MAX_ATTEMPTS
        ),
        analysis_type=os.getenv("DIAGNOCAT_ANALYSIS_TYPE") or DEFAULT_ANALYSIS_TYPE,
        study_type=os.getenv("DIAGNOCAT_STUDY_TYPE") or DEFAULT_STUDY_TYPE,
    )
