"""Base Diagnocat connection with authentication and HTTP utilities.

This module provides the DiagnocatConnection class that handles:
- Base URL and timeout management
- Authenticated JSON requests through an injected CredentialCache
- Mapping transport failures and bad responses to stage-tagged errors
- Connection health checks
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import requests

from ..config import DiagnocatConfig
from ..core import (
    AuthError,
    LogContext,
    ServerUnreachableError,
    StageError,
    TransientIOError,
    get_logger,
    validate_server_url,
    validate_timeout,
)
from .auth import CredentialCache

DEFAULT_TIMEOUT = 30
DEFAULT_UPLOAD_CONNECT_TIMEOUT = 60

Timeout = Union[float, Tuple[float, Optional[float]]]


class DiagnocatConnection:
    """Core Diagnocat connection and HTTP management.

    Every authenticated call takes its headers from the shared
    CredentialCache. Metadata calls use the short ``timeout``; the payload
    upload uses ``upload_timeouts``, which has no read deadline.

    Usage:
        conn = DiagnocatConnection.from_config(cfg)
        conn.test_connection()

        data = conn.request_json("GET", "/v2/analyses/ABC", stage="get_report")
    """

    def __init__(
        self,
        api_url: str,
        credentials: CredentialCache,
        *,
        verify_tls: bool = True,
        timeout: float = DEFAULT_TIMEOUT,
        upload_connect_timeout: float = DEFAULT_UPLOAD_CONNECT_TIMEOUT,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """Initialize Diagnocat connection.

        Args:
            api_url: Partner API base URL.
            credentials: Credential cache shared by all calls on this connection.
            verify_tls: Whether to verify TLS certificates.
            timeout: Timeout in seconds for metadata calls.
            upload_connect_timeout: Connect timeout for the payload PUT.
            session: Optional requests session (defaults to the credential
                cache's session so both share one connection pool).
            logger: Optional logger instance.

        Raises:
            InvalidURLError: If the base URL is invalid.
        """
        self.api_url = validate_server_url(api_url)
        self.credentials = credentials
        self.verify_tls = verify_tls
        self.timeout = validate_timeout(timeout, "timeout", max_value=3600)
        self.upload_connect_timeout = validate_timeout(
            upload_connect_timeout, "upload_connect_timeout", max_value=3600
        )
        self.session = session or credentials.session
        self.log = logger or get_logger(__name__)

    @classmethod
    def from_config(cls, cfg: DiagnocatConfig) -> "DiagnocatConnection":
        """Create connection and credential cache from a configuration dictionary."""
        session = requests.Session()
        timeout = cfg.get("http_timeout", DEFAULT_TIMEOUT)
        credentials = CredentialCache(
            cfg["api_url"],
            api_key=cfg.get("api_key"),
            email=cfg.get("email"),
            password=cfg.get("password"),
            client_host_id=cfg.get("client_host_id", "dental-clinic-backend"),
            session=session,
            timeout=timeout,
            verify_tls=cfg.get("verify_tls", True),
        )
        return cls(
            cfg["api_url"],
            credentials,
            verify_tls=cfg.get("verify_tls", True),
            timeout=timeout,
            upload_connect_timeout=cfg.get(
                "upload_connect_timeout", DEFAULT_UPLOAD_CONNECT_TIMEOUT
            ),
            session=session,
        )

    @property
    def upload_timeouts(self) -> Tuple[float, None]:
        """(connect, read) timeout for payload uploads; reads never time out."""
        return (self.upload_connect_timeout, None)

    def url(self, path: str) -> str:
        return f"{self.api_url}/{path.lstrip('/')}"

    def test_connection(self) -> int:
        """Check that the API is reachable and the credentials are accepted.

        Returns:
            HTTP status of the participants endpoint.

        Raises:
            ServerUnreachableError: If the API cannot be reached.
            AuthError: If credentials are missing or rejected.
        """
        with LogContext("test_connection", self.log, server=self.api_url):
            try:
                resp = self.request("GET", "/v2/participants", operation="test_connection")
            except TransientIOError as e:
                raise ServerUnreachableError(self.api_url, e.cause) from e

            if resp.status_code in (401, 403):
                raise AuthError(self.api_url, f"credentials rejected ({resp.status_code})")
            if resp.status_code != 200:
                self.log.warning("Diagnocat API test returned status %d", resp.status_code)
            else:
                self.log.info("Connected to Diagnocat API at %s", self.api_url)
            return resp.status_code

    # =========================================================================
    # HTTP Methods
    # =========================================================================

    def request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
        stream: bool = False,
        timeout: Optional[Timeout] = None,
    ) -> requests.Response:
        """Perform an authenticated request against the API.

        Raises:
            AuthError: If no auth headers can be produced.
            TransientIOError: On any transport-level failure.
        """
        request_headers = {"Accept": "application/json"}
        if json is not None:
            request_headers["Content-Type"] = "application/json"
        request_headers.update(self.credentials.get_auth_headers())
        if headers:
            request_headers.update(headers)

        url = self.url(path)
        self.log.debug("%s %s", method, url)
        try:
            resp = self.session.request(
                method,
                url,
                params=params,
                json=json,
                headers=request_headers,
                stream=stream,
                timeout=timeout or self.timeout,
                verify=self.verify_tls,
            )
        except requests.exceptions.RequestException as e:
            raise TransientIOError(operation, e) from e

        if resp.status_code == 401 and not self.credentials.uses_api_key:
            # Token revoked server-side; force re-issue on the next call
            self.credentials.invalidate()
        return resp

    def get(self, path: str, *, operation: str, **kwargs: Any) -> requests.Response:
        return self.request("GET", path, operation=operation, **kwargs)

    def post(self, path: str, *, operation: str, **kwargs: Any) -> requests.Response:
        return self.request("POST", path, operation=operation, **kwargs)

    def request_json(
        self,
        method: str,
        path: str,
        *,
        stage: str,
        expected: Iterable[int] = (200,),
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Dict[str, Any]:
        """Perform a request for a pipeline stage and decode its JSON object body.

        Raises:
            StageError: On transport failure, unexpected status, or a body
                that is not a JSON object.
        """
        try:
            resp = self.request(method, path, operation=stage, params=params, json=json)
        except TransientIOError as e:
            raise StageError(stage, f"request failed: {e.cause}") from e

        return self.decode_json(resp, stage=stage, expected=expected)

    def request_json_list(
        self,
        path: str,
        *,
        stage: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """GET a listing endpoint whose body is a bare JSON array.

        Raises:
            StageError: On transport failure, a non-200 status, or a body
                that is not an array of objects.
        """
        try:
            resp = self.request("GET", path, operation=stage, params=params)
        except TransientIOError as e:
            raise StageError(stage, f"request failed: {e.cause}") from e

        data = self._decode_body(resp, stage=stage, expected=(200,))
        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            raise StageError(
                stage,
                "response is not a JSON array of objects",
                status_code=resp.status_code,
                body=resp.text,
            )
        return data

    @staticmethod
    def _decode_body(
        resp: requests.Response,
        *,
        stage: str,
        expected: Iterable[int],
    ) -> Any:
        if resp.status_code not in tuple(expected):
            raise StageError(
                stage,
                f"unexpected status {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise StageError(
                stage,
                "response is not valid JSON",
                status_code=resp.status_code,
                body=resp.text,
            ) from e
        return data

    @classmethod
    def decode_json(
        cls,
        resp: requests.Response,
        *,
        stage: str,
        expected: Iterable[int] = (200,),
    ) -> Dict[str, Any]:
        """Check the status of ``resp`` and return its JSON object body."""
        data = cls._decode_body(resp, stage=stage, expected=expected)
        if not isinstance(data, dict):
            raise StageError(
                stage,
                "response is not a JSON object",
                status_code=resp.status_code,
                body=resp.text,
            )
        return data

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def close(self) -> None:
        """Close the HTTP session and release pooled connections."""
        self.session.close()

    def __enter__(self) -> "DiagnocatConnection":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
