"""Authentication for the Diagnocat partner API.

CredentialCache turns configured credentials into request headers:
- A static API key is passed through as a Bearer header.
- Otherwise a user token is issued from email/password, cached for
  23 hours, and refreshed on expiry by at most one caller at a time.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

import requests

from ..core import AuthError, get_logger, mask_sensitive, utc_now
from ..models import Credential

TOKEN_PATH = "/v2/auth/token"
TOKEN_LIFETIME = timedelta(hours=23)


class CredentialCache:
    """Thread-safe cache for the API bearer credential.

    The cached ``Credential`` is immutable and replaced wholesale, so the fast
    path reads it without locking. A stale read takes the refresh lock and
    checks again before calling the issuance endpoint, so N callers racing an
    expired token produce a single refresh and all get the same token.
    """

    def __init__(
        self,
        api_url: str,
        *,
        api_key: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
        client_host_id: str = "dental-clinic-backend",
        session: Optional[requests.Session] = None,
        timeout: float = 30,
        verify_tls: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self._api_key = api_key
        self.email = email
        self._password = password
        self.client_host_id = client_host_id
        self.session = session or requests.Session()
        self.timeout = timeout
        self.verify_tls = verify_tls
        self._clock = clock
        self._credential: Optional[Credential] = None
        self._refresh_lock = threading.Lock()
        self.log = get_logger(__name__)

    @property
    def uses_api_key(self) -> bool:
        return bool(self._api_key)

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    def get_auth_headers(self) -> Dict[str, str]:
        """Return the Authorization header for an API call.

        Raises:
            AuthError: If no credentials are configured or issuance fails.
        """
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        return {"Authorization": f"Bearer {self.get_token()}"}

    def get_token(self) -> str:
        """Return a valid user token, refreshing it if needed."""
        credential = self._credential
        if credential is not None and credential.is_valid(self._clock()):
            return credential.token

        if not self.email or not self._password:
            raise AuthError(
                self.api_url,
                "no API key and no email/password configured",
            )

        with self._refresh_lock:
            credential = self._credential
            if credential is not None and credential.is_valid(self._clock()):
                return credential.token

            credential = self._issue_token()
            self._credential = credential
            return credential.token

    def invalidate(self) -> None:
        """Drop the cached token so the next call issues a new one."""
        with self._refresh_lock:
            self._credential = None

    def _issue_token(self) -> Credential:
        self.log.info("Authenticating with Diagnocat as %s", self.email)
        body = {
            "client_host_id": self.client_host_id,
            "email": self.email,
            "password": self._password,
        }

        try:
            resp = self.session.post(
                f"{self.api_url}{TOKEN_PATH}",
                json=body,
                timeout=self.timeout,
                verify=self.verify_tls,
            )
        except requests.exceptions.RequestException as e:
            raise AuthError(self.api_url, f"token request failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise AuthError(
                self.api_url,
                f"token request returned status {resp.status_code}: {resp.text[:200]}",
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise AuthError(self.api_url, "token response is not valid JSON") from e

        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise AuthError(self.api_url, "token missing in response")

        issued_at = self._clock()
        self.log.info(
            "Diagnocat authentication successful (token %s, valid until %s)",
            mask_sensitive(token),
            (issued_at + TOKEN_LIFETIME).isoformat(),
        )
        return Credential(token=token, expires_at=issued_at + TOKEN_LIFETIME)
