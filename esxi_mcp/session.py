from __future__ import annotations

import logging
import threading
from typing import Any, Optional

import requests

from .config import EsxiConfig
from .errors import AuthenticationError, GatewayError

logger = logging.getLogger(__name__)

SESSION_PATH = "/api/session"
SESSION_HEADER = "vmware-api-session-id"
REQUEST_TIMEOUT_S = 30.0


def safe_json(r: requests.Response) -> Optional[Any]:
    """Parse a response body as JSON, returning None when it is not JSON."""
    if not r.content:
        return None
    try:
        return r.json()
    except ValueError:
        return None


class SessionManager:
    """Owns the API session token for one ESXi host.

    The token is shared by every request issued through the gateway. All
    writes happen under ``_lock`` so that concurrent callers hitting an
    expired session trigger a single re-authentication between them.
    """

    def __init__(self, cfg: EsxiConfig, http: requests.Session, timeout: float = REQUEST_TIMEOUT_S):
        self._cfg = cfg
        self._http = http
        self._timeout = timeout
        self._url = f"{cfg.base_url}{SESSION_PATH}"
        self._lock = threading.Lock()
        self._token: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def current_token(self) -> Optional[str]:
        return self._token

    def ensure_token(self) -> str:
        return self._token or self.authenticate()

    def authenticate(self, stale_token: Optional[str] = None) -> str:
        """Create a session and return its token.

        If a token is already held and it is not ``stale_token``, another
        caller has authenticated in the meantime and that token is returned
        as is.
        """
        with self._lock:
            if self._token and self._token != stale_token:
                return self._token
            self._token = None

            try:
                r = self._http.post(
                    self._url,
                    auth=(self._cfg.username, self._cfg.password),
                    timeout=self._timeout,
                )
            except requests.RequestException as e:
                raise AuthenticationError(f"Authentication failed: {e}") from e

            if not r.ok:
                cause = GatewayError(
                    "Session creation rejected",
                    status_code=r.status_code,
                    response_body=safe_json(r),
                    path=SESSION_PATH,
                )
                raise AuthenticationError(f"Authentication failed: {cause}") from cause

            token = self._extract_token(r)
            if not token:
                raise AuthenticationError(f"Authentication failed: {SESSION_PATH} returned no token")
            self._token = token
            logger.debug("Logged in to %s as %s", self._cfg.host, self._cfg.username)
            return token

    @staticmethod
    def _extract_token(r: requests.Response) -> Optional[str]:
        data = safe_json(r)
        if isinstance(data, dict):
            data = data.get("value")
        if isinstance(data, str) and data:
            return data
        return r.headers.get(SESSION_HEADER)

    def invalidate(self, token: Optional[str] = None) -> None:
        """Drop the held token, or only ``token`` if it is still the one held."""
        with self._lock:
            if token is None or self._token == token:
                self._token = None

    def logout(self) -> None:
        """Terminate the session. Failures are logged and never raised."""
        with self._lock:
            token = self._token
            if not token:
                return
            try:
                r = self._http.delete(self._url, headers={SESSION_HEADER: token}, timeout=self._timeout)
                logger.debug("Logged out from %s (HTTP %s)", self._cfg.host, r.status_code)
            except Exception as e:
                logger.warning("Logout failed for %s: %s", self._cfg.host, e)
            finally:
                self._token = None
