from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import requests
import urllib3
from urllib3.exceptions import InsecureRequestWarning

from .config import EsxiConfig
from .errors import GatewayError
from .session import REQUEST_TIMEOUT_S, SESSION_HEADER, SessionManager, safe_json

logger = logging.getLogger(__name__)


class HttpGateway:
    """Authenticated JSON requests against the ESXi REST API.

    A request carrying a session token that comes back 401 is retried exactly
    once, after the session has been re-created. Nothing else is retried.
    """

    def __init__(self, cfg: EsxiConfig, http: Optional[requests.Session] = None):
        self._cfg = cfg
        self._http = http if http is not None else requests.Session()
        self._http.verify = cfg.ca_bundle or cfg.verify_ssl
        self._http.headers.update({"Content-Type": "application/json", "Accept": "application/json"})
        if not cfg.verify_ssl:
            urllib3.disable_warnings(InsecureRequestWarning)
        self._base = cfg.base_url
        self._timeout = REQUEST_TIMEOUT_S
        self.session = SessionManager(cfg, self._http, timeout=self._timeout)

    def _send(self, method: str, path: str, token: str, params: Optional[Dict[str, Any]],
              json_body: Optional[Any]) -> requests.Response:
        try:
            return self._http.request(
                method,
                f"{self._base}{path}",
                headers={SESSION_HEADER: token},
                params=params,
                json=json_body,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise GatewayError(f"{method} request failed ({e.__class__.__name__}: {e})", path=path) from e

    def request(self, method: str, path: str, *, params: Optional[Dict[str, Any]] = None,
                json_body: Optional[Any] = None, operation: Optional[str] = None) -> Any:
        """Send a request and return the decoded JSON body (None when empty).

        Raises:
            AuthenticationError: the session could not be (re-)created.
            GatewayError: non-2xx status, or no response at all.
        """
        token = self.session.ensure_token()
        r = self._send(method, path, token, params, json_body)

        if r.status_code == 401:
            logger.info("Session rejected on %s %s, re-authenticating", method, path)
            self.session.invalidate(token)
            token = self.session.authenticate(stale_token=token)
            r = self._send(method, path, token, params, json_body)

        if not r.ok:
            raise GatewayError(
                f"Failed to {operation}" if operation else f"{method} {path} failed",
                status_code=r.status_code,
                response_body=safe_json(r),
                path=path,
            )
        if not r.content:
            return None
        data = safe_json(r)
        return data if data is not None else r.text

    def try_request(self, method: str, path: str, **kwargs: Any) -> Tuple[Any, Optional[Exception]]:
        """Like :meth:`request` but returns ``(result, error)`` instead of raising."""
        try:
            return self.request(method, path, **kwargs), None
        except Exception as e:
            return None, e

    def close(self) -> None:
        self.session.logout()
        self._http.close()
