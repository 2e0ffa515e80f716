import json
from typing import Any, Dict, List, Optional
from unittest.mock import Mock
from urllib.parse import urlencode

import pytest
import requests

from esxi_mcp.config import EsxiConfig
from esxi_mcp.esxi_client import EsxiClient
from esxi_mcp.session import SESSION_HEADER

BASE = "https://esxi.test"


def make_response(status: int = 200, body: Any = None, headers: Optional[Dict[str, str]] = None) -> requests.Response:
    r = requests.Response()
    r.status_code = status
    r._content = json.dumps(body).encode() if body is not None else b""
    if body is not None:
        r.headers["content-type"] = "application/json"
    r.headers.update(headers or {})
    return r


class FakeEsxi:
    """In-memory stand-in for the ESXi REST API behind a mocked requests.Session.

    Routes are keyed by method and path (with the query string, if any).
    Requests whose session token is not currently valid get a 401.
    """

    def __init__(self):
        self.routes: Dict[tuple, List[Any]] = {}
        self.calls: List[tuple] = []
        self.valid_tokens = set()
        self.logins = 0
        self.login_responses: List[Any] = []
        self.logouts: List[str] = []
        self.reject_all = False

    def add(self, method: str, path: str, *responses: Any) -> None:
        self.routes.setdefault((method, path), []).extend(responses)

    def expire(self) -> None:
        self.valid_tokens.clear()

    def login(self, url, auth=None, timeout=None):
        self.logins += 1
        if self.login_responses:
            r = self.login_responses.pop(0)
            if isinstance(r, Exception):
                raise r
            return r
        token = f"token-{self.logins}"
        self.valid_tokens.add(token)
        return make_response(201, token)

    def logout(self, url, headers=None, timeout=None):
        self.logouts.append(headers.get(SESSION_HEADER))
        return make_response(204)

    def request(self, method, url, headers=None, params=None, **kwargs):
        path = url[len(BASE):]
        if params:
            path += "?" + urlencode(params)
        token = (headers or {}).get(SESSION_HEADER)
        self.calls.append((method, path, token, kwargs.get("json")))

        if self.reject_all or token not in self.valid_tokens:
            return make_response(401, {"error_type": "UNAUTHENTICATED", "messages": []})

        queue = self.routes.get((method, path))
        if not queue:
            return make_response(404, {"error_type": "NOT_FOUND", "messages": [{"default_message": "Not found"}]})
        r = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(r, Exception):
            raise r
        return r

    def paths(self, method: Optional[str] = None) -> List[str]:
        return [c[1] for c in self.calls if method is None or c[0] == method]


@pytest.fixture
def cfg():
    return EsxiConfig(host="esxi.test", username="root", password="secret")


@pytest.fixture
def fake():
    return FakeEsxi()


@pytest.fixture
def http(fake):
    http = Mock()
    http.headers = {}
    http.post.side_effect = fake.login
    http.delete.side_effect = fake.logout
    http.request.side_effect = fake.request
    return http


@pytest.fixture
def client(cfg, http):
    return EsxiClient(cfg, http=http)


@pytest.fixture
def respond():
    return make_response
