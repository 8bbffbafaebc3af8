# Shared fixtures for authgate tests.
# Created: 2026-10-19

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode

import pytest
from starlette.requests import Request

from authgate.manager import OAuthClient


def build_request(
    method: str = "GET",
    query: dict[str, str] | None = None,
    form: dict[str, str] | None = None,
    headers: dict[str, str] | None = None,
) -> Request:
    """Build a Starlette request without going through an ASGI server."""
    body = urlencode(form).encode() if form is not None else b""
    raw_headers = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()]
    if form is not None:
        raw_headers.append((b"content-type", b"application/x-www-form-urlencoded"))
        raw_headers.append((b"content-length", str(len(body)).encode()))
    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": "/",
        "raw_path": b"/",
        "root_path": "",
        "query_string": urlencode(query or {}).encode(),
        "headers": raw_headers,
        "client": ("127.0.0.1", 50000),
        "server": ("testserver", 80),
    }
    sent = False

    async def receive():
        nonlocal sent
        if sent:
            return {"type": "http.disconnect"}
        sent = True
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


class Clock:
    """Settable clock for token managers."""

    def __init__(self):
        self.now = datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@dataclass
class FakeTokenInfo:
    """Static token info for engine tests."""

    access: str = "tok1"
    refresh: str = ""
    scope: str = ""
    code: str = "abc123"
    client_id: str = "c1"
    user_id: str = "u1"
    expires_in: timedelta = timedelta(hours=1)

    def get_client_id(self) -> str:
        return self.client_id

    def get_user_id(self) -> str:
        return self.user_id

    def get_code(self) -> str:
        return self.code

    def get_access(self) -> str:
        return self.access

    def get_access_expires_in(self) -> timedelta:
        return self.expires_in

    def get_refresh(self) -> str:
        return self.refresh

    def get_scope(self) -> str:
        return self.scope


@dataclass
class FakeManager:
    """Token manager that records calls and returns canned results.

    Set ``errors[<method name>]`` to make that method raise.
    """

    token: FakeTokenInfo = field(default_factory=FakeTokenInfo)
    refresh_token: FakeTokenInfo = field(default_factory=lambda: FakeTokenInfo(scope="read"))
    client: OAuthClient = field(default_factory=lambda: OAuthClient("c1", domain="https://app/default"))
    errors: dict[str, Exception] = field(default_factory=dict)
    calls: list[tuple] = field(default_factory=list)

    def _record(self, name: str, *args):
        self.calls.append((name, *args))
        if name in self.errors:
            raise self.errors[name]

    @property
    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]

    async def get_client(self, client_id):
        self._record("get_client", client_id)
        return self.client

    async def generate_auth_token(self, response_type, tgr):
        self._record("generate_auth_token", response_type, tgr)
        return self.token

    async def generate_access_token(self, grant_type, tgr):
        self._record("generate_access_token", grant_type, tgr)
        return self.token

    async def refresh_access_token(self, tgr):
        self._record("refresh_access_token", tgr)
        return self.token

    async def load_access_token(self, access):
        self._record("load_access_token", access)
        return self.token

    async def load_refresh_token(self, refresh):
        self._record("load_refresh_token", refresh)
        return self.refresh_token


@pytest.fixture
def fake_manager():
    return FakeManager()


@pytest.fixture
def clock():
    return Clock()
