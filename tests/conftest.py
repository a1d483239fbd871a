# Shared fixtures for gogauth tests.
# Created: 2026-10-16

import json
import socket
import time
from urllib.parse import parse_qs

import httpx
import pytest

from gogauth import lifecycle
from gogauth.config import Settings
from gogauth.integrations.token_store import Credential
from gogauth.oauth import build_runtime
from gogauth.oauth.notifications import DeliveryResult
from gogauth.sessions import SessionEntry, SessionStore

AGENT = "main"
SESSION = "agent:main:telegram:dm:42"


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def settings(tmp_path):
    return Settings(
        config_dir=tmp_path,
        google_client_id="test-client-id",
        google_client_secret="test-client-secret",
        oauth_port=free_port(),
        oauth_port_fallbacks=0,
        oauth_sweep_interval_seconds=3600,
    )


@pytest.fixture
def sessions(settings, tmp_path):
    store = SessionStore(base_dir=tmp_path, settings=settings)
    store.upsert(
        AGENT,
        SessionEntry(
            session_key=SESSION,
            session_id="sess-1",
            last_channel="telegram",
            last_to="42",
            last_chat_type="dm",
        ),
    )
    return store


@pytest.fixture(autouse=True)
def _reset_lifecycle():
    yield
    lifecycle.reset_all()


class FakeGoogle:
    """Records token-endpoint calls and answers like Google's OAuth endpoints."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_status = 200
        self.revoke_status = 200
        self.scope: str | None = None
        self.refresh_token: str | None = "refresh-1"
        self.access_token = "access-1"
        self.token_text: str | None = None

    def form(self, request: httpx.Request) -> dict[str, str]:
        return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/revoke":
            return httpx.Response(self.revoke_status, text="" if self.revoke_status < 400 else "bad")
        if self.token_status >= 400:
            return httpx.Response(self.token_status, json={"error": "invalid_grant"})
        if self.token_text is not None:
            return httpx.Response(200, text=self.token_text)
        body = {
            "access_token": self.access_token,
            "expires_in": 3600,
            "token_type": "Bearer",
        }
        if self.refresh_token:
            body["refresh_token"] = self.refresh_token
        if self.scope:
            body["scope"] = self.scope
        return httpx.Response(200, content=json.dumps(body), headers={"content-type": "application/json"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def google():
    return FakeGoogle()


class RecordingDeliverer:
    """Deliverer that remembers every message instead of routing it."""

    def __init__(self, ok: bool = True):
        self.ok = ok
        self.messages: list[tuple[str, str, str]] = []

    async def deliver(self, session_key, agent_id, text, summary=""):
        self.messages.append((session_key, agent_id, text))
        return DeliveryResult.success() if self.ok else DeliveryResult.failure("no route")


@pytest.fixture
def deliverer():
    return RecordingDeliverer()


def make_credential(**overrides):
    values = {
        "account": "alice@example.com",
        "session_key": SESSION,
        "agent_id": AGENT,
        "access_token": "access-0",
        "refresh_token": "refresh-0",
        "expires_at": time.time() + 3600,
        "services": ["gmail"],
    }
    values.update(overrides)
    return Credential(**values)


@pytest.fixture
async def runtime(settings, tmp_path, sessions, google, deliverer):
    """Runtime wired to a fake Google and a recording deliverer; not started."""
    rt = build_runtime(settings, base_dir=tmp_path, deliverer=deliverer, transport=google.transport)
    yield rt
    await rt.stop()


@pytest.fixture
async def started(runtime):
    await runtime.start()
    return runtime


def local_client() -> httpx.AsyncClient:
    """Client for talking to the real loopback listener, ignoring proxy env vars."""
    return httpx.AsyncClient(trust_env=False, timeout=10)
