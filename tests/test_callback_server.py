# Tests for oauth/callback_server.py
# Created: 2026-10-16

import asyncio
import socket

import httpx
import pytest
from conftest import AGENT, SESSION, free_port, local_client

from gogauth.oauth.callback_server import (
    INVALID_REQUEST_MESSAGE,
    CallbackListener,
    CallbackOutcome,
    bind_first_available,
    is_loopback,
    render_page,
)


def _asgi_client(listener: CallbackListener) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=listener.app), base_url="http://localhost"
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    @pytest.mark.parametrize(
        "host, expected",
        [
            ("127.0.0.1", True),
            ("::1", True),
            ("localhost", True),
            ("0.0.0.0", False),
            ("192.168.1.10", False),
            ("example.com", False),
        ],
    )
    def test_is_loopback(self, host, expected):
        assert is_loopback(host) is expected

    def test_render_page_escapes_message(self):
        page = render_page(CallbackOutcome(400, "<script>alert(1)</script>"))
        assert "<script>alert" not in page
        assert "&lt;script&gt;" in page
        assert "✗ Error" in page

    def test_render_page_success(self):
        page = render_page(CallbackOutcome(200, "done"))
        assert "✓ Success" in page

    def test_non_loopback_bind_rejected(self, runtime, settings):
        bad = settings.model_copy(update={"oauth_bind": "0.0.0.0"})
        with pytest.raises(ValueError, match="loopback"):
            CallbackListener(runtime.coordinator, runtime.store, runtime.dispatcher, settings=bad)


# ---------------------------------------------------------------------------
# Port binding
# ---------------------------------------------------------------------------


class TestBinding:
    def test_skips_port_in_use(self):
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        taken = blocker.getsockname()[1]
        fallback = free_port()
        try:
            sock = bind_first_available("127.0.0.1", [taken, fallback])
            try:
                assert sock.getsockname()[1] == fallback
            finally:
                sock.close()
        finally:
            blocker.close()

    def test_all_ports_taken(self):
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        taken = blocker.getsockname()[1]
        try:
            with pytest.raises(OSError, match="any port"):
                bind_first_available("127.0.0.1", [taken])
        finally:
            blocker.close()

    async def test_listener_falls_back(self, runtime):
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        taken = blocker.getsockname()[1]
        fallback = free_port()
        runtime.listener.ports = [taken, fallback]
        try:
            port = await runtime.listener.start()
            assert port == fallback
            assert runtime.listener.redirect_uri == f"http://localhost:{fallback}/oauth-callback"
        finally:
            blocker.close()


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    async def test_not_running_before_start(self, runtime):
        assert not runtime.listener.is_running
        with pytest.raises(RuntimeError):
            runtime.listener.redirect_uri

    async def test_start_serves_health(self, started):
        port = started.listener.port
        async with local_client() as client:
            resp = await client.get(f"http://127.0.0.1:{port}/health")
        assert resp.status_code == 200
        assert resp.text == "OK"

    async def test_start_twice_returns_same_port(self, started):
        assert await started.listener.start() == started.listener.port

    async def test_stop_releases_port_and_drops_flows(self, started):
        started.service.start_flow(AGENT, SESSION, "alice@example.com")
        port = started.listener.port

        await started.listener.stop()

        assert not started.listener.is_running
        assert len(started.coordinator) == 0
        # Port is free again
        sock = bind_first_available("127.0.0.1", [port])
        sock.close()

    async def test_disabled_server_refuses_to_start(self, runtime, settings):
        runtime.listener.settings = settings.model_copy(update={"oauth_server_enabled": False})
        with pytest.raises(RuntimeError, match="disabled"):
            await runtime.listener.start()


# ---------------------------------------------------------------------------
# Request handling (in-process ASGI)
# ---------------------------------------------------------------------------


class TestRouting:
    async def test_health(self, runtime):
        async with _asgi_client(runtime.listener) as client:
            resp = await client.get("/health")
        assert resp.text == "OK"

    async def test_unknown_path_404(self, runtime):
        async with _asgi_client(runtime.listener) as client:
            resp = await client.get("/nope")
        assert resp.status_code == 404

    @pytest.mark.parametrize(
        "query",
        ["", "?code=abc", "?state=abc", "?code=&state=", "?code=abc&state=unknown"],
    )
    async def test_invalid_requests_are_400_without_side_effects(
        self, runtime, deliverer, google, query
    ):
        async with _asgi_client(runtime.listener) as client:
            resp = await client.get(f"/oauth-callback{query}")
        assert resp.status_code == 400
        assert INVALID_REQUEST_MESSAGE in resp.text
        assert deliverer.messages == []
        assert google.requests == []

    async def test_provider_error_description_is_escaped(self, runtime):
        async with _asgi_client(runtime.listener) as client:
            resp = await client.get(
                "/oauth-callback",
                params={"error": "access_denied", "error_description": "<b>nope</b>"},
            )
        assert resp.status_code == 400
        assert "<b>nope</b>" not in resp.text
        assert "&lt;b&gt;nope&lt;/b&gt;" in resp.text


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


async def test_duplicate_callbacks_complete_once(started, deliverer, google):
    result = started.service.start_flow(AGENT, SESSION, "alice@example.com")
    url = f"http://127.0.0.1:{started.listener.port}/oauth-callback"
    params = {"code": "the-code", "state": result.state}

    async with local_client() as client:
        responses = await asyncio.gather(
            client.get(url, params=params),
            client.get(url, params=params),
            client.get(url, params=params),
        )

    assert sorted(r.status_code for r in responses) == [200, 400, 400]
    assert len(google.calls("/token")) == 1
    assert len(deliverer.messages) == 1


async def test_sweep_once_notifies_each_expired_flow(started, deliverer):
    result = started.service.start_flow(AGENT, SESSION, "alice@example.com")

    flow = started.coordinator.lookup(result.state)
    expired = await started.listener.sweep_once(now=flow.expires_at + 1)

    assert [f.state for f in expired] == [result.state]
    assert len(deliverer.messages) == 1
    assert "timed out" in deliverer.messages[0][2]
    assert await started.listener.sweep_once(now=flow.expires_at + 2) == []
    assert len(deliverer.messages) == 1
