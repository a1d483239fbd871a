# Tests for oauth/service.py
# Created: 2026-10-16

import asyncio
from urllib.parse import parse_qs, urlparse

import pytest
from conftest import AGENT, SESSION, make_credential

from gogauth.errors import FlowStartError
from gogauth.integrations.scopes import GOOGLE_SERVICE_SCOPES

ACCOUNT = "alice@example.com"


# ---------------------------------------------------------------------------
# start_flow
# ---------------------------------------------------------------------------


class TestStartFlow:
    async def test_returns_url_state_and_instructions(self, started):
        result = started.service.start_flow(AGENT, SESSION, ACCOUNT)

        assert len(result.state) == 64
        assert result.expires_in == 300
        assert "5 minutes" in result.instructions

        q = parse_qs(urlparse(result.auth_url).query)
        assert q["state"] == [result.state]
        assert q["login_hint"] == [ACCOUNT]
        assert q["redirect_uri"] == [started.listener.redirect_uri]
        scopes = q["scope"][0].split()
        for service in ("gmail", "calendar", "drive"):
            assert set(GOOGLE_SERVICE_SCOPES[service]) <= set(scopes)

    async def test_registers_flow_and_marks_session(self, started, sessions):
        result = started.service.start_flow(AGENT, SESSION, ACCOUNT, ["gmail"])

        flow = started.coordinator.lookup(result.state)
        assert flow.session_key == SESSION
        assert flow.services == ["gmail"]
        assert flow.auth_url == result.auth_url

        pending = sessions.get(AGENT, SESSION).google_auth_pending
        assert pending.state == result.state
        assert pending.account == ACCOUNT

    async def test_each_start_gets_a_fresh_state(self, started):
        a = started.service.start_flow(AGENT, SESSION, ACCOUNT)
        b = started.service.start_flow(AGENT, SESSION, ACCOUNT)
        assert a.state != b.state
        assert len(started.coordinator) == 2

    @pytest.mark.parametrize(
        "agent_id, session_key, account, services, message",
        [
            (AGENT, SESSION, "not-an-email", None, "Invalid email"),
            ("", SESSION, ACCOUNT, None, "agent context"),
            (AGENT, "", ACCOUNT, None, "agent context"),
            (AGENT, SESSION, ACCOUNT, ["gmail", "fax"], "Unknown Google services: fax"),
        ],
    )
    async def test_rejects_bad_input(
        self, started, agent_id, session_key, account, services, message
    ):
        with pytest.raises(FlowStartError, match=message):
            started.service.start_flow(agent_id, session_key, account, services)
        assert len(started.coordinator) == 0

    async def test_listener_not_running(self, runtime):
        with pytest.raises(FlowStartError, match="not running"):
            runtime.service.start_flow(AGENT, SESSION, ACCOUNT)

    async def test_missing_client_id(self, started, settings):
        started.store.oauth.settings = settings.model_copy(update={"google_client_id": None})
        with pytest.raises(FlowStartError, match="GOOGLE_CLIENT_ID"):
            started.service.start_flow(AGENT, SESSION, ACCOUNT)
        assert len(started.coordinator) == 0

    async def test_timeout_wording_follows_settings(self, started, settings):
        started.service.settings = settings.model_copy(update={"oauth_timeout_minutes": 1})
        result = started.service.start_flow(AGENT, SESSION, ACCOUNT)
        assert result.expires_in == 60
        assert "1 minute)" in result.instructions


# ---------------------------------------------------------------------------
# get_status
# ---------------------------------------------------------------------------


class TestStatus:
    async def test_unauthenticated(self, runtime):
        status = await runtime.service.get_status(AGENT, SESSION)
        assert status.authenticated is False
        assert status.pending is False

    async def test_pending_after_start(self, started):
        started.service.start_flow(AGENT, SESSION, ACCOUNT)
        status = await started.service.get_status(AGENT, SESSION)
        assert status.authenticated is False
        assert status.pending is True

    async def test_authenticated(self, runtime):
        cred = make_credential(services=["gmail", "drive"])
        runtime.store.save(cred)
        status = await runtime.service.get_status(AGENT, SESSION)
        assert status.authenticated is True
        assert status.account == ACCOUNT
        assert status.services == ["gmail", "drive"]
        assert status.expires_at == cred.expires_at

    async def test_ambiguous_accounts_reported_as_error(self, runtime):
        runtime.store.save(make_credential(account="alice@example.com"))
        runtime.store.save(make_credential(account="bob@example.com"))
        status = await runtime.service.get_status(AGENT, SESSION)
        assert status.authenticated is False
        assert "specify which account" in status.error

        named = await runtime.service.get_status(AGENT, SESSION, "bob@example.com")
        assert named.authenticated is True

    async def test_failed_refresh_is_unauthenticated(self, runtime, google):
        runtime.store.save(make_credential(expires_at=0))
        google.token_status = 400
        status = await runtime.service.get_status(AGENT, SESSION)
        assert status.authenticated is False
        assert status.error is None

    async def test_expired_flow_is_not_pending(self, started, settings):
        started.service.settings = settings.model_copy(update={"oauth_timeout_minutes": 0.0005})
        started.service.start_flow(AGENT, SESSION, ACCOUNT)
        await asyncio.sleep(0.1)

        status = await started.service.get_status(AGENT, SESSION)
        assert status.pending is False

    async def test_unreadable_refresh_response_is_unauthenticated(self, runtime, google):
        runtime.store.save(make_credential(expires_at=0))
        google.token_text = "<html>proxy login</html>"
        status = await runtime.service.get_status(AGENT, SESSION)
        assert status.authenticated is False
        assert status.error is None


# ---------------------------------------------------------------------------
# revoke
# ---------------------------------------------------------------------------


class TestRevoke:
    async def test_revoke_clears_store_and_session(self, runtime, sessions, google):
        path = runtime.store.save(make_credential())
        sessions.mark_authenticated(AGENT, SESSION, ACCOUNT, path)

        result = await runtime.service.revoke(AGENT, SESSION)

        assert result.success is True
        assert not path.exists()
        assert sessions.get(AGENT, SESSION).google_credentials_file is None
        assert len(google.calls("/revoke")) == 1

    async def test_revoke_nothing_stored_succeeds(self, runtime, google):
        result = await runtime.service.revoke(AGENT, SESSION)
        assert result.success is True
        assert google.requests == []

    async def test_revoke_ambiguous_fails(self, runtime):
        runtime.store.save(make_credential(account="alice@example.com"))
        runtime.store.save(make_credential(account="bob@example.com"))
        result = await runtime.service.revoke(AGENT, SESSION)
        assert result.success is False
        assert "bob@example.com" in result.error
