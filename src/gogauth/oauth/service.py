# Google auth entry points — start a flow, report status, revoke.
# Created: 2026-10-16

from __future__ import annotations

import logging
import time

from gogauth.config import Settings, get_settings
from gogauth.errors import FlowStartError, GogAuthError, OAuthConfigError
from gogauth.integrations.scopes import DEFAULT_SERVICES, scopes_for_services, unknown_services
from gogauth.integrations.token_store import CredentialStore
from gogauth.oauth.callback_server import CallbackListener
from gogauth.oauth.flows import FlowCoordinator
from gogauth.oauth.models import PendingFlow, RevokeResult, StartResult, StatusResult
from gogauth.sessions import PendingAuth, SessionStore

logger = logging.getLogger(__name__)


class GoogleAuthService:
    """Request-scoped operations an agent invokes.

    Composes the coordinator, the running callback listener and the credential
    store; holds no state of its own.
    """

    def __init__(
        self,
        coordinator: FlowCoordinator,
        listener: CallbackListener,
        store: CredentialStore,
        sessions: SessionStore | None = None,
        settings: Settings | None = None,
    ):
        self.coordinator = coordinator
        self.listener = listener
        self.store = store
        self.sessions = sessions
        self.settings = settings or get_settings()

    def start_flow(
        self,
        agent_id: str,
        session_key: str,
        account: str,
        services: list[str] | None = None,
    ) -> StartResult:
        """Register a pending flow and return the URL for the user.

        Raises:
            FlowStartError: bad input, listener down, or client id missing.
        """
        services = list(services) if services else list(DEFAULT_SERVICES)

        if "@" not in account:
            raise FlowStartError("Invalid email address format")
        if not agent_id or not session_key:
            raise FlowStartError("Missing agent context (agent_id or session_key)")
        unknown = unknown_services(services)
        if unknown:
            raise FlowStartError(f"Unknown Google services: {', '.join(unknown)}")
        if not self.listener.is_running:
            raise FlowStartError("OAuth server is not running. Please contact the administrator.")

        state = self.coordinator.generate_state()
        now = time.time()
        timeout = self.settings.flow_timeout_seconds
        expires_at = now + timeout

        try:
            auth_url = self.store.oauth.get_auth_url(
                redirect_uri=self.listener.redirect_uri,
                scopes=scopes_for_services(services),
                state=state,
                login_hint=account,
            )
        except OAuthConfigError as e:
            raise FlowStartError(str(e)) from e

        self.coordinator.register(
            PendingFlow(
                state=state,
                session_key=session_key,
                agent_id=agent_id,
                account=account,
                services=services,
                requested_at=now,
                expires_at=expires_at,
                auth_url=auth_url,
            )
        )

        if self.sessions is not None:
            try:
                self.sessions.mark_pending(
                    agent_id,
                    session_key,
                    PendingAuth(
                        state=state,
                        requested_at=now,
                        expires_at=expires_at,
                        account=account,
                        services=services,
                    ),
                )
            except OSError as e:
                logger.warning("Could not record pending auth on %s: %s", session_key, e)

        minutes = max(1, round(timeout / 60))
        logger.info("Started Google OAuth flow for %s (session=%s)", account, session_key)
        return StartResult(
            auth_url=auth_url,
            state=state,
            expires_in=int(timeout),
            instructions=(
                "Please visit the link above to authorize access to your Google account. "
                "I'll notify you when authentication is complete "
                f"(or if it times out after {minutes} minute{'s' if minutes != 1 else ''})."
            ),
        )

    def _is_pending(self, agent_id: str, session_key: str) -> bool:
        now = time.time()
        # Expired flows linger until the next sweep; they are not pending.
        flows = self.coordinator.pending_for_session(agent_id, session_key)
        if any(not f.is_expired(now) for f in flows):
            return True
        if self.sessions is None:
            return False
        session = self.sessions.get(agent_id, session_key)
        pending = session.google_auth_pending if session else None
        return pending is not None and pending.expires_at > now

    async def get_status(
        self, agent_id: str, session_key: str, account: str | None = None
    ) -> StatusResult:
        pending = self._is_pending(agent_id, session_key)
        try:
            credential = await self.store.get_valid(agent_id, session_key, account)
        except GogAuthError as e:
            return StatusResult(authenticated=False, pending=pending, error=str(e))

        if credential is None:
            return StatusResult(authenticated=False, pending=pending)

        return StatusResult(
            authenticated=True,
            account=credential.account,
            services=credential.services,
            expires_at=credential.expires_at,
            pending=False,
        )

    async def revoke(
        self, agent_id: str, session_key: str, account: str | None = None
    ) -> RevokeResult:
        try:
            await self.store.revoke(agent_id, session_key, account)
            if self.sessions is not None:
                self.sessions.clear_auth(agent_id, session_key)
        except (GogAuthError, OSError) as e:
            logger.warning("Revoke failed for session %s: %s", session_key, e)
            return RevokeResult(success=False, error=str(e))
        return RevokeResult(success=True)
