# Google auth tools — start, check and revoke Google OAuth from a conversation.
# Created: 2026-10-16

import logging
from typing import Any

from gogauth.errors import FlowStartError
from gogauth.integrations.scopes import DEFAULT_SERVICES, GOOGLE_SERVICE_SCOPES
from gogauth.oauth.service import GoogleAuthService
from gogauth.tools.protocol import BaseTool, SessionContext

logger = logging.getLogger(__name__)


class _GoogleAuthTool(BaseTool):
    def __init__(self, service: GoogleAuthService, context: SessionContext):
        self.service = service
        self.context = context

    @property
    def trust_level(self) -> str:
        return "high"


class GoogleAuthStartTool(_GoogleAuthTool):
    """Start a non-blocking Google OAuth flow."""

    @property
    def name(self) -> str:
        return "google_auth_start"

    @property
    def description(self) -> str:
        return (
            "Start non-blocking Google OAuth for Gmail, Calendar, Drive and other Google "
            "services. Returns an authorization URL for the user to visit. You stay "
            "responsive while waiting; the result arrives later as a follow-up message."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "email": {
                    "type": "string",
                    "description": "Google account email address",
                    "minLength": 1,
                },
                "services": {
                    "type": "array",
                    "items": {"type": "string", "enum": sorted(GOOGLE_SERVICE_SCOPES)},
                    "description": (
                        f"Google services to authorize (default: {', '.join(DEFAULT_SERVICES)})"
                    ),
                },
            },
            "required": ["email"],
        }

    async def execute(self, email: str, services: list[str] | None = None) -> str:
        try:
            result = self.service.start_flow(
                self.context.agent_id, self.context.session_key, email, services
            )
        except FlowStartError as e:
            return self._error(str(e))
        return self._json(result)


class GoogleAuthStatusTool(_GoogleAuthTool):
    """Report whether this session holds valid Google credentials."""

    @property
    def name(self) -> str:
        return "google_auth_status"

    @property
    def description(self) -> str:
        return (
            "Check if the current session has valid Google OAuth credentials. Returns "
            "authentication status, account, authorized services and token expiry."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "email": {
                    "type": "string",
                    "description": "Account to check when several are authorized (optional)",
                },
            },
            "required": [],
        }

    async def execute(self, email: str | None = None) -> str:
        result = await self.service.get_status(
            self.context.agent_id, self.context.session_key, email
        )
        return self._json(result)


class GoogleAuthRevokeTool(_GoogleAuthTool):
    """Revoke and delete this session's Google credentials."""

    @property
    def name(self) -> str:
        return "google_auth_revoke"

    @property
    def description(self) -> str:
        return (
            "Revoke Google OAuth credentials for this session. Deletes local credentials "
            "and revokes access with Google."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "email": {
                    "type": "string",
                    "description": "Specific account to revoke (optional, defaults to the session's)",
                },
            },
            "required": [],
        }

    async def execute(self, email: str | None = None) -> str:
        result = await self.service.revoke(self.context.agent_id, self.context.session_key, email)
        if not result.success:
            return self._error(result.error or "Revocation failed")
        return self._json(result)


def google_auth_tools(service: GoogleAuthService, context: SessionContext) -> list[BaseTool]:
    return [
        GoogleAuthStartTool(service, context),
        GoogleAuthStatusTool(service, context),
        GoogleAuthRevokeTool(service, context),
    ]
