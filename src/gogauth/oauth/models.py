# OAuth flow data models and entry-point result schemas.
# Created: 2026-10-16

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel


@dataclass
class PendingFlow:
    """One in-flight authorization attempt, keyed by ``state``."""

    state: str
    session_key: str
    agent_id: str
    account: str
    services: list[str] = field(default_factory=list)
    requested_at: float = 0.0  # Unix timestamp
    expires_at: float = 0.0  # Unix timestamp
    auth_url: str = ""

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


@dataclass
class CallbackParams:
    """Query parameters of the provider redirect."""

    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None


class StartResult(BaseModel):
    """Returned to the agent when a flow starts."""

    auth_url: str
    state: str
    expires_in: int
    instructions: str


class StatusResult(BaseModel):
    """Authentication status of a session."""

    authenticated: bool
    account: str | None = None
    services: list[str] | None = None
    expires_at: float | None = None
    pending: bool = False
    error: str | None = None


class RevokeResult(BaseModel):
    """Outcome of a revoke request."""

    success: bool
    error: str | None = None
