# Notification Dispatcher — tell the originating conversation how a flow ended.
# Created: 2026-10-16

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from gogauth.bus import FollowupQueue, FollowupRun
from gogauth.sessions import SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of handing a message to the conversation pipeline."""

    ok: bool
    error: str | None = None

    @classmethod
    def success(cls) -> DeliveryResult:
        return cls(ok=True)

    @classmethod
    def failure(cls, error: str) -> DeliveryResult:
        return cls(ok=False, error=error)


class Deliverer(Protocol):
    """Anything that can drop a message into a session's conversation."""

    async def deliver(
        self, session_key: str, agent_id: str, text: str, summary: str = ""
    ) -> DeliveryResult: ...


class FollowupDelivery:
    """Deliver by enqueuing a follow-up run routed like the session's last message."""

    def __init__(self, sessions: SessionStore, queue: FollowupQueue):
        self.sessions = sessions
        self.queue = queue

    async def deliver(
        self, session_key: str, agent_id: str, text: str, summary: str = ""
    ) -> DeliveryResult:
        session = self.sessions.get(agent_id, session_key)
        if session is None:
            return DeliveryResult.failure(f"session {session_key} not found")

        await self.queue.enqueue(
            FollowupRun(
                session_key=session_key,
                agent_id=agent_id,
                prompt=text,
                summary_line=summary,
                originating_channel=session.last_channel,
                originating_to=session.last_to,
                originating_account_id=session.last_account_id,
                originating_thread_id=session.last_thread_id,
                originating_chat_type=session.last_chat_type,
                metadata={"source": "google_oauth"},
            )
        )
        return DeliveryResult.success()


class NotificationDispatcher:
    """Formats flow outcomes and hands them to a ``Deliverer``.

    Every method returns a ``DeliveryResult`` and never raises: failures,
    including a pruned session record, are logged as warnings.
    """

    def __init__(self, deliverer: Deliverer):
        self.deliverer = deliverer

    async def _send(
        self, kind: str, session_key: str, agent_id: str, account: str, text: str
    ) -> DeliveryResult:
        summary = f"Google OAuth {kind}: {account}"
        try:
            result = await self.deliverer.deliver(session_key, agent_id, text, summary)
        except Exception as e:
            logger.exception("OAuth %s notification crashed for %s", kind, session_key)
            return DeliveryResult.failure(str(e))

        if not result.ok:
            logger.warning(
                "Cannot send OAuth %s notification to %s: %s", kind, session_key, result.error
            )
        return result

    async def notify_success(
        self, session_key: str, agent_id: str, account: str, services: list[str]
    ) -> DeliveryResult:
        services_str = ", ".join(services) if services else "Gmail"
        text = (
            f"✓ Google authentication complete for {account}! "
            f"You can now use {services_str} features."
        )
        return await self._send("success", session_key, agent_id, account, text)

    async def notify_timeout(
        self, session_key: str, agent_id: str, account: str
    ) -> DeliveryResult:
        text = (
            f"⏱ Google authorization for {account} timed out before it was completed. "
            "Would you like to try again?"
        )
        return await self._send("timeout", session_key, agent_id, account, text)

    async def notify_error(
        self, session_key: str, agent_id: str, account: str, reason: str
    ) -> DeliveryResult:
        if reason == "access_denied":
            text = (
                f"✗ Google authorization for {account} was declined. "
                "Let me know if you'd like to try again."
            )
        else:
            text = f"✗ Google authorization for {account} failed: {reason}. Please try again."
        return await self._send("error", session_key, agent_id, account, text)
