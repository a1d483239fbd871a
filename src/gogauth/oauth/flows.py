# Flow Coordinator — registry of pending authorization flows.
# Created: 2026-10-16

from __future__ import annotations

import logging
import secrets
import threading
import time

from gogauth.oauth.models import PendingFlow

logger = logging.getLogger(__name__)

# 32 bytes = 256 bits of entropy
STATE_BYTES = 32


def generate_state() -> str:
    """Generate an unguessable state token for CSRF protection."""
    return secrets.token_hex(STATE_BYTES)


class FlowCoordinator:
    """In-memory registry of pending flows.

    ``consume`` is the single point that decides which callback owns a
    state token: a flow can be consumed once, after which every lookup
    reports it absent. Expected conditions (unknown, replayed or expired
    state) are signalled with ``None``, never with exceptions.

    All access goes through one lock so concurrent callbacks, the expiry
    sweeper and flow initiation see a consistent map.
    """

    def __init__(self) -> None:
        self._flows: dict[str, PendingFlow] = {}
        self._lock = threading.Lock()

    generate_state = staticmethod(generate_state)

    def register(self, flow: PendingFlow) -> None:
        with self._lock:
            self._flows[flow.state] = flow
        logger.debug("Registered OAuth flow %s… for %s", flow.state[:8], flow.session_key)

    def lookup(self, state: str) -> PendingFlow | None:
        with self._lock:
            return self._flows.get(state)

    def consume(self, state: str) -> PendingFlow | None:
        """Remove and return the flow. None if unknown or already consumed."""
        with self._lock:
            return self._flows.pop(state, None)

    def sweep_expired(self, now: float | None = None) -> list[PendingFlow]:
        """Remove and return every flow whose deadline has passed."""
        now = time.time() if now is None else now
        with self._lock:
            expired = [flow for flow in self._flows.values() if flow.is_expired(now)]
            for flow in expired:
                del self._flows[flow.state]
        if expired:
            logger.info("Expired %d pending OAuth flow(s)", len(expired))
        return expired

    def pending_for_session(self, agent_id: str, session_key: str) -> list[PendingFlow]:
        with self._lock:
            return [
                f
                for f in self._flows.values()
                if f.agent_id == agent_id and f.session_key == session_key
            ]

    def clear(self) -> int:
        with self._lock:
            count = len(self._flows)
            self._flows.clear()
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._flows)
