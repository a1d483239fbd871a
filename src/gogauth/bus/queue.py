"""In-process follow-up queue.

Stands in for the conversation pipeline's "enqueue follow-up" entry point:
each session gets a FIFO of ``FollowupRun`` items, and listeners registered
with ``subscribe()`` are told about every enqueue so a runner can pick the
session up without polling.

Created: 2026-10-16
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict, deque
from collections.abc import Awaitable, Callable

from gogauth.bus.events import FollowupRun

logger = logging.getLogger(__name__)

FollowupListener = Callable[[FollowupRun], Awaitable[None] | None]


# Oldest runs are dropped beyond this many undrained runs per session.
DEFAULT_MAX_PENDING = 50


class FollowupQueue:
    """Per-session FIFO of follow-up runs.

    A runner is expected to ``drain()`` sessions it picks up. Without one, each
    session keeps at most ``max_pending`` runs and drops the oldest.
    """

    def __init__(self, max_pending: int = DEFAULT_MAX_PENDING) -> None:
        if max_pending < 1:
            raise ValueError("max_pending must be at least 1")
        self.max_pending = max_pending
        self._queues: dict[str, deque[FollowupRun]] = defaultdict(
            lambda: deque(maxlen=self.max_pending)
        )
        self._listeners: list[FollowupListener] = []

    def subscribe(self, listener: FollowupListener) -> Callable[[], None]:
        """Register a listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def enqueue(self, run: FollowupRun) -> None:
        queue = self._queues[run.session_key]
        if len(queue) == self.max_pending:
            logger.warning(
                "Follow-up queue for %s is full; dropping its oldest run", run.session_key
            )
        queue.append(run)
        logger.debug("Queued follow-up for %s: %s", run.session_key, run.summary_line)

        for listener in list(self._listeners):
            try:
                result = listener(run)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.warning("Follow-up listener failed for %s", run.session_key, exc_info=True)

    def pending(self, session_key: str) -> int:
        return len(self._queues.get(session_key, ()))

    def drain(self, session_key: str) -> list[FollowupRun]:
        """Pop every queued run for a session, oldest first."""
        queue = self._queues.pop(session_key, None)
        return list(queue) if queue else []
