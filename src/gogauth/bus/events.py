# Follow-up events — messages injected back into a conversation.
# Created: 2026-10-16

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any


@dataclass
class FollowupRun:
    """A turn queued for a session that did not ask for it just now.

    The ``originating_*`` fields carry the session's last-known routing so the
    reply lands in the same channel/thread the user was last seen in.
    """

    session_key: str
    agent_id: str
    prompt: str
    summary_line: str = ""
    enqueued_at: float = field(default_factory=time.time)
    originating_channel: str | None = None
    originating_to: str | None = None
    originating_account_id: str | None = None
    originating_thread_id: str | None = None
    originating_chat_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
