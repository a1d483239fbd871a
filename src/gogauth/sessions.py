"""Session records — routing info plus the Google auth state of each session.

Storage layout:
    {config_dir}/agents/{agent_id}/sessions.json   # {session_key: SessionEntry}

The conversation pipeline owns these records; gogauth reads the last-known
routing to deliver follow-ups and keeps ``google_auth_pending`` /
``google_credentials_file`` in step with flow and credential transitions.
Writes are atomic (temp file + rename) and serialized per store instance.

Created: 2026-10-16
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import tempfile
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from gogauth.config import Settings, get_config_dir, get_settings
from gogauth.integrations.token_store import session_file_key

logger = logging.getLogger(__name__)


@dataclass
class PendingAuth:
    """Marker for an in-flight authorization on a session."""

    state: str
    requested_at: float
    expires_at: float
    account: str
    services: list[str] = field(default_factory=list)


@dataclass
class SessionEntry:
    """The subset of a conversation's session record gogauth cares about."""

    session_key: str
    session_id: str | None = None
    last_channel: str | None = None
    last_to: str | None = None
    last_account_id: str | None = None
    last_thread_id: str | None = None
    last_chat_type: str | None = None
    google_auth_pending: PendingAuth | None = None
    google_credentials_file: str | None = None
    google_auth_account: str | None = None
    updated_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionEntry:
        known = {f.name for f in dataclasses.fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        pending = values.get("google_auth_pending")
        if isinstance(pending, dict):
            values["google_auth_pending"] = PendingAuth(**pending)
        return cls(**values)


SessionMutator = Callable[[dict[str, SessionEntry]], Any]


class SessionStore:
    """JSON-file session store, one file per agent."""

    def __init__(self, base_dir: Path | None = None, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._base_dir = base_dir
        self._lock = threading.Lock()

    def path_for(self, agent_id: str) -> Path:
        base = self._base_dir if self._base_dir is not None else get_config_dir(self.settings)
        return base / "agents" / session_file_key(agent_id) / "sessions.json"

    def load(self, agent_id: str) -> dict[str, SessionEntry]:
        path = self.path_for(agent_id)
        if not path.exists():
            return {}
        try:
            raw = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load session store %s: %s", path, e)
            return {}

        entries: dict[str, SessionEntry] = {}
        for key, data in raw.items():
            try:
                entries[key] = SessionEntry.from_dict({"session_key": key, **data})
            except TypeError as e:
                logger.warning("Skipping malformed session %s: %s", key, e)
        return entries

    def get(self, agent_id: str, session_key: str) -> SessionEntry | None:
        return self.load(agent_id).get(session_key)

    def _save(self, agent_id: str, entries: dict[str, SessionEntry]) -> None:
        path = self.path_for(agent_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = {key: entry.to_dict() for key, entry in entries.items()}
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".sessions.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def update(self, agent_id: str, mutator: SessionMutator) -> None:
        """Load, mutate in place, and write back under the store lock."""
        with self._lock:
            entries = self.load(agent_id)
            mutator(entries)
            self._save(agent_id, entries)

    def upsert(self, agent_id: str, entry: SessionEntry) -> None:
        def _put(entries: dict[str, SessionEntry]) -> None:
            entries[entry.session_key] = entry

        self.update(agent_id, _put)

    # -- auth state transitions -------------------------------------------

    def mark_pending(self, agent_id: str, session_key: str, pending: PendingAuth) -> None:
        def _mark(entries: dict[str, SessionEntry]) -> None:
            session = entries.get(session_key)
            if session:
                session.google_auth_pending = pending
                session.updated_at = time.time()

        self.update(agent_id, _mark)

    def clear_pending(self, agent_id: str, session_key: str, state: str | None = None) -> None:
        """Clear the pending marker; with ``state``, only if it still refers to that flow."""

        def _clear(entries: dict[str, SessionEntry]) -> None:
            session = entries.get(session_key)
            if not session or session.google_auth_pending is None:
                return
            if state is not None and session.google_auth_pending.state != state:
                return
            session.google_auth_pending = None
            session.updated_at = time.time()

        self.update(agent_id, _clear)

    def mark_authenticated(
        self, agent_id: str, session_key: str, account: str, credentials_file: Path
    ) -> None:
        def _mark(entries: dict[str, SessionEntry]) -> None:
            session = entries.get(session_key)
            if session:
                session.google_credentials_file = str(credentials_file)
                session.google_auth_account = account
                session.google_auth_pending = None
                session.updated_at = time.time()

        self.update(agent_id, _mark)

    def clear_auth(self, agent_id: str, session_key: str) -> None:
        def _clear(entries: dict[str, SessionEntry]) -> None:
            session = entries.get(session_key)
            if session:
                session.google_credentials_file = None
                session.google_auth_account = None
                session.google_auth_pending = None
                session.updated_at = time.time()

        self.update(agent_id, _clear)
