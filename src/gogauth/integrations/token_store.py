# Credential Store — per-session Google credentials on disk, with refresh and revoke.
# Created: 2026-10-16

from __future__ import annotations

import dataclasses
import hashlib
import json
import logging
import os
import re
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from gogauth.config import Settings, get_config_dir, get_settings
from gogauth.errors import AmbiguousAccountError, TokenRefreshError
from gogauth.integrations.oauth import GoogleOAuthClient

logger = logging.getLogger(__name__)

_UNSAFE_KEY = re.compile(r"[^A-Za-z0-9_-]")
_UNSAFE_ACCOUNT = re.compile(r"[^A-Za-z0-9@._-]")


@dataclass
class Credential:
    """Delegated access to one Google account for one agent session."""

    account: str
    session_key: str
    agent_id: str
    access_token: str
    refresh_token: str | None = None
    expires_at: float = 0.0  # Unix timestamp
    created_at: float = field(default_factory=time.time)
    services: list[str] = field(default_factory=list)
    scopes: list[str] = field(default_factory=list)
    token_type: str = "Bearer"
    # Where this record was read from / written to; never persisted.
    file_path: Path | None = field(default=None, compare=False, repr=False)

    def to_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        data.pop("file_path", None)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any], file_path: Path | None = None) -> Credential:
        known = {f.name for f in dataclasses.fields(cls)} - {"file_path"}
        return cls(**{k: v for k, v in data.items() if k in known}, file_path=file_path)


def safe_session_key(session_key: str) -> str:
    return _UNSAFE_KEY.sub("_", session_key)


def safe_account(account: str) -> str:
    return _UNSAFE_ACCOUNT.sub("_", account)


def _file_key(value: str, unsafe: re.Pattern[str], marker: str) -> str:
    safe = unsafe.sub("_", value)
    if safe == value:
        return safe
    # Sanitizing is lossy; the digest keeps distinct raw values in distinct files.
    # ``marker`` never survives sanitizing, so a plain name cannot collide with it.
    digest = hashlib.sha256(value.encode()).hexdigest()[:12]
    return f"{safe}{marker}{digest}"


def session_file_key(session_key: str) -> str:
    """Filesystem name for a session key or agent id, unique per raw value."""
    return _file_key(session_key, _UNSAFE_KEY, ".")


def account_file_key(account: str) -> str:
    """Filesystem name for an account, unique per raw value."""
    return _file_key(account, _UNSAFE_ACCOUNT, "+")


class CredentialStore:
    """File-based credential store.

    Layout: ``{config_dir}/agents/{agent_id}/google-credentials/{session}_{account}.json``.
    Names that had to be sanitized carry a short digest of the raw value, so
    ``agent:main:x`` and ``agent_main_x`` never share a file.
    Directories are 0700 and files 0600 (owner-only). Writes go through a temp
    file + ``os.replace`` so readers never observe a half-written record.

    Concurrent refreshes of one credential are not locked: both produce a
    valid token and the last writer wins on disk.
    """

    def __init__(
        self,
        base_dir: Path | None = None,
        oauth: GoogleOAuthClient | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self._base_dir = base_dir
        self.oauth = oauth or GoogleOAuthClient(self.settings)

    @property
    def base_dir(self) -> Path:
        if self._base_dir is not None:
            return self._base_dir
        return get_config_dir(self.settings)

    def credentials_dir(self, agent_id: str) -> Path:
        return self.base_dir / "agents" / session_file_key(agent_id) / "google-credentials"

    def credentials_path(self, agent_id: str, session_key: str, account: str) -> Path:
        name = f"{session_file_key(session_key)}_{account_file_key(account)}.json"
        return self.credentials_dir(agent_id) / name

    def _read(self, path: Path) -> Credential | None:
        try:
            return Credential.from_dict(json.loads(path.read_text()), file_path=path)
        except FileNotFoundError:
            return None
        except (OSError, ValueError, TypeError) as e:
            logger.warning("Failed to load credentials file %s: %s", path.name, e)
            return None

    def load(
        self, agent_id: str, session_key: str, account: str | None = None
    ) -> Credential | None:
        """Load a session credential.

        With ``account`` the exact file is read. Without it, the agent's
        directory is scanned for records belonging to ``session_key``; one match
        is returned, several raise ``AmbiguousAccountError``.

        ``None`` means "no session credential"; callers may fall back to a
        process-wide default outside this store.
        """
        if account:
            cred = self._read(self.credentials_path(agent_id, session_key, account))
            if cred is not None and (cred.session_key, cred.account) != (session_key, account):
                logger.warning("Credentials file %s belongs to another session", cred.file_path)
                return None
            return cred

        directory = self.credentials_dir(agent_id)
        if not directory.is_dir():
            return None

        matches: list[Credential] = []
        for path in sorted(directory.glob(f"{session_file_key(session_key)}_*.json")):
            cred = self._read(path)
            # Prefix matching alone would let "a" see "a_b"'s files.
            if cred is not None and cred.session_key == session_key:
                matches.append(cred)

        if not matches:
            return None
        if len(matches) > 1:
            raise AmbiguousAccountError(session_key, [c.account for c in matches])
        return matches[0]

    def save(self, credential: Credential) -> Path:
        """Write a credential atomically with owner-only permissions."""
        directory = self.credentials_dir(credential.agent_id)
        directory.mkdir(parents=True, exist_ok=True, mode=0o700)
        path = self.credentials_path(credential.agent_id, credential.session_key, credential.account)

        # mkstemp creates the file 0600
        fd, tmp = tempfile.mkstemp(dir=directory, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(credential.to_dict(), f, indent=2)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        os.chmod(path, 0o600)

        credential.file_path = path
        logger.info(
            "Saved Google credentials for %s (agent=%s session=%s)",
            credential.account,
            credential.agent_id,
            credential.session_key,
        )
        return path

    def is_expired(
        self,
        credential: Credential,
        buffer_seconds: float | None = None,
        now: float | None = None,
    ) -> bool:
        """True once ``now`` is within ``buffer_seconds`` of expiry (default 300s)."""
        if buffer_seconds is None:
            buffer_seconds = self.settings.refresh_buffer_seconds
        now = time.time() if now is None else now
        return now >= credential.expires_at - buffer_seconds

    async def refresh(self, credential: Credential) -> Credential:
        """Refresh the access token and persist the result.

        ``created_at`` is kept; ``refresh_token`` is kept unless the provider
        rotates it.

        Raises:
            TokenRefreshError: the provider rejected the refresh token, or the
                refreshed credential could not be written.
        """
        data = await self.oauth.refresh(credential.refresh_token or "")

        updated = dataclasses.replace(
            credential,
            access_token=data["access_token"],
            expires_at=time.time() + data["expires_in"],
            refresh_token=data.get("refresh_token") or credential.refresh_token,
            token_type=data.get("token_type", credential.token_type),
        )
        if data.get("scope"):
            updated.scopes = data["scope"].split()

        try:
            self.save(updated)
        except OSError as e:
            raise TokenRefreshError(f"Could not store refreshed credentials: {e}") from e
        logger.info("Refreshed Google access token for %s", credential.account)
        return updated

    async def get_valid(
        self, agent_id: str, session_key: str, account: str | None = None
    ) -> Credential | None:
        """Load a credential and refresh it if needed.

        Returns None when nothing is stored or the refresh fails, meaning the
        caller should ask the user to re-authenticate.
        """
        credential = self.load(agent_id, session_key, account)
        if credential is None:
            return None

        if not self.is_expired(credential):
            return credential

        try:
            return await self.refresh(credential)
        except TokenRefreshError as e:
            logger.warning("Failed to refresh token for %s: %s", credential.account, e)
            return None

    async def revoke(
        self, agent_id: str, session_key: str, account: str | None = None
    ) -> bool:
        """Revoke upstream (best effort) and delete the local file.

        Returns False when there was nothing to revoke.
        """
        credential = self.load(agent_id, session_key, account)
        if credential is None:
            return False

        token = credential.refresh_token or credential.access_token
        if not await self.oauth.revoke(token):
            logger.warning(
                "Upstream revocation failed for %s; deleting local credentials anyway",
                credential.account,
            )

        path = credential.file_path or self.credentials_path(
            agent_id, session_key, credential.account
        )
        path.unlink(missing_ok=True)
        logger.info("Deleted Google credentials for %s (session=%s)", credential.account, session_key)
        return True

    def list_credentials(self, agent_id: str) -> list[Credential]:
        """All readable credentials stored for an agent."""
        directory = self.credentials_dir(agent_id)
        if not directory.is_dir():
            return []
        creds = []
        for path in sorted(directory.glob("*.json")):
            cred = self._read(path)
            if cred is not None:
                creds.append(cred)
        return creds

