# Settings — environment/.env driven configuration for gogauth.
# Created: 2026-10-16

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Candidate callback ports start here; the listener walks upward on EADDRINUSE.
DEFAULT_OAUTH_PORT = 51234


class Settings(BaseSettings):
    """gogauth settings.

    Every field can be set through a ``GOGAUTH_``-prefixed environment
    variable or a ``.env`` file in the working directory. The Google client
    credentials additionally accept the bare ``GOOGLE_CLIENT_ID`` /
    ``GOOGLE_CLIENT_SECRET`` names.
    """

    model_config = SettingsConfigDict(
        env_prefix="GOGAUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    config_dir: Path = Field(
        default_factory=lambda: Path.home() / ".gogauth",
        description="Root directory for agent credentials and session records",
    )

    # Google OAuth client
    google_client_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GOGAUTH_GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_ID"),
    )
    google_client_secret: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GOGAUTH_GOOGLE_CLIENT_SECRET", "GOOGLE_CLIENT_SECRET"),
    )

    # Callback listener
    oauth_server_enabled: bool = True
    oauth_bind: str = "127.0.0.1"
    oauth_port: int = DEFAULT_OAUTH_PORT
    oauth_port_fallbacks: int = Field(default=5, ge=0, le=50)
    oauth_callback_path: str = "/oauth-callback"
    oauth_timeout_minutes: float = Field(default=5, gt=0)
    oauth_sweep_interval_seconds: float = Field(default=60, gt=0)

    # Credentials
    refresh_buffer_seconds: int = Field(default=300, ge=0)
    http_timeout_seconds: float = Field(default=15, gt=0)

    @field_validator("oauth_callback_path")
    @classmethod
    def _leading_slash(cls, v: str) -> str:
        return v if v.startswith("/") else f"/{v}"

    @property
    def oauth_candidate_ports(self) -> list[int]:
        """Ordered ports the callback listener tries."""
        return [self.oauth_port + i for i in range(self.oauth_port_fallbacks + 1)]

    @property
    def flow_timeout_seconds(self) -> float:
        return self.oauth_timeout_minutes * 60


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process."""
    return Settings()


def get_config_dir(settings: Settings | None = None) -> Path:
    """Get/create the gogauth config directory."""
    d = (settings or get_settings()).config_dir
    d.mkdir(parents=True, exist_ok=True)
    return d
