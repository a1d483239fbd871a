# Error types shared across the OAuth subsystem.
# Created: 2026-10-16

from __future__ import annotations


class GogAuthError(Exception):
    """Base class for expected gogauth failures."""


class OAuthConfigError(GogAuthError):
    """Google client id/secret (or another required setting) is missing."""


class TokenExchangeError(GogAuthError):
    """The provider rejected an authorization-code exchange, or it never arrived."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TokenRefreshError(GogAuthError):
    """A refresh-token grant failed (revoked upstream, network error, no refresh token)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AmbiguousAccountError(GogAuthError):
    """More than one account is authorized for a session and none was named."""

    def __init__(self, session_key: str, accounts: list[str]):
        self.session_key = session_key
        self.accounts = sorted(accounts)
        super().__init__(
            f"Session {session_key} has credentials for several accounts "
            f"({', '.join(self.accounts)}); specify which account to use"
        )


class FlowStartError(GogAuthError):
    """An authorization flow could not be started."""
