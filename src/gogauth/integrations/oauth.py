# Google OAuth client — auth URL, code exchange, refresh, revoke.
# Created: 2026-10-16

from __future__ import annotations

import logging
import urllib.parse
from typing import Any

import httpx

from gogauth.config import Settings, get_settings
from gogauth.errors import GogAuthError, OAuthConfigError, TokenExchangeError, TokenRefreshError

logger = logging.getLogger(__name__)


# OAuth 2.0 provider endpoints
PROVIDERS: dict[str, dict[str, str]] = {
    "google": {
        "auth_url": "https://accounts.google.com/o/oauth2/v2/auth",
        "token_url": "https://oauth2.googleapis.com/token",
        "revoke_url": "https://oauth2.googleapis.com/revoke",
    },
}


def _token_payload(
    resp: httpx.Response, error_cls: type[GogAuthError], what: str
) -> dict[str, Any]:
    """Decode a 2xx token-endpoint body, raising ``error_cls`` if it is unusable.

    ``expires_in`` is normalized to an int (3600 when absent).
    """
    try:
        data = resp.json()
    except ValueError as e:
        raise error_cls(f"{what} response was not JSON: {resp.text[:200]}") from e
    if not isinstance(data, dict) or not data.get("access_token"):
        raise error_cls(f"{what} response had no access_token")
    try:
        data["expires_in"] = int(data.get("expires_in") or 3600)
    except (TypeError, ValueError) as e:
        raise error_cls(f"{what} response had an invalid expires_in") from e
    if not isinstance(data.get("scope", ""), str):
        data.pop("scope")
    return data


class GoogleOAuthClient:
    """HTTP side of the Google authorization-code flow.

    Supports:
    - Authorization URL generation (offline access, forced consent)
    - Code exchange for tokens
    - Refresh-token grant
    - Best-effort revocation

    Stateless apart from configuration; persistence lives in
    ``CredentialStore``. ``transport`` lets tests swap in an
    ``httpx.MockTransport``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        provider: str = "google",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        config = PROVIDERS.get(provider)
        if not config:
            raise ValueError(f"Unknown OAuth provider: {provider}")
        self.settings = settings or get_settings()
        self.provider = provider
        self.endpoints = config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.http_timeout_seconds,
            transport=self._transport,
        )

    def _client_credentials(self) -> tuple[str, str]:
        client_id = self.settings.google_client_id
        client_secret = self.settings.google_client_secret
        if not client_id or not client_secret:
            raise OAuthConfigError("GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET must be set")
        return client_id, client_secret

    def get_auth_url(
        self,
        redirect_uri: str,
        scopes: list[str],
        state: str,
        login_hint: str | None = None,
    ) -> str:
        """Build the consent URL the user visits.

        Args:
            redirect_uri: Must match the callback listener's URL exactly.
            scopes: OAuth scopes to request.
            state: Correlation token for CSRF protection.
            login_hint: Account to pre-select on the consent screen.

        Returns:
            Authorization URL.
        """
        client_id = self.settings.google_client_id
        if not client_id:
            raise OAuthConfigError(
                "GOOGLE_CLIENT_ID not configured. Please set up Google OAuth credentials."
            )

        params = {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": " ".join(scopes),
            "state": state,
            "access_type": "offline",
            "prompt": "consent",
        }
        if login_hint:
            params["login_hint"] = login_hint

        return f"{self.endpoints['auth_url']}?{urllib.parse.urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: str) -> dict[str, Any]:
        """Exchange an authorization code for tokens.

        Returns the provider's JSON body (``access_token``, ``expires_in``,
        optionally ``refresh_token`` and ``scope``).

        Raises:
            OAuthConfigError: client credentials missing.
            TokenExchangeError: transport failure, non-2xx response or unusable body.
        """
        client_id, client_secret = self._client_credentials()

        try:
            async with self._client() as client:
                resp = await client.post(
                    self.endpoints["token_url"],
                    data={
                        "code": code,
                        "client_id": client_id,
                        "client_secret": client_secret,
                        "redirect_uri": redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
        except httpx.HTTPError as e:
            raise TokenExchangeError(f"Token exchange request failed: {e}") from e

        if resp.is_error:
            raise TokenExchangeError(
                f"Token exchange failed: {resp.text}", status_code=resp.status_code
            )

        data = _token_payload(resp, TokenExchangeError, "Token exchange")
        logger.info("OAuth code exchanged via %s", self.provider)
        return data

    async def refresh(self, refresh_token: str) -> dict[str, Any]:
        """Mint a new access token from a refresh token.

        Raises:
            TokenRefreshError: rejected grant, transport error, unusable body or
                missing config.
        """
        if not refresh_token:
            raise TokenRefreshError("No refresh token available; re-authentication required")
        try:
            client_id, client_secret = self._client_credentials()
        except OAuthConfigError as e:
            raise TokenRefreshError(str(e)) from e

        try:
            async with self._client() as client:
                resp = await client.post(
                    self.endpoints["token_url"],
                    data={
                        "refresh_token": refresh_token,
                        "client_id": client_id,
                        "client_secret": client_secret,
                        "grant_type": "refresh_token",
                    },
                )
        except httpx.HTTPError as e:
            raise TokenRefreshError(f"Token refresh request failed: {e}") from e

        if resp.is_error:
            raise TokenRefreshError(
                f"Failed to refresh token: {resp.text}", status_code=resp.status_code
            )

        return _token_payload(resp, TokenRefreshError, "Refresh")

    async def revoke(self, token: str) -> bool:
        """Revoke a token upstream. Never raises; returns whether it succeeded."""
        revoke_url = self.endpoints.get("revoke_url")
        if not revoke_url or not token:
            return False

        try:
            async with self._client() as client:
                resp = await client.post(
                    revoke_url,
                    params={"token": token},
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
            if resp.is_error:
                logger.warning(
                    "Token revocation rejected by %s (%d): %s",
                    self.provider,
                    resp.status_code,
                    resp.text[:200],
                )
                return False
            return True
        except httpx.HTTPError as e:
            logger.warning("Failed to revoke token with %s: %s", self.provider, e)
            return False
