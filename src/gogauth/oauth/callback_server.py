"""Loopback OAuth callback listener.

Receives Google's redirect, correlates it with a pending flow, exchanges the
code for tokens, stores the credential and notifies the conversation. The
agent never waits on any of this; it learns the outcome from a follow-up
message.

Each callback walks one path:

    received → provider error?   → consume if known, notify error,   400
             → missing params?   → 400, no side effects
             → consume(state)    → unknown/replayed: 400, no side effects
             → past deadline?    → notify timeout,                   400
             → exchange code     → failure: notify error,            500
             → save + notify success,                                200

Created: 2026-10-16
"""

from __future__ import annotations

import asyncio
import contextlib
import html
import ipaddress
import logging
import socket
import time
from dataclasses import dataclass

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gogauth.config import Settings, get_settings
from gogauth.integrations.scopes import services_for_scopes
from gogauth.integrations.token_store import Credential, CredentialStore
from gogauth.oauth.flows import FlowCoordinator
from gogauth.oauth.models import CallbackParams, PendingFlow
from gogauth.oauth.notifications import NotificationDispatcher
from gogauth.sessions import SessionStore

logger = logging.getLogger(__name__)

INVALID_REQUEST_MESSAGE = "Invalid or expired authorization request"

_PAGE_HTML = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>Google Authorization</title>
    <style>
        body {{
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            display: flex;
            align-items: center;
            justify-content: center;
            height: 100vh;
            margin: 0;
            background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
        }}
        .container {{
            background: white;
            padding: 2rem;
            border-radius: 8px;
            box-shadow: 0 4px 6px rgba(0, 0, 0, 0.1);
            text-align: center;
            max-width: 400px;
        }}
        h1 {{ color: {color}; margin-top: 0; }}
        p {{ color: #6b7280; line-height: 1.5; }}
    </style>
</head>
<body>
    <div class="container">
        <h1>{heading}</h1>
        <p>{message}</p>
    </div>
</body>
</html>"""


@dataclass
class CallbackOutcome:
    status_code: int
    message: str

    @property
    def ok(self) -> bool:
        return self.status_code == 200


def render_page(outcome: CallbackOutcome) -> str:
    return _PAGE_HTML.format(
        color="#10b981" if outcome.ok else "#ef4444",
        heading="✓ Success" if outcome.ok else "✗ Error",
        message=html.escape(outcome.message),
    )


def is_loopback(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def bind_first_available(host: str, ports: list[int]) -> socket.socket:
    """Bind a TCP socket to the first free port in ``ports``.

    Raises:
        OSError: every candidate is taken.
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    last_error: OSError | None = None
    for port in ports:
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError as e:
            sock.close()
            last_error = e
            logger.debug("Port %d unavailable: %s", port, e)
            continue
        return sock
    raise OSError(
        f"Failed to start OAuth server on any port ({', '.join(map(str, ports))}): {last_error}"
    )


class CallbackListener:
    """Owns the callback HTTP server, its socket and the expiry sweeper."""

    def __init__(
        self,
        coordinator: FlowCoordinator,
        store: CredentialStore,
        dispatcher: NotificationDispatcher,
        sessions: SessionStore | None = None,
        settings: Settings | None = None,
        *,
        ports: list[int] | None = None,
    ):
        self.settings = settings or get_settings()
        if not is_loopback(self.settings.oauth_bind):
            raise ValueError(
                f"OAuth callback server must bind to a loopback address, got {self.settings.oauth_bind!r}"
            )

        self.coordinator = coordinator
        self.store = store
        self.dispatcher = dispatcher
        self.sessions = sessions
        self.bind = self.settings.oauth_bind
        self.ports = ports or self.settings.oauth_candidate_ports
        self.callback_path = self.settings.oauth_callback_path

        self.port: int | None = None
        self._server: uvicorn.Server | None = None
        self._server_task: asyncio.Task | None = None
        self._sweeper_task: asyncio.Task | None = None
        self._socket: socket.socket | None = None

        self.app = self._create_app()

    # -- HTTP ------------------------------------------------------------------

    def _create_app(self) -> FastAPI:
        app = FastAPI(title="gogauth callback", docs_url=None, redoc_url=None, openapi_url=None)

        @app.exception_handler(StarletteHTTPException)
        async def _plain_errors(request: Request, exc: StarletteHTTPException):
            return PlainTextResponse(str(exc.detail), status_code=exc.status_code)

        @app.get("/health", response_class=PlainTextResponse)
        async def health():
            return "OK"

        @app.get(self.callback_path, response_class=HTMLResponse)
        async def oauth_callback(request: Request):
            q = request.query_params
            params = CallbackParams(
                code=q.get("code") or None,
                state=q.get("state") or None,
                error=q.get("error") or None,
                error_description=q.get("error_description") or None,
            )
            try:
                outcome = await self.handle_callback(params)
            except Exception:
                logger.exception("OAuth callback handler error")
                outcome = CallbackOutcome(500, "Internal error. Please try again.")
            return HTMLResponse(render_page(outcome), status_code=outcome.status_code)

        return app

    @property
    def is_running(self) -> bool:
        return self._server is not None and self.port is not None

    @property
    def redirect_uri(self) -> str:
        if self.port is None:
            raise RuntimeError("OAuth callback server is not running")
        return f"http://localhost:{self.port}{self.callback_path}"

    # -- callback state machine -----------------------------------------------

    async def handle_callback(self, params: CallbackParams) -> CallbackOutcome:
        if params.error:
            return await self._handle_provider_error(params)

        if not params.code or not params.state:
            logger.warning("OAuth callback missing code or state")
            return CallbackOutcome(400, INVALID_REQUEST_MESSAGE)

        flow = self.coordinator.consume(params.state)
        if flow is None:
            # Unknown and replayed states get the same answer.
            logger.warning("Invalid or replayed OAuth state %s…", params.state[:8])
            return CallbackOutcome(400, INVALID_REQUEST_MESSAGE)

        if flow.is_expired(time.time()):
            logger.info("OAuth flow for %s expired before callback", flow.account)
            self._clear_pending(flow)
            await self.dispatcher.notify_timeout(flow.session_key, flow.agent_id, flow.account)
            return CallbackOutcome(400, "Authorization request expired. Please ask again.")

        try:
            credential = await self._exchange(flow, params.code)
            path = self.store.save(credential)
        except Exception as e:
            logger.error("Token exchange for %s failed: %s", flow.account, e)
            self._clear_pending(flow)
            await self.dispatcher.notify_error(flow.session_key, flow.agent_id, flow.account, str(e))
            return CallbackOutcome(500, "Failed to complete authentication. Please try again.")

        if self.sessions is not None:
            try:
                self.sessions.mark_authenticated(flow.agent_id, flow.session_key, flow.account, path)
            except OSError as e:
                logger.warning("Could not update session %s: %s", flow.session_key, e)

        # Delivery failures are logged by the dispatcher; the page is unaffected.
        await self.dispatcher.notify_success(
            flow.session_key, flow.agent_id, flow.account, credential.services
        )
        return CallbackOutcome(200, "Authentication successful! You can close this window.")

    async def _handle_provider_error(self, params: CallbackParams) -> CallbackOutcome:
        flow = self.coordinator.consume(params.state) if params.state else None
        if flow is not None:
            logger.info("Provider returned %s for %s", params.error, flow.account)
            self._clear_pending(flow)
            await self.dispatcher.notify_error(
                flow.session_key, flow.agent_id, flow.account, params.error or "unknown_error"
            )
        else:
            logger.warning("Provider error %s for unknown state", params.error)
        return CallbackOutcome(
            400, f"Authorization failed: {params.error_description or params.error}"
        )

    async def _exchange(self, flow: PendingFlow, code: str) -> Credential:
        data = await self.store.oauth.exchange_code(code, self.redirect_uri)

        now = time.time()
        scopes = data.get("scope", "").split()
        if scopes:
            granted = set(services_for_scopes(scopes))
            services = [s for s in flow.services if s in granted]
        else:
            services = list(flow.services)

        return Credential(
            account=flow.account,
            session_key=flow.session_key,
            agent_id=flow.agent_id,
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or None,
            expires_at=now + data["expires_in"],
            created_at=now,
            services=services,
            scopes=scopes,
            token_type=data.get("token_type", "Bearer"),
        )

    def _clear_pending(self, flow: PendingFlow) -> None:
        if self.sessions is None:
            return
        try:
            self.sessions.clear_pending(flow.agent_id, flow.session_key, state=flow.state)
        except OSError as e:
            logger.warning("Could not clear pending auth on %s: %s", flow.session_key, e)

    # -- expiry sweep -----------------------------------------------------------

    async def sweep_once(self, now: float | None = None) -> list[PendingFlow]:
        """Expire overdue flows and send one timeout notification per flow."""
        expired = self.coordinator.sweep_expired(now)
        for flow in expired:
            self._clear_pending(flow)
            await self.dispatcher.notify_timeout(flow.session_key, flow.agent_id, flow.account)
        return expired

    async def _sweep_loop(self) -> None:
        interval = self.settings.oauth_sweep_interval_seconds
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep_once()
            except Exception:
                logger.exception("OAuth expiry sweep failed")

    # -- lifecycle -------------------------------------------------------------

    async def start(self) -> int:
        """Bind the first free candidate port, start serving and sweeping.

        Returns the bound port.
        """
        if self.is_running:
            return self.port  # type: ignore[return-value]
        if not self.settings.oauth_server_enabled:
            raise RuntimeError("OAuth server is disabled in configuration")

        sock = bind_first_available(self.bind, self.ports)
        port = sock.getsockname()[1]

        config = uvicorn.Config(self.app, log_level="warning", lifespan="off", access_log=False)
        server = uvicorn.Server(config)
        task = asyncio.create_task(server.serve(sockets=[sock]))

        while not server.started:
            if task.done():
                sock.close()
                exc = task.exception() if not task.cancelled() else None
                raise RuntimeError(f"OAuth callback server failed to start: {exc}")
            await asyncio.sleep(0.01)

        self._socket = sock
        self._server = server
        self._server_task = task
        self.port = port
        self._sweeper_task = asyncio.create_task(self._sweep_loop())
        logger.info("OAuth callback server listening on %s:%d", self.bind, port)
        return port

    async def stop(self) -> None:
        """Stop accepting connections, cancel the sweeper, forget pending flows."""
        if self._sweeper_task is not None:
            self._sweeper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweeper_task
            self._sweeper_task = None

        if self._server is not None:
            self._server.should_exit = True
            if self._server_task is not None:
                try:
                    await asyncio.wait_for(self._server_task, timeout=5)
                except TimeoutError:
                    logger.warning("OAuth callback server did not stop in time; cancelling")
                    self._server_task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await self._server_task
            self._server = None
            self._server_task = None

        if self._socket is not None:
            self._socket.close()
            self._socket = None

        dropped = self.coordinator.clear()
        if dropped:
            logger.info("Dropped %d pending OAuth flow(s) on shutdown", dropped)
        self.port = None
