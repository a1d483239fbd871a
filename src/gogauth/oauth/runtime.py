# Wiring — build the OAuth components for one process.
# Created: 2026-10-16

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import httpx

from gogauth import lifecycle
from gogauth.bus import FollowupQueue
from gogauth.config import Settings, get_settings
from gogauth.integrations.oauth import GoogleOAuthClient
from gogauth.integrations.token_store import CredentialStore
from gogauth.oauth.callback_server import CallbackListener
from gogauth.oauth.flows import FlowCoordinator
from gogauth.oauth.notifications import Deliverer, FollowupDelivery, NotificationDispatcher
from gogauth.oauth.service import GoogleAuthService
from gogauth.sessions import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class GoogleAuthRuntime:
    settings: Settings
    coordinator: FlowCoordinator
    store: CredentialStore
    sessions: SessionStore
    queue: FollowupQueue
    dispatcher: NotificationDispatcher
    listener: CallbackListener
    service: GoogleAuthService

    async def start(self) -> int:
        port = await self.listener.start()
        lifecycle.register("oauth_callback_server", shutdown=self.listener.stop)
        return port

    async def stop(self) -> None:
        await self.listener.stop()


def build_runtime(
    settings: Settings | None = None,
    *,
    base_dir: Path | None = None,
    queue: FollowupQueue | None = None,
    deliverer: Deliverer | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    ports: list[int] | None = None,
) -> GoogleAuthRuntime:
    """Assemble every component; nothing is started.

    ``deliverer`` defaults to enqueuing follow-ups on ``queue`` using the
    session store's routing.
    """
    settings = settings or get_settings()
    oauth = GoogleOAuthClient(settings, transport=transport)
    store = CredentialStore(base_dir=base_dir, oauth=oauth, settings=settings)
    sessions = SessionStore(base_dir=base_dir, settings=settings)
    queue = queue or FollowupQueue()
    dispatcher = NotificationDispatcher(deliverer or FollowupDelivery(sessions, queue))
    coordinator = FlowCoordinator()
    listener = CallbackListener(
        coordinator, store, dispatcher, sessions=sessions, settings=settings, ports=ports
    )
    service = GoogleAuthService(coordinator, listener, store, sessions=sessions, settings=settings)
    return GoogleAuthRuntime(
        settings=settings,
        coordinator=coordinator,
        store=store,
        sessions=sessions,
        queue=queue,
        dispatcher=dispatcher,
        listener=listener,
        service=service,
    )
