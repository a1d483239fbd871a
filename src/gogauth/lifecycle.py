"""Shutdown/reset registry for long-lived gogauth components.

The callback listener owns a socket and a sweeper task; anything like that
registers a ``shutdown`` callback here so the CLI (or an embedding app) can
release everything with one ``await shutdown_all()``. Tests use
``reset_all()`` to drop cached instances between cases.

Created: 2026-10-16
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

# name → (shutdown, reset); insertion order is registration order
_registry: dict[str, tuple[Callable[[], Any] | None, Callable[[], Any] | None]] = {}


def register(
    name: str,
    *,
    shutdown: Callable[[], Any] | None = None,
    reset: Callable[[], Any] | None = None,
) -> None:
    """Register a component's teardown callbacks.

    Re-registering a name replaces the earlier callbacks.
    """
    _registry.pop(name, None)
    _registry[name] = (shutdown, reset)


def registered() -> list[str]:
    return list(_registry)


async def shutdown_all() -> None:
    """Shut components down, most recently registered first.

    A failing callback is logged and the rest still run.
    """
    for name, (shutdown_cb, _) in reversed(list(_registry.items())):
        if shutdown_cb is None:
            continue
        try:
            result = shutdown_cb()
            if asyncio.iscoroutine(result):
                await result
            logger.debug("Shut down %s", name)
        except Exception:
            logger.warning("Error shutting down %s", name, exc_info=True)


def reset_all() -> None:
    """Run every reset callback and forget all registrations."""
    for name, (_, reset_cb) in list(_registry.items()):
        if reset_cb is None:
            continue
        try:
            reset_cb()
        except Exception:
            logger.warning("Error resetting %s", name, exc_info=True)
    _registry.clear()
