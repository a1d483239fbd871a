# Logging setup — Rich console handler on the root logger.
# Created: 2026-10-16

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_configured = False

# Third-party loggers that are too chatty at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def setup_logging(level: str | int = "INFO") -> None:
    """Install a RichHandler on the root logger (idempotent)."""
    global _configured

    root = logging.getLogger()
    root.setLevel(level)
    if _configured:
        return

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%X]"))
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True
