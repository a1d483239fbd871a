"""gogauth entry point.

    python -m gogauth serve                 Run the OAuth callback listener
    python -m gogauth credentials AGENT_ID  List stored credentials (no tokens)
"""

import argparse
import asyncio
import contextlib
import logging
import time
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version

from gogauth import lifecycle
from gogauth.config import get_settings
from gogauth.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _version() -> str:
    try:
        return get_version("gogauth")
    except PackageNotFoundError:
        return "unknown"


async def _serve() -> None:
    from gogauth.oauth import build_runtime

    runtime = build_runtime(get_settings())
    port = await runtime.start()
    logger.info("Callback URL: %s", runtime.listener.redirect_uri)
    try:
        # Run until cancelled (Ctrl+C)
        await asyncio.Event().wait()
    finally:
        await lifecycle.shutdown_all()
        logger.info("OAuth callback server on port %d stopped", port)


def _list_credentials(agent_id: str) -> int:
    from gogauth.integrations.token_store import CredentialStore

    store = CredentialStore()
    creds = store.list_credentials(agent_id)
    if not creds:
        print(f"No Google credentials stored for agent {agent_id}")
        return 0

    now = time.time()
    for cred in creds:
        state = "expired" if store.is_expired(cred, now=now) else "valid"
        services = ", ".join(cred.services) or "-"
        print(f"{cred.session_key:<32} {cred.account:<32} {state:<8} {services}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="gogauth",
        description="Non-blocking Google OAuth for conversational agents",
    )
    parser.add_argument("--version", "-v", action="version", version=f"%(prog)s {_version()}")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("serve", help="Run the OAuth callback listener")
    creds = sub.add_parser("credentials", help="List stored credentials for an agent")
    creds.add_argument("agent_id")

    args = parser.parse_args()
    setup_logging(level=args.log_level.upper())

    if args.command == "credentials":
        return _list_credentials(args.agent_id)

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_serve())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
