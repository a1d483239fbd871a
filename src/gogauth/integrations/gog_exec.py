# gog CLI runner — execute gog with the calling session's Google credentials.
# Created: 2026-10-16

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from dataclasses import dataclass

from gogauth.integrations.scopes import GOOGLE_SERVICE_SCOPES
from gogauth.integrations.token_store import CredentialStore

logger = logging.getLogger(__name__)

_ACCOUNT_FLAGS = ("--account", "-a")


@dataclass
class GogResult:
    output: str
    exit_code: int
    error: str = ""


def inject_account_flag(args: list[str], account: str) -> list[str]:
    """Insert ``--account <account>`` after the first service subcommand.

    Args are returned unchanged if an account flag is already present or no
    service subcommand is found.
    """
    if any(flag in args for flag in _ACCOUNT_FLAGS):
        return list(args)
    for i, arg in enumerate(args):
        if arg in GOOGLE_SERVICE_SCOPES:
            return [*args[: i + 1], "--account", account, *args[i + 1 :]]
    return list(args)


async def build_gog_environment(
    store: CredentialStore,
    agent_id: str,
    session_key: str | None = None,
    account: str | None = None,
    base_env: dict[str, str] | None = None,
) -> tuple[dict[str, str], str | None]:
    """Environment for a gog process, plus the session account if one applies.

    Without a valid session credential the environment is left alone and gog
    uses its own global login.
    """
    env = dict(os.environ if base_env is None else base_env)
    if not session_key:
        return env, None

    credential = await store.get_valid(agent_id, session_key, account)
    if credential is None or credential.file_path is None:
        return env, None

    env["GOG_CREDENTIALS_FILE"] = str(credential.file_path)
    env["GOG_ACCOUNT"] = credential.account
    return env, credential.account


async def run_gog_command(
    store: CredentialStore,
    args: list[str],
    agent_id: str,
    session_key: str | None = None,
    account: str | None = None,
    timeout: float = 120,
) -> GogResult:
    """Run ``gog <args>`` under the session's credentials."""
    binary = shutil.which("gog")
    if not binary:
        return GogResult(output="", exit_code=127, error="gog CLI not found on PATH")

    env, session_account = await build_gog_environment(store, agent_id, session_key, account)
    if session_account:
        args = inject_account_flag(args, session_account)

    proc = await asyncio.create_subprocess_exec(
        binary,
        *args,
        env=env,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except TimeoutError:
        proc.kill()
        await proc.wait()
        return GogResult(output="", exit_code=1, error=f"gog timed out after {timeout}s")

    return GogResult(
        output=stdout.decode("utf-8", errors="replace"),
        exit_code=proc.returncode or 0,
        error=stderr.decode("utf-8", errors="replace") if proc.returncode else "",
    )
