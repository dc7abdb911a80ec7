"""Shared plumbing for command modules.

Resolves the active profile from the Typer context, opens the profile's
session store, and turns :class:`~gitpost.exceptions.GitpostError` into a
printed message and exit code.
"""

from __future__ import annotations

from typing import NoReturn, Optional

import httpx
import typer

from gitpost.auth.credentials import CredentialManager
from gitpost.auth.session_store import FileSessionStore
from gitpost.exceptions import ConfigError, GitpostError, LoginFlowError
from gitpost.models import GlobalConfig, Profile
from gitpost.output import error, suggest


def http_transport() -> Optional[httpx.BaseTransport]:
    """Transport for outgoing HTTP clients; ``None`` means the httpx default.

    Commands look this up at call time, so tests replace it with
    ``monkeypatch`` to route every request to an ``httpx.MockTransport``.
    """
    return None


def active_profile(ctx: typer.Context) -> tuple[GlobalConfig, Profile]:
    """Return the global config and the resolved profile, or exit with code 2."""
    from gitpost.config import resolve_config

    cli_profile = ctx.obj.get("profile") if ctx.obj else None
    try:
        config, profile = resolve_config(cli_profile)
    except ConfigError as exc:
        fail(exc)
    if profile is None:
        error("No profile selected.")
        suggest("Create one: gitpost init <name> --preset gitlab --client-id <id> --redirect-uri <uri>")
        raise typer.Exit(code=2)
    return config, profile


def session_store(config: GlobalConfig, profile: Profile) -> FileSessionStore:
    return FileSessionStore(profile.name, lifetime=config.session_lifetime)


def credential_manager(config: GlobalConfig, profile: Profile) -> CredentialManager:
    return CredentialManager(session_store(config, profile))


def fail(exc: GitpostError) -> NoReturn:
    """Print *exc* (and its hint, for login failures) and exit with its code."""
    error(str(exc))
    if isinstance(exc, LoginFlowError):
        suggest(exc.hint)
    raise typer.Exit(code=exc.exit_code)
