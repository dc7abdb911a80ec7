"""Auth commands -- log in to the provider and manage the session credential.

Provides the ``gitpost auth`` sub-command group. Login is two-phase: ``login``
starts the attempt and prints the authorization URL, ``callback`` finishes it
with the URL the browser was redirected to. The two commands may run in
different processes; only the profile's session file connects them.

Typical workflow::

    gitpost auth login                 # opens the browser
    gitpost auth callback 'http://127.0.0.1:7777/callback?code=...&state=...'
    gitpost auth whoami
    gitpost auth logout
"""

from __future__ import annotations

import logging
import webbrowser
from typing import TYPE_CHECKING

import httpx
import typer
from pydantic import ValidationError

from gitpost.exceptions import ApiError, AuthError, GitpostError
from gitpost.output import error, format_response, info, success, suggest, warning

if TYPE_CHECKING:
    from gitpost.auth.session_store import SessionStore
    from gitpost.models import Profile

logger = logging.getLogger(__name__)

auth_app = typer.Typer(no_args_is_help=True)


@auth_app.command("login")
def auth_login(
    ctx: typer.Context,
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the URL without opening a browser."
    ),
    wait: bool = typer.Option(
        False,
        "--wait",
        help="Capture the redirect on the loopback redirect URI and finish the login.",
    ),
    timeout: float = typer.Option(
        120.0, "--timeout", help="Seconds to wait for the redirect (with --wait)."
    ),
) -> None:
    """Start a login and print the authorization URL.

    A new ``state`` and PKCE ``code_verifier`` are written to the profile's
    session file, replacing any unfinished attempt. Without ``--wait`` the
    login is finished by ``gitpost auth callback``.

    Example::

        gitpost auth login
        gitpost auth login --no-browser
        gitpost auth login --wait
    """
    from gitpost.auth.callback_server import CallbackListener
    from gitpost.commands._context import active_profile, fail, session_store

    config, profile = active_profile(ctx)
    store = session_store(config, profile)

    try:
        if wait:
            with CallbackListener(profile.provider.redirect_uri) as listener:
                _start_login(profile, store, no_browser)
                info("Waiting for the browser to be redirected...")
                try:
                    query = listener.wait(timeout=timeout)
                except AuthError as exc:
                    error(str(exc))
                    suggest(
                        "The login is still pending. Finish it with: "
                        "gitpost auth callback '<the URL you were redirected to>'"
                    )
                    raise typer.Exit(code=exc.exit_code) from None
            _finish_login(profile, store, query)
        else:
            _start_login(profile, store, no_browser)
            suggest("Then run: gitpost auth callback '<the URL you were redirected to>'")
    except GitpostError as exc:
        fail(exc)


@auth_app.command("callback")
def auth_callback(
    ctx: typer.Context,
    redirect: str = typer.Argument(
        help="The full URL the browser was redirected to (or its query string)."
    ),
) -> None:
    """Finish a login with the provider's redirect.

    Validates the ``state``, exchanges the code for a token, checks the
    token against the user endpoint, and stores the credential.

    Example::

        gitpost auth callback 'http://127.0.0.1:7777/callback?code=abc&state=xyz'
    """
    from gitpost.commands._context import active_profile, fail, session_store

    config, profile = active_profile(ctx)
    try:
        _finish_login(profile, session_store(config, profile), redirect)
    except GitpostError as exc:
        fail(exc)


@auth_app.command("status")
def auth_status(ctx: typer.Context) -> None:
    """Show whether the active profile has a stored credential.

    Does not contact the provider; use ``gitpost auth whoami`` to check the
    credential is still accepted.
    """
    from gitpost.auth.credentials import CredentialManager
    from gitpost.auth.session_store import OAUTH_STATE
    from gitpost.commands._context import active_profile, session_store

    config, profile = active_profile(ctx)
    store = session_store(config, profile)
    credentials = CredentialManager(store)
    format_response(
        {
            "profile": profile.name,
            "logged_in": credentials.is_logged_in,
            "login_pending": store.get(OAUTH_STATE) is not None,
            "session_file": str(store.path),
        }
    )
    if not credentials.is_logged_in:
        suggest("Log in: gitpost auth login")


@auth_app.command("whoami")
def auth_whoami(ctx: typer.Context) -> None:
    """Show the user the stored credential belongs to.

    A credential the provider rejects is cleared.
    """
    from gitpost.client import SyncClient
    from gitpost.commands._context import (
        active_profile,
        credential_manager,
        fail,
        http_transport,
    )
    from gitpost.models import UserProfile

    config, profile = active_profile(ctx)
    credentials = credential_manager(config, profile)
    try:
        with SyncClient(profile, credentials, transport=http_transport()) as client:
            user = UserProfile.model_validate(client.get("/user").json())
    except AuthError as exc:
        credentials.clear()
        error(str(exc))
        suggest("Log in again: gitpost auth login")
        raise typer.Exit(code=exc.exit_code) from None
    except ValidationError as exc:
        fail(ApiError(f"Unexpected response shape from /user: {exc.error_count()} error(s)"))
    except GitpostError as exc:
        fail(exc)
    format_response(user.model_dump(mode="json", exclude_none=True))


@auth_app.command("logout")
def auth_logout(ctx: typer.Context) -> None:
    """Delete the stored credential and any unfinished login for the profile."""
    from gitpost.commands._context import active_profile, credential_manager

    config, profile = active_profile(ctx)
    credentials = credential_manager(config, profile)
    if not credentials.is_logged_in:
        info(f'Profile "{profile.name}" is not logged in.')
    credentials.clear()
    success(f'Logged out of "{profile.name}".')


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _start_login(profile: Profile, store: SessionStore, no_browser: bool) -> None:
    from gitpost.auth.flow import LoginFlow

    url = LoginFlow(profile.provider, store, request=profile.request).initiate()
    info("Open this URL in your browser to authorize gitpost:")
    typer.echo(url, err=True)
    if not no_browser:
        try:
            opened = webbrowser.open(url)
        except webbrowser.Error as exc:
            logger.debug("Browser launch failed: %s", exc)
            opened = False
        if not opened:
            warning("Could not open a browser; open the URL above manually.")


def _finish_login(profile: Profile, store: SessionStore, redirect: str) -> None:
    from gitpost.auth.flow import LoginFlow
    from gitpost.commands._context import http_transport

    with httpx.Client(
        timeout=profile.request.timeout,
        verify=profile.request.verify_ssl,
        transport=http_transport(),
    ) as http:
        result = LoginFlow(
            profile.provider, store, request=profile.request, http=http
        ).resume(redirect)
    success(f"Logged in as {result.user.username} ({profile.name}).")
