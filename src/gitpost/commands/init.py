"""Init command -- create a provider profile.

Implements the ``gitpost init`` top-level command: it builds a
:class:`~gitpost.models.Profile` from a preset (or from explicit endpoint
URLs), saves it, and writes a project-local ``gitpost.json`` selecting it.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

from gitpost.output import error, info, success, suggest, warning


def init_command(
    name: str = typer.Argument(help="Profile name."),
    client_id: str = typer.Option(
        ..., "--client-id", help="Application ID registered with the provider."
    ),
    redirect_uri: str = typer.Option(
        ..., "--redirect-uri", help="Redirect URI registered with the provider."
    ),
    preset: Optional[str] = typer.Option(
        None, "--preset", help="Provider preset (gitlab)."
    ),
    host: Optional[str] = typer.Option(
        None, "--host", help="Base URL of a self-hosted instance (with --preset)."
    ),
    authorization_url: Optional[str] = typer.Option(
        None, "--authorization-url", help="Authorization endpoint."
    ),
    token_url: Optional[str] = typer.Option(None, "--token-url", help="Token endpoint."),
    api_base_url: Optional[str] = typer.Option(
        None, "--api-base-url", help="REST API base URL."
    ),
    scope: list[str] = typer.Option(
        [], "--scope", help="Scope to request (repeatable)."
    ),
) -> None:
    """Create a profile for an OAuth provider.

    With ``--preset`` the endpoints are derived from the provider's host;
    any endpoint given explicitly overrides the preset. Without a preset all
    three endpoints are required.

    Raises:
        typer.Exit: With code 2 if endpoints are missing or the preset is
            unknown.

    Example::

        gitpost init work --preset gitlab --client-id abc123 \\
            --redirect-uri http://127.0.0.1:7777/callback
        gitpost init self --preset gitlab --host https://git.example.com ...
    """
    from pydantic import ValidationError

    from gitpost.auth.callback_server import is_loopback_redirect
    from gitpost.config import profile_exists, provider_preset, save_profile
    from gitpost.exceptions import ConfigError
    from gitpost.models import Profile, ProviderConfig

    overrides = {
        "authorization_url": authorization_url,
        "token_url": token_url,
        "api_base_url": api_base_url,
    }
    try:
        if preset:
            provider = provider_preset(
                preset, client_id, redirect_uri, host=host, scopes=scope or None
            )
            provider = provider.model_copy(
                update={k: v for k, v in overrides.items() if v}
            )
        else:
            missing = [f"--{k.replace('_', '-')}" for k, v in overrides.items() if not v]
            if missing:
                error(f"Without --preset these options are required: {', '.join(missing)}")
                raise typer.Exit(code=2)
            fields = dict(overrides, client_id=client_id, redirect_uri=redirect_uri)
            if scope:
                fields["scopes"] = scope
            provider = ProviderConfig(**fields)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=2) from None
    except ValidationError as exc:
        error(f"Invalid provider settings: {exc}")
        raise typer.Exit(code=2) from None

    if profile_exists(name):
        info(f'Profile "{name}" already exists and will be overwritten.')

    save_profile(Profile(name=name, provider=provider))

    project_config_path = Path("gitpost.json")
    project_config_path.write_text(json.dumps({"default_profile": name}, indent=2) + "\n")

    success(f'Profile "{name}" created.')
    if not is_loopback_redirect(redirect_uri):
        warning(
            "Redirect URI is not a loopback address; 'gitpost auth login --wait' "
            "will not work, finish logins with 'gitpost auth callback'."
        )
    suggest("Log in: gitpost auth login")
