"""Config commands -- inspect profiles and choose the default one.

Provides the ``gitpost config`` sub-command group. Profiles are created with
``gitpost init``; these commands list, select, show, and remove them.
"""

from __future__ import annotations

import typer

from gitpost.output import error, format_response, get_output, info, success, suggest


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the global configuration and the active profile.

    Example::

        gitpost config show
        gitpost --profile work config show --json
    """
    from gitpost.commands._context import fail
    from gitpost.config import get_config_dir, resolve_config
    from gitpost.exceptions import ConfigError

    cli_profile = ctx.obj.get("profile") if ctx.obj else None
    try:
        config, profile = resolve_config(cli_profile)
    except ConfigError as exc:
        fail(exc)

    info(f"Config directory: {get_config_dir()}")
    format_response(
        {
            "config": config.model_dump(mode="json"),
            "active_profile": profile.model_dump(mode="json") if profile else None,
        }
    )


@config_app.command("list")
def config_list() -> None:
    """List configured profiles and their providers."""
    from gitpost.config import list_profiles, load_global_config, load_profile
    from gitpost.exceptions import ConfigError

    profiles = list_profiles()
    if not profiles:
        info("No profiles configured.")
        suggest("Create one: gitpost init <name> --preset gitlab --client-id <id> --redirect-uri <uri>")
        return

    default = load_global_config().default_profile
    rows: list[list[str]] = []
    for name in profiles:
        marker = "*" if name == default else ""
        try:
            profile = load_profile(name)
        except ConfigError:
            rows.append([marker, name, "error", "-"])
            continue
        rows.append([marker, name, profile.provider.api_base_url, profile.provider.client_id])

    get_output().print_table(
        ["Default", "Profile", "API", "Client ID"], rows, title="Configured Profiles"
    )


@config_app.command("use")
def config_use(
    profile_name: str = typer.Argument(help="Profile to make the global default."),
) -> None:
    """Set the global default profile."""
    from gitpost.config import load_global_config, profile_exists, save_global_config

    if not profile_exists(profile_name):
        error(f'Profile "{profile_name}" does not exist.')
        raise typer.Exit(code=2)

    config = load_global_config()
    config.default_profile = profile_name
    save_global_config(config)
    success(f'Default profile set to "{profile_name}".')


@config_app.command("remove")
def config_remove(
    ctx: typer.Context,
    profile_name: str = typer.Argument(help="Profile to delete."),
) -> None:
    """Delete a profile and its session (stored credential included).

    Asks for confirmation unless ``--force`` is active.
    """
    from gitpost.auth.session_store import FileSessionStore
    from gitpost.config import (
        delete_profile,
        load_global_config,
        profile_exists,
        save_global_config,
    )

    if not profile_exists(profile_name):
        error(f'Profile "{profile_name}" does not exist.')
        raise typer.Exit(code=2)

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm(f'Remove profile "{profile_name}" and log it out?')
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    FileSessionStore(profile_name).clear()
    delete_profile(profile_name)

    config = load_global_config()
    if config.default_profile == profile_name:
        config.default_profile = None
        save_global_config(config)
    success(f'Profile "{profile_name}" removed.')
