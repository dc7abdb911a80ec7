"""Typer application and CLI entry point for gitpost.

This module wires together the top-level Typer application and registers the
built-in sub-commands (``init``, ``auth``, ``config``, ``repos``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
Unhandled exceptions are written to a crash log under the data directory.

See Also:
    :mod:`gitpost.config`: Profile and global configuration resolution.
    :mod:`gitpost.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from gitpost import __version__
from gitpost.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="gitpost",
    help="Log in to a Git hosting provider and publish files to your repositories.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"gitpost {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", "-p", help="Profile name to use."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmations."),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~gitpost.output.OutputManager` and the
    ``gitpost`` logger from CLI flags, and stores shared options in
    ``ctx.obj`` for sub-commands. Without ``--json`` or ``--plain`` the
    format comes from ``output.format`` in the global config.
    """
    from gitpost.config import load_global_config
    from gitpost.exceptions import ConfigError
    from gitpost.output import (
        OutputFormat,
        OutputManager,
        configure_logging,
        set_output,
        warning,
    )

    config_error: Optional[ConfigError] = None
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        try:
            fmt = OutputFormat(load_global_config().output.format)
        except ConfigError as exc:
            config_error = exc
            fmt = OutputFormat.AUTO

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    configure_logging(verbose)
    if config_error is not None:
        warning(f"{config_error}; using the automatic output format.")

    ctx.ensure_object(dict)
    ctx.obj["profile"] = profile
    ctx.obj["force"] = force


# ------------------------------------------------------------------ #
# Built-in commands
# ------------------------------------------------------------------ #

from gitpost.commands.auth import auth_app  # noqa: E402
from gitpost.commands.config import config_app  # noqa: E402
from gitpost.commands.init import init_command  # noqa: E402
from gitpost.commands.repos import repos_app  # noqa: E402

app.command("init")(init_command)
app.add_typer(auth_app, name="auth", help="Log in and manage the session credential.")
app.add_typer(config_app, name="config", help="Profile management.")
app.add_typer(repos_app, name="repos", help="Browse and publish to repositories.")


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from gitpost.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``gitpost`` console script.

    :class:`~gitpost.exceptions.GitpostError` instances that reach this
    level cause a clean exit with the error's ``exit_code``. All other
    exceptions produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from gitpost.exceptions import GitpostError
        from gitpost.output import error

        if isinstance(exc, GitpostError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
