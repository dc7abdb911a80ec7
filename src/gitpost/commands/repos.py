"""Repository commands -- browse and publish to repositories.

Every command here uses the session credential. When the provider rejects
it (401/403) the credential is cleared and the user is asked to log in
again.

Example::

    gitpost repos list --search notes
    gitpost repos tree alice/notes --ref main
    gitpost repos publish alice/notes post.md cover.png --branch main \\
        --message "Add post" --dir posts/2026
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import typer

from gitpost.exceptions import AuthError, GitpostError
from gitpost.output import error, get_output, info, success, suggest

if TYPE_CHECKING:
    from gitpost.hosting import RepositoryService

repos_app = typer.Typer(no_args_is_help=True)


@contextmanager
def _repository_service(ctx: typer.Context) -> Iterator[RepositoryService]:
    from gitpost.client import SyncClient
    from gitpost.commands._context import (
        active_profile,
        credential_manager,
        fail,
        http_transport,
    )
    from gitpost.hosting import RepositoryService

    config, profile = active_profile(ctx)
    credentials = credential_manager(config, profile)
    try:
        with SyncClient(profile, credentials, transport=http_transport()) as client:
            yield RepositoryService(client)
    except AuthError as exc:
        credentials.clear()
        error(str(exc))
        suggest("Log in again: gitpost auth login")
        raise typer.Exit(code=exc.exit_code) from None
    except GitpostError as exc:
        fail(exc)


@repos_app.command("list")
def repos_list(
    ctx: typer.Context,
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Filter by name."),
    limit: int = typer.Option(50, "--limit", help="Maximum number of repositories."),
) -> None:
    """List repositories you are a member of, most recently active first."""
    with _repository_service(ctx) as service:
        repos = service.list_repositories(search=search, per_page=limit)

    if not repos:
        info("No repositories found.")
        return
    rows = [
        [
            str(repo.id),
            repo.path_with_namespace,
            repo.default_branch or "-",
            repo.visibility or "-",
        ]
        for repo in repos
    ]
    get_output().print_table(
        ["ID", "Path", "Default Branch", "Visibility"], rows, title="Repositories"
    )


@repos_app.command("tree")
def repos_tree(
    ctx: typer.Context,
    repo: str = typer.Argument(help="Repository ID or path, e.g. 'alice/notes'."),
    ref: Optional[str] = typer.Option(None, "--ref", help="Branch, tag, or commit."),
    path: str = typer.Option("", "--path", help="Directory inside the repository."),
) -> None:
    """List the files of a repository."""
    with _repository_service(ctx) as service:
        entries = service.get_tree(repo, ref=ref, path=path)

    if not entries:
        info("No files found.")
        return
    rows = [[entry.type, entry.path] for entry in entries]
    get_output().print_table(["Type", "Path"], rows, title=repo)


@repos_app.command("publish")
def repos_publish(
    ctx: typer.Context,
    repo: str = typer.Argument(help="Repository ID or path, e.g. 'alice/notes'."),
    files: list[Path] = typer.Argument(help="Local files to publish."),
    branch: str = typer.Option(..., "--branch", "-b", help="Branch to commit to."),
    message: str = typer.Option(..., "--message", "-m", help="Commit message."),
    target_dir: str = typer.Option(
        "", "--dir", "-d", help="Directory inside the repository."
    ),
    update: list[str] = typer.Option(
        [],
        "--update",
        "-u",
        help="Repository path that already exists and should be overwritten (repeatable).",
    ),
) -> None:
    """Publish local files to a repository as a single commit."""
    from gitpost.commands._context import fail
    from gitpost.hosting import draft_from_files

    try:
        draft = draft_from_files(files, target_dir, branch, message, update=update)
    except GitpostError as exc:
        fail(exc)

    with _repository_service(ctx) as service:
        commit = service.publish(repo, draft)

    success(f"Published {len(draft.files)} file(s) to {repo}@{branch} as {commit.short_id}.")
    if commit.web_url:
        suggest(f"View it: {commit.web_url}")
