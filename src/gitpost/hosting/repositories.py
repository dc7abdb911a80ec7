"""Repository operations on a GitLab-compatible REST API (v4).

:class:`RepositoryService` is the collaborator that consumes the session
credential: every call goes through :class:`~gitpost.client.SyncClient`,
which attaches the bearer and maps 401/403 to
:class:`~gitpost.exceptions.AuthError`. Clearing the credential on such a
failure is left to the caller.
"""

from __future__ import annotations

import base64
import logging
from pathlib import Path, PurePosixPath
from typing import Any, Iterable, Optional
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError

from gitpost.client.sync_client import SyncClient
from gitpost.exceptions import ApiError, InvalidUsageError
from gitpost.models import (
    CommitResult,
    FileAction,
    FileChange,
    PostDraft,
    Repository,
    TreeEntry,
)

logger = logging.getLogger(__name__)

_TREE_PAGE_SIZE = 100
_MAX_TREE_PAGES = 50


def project_path(repo: str) -> str:
    """Return the ``/projects/<id>`` path for a numeric ID or ``group/name``."""
    return f"/projects/{quote(str(repo), safe='')}"


class RepositoryService:
    """List, inspect, and publish to repositories of the signed-in user.

    Args:
        client: An entered :class:`SyncClient`.
    """

    def __init__(self, client: SyncClient) -> None:
        self._client = client

    def list_repositories(
        self, search: Optional[str] = None, per_page: int = 50
    ) -> list[Repository]:
        params: dict[str, Any] = {
            "membership": "true",
            "simple": "true",
            "order_by": "last_activity_at",
            "per_page": per_page,
        }
        if search:
            params["search"] = search
        response = self._client.get("/projects", params=params)
        return _parse(list[Repository], response, "/projects")

    def get_tree(
        self,
        repo: str,
        ref: Optional[str] = None,
        path: str = "",
        recursive: bool = True,
    ) -> list[TreeEntry]:
        """List files and directories, following ``X-Next-Page`` pagination."""
        endpoint = f"{project_path(repo)}/repository/tree"
        params: dict[str, Any] = {
            "recursive": "true" if recursive else "false",
            "per_page": _TREE_PAGE_SIZE,
        }
        if ref:
            params["ref"] = ref
        if path:
            params["path"] = path

        entries: list[TreeEntry] = []
        page: Optional[str] = "1"
        pages = 0
        while page and pages < _MAX_TREE_PAGES:
            params["page"] = page
            response = self._client.get(endpoint, params=dict(params))
            entries.extend(_parse(list[TreeEntry], response, endpoint))
            page = response.headers.get("X-Next-Page") or None
            pages += 1
        if page:
            logger.warning("Tree listing truncated after %d pages", pages)
        return entries

    def publish(self, repo: str, draft: PostDraft) -> CommitResult:
        """Create one commit on ``draft.branch`` with all of the draft's files."""
        endpoint = f"{project_path(repo)}/repository/commits"
        body = {
            "branch": draft.branch,
            "commit_message": draft.message,
            "actions": [_action_payload(change) for change in draft.files],
        }
        logger.debug("Publishing %d file(s) to %s@%s", len(draft.files), repo, draft.branch)
        response = self._client.post(endpoint, json_body=body)
        return _parse(CommitResult, response, endpoint)


def draft_from_files(
    paths: Iterable[Path],
    target_dir: str,
    branch: str,
    message: str,
    update: Iterable[str] = (),
) -> PostDraft:
    """Build a :class:`PostDraft` from local files.

    Each file lands at ``<target_dir>/<file name>``. Files that decode as
    UTF-8 are sent as text, anything else as base64.

    Args:
        paths: Local files to publish.
        target_dir: Directory inside the repository; ``""`` for the root.
        branch: Branch to commit to.
        message: Commit message.
        update: Repository paths that already exist and should be updated
            rather than created.

    Raises:
        InvalidUsageError: If a path is not a readable file, or two files map
            to the same repository path.
    """
    to_update = set(update)
    changes: list[FileChange] = []
    seen: set[str] = set()
    for local in paths:
        local = Path(local)
        if not local.is_file():
            raise InvalidUsageError(f"Not a file: {local}")
        base = target_dir.strip("/")
        file_path = str(PurePosixPath(base, local.name)) if base else local.name
        if file_path in seen:
            raise InvalidUsageError(f"Two files map to the same path: {file_path}")
        seen.add(file_path)

        raw = local.read_bytes()
        try:
            content, encoding = raw.decode("utf-8"), "text"
        except UnicodeDecodeError:
            content, encoding = base64.b64encode(raw).decode("ascii"), "base64"

        action = FileAction.UPDATE if file_path in to_update else FileAction.CREATE
        changes.append(
            FileChange(action=action, file_path=file_path, content=content, encoding=encoding)
        )

    if not changes:
        raise InvalidUsageError("No files to publish")
    try:
        return PostDraft(branch=branch, message=message, files=changes)
    except ValidationError as exc:
        raise InvalidUsageError(f"Invalid draft: {exc.errors()[0]['msg']}") from exc


def _action_payload(change: FileChange) -> dict[str, Any]:
    payload: dict[str, Any] = {"action": change.action.value, "file_path": change.file_path}
    if change.action is not FileAction.DELETE:
        payload["content"] = change.content or ""
        payload["encoding"] = change.encoding
    return payload


def _parse(schema: Any, response: httpx.Response, source: str) -> Any:
    try:
        body = response.json()
    except ValueError as exc:
        raise ApiError(f"Response from {source} is not valid JSON") from exc
    try:
        return TypeAdapter(schema).validate_python(body)
    except ValidationError as exc:
        raise ApiError(
            f"Unexpected response shape from {source}: {exc.error_count()} error(s)"
        ) from exc
