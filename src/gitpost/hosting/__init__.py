"""Repository operations that consume the session credential."""

from gitpost.hosting.repositories import RepositoryService, draft_from_files, project_path

__all__ = ["RepositoryService", "draft_from_files", "project_path"]
