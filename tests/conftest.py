"""Shared test fixtures for gitpost.

Provides isolated config environments, in-memory session stores, a sample
provider registration, output state management, and a CLI runner. These
fixtures are discovered by pytest and available to all test modules.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from gitpost.auth.session_store import MemorySessionStore
from gitpost.models import Profile, ProviderConfig, RequestConfig
from gitpost.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output and logging state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager and the ``gitpost`` logger after every test.

    CLI invocations install handlers bound to the streams CliRunner swaps
    in; once the test ends those streams are closed.
    """
    yield
    reset_output()
    logger = logging.getLogger("gitpost")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


# ---------------------------------------------------------------------------
# Provider fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def provider() -> ProviderConfig:
    """A GitLab-style provider registration on a fake host."""
    return ProviderConfig(
        authorization_url="https://git.example.com/oauth/authorize",
        token_url="https://git.example.com/oauth/token",
        api_base_url="https://git.example.com/api/v4",
        client_id="client-123",
        redirect_uri="http://127.0.0.1:7777/callback",
        scopes=["api", "read_user"],
    )


@pytest.fixture
def sample_profile(provider: ProviderConfig) -> Profile:
    """A profile around :func:`provider` with fast, retry-free requests."""
    return Profile(
        name="work",
        provider=provider,
        request=RequestConfig(timeout=5, max_retries=0),
    )


@pytest.fixture
def memory_store() -> MemorySessionStore:
    return MemorySessionStore()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration and session data to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path,
    clears ``GITPOST_PROFILE``, and changes the working directory to
    tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("GITPOST_PROFILE", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
