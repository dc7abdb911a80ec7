"""Integration tests for ``gitpost auth`` through the full Typer app.

The provider is an ``httpx.MockTransport`` installed through
``gitpost.commands._context.http_transport``; sessions live in the isolated
XDG data directory, so ``login`` and ``callback`` share state exactly as two
separate processes would.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from typer.testing import CliRunner

from gitpost.app import app
from gitpost.auth.credentials import CredentialManager
from gitpost.auth.session_store import CODE_VERIFIER, OAUTH_STATE, FileSessionStore
from gitpost.config import save_profile
from gitpost.exceptions import AuthError
from gitpost.models import Credential, Profile


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


class Provider:
    """Stand-in for the OAuth provider and its REST API."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.token_status = 200
        self.token_body: dict[str, Any] = {"access_token": "T", "token_type": "bearer"}
        self.user_status = 200
        self.user_body: dict[str, Any] = {"id": 7, "username": "alice", "name": "Alice"}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/oauth/token":
            return httpx.Response(self.token_status, json=self.token_body)
        if request.url.path == "/api/v4/user":
            return httpx.Response(self.user_status, json=self.user_body)
        return httpx.Response(404, json={"message": "404 Not Found"})


@pytest.fixture
def profile(isolated_config: Path, sample_profile: Profile) -> Profile:
    save_profile(sample_profile)
    return sample_profile


@pytest.fixture
def provider_api(monkeypatch: pytest.MonkeyPatch) -> Provider:
    fake = Provider()
    monkeypatch.setattr(
        "gitpost.commands._context.http_transport", lambda: httpx.MockTransport(fake)
    )
    return fake


def _invoke(runner: CliRunner, *args: str):
    return runner.invoke(app, ["--no-color", *args])


def _store(profile: Profile) -> FileSessionStore:
    return FileSessionStore(profile.name)


def _login(runner: CliRunner, profile: Profile) -> str:
    result = _invoke(runner, "auth", "login", "--no-browser")
    assert result.exit_code == 0, result.output
    state = _store(profile).get(OAUTH_STATE)
    assert state
    return state


# ---------------------------------------------------------------------------
# login
# ---------------------------------------------------------------------------


class TestLogin:
    def test_prints_url_and_stores_parameters(
        self, cli_runner: CliRunner, profile: Profile
    ) -> None:
        result = _invoke(cli_runner, "auth", "login", "--no-browser")

        assert result.exit_code == 0, result.output
        [url] = [line for line in result.output.splitlines() if line.startswith("https://")]
        query = parse_qs(urlsplit(url).query)
        assert url.startswith("https://git.example.com/oauth/authorize?")
        assert query["state"] == [_store(profile).get(OAUTH_STATE)]
        assert query["code_challenge_method"] == ["S256"]
        assert _store(profile).get(CODE_VERIFIER)
        assert "gitpost auth callback" in result.output

    def test_opens_browser(self, cli_runner: CliRunner, profile: Profile) -> None:
        with patch("gitpost.commands.auth.webbrowser.open", return_value=True) as mock_open:
            result = _invoke(cli_runner, "auth", "login")

        assert result.exit_code == 0, result.output
        mock_open.assert_called_once()
        assert mock_open.call_args.args[0].startswith("https://git.example.com/oauth/authorize?")

    def test_browser_failure_is_a_warning(self, cli_runner: CliRunner, profile: Profile) -> None:
        with patch("gitpost.commands.auth.webbrowser.open", return_value=False):
            result = _invoke(cli_runner, "auth", "login")
        assert result.exit_code == 0
        assert "Could not open a browser" in result.output

    def test_wait_completes_login(
        self,
        cli_runner: CliRunner,
        profile: Profile,
        provider_api: Provider,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        class FakeListener:
            def __init__(self, redirect_uri: str) -> None:
                self.redirect_uri = redirect_uri

            def __enter__(self) -> "FakeListener":
                return self

            def __exit__(self, *args: object) -> None:
                pass

            def wait(self, timeout: float = 120.0) -> str:
                return f"code=abc&state={_store(profile).get(OAUTH_STATE)}"

        monkeypatch.setattr("gitpost.auth.callback_server.CallbackListener", FakeListener)
        result = _invoke(cli_runner, "auth", "login", "--no-browser", "--wait")

        assert result.exit_code == 0, result.output
        assert "Logged in as alice" in result.output
        assert CredentialManager(_store(profile)).read() == Credential(access_token="T")

    def test_wait_timeout_leaves_login_pending(
        self,
        cli_runner: CliRunner,
        profile: Profile,
        provider_api: Provider,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        class SilentListener:
            def __init__(self, redirect_uri: str) -> None:
                pass

            def __enter__(self) -> "SilentListener":
                return self

            def __exit__(self, *args: object) -> None:
                pass

            def wait(self, timeout: float = 120.0) -> str:
                raise AuthError(f"No redirect received within {timeout:.0f} seconds")

        monkeypatch.setattr("gitpost.auth.callback_server.CallbackListener", SilentListener)
        result = _invoke(cli_runner, "auth", "login", "--no-browser", "--wait", "--timeout", "1")

        assert result.exit_code == 3
        assert "No redirect received within 1 seconds" in result.output
        assert "gitpost auth callback" in result.output
        assert provider_api.requests == []

        state = _store(profile).get(OAUTH_STATE)
        assert state
        assert _store(profile).get(CODE_VERIFIER)
        finished = _invoke(cli_runner, "auth", "callback", f"code=abc&state={state}")
        assert finished.exit_code == 0, finished.output
        assert "Logged in as alice" in finished.output

    def test_wait_requires_loopback_redirect(
        self, cli_runner: CliRunner, isolated_config: Path, sample_profile: Profile
    ) -> None:
        sample_profile.provider.redirect_uri = "https://app.example.com/callback"
        save_profile(sample_profile)
        result = _invoke(cli_runner, "auth", "login", "--no-browser", "--wait")
        assert result.exit_code == 2
        assert "not a loopback address" in result.output

    def test_no_profile(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "auth", "login", "--no-browser")
        assert result.exit_code == 2
        assert "No profile selected" in result.output


# ---------------------------------------------------------------------------
# callback
# ---------------------------------------------------------------------------


class TestCallback:
    def test_completes_login(
        self, cli_runner: CliRunner, profile: Profile, provider_api: Provider
    ) -> None:
        state = _login(cli_runner, profile)
        redirect = f"{profile.provider.redirect_uri}?code=abc&state={state}"

        result = _invoke(cli_runner, "auth", "callback", redirect)

        assert result.exit_code == 0, result.output
        assert "Logged in as alice" in result.output
        store = _store(profile)
        assert CredentialManager(store).read().access_token == "T"
        assert store.get(OAUTH_STATE) is None
        assert store.get(CODE_VERIFIER) is None

    def test_state_mismatch(
        self, cli_runner: CliRunner, profile: Profile, provider_api: Provider
    ) -> None:
        _login(cli_runner, profile)
        result = _invoke(
            cli_runner, "auth", "callback",
            f"{profile.provider.redirect_uri}?code=abc&state=forged",
        )

        assert result.exit_code == 3
        assert "does not match" in result.output
        assert "gitpost auth login" in result.output
        assert provider_api.requests == []
        assert CredentialManager(_store(profile)).read() is None

    def test_callback_without_login(
        self, cli_runner: CliRunner, profile: Profile, provider_api: Provider
    ) -> None:
        result = _invoke(cli_runner, "auth", "callback", "code=abc&state=xyz")
        assert result.exit_code == 3
        assert "No login is in progress" in result.output

    def test_replayed_callback_fails(
        self, cli_runner: CliRunner, profile: Profile, provider_api: Provider
    ) -> None:
        state = _login(cli_runner, profile)
        redirect = f"code=abc&state={state}"
        assert _invoke(cli_runner, "auth", "callback", redirect).exit_code == 0

        result = _invoke(cli_runner, "auth", "callback", redirect)
        assert result.exit_code == 3
        assert len([r for r in provider_api.requests if r.url.path == "/oauth/token"]) == 1

    def test_invalid_grant(
        self, cli_runner: CliRunner, profile: Profile, provider_api: Provider
    ) -> None:
        provider_api.token_status = 400
        provider_api.token_body = {"error": "invalid_grant", "error_description": "expired"}
        state = _login(cli_runner, profile)

        result = _invoke(cli_runner, "auth", "callback", f"code=abc&state={state}")

        assert result.exit_code == 3
        assert "invalid_grant" in result.output
        assert "client ID" in result.output
        assert CredentialManager(_store(profile)).read() is None

    def test_access_denied(
        self, cli_runner: CliRunner, profile: Profile, provider_api: Provider
    ) -> None:
        state = _login(cli_runner, profile)
        result = _invoke(
            cli_runner, "auth", "callback", f"error=access_denied&state={state}"
        )
        assert result.exit_code == 3
        assert "access_denied" in result.output
        assert _store(profile).get(OAUTH_STATE) is None


# ---------------------------------------------------------------------------
# status / whoami / logout
# ---------------------------------------------------------------------------


class TestSessionCommands:
    def test_status_logged_out(self, cli_runner: CliRunner, profile: Profile) -> None:
        result = _invoke(cli_runner, "auth", "status")
        assert result.exit_code == 0
        assert "logged_in\tFalse" in result.output
        assert "gitpost auth login" in result.output

    def test_status_json(self, cli_runner: CliRunner, profile: Profile) -> None:
        CredentialManager(_store(profile)).store(Credential(access_token="T"))
        result = _invoke(cli_runner, "--json", "auth", "status")
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["profile"] == "work"
        assert data["logged_in"] is True
        assert data["login_pending"] is False

    def test_whoami(
        self, cli_runner: CliRunner, profile: Profile, provider_api: Provider
    ) -> None:
        CredentialManager(_store(profile)).store(Credential(access_token="T"))
        result = _invoke(cli_runner, "auth", "whoami")
        assert result.exit_code == 0, result.output
        assert "username\talice" in result.output
        assert provider_api.requests[0].headers["Authorization"] == "Bearer T"

    def test_whoami_rejected_credential_is_cleared(
        self, cli_runner: CliRunner, profile: Profile, provider_api: Provider
    ) -> None:
        provider_api.user_status = 401
        provider_api.user_body = {"message": "401 Unauthorized"}
        CredentialManager(_store(profile)).store(Credential(access_token="T"))

        result = _invoke(cli_runner, "auth", "whoami")

        assert result.exit_code == 3
        assert "gitpost auth login" in result.output
        assert CredentialManager(_store(profile)).read() is None

    def test_whoami_not_logged_in(
        self, cli_runner: CliRunner, profile: Profile, provider_api: Provider
    ) -> None:
        result = _invoke(cli_runner, "auth", "whoami")
        assert result.exit_code == 3
        assert "Not logged in" in result.output
        assert provider_api.requests == []

    def test_logout(self, cli_runner: CliRunner, profile: Profile) -> None:
        CredentialManager(_store(profile)).store(Credential(access_token="T", refresh_token="R"))
        result = _invoke(cli_runner, "auth", "logout")
        assert result.exit_code == 0
        assert CredentialManager(_store(profile)).read() is None
        assert not _store(profile).path.exists()

    def test_logout_when_logged_out(self, cli_runner: CliRunner, profile: Profile) -> None:
        result = _invoke(cli_runner, "auth", "logout")
        assert result.exit_code == 0
        assert "not logged in" in result.output
