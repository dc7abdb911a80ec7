"""Integration tests for ``gitpost init`` and ``gitpost config``."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from gitpost.app import app
from gitpost.auth.credentials import CredentialManager
from gitpost.auth.session_store import FileSessionStore
from gitpost.config import (
    get_config_dir,
    load_global_config,
    load_profile,
    profile_exists,
    save_global_config,
    save_profile,
)
from gitpost.models import Credential, GlobalConfig, OutputConfig, Profile


def _invoke(runner: CliRunner, *args: str, input: str | None = None):
    return runner.invoke(app, ["--no-color", *args], input=input)


class TestInit:
    def test_gitlab_preset(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(
            cli_runner, "init", "work", "--preset", "gitlab",
            "--client-id", "abc", "--redirect-uri", "http://127.0.0.1:7777/callback",
        )

        assert result.exit_code == 0, result.output
        profile = load_profile("work")
        assert profile.provider.authorization_url == "https://gitlab.com/oauth/authorize"
        assert profile.provider.client_id == "abc"
        project = json.loads((isolated_config / "gitpost.json").read_text())
        assert project == {"default_profile": "work"}
        assert "gitpost auth login" in result.output

    def test_self_hosted_with_scopes(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(
            cli_runner, "init", "self", "--preset", "gitlab",
            "--host", "https://git.example.com",
            "--client-id", "abc", "--redirect-uri", "http://127.0.0.1:7777/callback",
            "--scope", "read_api", "--scope", "read_user",
        )
        assert result.exit_code == 0, result.output
        provider = load_profile("self").provider
        assert provider.api_base_url == "https://git.example.com/api/v4"
        assert provider.scopes == ["read_api", "read_user"]

    def test_explicit_endpoints(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(
            cli_runner, "init", "custom",
            "--client-id", "abc", "--redirect-uri", "https://app.example.com/cb",
            "--authorization-url", "https://id.example.com/authorize",
            "--token-url", "https://id.example.com/token",
            "--api-base-url", "https://api.example.com/v4",
        )
        assert result.exit_code == 0, result.output
        assert load_profile("custom").provider.token_url == "https://id.example.com/token"
        assert "not a loopback address" in result.output

    def test_missing_endpoints(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(
            cli_runner, "init", "custom",
            "--client-id", "abc", "--redirect-uri", "http://127.0.0.1:7777/callback",
            "--token-url", "https://id.example.com/token",
        )
        assert result.exit_code == 2
        assert "--authorization-url" in result.output
        assert not profile_exists("custom")

    def test_unknown_preset(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(
            cli_runner, "init", "x", "--preset", "bitbucket",
            "--client-id", "abc", "--redirect-uri", "http://127.0.0.1:7777/callback",
        )
        assert result.exit_code == 2
        assert "Unknown provider preset" in result.output


class TestConfigCommands:
    @pytest.fixture
    def two_profiles(self, isolated_config: Path, sample_profile: Profile) -> Path:
        save_profile(sample_profile)
        save_profile(sample_profile.model_copy(update={"name": "home"}))
        return isolated_config

    def test_list(self, cli_runner: CliRunner, two_profiles: Path) -> None:
        save_global_config(GlobalConfig(default_profile="work"))
        result = _invoke(cli_runner, "config", "list")
        assert result.exit_code == 0, result.output
        assert "\thome\thttps://git.example.com/api/v4\tclient-123" in result.output
        assert "*\twork\t" in result.output

    def test_list_empty(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "config", "list")
        assert result.exit_code == 0
        assert "No profiles configured" in result.output

    def test_use(self, cli_runner: CliRunner, two_profiles: Path) -> None:
        result = _invoke(cli_runner, "config", "use", "home")
        assert result.exit_code == 0, result.output
        assert load_global_config().default_profile == "home"

    def test_use_unknown(self, cli_runner: CliRunner, two_profiles: Path) -> None:
        result = _invoke(cli_runner, "config", "use", "ghost")
        assert result.exit_code == 2
        assert load_global_config().default_profile is None

    def test_show_json(self, cli_runner: CliRunner, two_profiles: Path) -> None:
        result = _invoke(cli_runner, "--json", "--quiet", "--profile", "home", "config", "show")
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["active_profile"]["name"] == "home"
        assert data["config"]["auto_select_single_profile"] is True

    def test_remove_clears_session(self, cli_runner: CliRunner, two_profiles: Path) -> None:
        save_global_config(GlobalConfig(default_profile="work"))
        CredentialManager(FileSessionStore("work")).store(Credential(access_token="T"))

        result = _invoke(cli_runner, "--force", "config", "remove", "work")

        assert result.exit_code == 0, result.output
        assert not profile_exists("work")
        assert not FileSessionStore("work").path.exists()
        assert load_global_config().default_profile is None

    def test_remove_declined(self, cli_runner: CliRunner, two_profiles: Path) -> None:
        result = _invoke(cli_runner, "config", "remove", "work", input="n\n")
        assert result.exit_code == 0
        assert profile_exists("work")


class TestConfiguredOutputFormat:
    def test_json_from_global_config(
        self, cli_runner: CliRunner, isolated_config: Path, sample_profile: Profile
    ) -> None:
        save_profile(sample_profile)
        save_global_config(GlobalConfig(output=OutputConfig(format="json")))

        result = _invoke(cli_runner, "config", "list")

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == [
            {
                "Default": "",
                "Profile": "work",
                "API": "https://git.example.com/api/v4",
                "Client ID": "client-123",
            }
        ]

    def test_flag_overrides_config(
        self, cli_runner: CliRunner, isolated_config: Path, sample_profile: Profile
    ) -> None:
        save_profile(sample_profile)
        save_global_config(GlobalConfig(output=OutputConfig(format="json")))

        result = _invoke(cli_runner, "--plain", "config", "list")

        assert result.exit_code == 0, result.output
        assert "\twork\thttps://git.example.com/api/v4\tclient-123" in result.output

    def test_unreadable_config_falls_back_with_warning(
        self, cli_runner: CliRunner, isolated_config: Path
    ) -> None:
        config_file = get_config_dir() / "config.json"
        config_file.write_text("{broken", encoding="utf-8")

        result = _invoke(
            cli_runner, "init", "work", "--preset", "gitlab",
            "--client-id", "abc", "--redirect-uri", "http://127.0.0.1:7777/callback",
        )

        assert result.exit_code == 0, result.output
        assert "Invalid global config" in result.output
        assert "automatic output format" in result.output
        assert profile_exists("work")
