"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for gitpost:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.gitpost/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_data_dir`, :func:`get_profiles_dir`.
* **Global config** -- a single :class:`~gitpost.models.GlobalConfig`
  JSON file storing defaults (active profile, output format, session
  lifetime).
* **Profiles** -- one JSON file per provider, each deserialised into a
  :class:`~gitpost.models.Profile`.
* **Precedence resolution** -- :func:`resolve_config` merges the CLI flag,
  environment, project-local config, and global config to pick the active
  profile.
* **Provider presets** -- :func:`provider_preset` fills in well-known
  endpoint layouts.

All file writes go through :func:`atomic_write` so a crash never leaves a
half-written file behind.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from gitpost.exceptions import ConfigError
from gitpost.models import GlobalConfig, Profile, ProviderConfig

_APP_NAME = "gitpost"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "gitpost.json"

ENV_PROFILE = "GITPOST_PROFILE"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform follows the XDG Base Directory spec (Linux/BSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from *env_var*, falling back to ``$HOME/<segments>``."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/gitpost/`` (default ``~/.config/gitpost/``).
    On macOS/Windows: ``~/.gitpost/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (sessions, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/gitpost/`` (default ``~/.local/share/gitpost/``).
    On macOS/Windows: ``~/.gitpost/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_profiles_dir() -> Path:
    """Return ``<config_dir>/profiles/``, creating it if necessary."""
    path = get_config_dir() / "profiles"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write *data* to *path* atomically using a temp file + rename.

    The temporary file is created next to *path* so that ``os.replace`` is an
    atomic rename on POSIX. When *mode* is given it is applied to the temp
    file before any content is written, so secrets are never readable by
    others even momentarily.

    Args:
        path: Destination file.
        data: Text content.
        mode: Optional permission bits (e.g. ``0o600``).
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


def _read_json(path: Path, what: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration, or defaults when the file is absent.

    Raises:
        ConfigError: If the file exists but is invalid.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        return GlobalConfig.model_validate(_read_json(path, "global config"))
    except ValueError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically."""
    data = config.model_dump(mode="json")
    atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Profiles ---


def _profile_path(name: str) -> Path:
    return get_profiles_dir() / f"{name}.json"


def list_profiles() -> list[str]:
    """Return all profile names, sorted alphabetically."""
    return sorted(p.stem for p in get_profiles_dir().glob("*.json") if p.is_file())


def load_profile(name: str) -> Profile:
    """Load and validate a profile from disk.

    Raises:
        ConfigError: If the profile does not exist or is invalid.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    try:
        return Profile.model_validate(_read_json(path, f"profile '{name}'"))
    except ValueError as exc:
        raise ConfigError(f"Invalid profile '{name}' at {path}: {exc}") from exc


def save_profile(profile: Profile) -> None:
    """Persist a profile atomically; the file name is derived from ``profile.name``."""
    data = profile.model_dump(mode="json")
    atomic_write(_profile_path(profile.name), json.dumps(data, indent=2) + "\n")


def delete_profile(name: str) -> None:
    """Delete a profile's JSON file.

    Raises:
        ConfigError: If the profile does not exist.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    path.unlink()


def profile_exists(name: str) -> bool:
    return _profile_path(name).is_file()


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load ``./gitpost.json`` if present.

    A repository can pin which profile to use by setting ``default_profile``
    there.

    Raises:
        ConfigError: If the file exists but contains invalid JSON.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    return _read_json(path, "project config")


# --- Precedence resolution ---


def resolve_config(
    cli_profile: Optional[str] = None,
) -> tuple[GlobalConfig, Optional[Profile]]:
    """Resolve the global config and the active profile.

    Precedence for the profile name (high to low):
        1. ``--profile`` CLI flag
        2. ``GITPOST_PROFILE`` environment variable
        3. ``default_profile`` in ``./gitpost.json``
        4. ``default_profile`` in the global config
        5. The only profile, when exactly one exists and
           ``auto_select_single_profile`` is enabled

    Returns:
        A tuple of ``(global_config, active_profile_or_None)``.
    """
    global_cfg = load_global_config()

    resolved: Optional[str] = global_cfg.default_profile
    project = load_project_config()
    if project is not None and project.get("default_profile"):
        resolved = project["default_profile"]
    env_profile = os.environ.get(ENV_PROFILE)
    if env_profile:
        resolved = env_profile
    if cli_profile is not None:
        resolved = cli_profile

    if resolved is None and global_cfg.auto_select_single_profile:
        profiles = list_profiles()
        if len(profiles) == 1:
            resolved = profiles[0]

    profile = load_profile(resolved) if resolved is not None else None
    return global_cfg, profile


# --- Provider presets ---

_PRESETS: dict[str, dict[str, str]] = {
    "gitlab": {
        "authorization_url": "{host}/oauth/authorize",
        "token_url": "{host}/oauth/token",
        "api_base_url": "{host}/api/v4",
    },
}

_DEFAULT_HOSTS = {"gitlab": "https://gitlab.com"}


def provider_preset(
    preset: str,
    client_id: str,
    redirect_uri: str,
    host: Optional[str] = None,
    scopes: Optional[list[str]] = None,
) -> ProviderConfig:
    """Build a :class:`~gitpost.models.ProviderConfig` from a named preset.

    Args:
        preset: Preset name (currently ``"gitlab"``).
        client_id: Registered application ID.
        redirect_uri: Registered redirect URI.
        host: Base URL of a self-hosted instance; defaults to the public one.
        scopes: Requested scopes; the model default is used when omitted.

    Raises:
        ConfigError: If *preset* is unknown.
    """
    template = _PRESETS.get(preset)
    if template is None:
        available = ", ".join(sorted(_PRESETS))
        raise ConfigError(f"Unknown provider preset '{preset}'. Available: {available}")

    base = (host or _DEFAULT_HOSTS[preset]).rstrip("/")
    fields: dict[str, Any] = {k: v.format(host=base) for k, v in template.items()}
    fields["client_id"] = client_id
    fields["redirect_uri"] = redirect_uri
    if scopes:
        fields["scopes"] = scopes
    return ProviderConfig(**fields)
