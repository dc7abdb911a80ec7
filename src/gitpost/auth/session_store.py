"""Ephemeral per-profile session store.

A login is split across two processes (``gitpost auth login`` and
``gitpost auth callback``), so everything that must survive the redirect is
written here rather than held in memory. The same store later holds the
committed credential.

Keys are fixed (:data:`OAUTH_STATE`, :data:`CODE_VERIFIER`,
:data:`ACCESS_TOKEN`, :data:`REFRESH_TOKEN`). A missing key, a missing
file, or an unreadable file all mean "absent"; callers treat absence as a
definite answer.

Two implementations are provided:

- :class:`FileSessionStore` -- one JSON file per profile under
  ``<data_dir>/sessions/``, written atomically with ``0o600`` permissions and
  optionally bounded by a session lifetime.
- :class:`MemorySessionStore` -- a plain dict, for tests and for flows that
  complete inside one process.
"""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from gitpost.config import atomic_write, get_data_dir

logger = logging.getLogger(__name__)

OAUTH_STATE = "oauth_state"
CODE_VERIFIER = "code_verifier"
ACCESS_TOKEN = "access_token"
REFRESH_TOKEN = "refresh_token"

FLOW_KEYS = (OAUTH_STATE, CODE_VERIFIER)
ALL_KEYS = (OAUTH_STATE, CODE_VERIFIER, ACCESS_TOKEN, REFRESH_TOKEN)

_STARTED_AT = "started_at"


class SessionStore(ABC):
    """Minimal key/value interface over the session."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value for *key*, or ``None`` when absent."""
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Durably write *value* under *key*, overwriting any previous value."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove *key*. A no-op when it is already absent."""
        ...

    def clear(self) -> None:
        """Remove every known key."""
        for key in ALL_KEYS:
            self.delete(key)


class MemorySessionStore(SessionStore):
    """Dict-backed store. Lives only as long as the process."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._data


def _sessions_dir() -> Path:
    path = get_data_dir() / "sessions"
    path.mkdir(parents=True, exist_ok=True)
    return path


class FileSessionStore(SessionStore):
    """JSON-file session for one profile.

    Every write rewrites the whole file atomically. The file records when the
    session started; once *lifetime* seconds have passed the session is
    discarded on the next read, as if the user had closed it.

    Args:
        profile_name: Profile the session belongs to.
        lifetime: Optional session bound in seconds. ``None`` means the
            session lasts until it is cleared.

    Example::

        store = FileSessionStore("work")
        store.set(OAUTH_STATE, "abc")
        assert FileSessionStore("work").get(OAUTH_STATE) == "abc"
    """

    def __init__(self, profile_name: str, lifetime: Optional[int] = None) -> None:
        self._profile_name = profile_name
        self._lifetime = lifetime
        self._path = _sessions_dir() / f"{profile_name}.json"

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        if _STARTED_AT not in data:
            data[_STARTED_AT] = str(time.time())
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key not in data:
            return
        del data[key]
        if set(data) <= {_STARTED_AT}:
            self._remove_file()
        else:
            self._save(data)

    def clear(self) -> None:
        self._remove_file()

    # ------------------------------------------------------------------ #

    def _load(self) -> dict[str, str]:
        if not self._path.is_file():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, ValueError, OSError):
            logger.warning("Ignoring unreadable session file %s", self._path)
            return {}
        if not isinstance(data, dict):
            return {}
        data = {k: v for k, v in data.items() if isinstance(v, str)}
        if self._expired(data):
            logger.info("Session for profile '%s' exceeded its lifetime", self._profile_name)
            self._remove_file()
            return {}
        return data

    def _expired(self, data: dict[str, str]) -> bool:
        if self._lifetime is None:
            return False
        try:
            started = float(data.get(_STARTED_AT, ""))
        except ValueError:
            return True
        return time.time() - started > self._lifetime

    def _save(self, data: dict[str, str]) -> None:
        atomic_write(self._path, json.dumps(data, indent=2) + "\n", mode=0o600)

    def _remove_file(self) -> None:
        if self._path.is_file():
            self._path.unlink()
