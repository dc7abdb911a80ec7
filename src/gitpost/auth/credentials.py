"""Credential lifecycle for the remainder of a session.

:class:`CredentialManager` is the only component that writes or clears the
access and refresh tokens. It never makes network calls and never refreshes
a token; a credential is valid until it is cleared or a downstream call
rejects it, at which point the caller decides whether to :meth:`clear`.
"""

from __future__ import annotations

import logging
from typing import Optional

from gitpost.auth.session_store import (
    ACCESS_TOKEN,
    REFRESH_TOKEN,
    SessionStore,
)
from gitpost.exceptions import NotLoggedInError
from gitpost.models import Credential

logger = logging.getLogger(__name__)


class CredentialManager:
    """Read, write, and clear the session's bearer credential.

    Args:
        store: The session store holding the credential.

    Example::

        manager = CredentialManager(MemorySessionStore())
        manager.store(Credential(access_token="T"))
        assert manager.read().access_token == "T"
        manager.clear()
        assert manager.read() is None
    """

    def __init__(self, store: SessionStore) -> None:
        self._store = store

    def store(self, credential: Credential) -> None:
        """Replace any existing credential with *credential*.

        A refresh token left over from an earlier login is removed when the
        new credential has none.
        """
        self._store.set(ACCESS_TOKEN, credential.access_token)
        if credential.refresh_token:
            self._store.set(REFRESH_TOKEN, credential.refresh_token)
        else:
            self._store.delete(REFRESH_TOKEN)
        logger.debug("Stored credential (refresh token: %s)", bool(credential.refresh_token))

    def read(self) -> Optional[Credential]:
        """Return the current credential, or ``None`` when logged out."""
        access_token = self._store.get(ACCESS_TOKEN)
        if not access_token:
            return None
        return Credential(
            access_token=access_token,
            refresh_token=self._store.get(REFRESH_TOKEN) or None,
        )

    def clear(self) -> None:
        """Remove the credential and any leftover flow parameters.

        Safe to call on an empty session.
        """
        self._store.clear()
        logger.debug("Cleared session credential and flow parameters")

    @property
    def is_logged_in(self) -> bool:
        return self.read() is not None

    def authorization_header(self) -> dict[str, str]:
        """Return the ``Authorization`` header for the stored credential.

        Raises:
            NotLoggedInError: If no credential is stored.
        """
        credential = self.read()
        if credential is None:
            raise NotLoggedInError("Not logged in. Run 'gitpost auth login' first.")
        return {"Authorization": f"Bearer {credential.access_token}"}
