"""OAuth 2.0 Authorization Code + PKCE login and session credentials.

The main entry points are:

- :class:`LoginFlow` -- two-phase login (:meth:`~LoginFlow.initiate` before
  the browser redirect, :meth:`~LoginFlow.resume` after it).
- :class:`CredentialManager` -- read, store, and clear the bearer credential.
- :class:`SessionStore` with :class:`FileSessionStore` and
  :class:`MemorySessionStore` -- the only state shared between the phases.
- :func:`generate_flow_parameters`, :func:`derive_code_challenge`,
  :func:`build_authorization_request`, :func:`authorization_url` -- the
  building blocks used by :class:`LoginFlow`.

Typical usage::

    from gitpost.auth import FileSessionStore, LoginFlow

    store = FileSessionStore(profile.name)
    url = LoginFlow(profile.provider, store).initiate()
    ...
    result = LoginFlow(profile.provider, store).resume(redirect_url)
"""

from gitpost.auth.authorization import authorization_url, build_authorization_request
from gitpost.auth.credentials import CredentialManager
from gitpost.auth.flow import FlowState, LoginFlow, LoginResult
from gitpost.auth.pkce import derive_code_challenge, generate_flow_parameters
from gitpost.auth.session_store import (
    FileSessionStore,
    MemorySessionStore,
    SessionStore,
)

__all__ = [
    "CredentialManager",
    "FileSessionStore",
    "FlowState",
    "LoginFlow",
    "LoginResult",
    "MemorySessionStore",
    "SessionStore",
    "authorization_url",
    "build_authorization_request",
    "derive_code_challenge",
    "generate_flow_parameters",
]
