"""Secure random flow parameters and the PKCE S256 challenge (:rfc:`7636`).

:func:`generate_flow_parameters` draws the anti-CSRF ``state`` and the PKCE
``code_verifier`` independently from the operating system's CSPRNG via
:mod:`secrets`. There is no fallback generator: if the secure source is
unavailable the login refuses to start.
"""

from __future__ import annotations

import base64
import hashlib
import secrets

from gitpost.exceptions import SecureRandomUnavailableError
from gitpost.models import FlowParameters

# 32 bytes -> 43 URL-safe characters, 64 bytes -> 86.
STATE_BYTES = 32
VERIFIER_BYTES = 64
# RFC 7636: verifier is 43-128 characters from the unreserved set
MAX_VERIFIER_LENGTH = 128


def _token(nbytes: int) -> str:
    try:
        return secrets.token_urlsafe(nbytes)
    except (NotImplementedError, OSError) as exc:
        raise SecureRandomUnavailableError(
            f"Secure random source unavailable: {exc}"
        ) from exc


def generate_flow_parameters() -> FlowParameters:
    """Generate a fresh ``state`` / ``code_verifier`` pair for one login attempt.

    Returns:
        A :class:`~gitpost.models.FlowParameters` whose two values share no
        entropy and use only ``[A-Za-z0-9_-]``.

    Raises:
        SecureRandomUnavailableError: If the OS random source cannot be used.
    """
    state = _token(STATE_BYTES)
    code_verifier = _token(VERIFIER_BYTES)[:MAX_VERIFIER_LENGTH]
    return FlowParameters(state=state, code_verifier=code_verifier)


def derive_code_challenge(code_verifier: str) -> str:
    """Return ``BASE64URL(SHA256(code_verifier))`` without padding."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
