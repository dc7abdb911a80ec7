"""Exception hierarchy for gitpost.

All exceptions inherit from :class:`GitpostError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`gitpost.exit_codes`.
The top-level handler in :func:`gitpost.app.main` catches ``GitpostError``
and exits with the matching code, while unexpected exceptions produce a
crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Login failures form a closed set. Every :class:`LoginFlowError` subclass
fixes a :class:`FailureReason` tag and a user-facing ``hint``, and may carry
the provider's raw payload in ``detail`` for diagnostics::

    GitpostError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- ConfigError         (exit 1)
    +-- AuthError           (exit 3)
    |   +-- NotLoggedInError
    |   +-- LoginFlowError
    |       +-- MissingParameterError
    |       +-- StateMismatchError
    |       +-- MissingVerifierError
    |       +-- AuthorizationDeniedError
    |       +-- TokenExchangeError
    |       +-- IdentityFetchError
    |       +-- MalformedResponseError
    |       +-- NetworkError                  (exit 6)
    |       +-- SecureRandomUnavailableError  (exit 1)
    +-- NotFoundError       (exit 4)
    +-- ServerError         (exit 5)
    +-- ApiError            (exit 1)
    +-- ConnectionError_    (exit 6)
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from gitpost.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class GitpostError(Exception):
    """Base exception for all gitpost errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(GitpostError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(GitpostError):
    """Raised for configuration problems (missing profiles, invalid JSON)."""

    exit_code = EXIT_GENERIC_FAILURE


class AuthError(GitpostError):
    """Raised when authentication fails or the credential is rejected."""

    exit_code = EXIT_AUTH_FAILURE


class NotLoggedInError(AuthError):
    """Raised when an authenticated call is attempted with no stored credential."""


class NotFoundError(GitpostError):
    """Raised when the provider returns HTTP 404."""

    exit_code = EXIT_NOT_FOUND


class ServerError(GitpostError):
    """Raised when the provider returns an HTTP 5xx server error."""

    exit_code = EXIT_SERVER_ERROR


class ApiError(GitpostError):
    """Raised for any other non-success provider response (4xx other than 401/403/404)."""

    exit_code = EXIT_GENERIC_FAILURE


class ConnectionError_(GitpostError):
    """Raised on network-level failures of downstream API calls.

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


# --- Login flow failures ---


class FailureReason(str, enum.Enum):
    """Closed set of reasons a login attempt can end in ``FAILED``."""

    MISSING_PARAMETER = "missing_parameter"
    STATE_MISMATCH = "state_mismatch"
    MISSING_VERIFIER = "missing_verifier"
    AUTHORIZATION_DENIED = "authorization_denied"
    TOKEN_EXCHANGE_ERROR = "token_exchange_error"
    IDENTITY_FETCH_ERROR = "identity_fetch_error"
    MALFORMED_RESPONSE = "malformed_response"
    NETWORK_ERROR = "network_error"
    SECURE_RANDOM_UNAVAILABLE = "secure_random_unavailable"


_RETRY_LOGIN = "Your login session is out of sync. Run 'gitpost auth login' again."
_CHECK_REGISTRATION = (
    "The provider rejected the request. Check the application's client ID, "
    "redirect URI and scopes in the provider's settings."
)


class LoginFlowError(AuthError):
    """A terminal failure of one login attempt.

    Subclasses fix :attr:`reason` and :attr:`hint`; callers switch on the
    reason (or the class) rather than parsing the message.

    Args:
        message: Human-readable error description.
        detail: Optional diagnostic payload, typically the provider's raw
            error body. Never used for control flow.
    """

    reason: FailureReason
    hint: str = _RETRY_LOGIN

    def __init__(self, message: str, detail: Optional[Any] = None):
        super().__init__(message)
        self.detail = detail


class MissingParameterError(LoginFlowError):
    """The redirect did not carry both ``code`` and ``state``."""

    reason = FailureReason.MISSING_PARAMETER


class StateMismatchError(LoginFlowError):
    """The returned ``state`` does not match the one stored for this session.

    This is the CSRF defence; it is never retried or bypassed.
    """

    reason = FailureReason.STATE_MISMATCH


class MissingVerifierError(LoginFlowError):
    """No PKCE ``code_verifier`` is stored for this session."""

    reason = FailureReason.MISSING_VERIFIER


class AuthorizationDeniedError(LoginFlowError):
    """The provider redirected back with an ``error`` instead of a code."""

    reason = FailureReason.AUTHORIZATION_DENIED
    hint = "Authorization was not granted. Run 'gitpost auth login' to try again."


class TokenExchangeError(LoginFlowError):
    """The token endpoint refused the authorization code."""

    reason = FailureReason.TOKEN_EXCHANGE_ERROR
    hint = _CHECK_REGISTRATION


class IdentityFetchError(LoginFlowError):
    """The new access token could not resolve the current user."""

    reason = FailureReason.IDENTITY_FETCH_ERROR
    hint = _CHECK_REGISTRATION


class MalformedResponseError(LoginFlowError):
    """A provider response did not match the expected schema."""

    reason = FailureReason.MALFORMED_RESPONSE
    hint = "The provider returned an unexpected response. Check the configured endpoints."


class NetworkError(LoginFlowError):
    """A request to the provider timed out or failed at the transport level."""

    reason = FailureReason.NETWORK_ERROR
    hint = "Could not reach the provider. Check your connection and run 'gitpost auth login' again."
    exit_code = EXIT_CONNECTION_ERROR


class SecureRandomUnavailableError(LoginFlowError):
    """The operating system's secure random source is unavailable.

    The flow refuses to start rather than fall back to a weak generator.
    """

    reason = FailureReason.SECURE_RANDOM_UNAVAILABLE
    hint = "No secure random source is available on this system; login cannot start."
    exit_code = EXIT_GENERIC_FAILURE
