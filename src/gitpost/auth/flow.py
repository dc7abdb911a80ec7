"""Two-phase OAuth 2.0 Authorization Code + PKCE login for a public client.

The login is split at the browser redirect, which may happen in another
process entirely:

1. :meth:`LoginFlow.initiate` generates the flow parameters, writes them to
   the session store, and returns the authorization URL.
2. :meth:`LoginFlow.resume` consumes the provider's redirect and walks the
   state machine::

       IDLE -> PARSING_CALLBACK -> VALIDATING_STATE -> EXCHANGING_CODE
            -> FETCHING_IDENTITY -> COMMITTED

   Any step can end in ``FAILED``; the raised
   :class:`~gitpost.exceptions.LoginFlowError` is kept on
   :attr:`LoginFlow.failure`.

Nothing crosses the two phases except the session store. The stored
``state`` and ``code_verifier`` are single-use: :meth:`~LoginFlow.resume`
deletes them whatever the outcome. Authorization codes are single-use too,
so the token exchange is sent at most once and never retried.

Example::

    url = LoginFlow(profile.provider, FileSessionStore(profile.name)).initiate()
    # ... the user authorizes in the browser; a new process receives the redirect
    result = LoginFlow(profile.provider, FileSessionStore(profile.name)).resume(redirect)
    print(result.user.username)
"""

from __future__ import annotations

import enum
import logging
import secrets
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, TypeVar, Union
from urllib.parse import parse_qs, urlsplit

import httpx
from pydantic import BaseModel, ValidationError

from gitpost.auth.authorization import authorization_url, build_authorization_request
from gitpost.auth.credentials import CredentialManager
from gitpost.auth.pkce import generate_flow_parameters
from gitpost.auth.session_store import (
    CODE_VERIFIER,
    FLOW_KEYS,
    OAUTH_STATE,
    SessionStore,
)
from gitpost.exceptions import (
    AuthorizationDeniedError,
    IdentityFetchError,
    InvalidUsageError,
    LoginFlowError,
    MalformedResponseError,
    MissingParameterError,
    MissingVerifierError,
    NetworkError,
    StateMismatchError,
    TokenExchangeError,
)
from gitpost.models import (
    CallbackResult,
    Credential,
    ProviderConfig,
    ProviderErrorPayload,
    RequestConfig,
    TokenResponse,
    UserProfile,
)

logger = logging.getLogger(__name__)

_ModelT = TypeVar("_ModelT", bound=BaseModel)

Redirect = Union[str, Mapping[str, str]]


class FlowState(str, enum.Enum):
    """Where a :class:`LoginFlow` is in the callback state machine."""

    IDLE = "idle"
    PARSING_CALLBACK = "parsing_callback"
    VALIDATING_STATE = "validating_state"
    EXCHANGING_CODE = "exchanging_code"
    FETCHING_IDENTITY = "fetching_identity"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a successful :meth:`LoginFlow.resume`."""

    credential: Credential
    user: UserProfile


class LoginFlow:
    """OAuth Authorization Code + PKCE login against one provider.

    Args:
        provider: Endpoints and client registration.
        store: Session store shared by both phases.
        request: Timeout and TLS settings for the provider calls.
        http: Optional pre-built :class:`httpx.Client`. When omitted a
            client is created for the duration of :meth:`resume`.
        credentials: Optional credential manager; defaults to one over
            *store*.
    """

    def __init__(
        self,
        provider: ProviderConfig,
        store: SessionStore,
        request: Optional[RequestConfig] = None,
        http: Optional[httpx.Client] = None,
        credentials: Optional[CredentialManager] = None,
    ) -> None:
        self._provider = provider
        self._store = store
        self._request = request or RequestConfig()
        self._http = http
        self._credentials = credentials or CredentialManager(store)
        self._state = FlowState.IDLE
        self._failure: Optional[LoginFlowError] = None

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def failure(self) -> Optional[LoginFlowError]:
        """The error that ended the attempt, if it failed."""
        return self._failure

    # ------------------------------------------------------------------ #
    # Phase 1
    # ------------------------------------------------------------------ #

    def initiate(self) -> str:
        """Start a login attempt and return the URL to send the user to.

        The new ``state`` and ``code_verifier`` are written to the session
        store before the URL is built, replacing any unfinished attempt.

        Raises:
            SecureRandomUnavailableError: If no secure random source exists.
        """
        params = generate_flow_parameters()
        self._store.set(OAUTH_STATE, params.state)
        self._store.set(CODE_VERIFIER, params.code_verifier)
        logger.debug("Stored flow parameters; building authorization request")
        return authorization_url(build_authorization_request(self._provider, params))

    # ------------------------------------------------------------------ #
    # Phase 2
    # ------------------------------------------------------------------ #

    def resume(self, redirect: Redirect) -> LoginResult:
        """Validate the provider's redirect and commit the resulting credential.

        Args:
            redirect: The redirect URL, its bare query string, or an already
                parsed mapping of query parameters.

        Returns:
            The committed credential and the user it belongs to.

        Raises:
            LoginFlowError: One of the tagged subclasses, describing why the
                attempt failed. No credential is stored in that case.
            InvalidUsageError: If this flow was already resumed.
        """
        if self._state is not FlowState.IDLE:
            raise InvalidUsageError("This login attempt has already been resumed")

        owns_http = self._http is None
        http = self._http or httpx.Client(
            timeout=self._request.timeout,
            verify=self._request.verify_ssl,
        )
        try:
            self._transition(FlowState.PARSING_CALLBACK)
            callback = _parse_callback(redirect)

            self._transition(FlowState.VALIDATING_STATE)
            self._validate_state(callback.state)
            code_verifier = self._store.get(CODE_VERIFIER)
            if not code_verifier:
                raise MissingVerifierError(
                    "No PKCE code verifier is stored for this session"
                )

            self._transition(FlowState.EXCHANGING_CODE)
            token = self._exchange_code(http, callback.code, code_verifier)

            self._transition(FlowState.FETCHING_IDENTITY)
            user = self._fetch_identity(http, token.access_token)

            credential = Credential(
                access_token=token.access_token,
                refresh_token=token.refresh_token,
            )
            self._credentials.store(credential)
            self._transition(FlowState.COMMITTED)
            logger.info("Logged in as %s", user.username)
            return LoginResult(credential=credential, user=user)
        except LoginFlowError as exc:
            self._failure = exc
            self._transition(FlowState.FAILED)
            logger.info("Login failed (%s): %s", exc.reason.value, exc)
            raise
        except Exception:
            self._transition(FlowState.FAILED)
            raise
        finally:
            for key in FLOW_KEYS:
                self._store.delete(key)
            if owns_http:
                http.close()

    # ------------------------------------------------------------------ #
    # Steps
    # ------------------------------------------------------------------ #

    def _transition(self, new_state: FlowState) -> None:
        logger.debug("Login flow %s -> %s", self._state.value, new_state.value)
        self._state = new_state

    def _validate_state(self, received: str) -> None:
        expected = self._store.get(OAUTH_STATE)
        if not expected:
            raise StateMismatchError(
                "No login is in progress for this session (no stored state)"
            )
        if not secrets.compare_digest(expected.encode("utf-8"), received.encode("utf-8")):
            raise StateMismatchError(
                "The state returned by the provider does not match this session"
            )

    def _exchange_code(
        self, http: httpx.Client, code: str, code_verifier: str
    ) -> TokenResponse:
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "code_verifier": code_verifier,
            "redirect_uri": self._provider.redirect_uri,
            "client_id": self._provider.client_id,
        }
        try:
            response = http.post(
                self._provider.token_url,
                data=data,
                headers={"Accept": "application/json"},
            )
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Token exchange timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Token exchange failed: {exc}") from exc

        if not response.is_success:
            detail = _response_detail(response)
            raise TokenExchangeError(
                f"Token exchange failed with status {response.status_code}: "
                f"{_describe_provider_error(detail)}",
                detail=detail,
            )

        body = _json_body(response, "token endpoint")
        # Some providers report errors with a 200 status.
        if isinstance(body, dict) and "error" in body and "access_token" not in body:
            raise TokenExchangeError(
                f"Token exchange failed: {_describe_provider_error(body)}",
                detail=body,
            )
        token = _validate(TokenResponse, body, "token endpoint")
        if token.token_type.lower() != "bearer":
            raise MalformedResponseError(
                f"Unsupported token type '{token.token_type}' from token endpoint",
                detail=body,
            )
        return token

    def _fetch_identity(self, http: httpx.Client, access_token: str) -> UserProfile:
        url = f"{self._provider.api_base_url.rstrip('/')}/user"
        try:
            response = http.get(
                url,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
            )
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Identity check timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Identity check failed: {exc}") from exc

        if not response.is_success:
            raise IdentityFetchError(
                f"The new access token was rejected by {url} "
                f"(status {response.status_code})",
                detail=_response_detail(response),
            )
        return _validate(UserProfile, _json_body(response, url), url)


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #


def _parse_callback(redirect: Redirect) -> CallbackResult:
    """Extract ``code`` and ``state`` from the redirect.

    Raises:
        AuthorizationDeniedError: If the redirect carries an ``error``.
        MissingParameterError: If ``code`` or ``state`` is missing.
    """
    if isinstance(redirect, Mapping):
        params = {k: v for k, v in redirect.items() if v is not None}
    else:
        text = redirect.strip()
        if "?" in text or "://" in text:
            text = urlsplit(text).query
        params = {k: v[0] for k, v in parse_qs(text.lstrip("?")).items()}

    if "error" in params:
        description = params.get("error_description", "")
        message = f"Authorization failed: {params['error']}"
        if description:
            message += f" - {description}"
        raise AuthorizationDeniedError(
            message,
            detail={k: params[k] for k in ("error", "error_description") if k in params},
        )

    missing = [name for name in ("code", "state") if not params.get(name)]
    if missing:
        raise MissingParameterError(
            f"Redirect is missing required parameter(s): {', '.join(missing)}"
        )
    return CallbackResult(code=params["code"], state=params["state"])


def _response_detail(response: httpx.Response) -> Any:
    """Return the response body for diagnostics: parsed JSON if possible, else text."""
    try:
        return response.json()
    except ValueError:
        return response.text


def _describe_provider_error(detail: Any) -> str:
    if isinstance(detail, dict):
        try:
            payload = ProviderErrorPayload.model_validate(detail)
        except ValidationError:
            return str(detail)
        if payload.error_description:
            return f"{payload.error} ({payload.error_description})"
        return payload.error
    return str(detail)[:200] if detail else "no response body"


def _json_body(response: httpx.Response, source: str) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise MalformedResponseError(
            f"Response from {source} is not valid JSON",
            detail=response.text,
        ) from exc


def _validate(model: type[_ModelT], body: Any, source: str) -> _ModelT:
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        raise MalformedResponseError(
            f"Unexpected response shape from {source}: {exc.error_count()} error(s)",
            detail=exc.errors(include_url=False, include_input=False),
        ) from exc
