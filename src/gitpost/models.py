"""Canonical Pydantic models shared across all gitpost modules.

This is the single source of truth for data shapes in the project. The
models fall into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`ProviderConfig`, :class:`RequestConfig`, :class:`Profile`,
    :class:`OutputConfig`, and :class:`GlobalConfig`.

**Login flow models** -- produced and consumed by :mod:`gitpost.auth`:
    :class:`FlowParameters`, :class:`AuthorizationRequest`,
    :class:`CallbackResult`, :class:`Credential`, plus the provider response
    schemas :class:`TokenResponse`, :class:`UserProfile`, and
    :class:`ProviderErrorPayload`.

**Repository models** -- used by :mod:`gitpost.hosting`:
    :class:`Repository`, :class:`TreeEntry`, :class:`FileChange`,
    :class:`PostDraft`, and :class:`CommitResult`.

Provider responses are validated on receipt; unknown keys are ignored so
that providers can add fields without breaking the client.
"""

from __future__ import annotations

import enum
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# --- Configuration ---


class ProviderConfig(BaseModel):
    """Endpoints and client registration for one identity provider.

    gitpost is a *public* client and has no client secret field. The token and authorization endpoints are configured directly
    rather than discovered.

    Example::

        ProviderConfig(
            authorization_url="https://gitlab.com/oauth/authorize",
            token_url="https://gitlab.com/oauth/token",
            api_base_url="https://gitlab.com/api/v4",
            client_id="abc123",
            redirect_uri="http://127.0.0.1:8765/callback",
        )
    """

    authorization_url: str = Field(description="Provider authorization endpoint")
    token_url: str = Field(description="Provider token endpoint")
    api_base_url: str = Field(description="Base URL of the provider's REST API")
    client_id: str = Field(description="Registered OAuth application ID")
    redirect_uri: str = Field(description="Redirect URI registered for the application")
    scopes: list[str] = Field(default_factory=lambda: ["api", "read_user"])


class RequestConfig(BaseModel):
    """HTTP request settings applied to every call made for a profile."""

    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = True
    max_retries: int = Field(
        default=2, description="Retries for idempotent downstream requests"
    )


class Profile(BaseModel):
    """Per-provider profile stored as JSON under the ``profiles/`` config directory.

    Profiles are created with ``gitpost init`` and selected with
    ``--profile``, ``GITPOST_PROFILE``, or the ``default_profile`` setting.
    Each profile has its own login session.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    provider: ProviderConfig
    request: RequestConfig = Field(default_factory=RequestConfig)


class OutputConfig(BaseModel):
    """Default output settings."""

    format: Literal["auto", "json", "plain", "rich"] = Field(
        default="auto", description="Used when neither --json nor --plain is given"
    )


class GlobalConfig(BaseModel):
    """Global settings stored in ``config.json``."""

    default_profile: Optional[str] = None
    auto_select_single_profile: bool = True
    session_lifetime: Optional[int] = Field(
        default=None,
        description="Seconds after which a login session is discarded (None = no bound)",
    )
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Login flow ---


class FlowParameters(BaseModel):
    """Per-attempt random values persisted across the redirect.

    Both values are URL-safe, drawn from a secure random source, and unique
    to one login attempt.
    """

    model_config = ConfigDict(frozen=True)

    state: str = Field(min_length=1)
    code_verifier: str = Field(min_length=43, max_length=128)


class AuthorizationRequest(BaseModel):
    """Parameters of the redirect to the provider's authorization endpoint.

    Derived from :class:`FlowParameters` and the provider config; never
    persisted.
    """

    model_config = ConfigDict(frozen=True)

    authorization_url: str
    client_id: str
    redirect_uri: str
    scopes: tuple[str, ...] = ()
    state: str
    code_challenge: str
    code_challenge_method: str = "S256"


class CallbackResult(BaseModel):
    """The ``code`` / ``state`` pair carried by the provider's redirect."""

    code: str = Field(min_length=1)
    state: str = Field(min_length=1)


class Credential(BaseModel):
    """Bearer credential committed after a successful login.

    No expiry is tracked; validity is discovered by using it.
    """

    access_token: str = Field(min_length=1)
    refresh_token: Optional[str] = None


class TokenResponse(BaseModel):
    """Successful token endpoint response (:rfc:`6749#section-5.1`)."""

    access_token: str = Field(min_length=1)
    token_type: str = "bearer"
    refresh_token: Optional[str] = None
    scope: Optional[str] = None
    expires_in: Optional[int] = None


class ProviderErrorPayload(BaseModel):
    """Error body returned by the token endpoint (:rfc:`6749#section-5.2`)."""

    error: str
    error_description: Optional[str] = None


class UserProfile(BaseModel):
    """The ``GET /user`` payload.

    GitLab returns ``username``; Gitea-style APIs return ``login``. Either is
    accepted.
    """

    id: Optional[int] = None
    username: str = Field(
        min_length=1, validation_alias=AliasChoices("username", "login")
    )
    name: Optional[str] = None
    email: Optional[str] = None
    web_url: Optional[str] = None


# --- Repositories ---


class Repository(BaseModel):
    """A project the signed-in user is a member of."""

    id: int
    name: str
    path_with_namespace: str
    default_branch: Optional[str] = None
    web_url: Optional[str] = None
    visibility: Optional[str] = None


class TreeEntry(BaseModel):
    """A single file or directory in a repository tree listing."""

    id: str
    name: str
    type: str  # blob or tree
    path: str
    mode: str


class FileAction(str, enum.Enum):
    """Commit actions supported by the provider's commits API."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class FileChange(BaseModel):
    """One file in a multi-file commit."""

    action: FileAction = FileAction.CREATE
    file_path: str
    content: Optional[str] = None
    encoding: str = Field(default="text", description="text or base64")


class PostDraft(BaseModel):
    """A set of file changes to publish as one commit."""

    branch: str
    message: str = Field(min_length=1)
    files: list[FileChange] = Field(min_length=1)


class CommitResult(BaseModel):
    """The commit created by a publish."""

    id: str
    short_id: str
    title: str
    web_url: Optional[str] = None
