"""Build the redirect to the provider's authorization endpoint.

Pure functions: nothing here touches the session store or the network.
The caller must have persisted the :class:`~gitpost.models.FlowParameters`
before sending the user to the returned URL.
"""

from __future__ import annotations

from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from gitpost.auth.pkce import derive_code_challenge
from gitpost.models import AuthorizationRequest, FlowParameters, ProviderConfig


def build_authorization_request(
    provider: ProviderConfig, params: FlowParameters
) -> AuthorizationRequest:
    """Bind the flow parameters and provider registration into a request."""
    return AuthorizationRequest(
        authorization_url=provider.authorization_url,
        client_id=provider.client_id,
        redirect_uri=provider.redirect_uri,
        scopes=tuple(provider.scopes),
        state=params.state,
        code_challenge=derive_code_challenge(params.code_verifier),
    )


def authorization_url(request: AuthorizationRequest) -> str:
    """Render *request* as an absolute URL.

    Query parameters already present on the configured endpoint are kept;
    the OAuth parameters are appended after them. Scopes are joined with a
    single space.
    """
    parts = urlsplit(request.authorization_url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend(
        [
            ("response_type", "code"),
            ("client_id", request.client_id),
            ("redirect_uri", request.redirect_uri),
            ("state", request.state),
            ("code_challenge", request.code_challenge),
            ("code_challenge_method", request.code_challenge_method),
        ]
    )
    if request.scopes:
        query.append(("scope", " ".join(request.scopes)))
    return urlunsplit(parts._replace(query=urlencode(query, quote_via=quote)))
