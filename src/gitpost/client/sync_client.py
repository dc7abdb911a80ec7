"""Authenticated HTTP client for the provider's REST API.

:class:`SyncClient` wraps :class:`httpx.Client` and layers on:

- **Credential injection** -- ``Authorization: Bearer <token>`` from the
  session's :class:`~gitpost.auth.credentials.CredentialManager` is attached
  to every request. No request is sent when the session has no credential.
- **Error mapping** -- 401/403 become :class:`~gitpost.exceptions.AuthError`
  ("credential invalid"), 404 :class:`~gitpost.exceptions.NotFoundError`,
  5xx :class:`~gitpost.exceptions.ServerError`, other 4xx
  :class:`~gitpost.exceptions.ApiError`.
- **Retry with backoff** -- idempotent requests (GET, HEAD) are retried on
  5xx and network errors with exponential delay (1 s, 2 s, 4 s, ...).
  Writes are never retried.

The client does not clear a rejected credential; that decision belongs to
the caller.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx

from gitpost.auth.credentials import CredentialManager
from gitpost.exceptions import (
    ApiError,
    AuthError,
    ConnectionError_,
    NotFoundError,
    ServerError,
)
from gitpost.models import Profile

logger = logging.getLogger(__name__)

_IDEMPOTENT_METHODS = frozenset({"GET", "HEAD"})


class SyncClient:
    """Synchronous client for authenticated calls against ``api_base_url``.

    Must be used as a context manager so the underlying transport is opened
    and closed.

    Args:
        profile: Profile providing ``provider.api_base_url`` and request
            settings (timeout, retries, TLS verification).
        credentials: Source of the bearer credential.
        transport: Optional :class:`httpx.BaseTransport`, mainly for tests.

    Example::

        with SyncClient(profile, CredentialManager(store)) as client:
            response = client.get("/projects")
    """

    def __init__(
        self,
        profile: Profile,
        credentials: CredentialManager,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._profile = profile
        self._credentials = credentials
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> SyncClient:
        config = self._profile.request
        self._client = httpx.Client(
            base_url=self._profile.provider.api_base_url.rstrip("/"),
            timeout=config.timeout,
            verify=config.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[Any] = None,
    ) -> httpx.Response:
        """Send an authenticated request and map error statuses to exceptions.

        Args:
            method: HTTP method.
            path: Path appended to ``api_base_url`` (e.g. ``"/projects"``).
            params: Query parameters.
            json_body: JSON-serialisable request body.

        Raises:
            NotLoggedInError: If the session has no credential.
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            ServerError: On 5xx after retries.
            ApiError: On any other 4xx.
            ConnectionError_: On network / timeout errors after retries.
        """
        method = method.upper()
        headers = {"Accept": "application/json"}
        headers.update(self._credentials.authorization_header())

        response = self._execute_with_retry(method, path, headers, params, json_body)
        self._map_response_error(response)
        return response

    def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("POST", path, **kwargs)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _execute_with_retry(
        self,
        method: str,
        path: str,
        headers: dict[str, str],
        params: Optional[dict[str, Any]],
        json_body: Any,
    ) -> httpx.Response:
        assert self._client is not None, "Client not initialised -- use as context manager"

        max_retries = self._profile.request.max_retries if method in _IDEMPOTENT_METHODS else 0

        for attempt in range(max_retries + 1):
            try:
                kwargs: dict[str, Any] = {"headers": headers, "params": params}
                if json_body is not None:
                    kwargs["json"] = json_body
                response = self._client.request(method, path, **kwargs)
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                if attempt < max_retries:
                    delay = 2 ** attempt
                    logger.debug(
                        "Connection error: %s, retrying in %ss (attempt %d/%d)",
                        exc, delay, attempt + 1, max_retries,
                    )
                    time.sleep(delay)
                    continue
                raise ConnectionError_(
                    f"{method} {path} failed after {attempt + 1} attempt(s): {exc}"
                ) from exc

            if response.status_code >= 500 and attempt < max_retries:
                delay = 2 ** attempt
                logger.debug(
                    "Server error %d, retrying in %ss (attempt %d/%d)",
                    response.status_code, delay, attempt + 1, max_retries,
                )
                time.sleep(delay)
                continue
            return response

        raise ServerError("Request failed after all retries")  # pragma: no cover

    def _map_response_error(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return

        try:
            detail = response.json()
            if isinstance(detail, dict):
                msg = detail.get("message") or detail.get("error") or detail.get("detail") or ""
                if not isinstance(msg, str):
                    msg = str(msg)
            else:
                msg = str(detail)
        except ValueError:
            msg = response.text[:200] if response.text else ""

        full_msg = f"HTTP {status}: {msg}" if msg else f"HTTP {status}"

        if status in (401, 403):
            raise AuthError(f"Credential invalid or insufficient ({full_msg})")
        if status == 404:
            raise NotFoundError(full_msg)
        if status >= 500:
            raise ServerError(full_msg)
        raise ApiError(full_msg)
