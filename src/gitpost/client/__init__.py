"""HTTP client for authenticated calls to the provider's REST API.

:class:`SyncClient` wraps :mod:`httpx` with bearer credential injection,
error mapping, and retry for idempotent requests.

Example::

    from gitpost.client import SyncClient

    with SyncClient(profile, credentials) as client:
        resp = client.get("/projects")
"""

from gitpost.client.sync_client import SyncClient

__all__ = ["SyncClient"]
