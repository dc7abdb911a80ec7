"""One-shot loopback listener for the provider's redirect.

When the registered redirect URI points at this machine
(``http://127.0.0.1:<port>/...`` or ``http://localhost:<port>/...``),
``gitpost auth login --wait`` can capture the redirect itself instead of
asking the user to paste it into ``gitpost auth callback``. The listener only
hands back the raw query string; validation is still done by
:meth:`gitpost.auth.flow.LoginFlow.resume` against the session store.
"""

from __future__ import annotations

import logging
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional
from urllib.parse import urlsplit

from gitpost.exceptions import AuthError, InvalidUsageError

logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = ("127.0.0.1", "localhost")

_DONE_PAGE = (
    "<html><body><h2>{message}</h2>"
    "<p>You can close this window and return to the terminal.</p></body></html>"
)


def is_loopback_redirect(redirect_uri: str) -> bool:
    """Return True if *redirect_uri* is a plain-HTTP loopback URL with a port."""
    parts = urlsplit(redirect_uri)
    return parts.scheme == "http" and parts.hostname in LOOPBACK_HOSTS and parts.port is not None


class CallbackListener:
    """Serve ``GET <redirect path>`` once on the loopback interface.

    The socket is bound on ``__enter__`` so it is ready before the browser
    is opened.

    Args:
        redirect_uri: The registered loopback redirect URI.

    Example::

        with CallbackListener(provider.redirect_uri) as listener:
            webbrowser.open(url)
            query = listener.wait(timeout=120)
    """

    def __init__(self, redirect_uri: str) -> None:
        if not is_loopback_redirect(redirect_uri):
            raise InvalidUsageError(
                f"Redirect URI {redirect_uri} is not a loopback address; "
                "use 'gitpost auth callback' with the redirected URL instead"
            )
        parts = urlsplit(redirect_uri)
        self._host = parts.hostname or "127.0.0.1"
        self._port = parts.port or 0
        self._path = parts.path or "/"
        self._server: Optional[HTTPServer] = None
        self._query: Optional[str] = None

    def __enter__(self) -> CallbackListener:
        self._server = HTTPServer((self._host, self._port), self._handler_class())
        logger.debug("Listening for redirect on %s:%s%s", self._host, self._port, self._path)
        return self

    def __exit__(self, *args: object) -> None:
        if self._server is not None:
            self._server.server_close()
            self._server = None

    def wait(self, timeout: float = 120.0) -> str:
        """Block until the redirect arrives and return its query string.

        Requests to other paths (e.g. ``/favicon.ico``) get a 404 and do not
        end the wait.

        Raises:
            AuthError: If no redirect arrives within *timeout* seconds.
        """
        assert self._server is not None, "Listener not started -- use as context manager"
        deadline = time.monotonic() + timeout
        while self._query is None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise AuthError(f"No redirect received within {timeout:.0f} seconds")
            self._server.timeout = remaining
            self._server.handle_request()
        return self._query

    def _handler_class(self) -> type[BaseHTTPRequestHandler]:
        listener = self

        class RedirectHandler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:
                parts = urlsplit(self.path)
                if parts.path != listener._path:
                    self.send_error(404)
                    return
                listener._query = parts.query
                message = (
                    "Authorization failed." if "error=" in parts.query
                    else "Authorization received."
                )
                self.send_response(200)
                self.send_header("Content-Type", "text/html; charset=utf-8")
                self.end_headers()
                self.wfile.write(_DONE_PAGE.format(message=message).encode("utf-8"))

            def log_message(self, format: str, *args: Any) -> None:
                logger.debug("callback listener: " + format, *args)

        return RedirectHandler
