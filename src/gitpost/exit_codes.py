"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to an error category and is referenced by the matching
:class:`~gitpost.exceptions.GitpostError` subclass, so shell wrappers can
tell a rejected login from a network outage without parsing stderr.

Example::

    $ gitpost auth callback "http://127.0.0.1:8765/callback?code=x&state=y"
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the callback did not match this session
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_AUTH_FAILURE = 3
"""Login failed, or the stored credential was missing or rejected."""

EXIT_NOT_FOUND = 4
"""The requested repository or path was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The provider returned an HTTP 5xx server error."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""
