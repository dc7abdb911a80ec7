"""Built-in CLI sub-commands for gitpost.

* :mod:`~gitpost.commands.init` -- create a provider profile.
* :mod:`~gitpost.commands.auth` -- log in, check, and clear the session.
* :mod:`~gitpost.commands.config` -- list, select, and remove profiles.
* :mod:`~gitpost.commands.repos` -- list, browse, and publish to repositories.

Each module either exports a :class:`typer.Typer` sub-application or a plain
callback function registered directly on the root app (``init``).
"""
