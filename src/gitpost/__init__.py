"""gitpost -- publish to a Git-hosting provider after an OAuth PKCE login.

gitpost signs a user in to a GitLab-compatible provider as a *public*
OAuth 2.0 client (Authorization Code grant with PKCE, no client secret),
keeps the resulting bearer credential in a per-profile session, and uses
it to browse repositories and publish local files as a single commit.

Typical workflow::

    gitpost init work --preset gitlab --client-id abc --redirect-uri http://127.0.0.1:8765/callback
    gitpost auth login --wait
    gitpost repos list
    gitpost repos publish me/blog posts/hello.md --dir content/posts -m "New post"

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and profile management.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting with Rich support.
"""

__version__ = "0.1.0"
