"""ger -- a command-line client for Gerrit Code Review.

This package talks to a Gerrit server's REST API and keeps a local SQLite
cache of changes so that repeated lookups do not hit the network. Users
configure credentials once, then list, inspect, comment on, abandon, and
diff changes from the terminal.

Typical workflow::

    ger init                 # store host and HTTP credentials
    ger mine                 # list your open changes
    ger show 12345           # show a change (served from cache when fresh)
    ger comment 12345 -m "LGTM"

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration directories and global settings.
    credentials: Persistent Gerrit credential storage.
    cache: TTL policy, persistent store, and cache manager.
    client: Gerrit REST client.
    diff: Diff rendering helpers.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.3.0"
