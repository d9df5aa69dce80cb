"""Built-in CLI sub-commands for ger.

This package groups all Typer sub-command modules that form the CLI's
top-level command tree:

* :mod:`~ger.commands.init` -- store credentials and check the connection.
* :mod:`~ger.commands.changes` -- show, list, comment on, and abandon
  changes.
* :mod:`~ger.commands.diff` -- print the diff of a change.
* :mod:`~ger.commands.cache` -- inspect and maintain the local cache.
* :mod:`~ger.commands.config` -- view and modify global settings.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``cache`` and ``config``) or plain callback
functions registered directly on the root app (for single commands like
``show``).
"""
