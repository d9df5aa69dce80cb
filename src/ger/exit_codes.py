"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~ger.exceptions.GerError` subclass.
Shell scripts wrapping ``ger`` can inspect the exit code to determine the
failure class without parsing stderr.

Example::

    $ ger show 12345
    $ echo $?
    4   # EXIT_NOT_FOUND -- the change does not exist
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""Authentication or authorisation failed."""

EXIT_NOT_FOUND = 4
"""The requested change or resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The Gerrit server returned an error response or an unreadable body."""

EXIT_CONNECTION_ERROR = 6
"""The server could not be reached before a response arrived."""

EXIT_CACHE_ERROR = 8
"""The local cache database failed; see the ``operation`` on the raised error."""

EXIT_INTERRUPTED = 130
"""The user pressed Ctrl-C (128 + SIGINT)."""
