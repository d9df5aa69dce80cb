"""Exception hierarchy for ger.

All exceptions inherit from :class:`GerError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`ger.exit_codes`.
The top-level error handler in :func:`ger.app.main` catches ``GerError``
and exits with the appropriate code, while unexpected exceptions produce a
crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    GerError (exit 1)
    +-- InvalidUsageError        (exit 2)
    +-- AuthError                (exit 3)
    +-- NotFoundError            (exit 4)
    +-- ServerError              (exit 5)
    |   +-- ConflictError        (exit 5)
    |   +-- ApiResponseError     (exit 5)
    +-- ConnectionError_         (exit 6)
    +-- ConfigError              (exit 1)
    +-- CacheError               (exit 8)
        +-- CacheInitializationError
        +-- CacheReadError
        +-- CacheWriteError
        +-- CacheSearchError
        +-- CacheInvalidateError
        +-- CacheMetadataError
        +-- CacheSweepError
"""

from ger.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CACHE_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class GerError(Exception):
    """Base exception for all ger errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`ger.exit_codes`. The entry point catches this
    exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(GerError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class AuthError(GerError):
    """Raised when Gerrit rejects the configured credentials (HTTP 401/403)."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(GerError):
    """Raised when Gerrit returns HTTP 404 (change or file not found)."""

    exit_code = EXIT_NOT_FOUND


class ServerError(GerError):
    """Raised when Gerrit returns an error status not covered by a narrower class.

    Args:
        message: Human-readable error description.
        status_code: The HTTP status code, when the error came from a response.
    """

    exit_code = EXIT_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ConflictError(ServerError):
    """Raised on HTTP 409, e.g. abandoning a change that is already merged."""


class ApiResponseError(ServerError):
    """Raised when a response body is not valid JSON or has an unexpected shape."""


class ConnectionError_(GerError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class ConfigError(GerError):
    """Raised for configuration problems (missing credentials, invalid JSON)."""

    exit_code = EXIT_GENERIC_FAILURE


# --- Cache errors ---


class CacheError(GerError):
    """Base class for failures of the local cache database.

    Each subclass names the store operation that failed through its
    ``operation`` tag so callers can tell failure sites apart without
    inspecting SQLAlchemy internals. The underlying engine error is
    available as ``__cause__``.

    A missing or expired entry is never a ``CacheError``; those are plain
    ``None`` results.
    """

    exit_code = EXIT_CACHE_ERROR
    operation: str = "cache"


class CacheInitializationError(CacheError):
    """Raised when the cache directory, tables, or indexes cannot be created."""

    operation = "initialize"


class CacheReadError(CacheError):
    """Raised when a cached change cannot be read."""

    operation = "read"


class CacheWriteError(CacheError):
    """Raised when a change cannot be written to the cache."""

    operation = "write"


class CacheSearchError(CacheError):
    """Raised when searching cached changes fails."""

    operation = "search"


class CacheInvalidateError(CacheError):
    """Raised when a cached change cannot be deleted."""

    operation = "invalidate"


class CacheMetadataError(CacheError):
    """Raised when a cache metadata entry cannot be read or written."""

    operation = "metadata"


class CacheSweepError(CacheError):
    """Raised when the expired-entry sweep fails."""

    operation = "sweep"
