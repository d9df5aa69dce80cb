"""Synchronous Gerrit REST client with Basic auth, error mapping, and caching.

This module provides :class:`GerritClient`, the blocking HTTP client used
by every ``ger`` command. It wraps :class:`httpx.Client` and layers on:

- **Auth injection** -- HTTP Basic credentials from
  :class:`~ger.models.GerritCredentials` on every request, always against
  the authenticated ``/a/`` endpoints.
- **XSSI prefix stripping** -- Gerrit prepends ``)]}'`` to every JSON body;
  it is removed before parsing.
- **Error mapping** -- HTTP and transport failures become typed
  :class:`~ger.exceptions.GerError` subclasses. Nothing is retried.
- **Change caching** -- optional :class:`~ger.cache.CacheManager`. Change
  lookups read through the cache, listings populate it, and mutations
  invalidate it. File lists, diffs, and file contents of a pinned revision
  (a patchset number or commit SHA) are kept as metadata blobs with a
  per-kind TTL. ``current`` moves with every upload and is never cached.

A broken cache never fails a command: every cache call is guarded, logged
at WARNING, and the client carries on against the live server.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from typing import Any, Callable, Optional, TypeVar
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError

from ger.cache import CacheManager, compute_ttl
from ger.exceptions import (
    ApiResponseError,
    AuthError,
    CacheError,
    ConflictError,
    ConnectionError_,
    NotFoundError,
    ServerError,
)
from ger.models import (
    ChangeInfo,
    CommentInfo,
    FileDiffContent,
    FileInfo,
    GerritCredentials,
    ReviewInput,
)

logger = logging.getLogger(__name__)

XSSI_PREFIX = ")]}'"

T = TypeVar("T")

_COMMIT_SHA = re.compile(r"[0-9a-f]{40}")

_CHANGE_LIST = TypeAdapter(list[ChangeInfo])
_FILE_MAP = TypeAdapter(dict[str, FileInfo])


def strip_xssi_prefix(text: str) -> str:
    """Remove Gerrit's ``)]}'`` guard line from a JSON response body."""
    if text.startswith(XSSI_PREFIX):
        text = text[len(XSSI_PREFIX):]
        if text.startswith("\n"):
            text = text[1:]
    return text


def _is_pinned(revision: str) -> bool:
    """True for a patchset number or full commit SHA, which never change content."""
    if revision.isascii() and revision.isdigit():
        return True
    return _COMMIT_SHA.fullmatch(revision) is not None


def _quote(segment: str) -> str:
    """Percent-encode a path segment, including ``/`` and ``~``."""
    return quote(segment, safe="")


class GerritClient:
    """Synchronous client for a Gerrit server's REST API.

    Must be used as a context manager so that the underlying transport is
    properly opened and closed.

    Args:
        credentials: Host, username, and HTTP password.
        cache: Optional change cache. When ``None`` every call goes to the
            server.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport, e.g. :class:`httpx.MockTransport`
            in tests.

    Example::

        with GerritClient(creds, cache=manager) as client:
            change = client.get_change("12345")
    """

    def __init__(
        self,
        credentials: GerritCredentials,
        cache: Optional[CacheManager] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._credentials = credentials
        self._cache = cache
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    @property
    def credentials(self) -> GerritCredentials:
        """The credentials this client authenticates with."""
        return self._credentials

    @property
    def cache(self) -> Optional[CacheManager]:
        """The change cache, or ``None`` when caching is disabled."""
        return self._cache

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> GerritClient:
        self._client = httpx.Client(
            base_url=self._credentials.host,
            auth=httpx.BasicAuth(self._credentials.username, self._credentials.password),
            timeout=self._timeout,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Changes
    # ------------------------------------------------------------------ #

    def get_change(self, change_id: str) -> ChangeInfo:
        """Return a change, from the cache when a fresh copy exists.

        A change fetched from the server is saved to the cache.

        Raises:
            NotFoundError: If the server does not know the change.
        """
        fetched: list[ChangeInfo] = []

        def fetch() -> ChangeInfo:
            data = self._get_json(f"/a/changes/{_quote(change_id)}")
            fetched.append(self._validate(ChangeInfo.model_validate, data))
            return fetched[0]

        change = self._guarded(lambda c: c.get_or_fetch_change(change_id, fetch))
        if change is not None:
            return change
        # A cache failure after the fetch must not cost a second request.
        return fetched[0] if fetched else fetch()

    def list_changes(self, query: str = "is:open") -> list[ChangeInfo]:
        """Run a change query on the server and cache every result.

        A result whose fingerprint differs from the cached one is logged at
        DEBUG as updated since it was last seen.
        """
        data = self._get_json("/a/changes/", params={"q": query})
        changes = self._validate(_CHANGE_LIST.validate_python, data or [])
        for change in changes:
            self._guarded(lambda c, change=change: _recache(c, change))
        return changes

    def post_review(self, change_id: str, review: ReviewInput) -> Any:
        """Post a review message and/or votes on the current revision.

        The cached copy of the change is invalidated afterwards.
        """
        result = self._request_json(
            "POST",
            f"/a/changes/{_quote(change_id)}/revisions/current/review",
            json_body=review.model_dump(exclude_none=True),
        )
        self._guarded(lambda c: c.invalidate_change(change_id))
        return result

    def abandon_change(self, change_id: str, message: Optional[str] = None) -> ChangeInfo:
        """Abandon a change, returning the server's updated record.

        Raises:
            ConflictError: If the change is not open.
        """
        body = {"message": message} if message else {}
        data = self._request_json(
            "POST", f"/a/changes/{_quote(change_id)}/abandon", json_body=body
        )
        self._guarded(lambda c: c.invalidate_change(change_id))
        return self._validate(ChangeInfo.model_validate, data)

    def test_connection(self) -> bool:
        """Return True if the server accepts the configured credentials."""
        try:
            self._get_json("/a/accounts/self")
        except (AuthError, NotFoundError, ServerError, ConnectionError_) as exc:
            logger.debug("Connection test failed: %s", exc)
            return False
        return True

    def get_comments(self, change_id: str) -> list[CommentInfo]:
        """Return all published inline comments, each tagged with its file path."""
        data = self._get_json(f"/a/changes/{_quote(change_id)}/comments") or {}
        if not isinstance(data, dict):
            raise ApiResponseError("Invalid response format from server")
        comments: list[CommentInfo] = []
        for path, entries in data.items():
            for entry in entries:
                entry = {**entry, "path": path}
                comments.append(self._validate(CommentInfo.model_validate, entry))
        return comments

    # ------------------------------------------------------------------ #
    # Revisions and files
    # ------------------------------------------------------------------ #

    def get_files(self, change_id: str, revision: str = "current") -> dict[str, FileInfo]:
        """Return the files touched by a revision, keyed by path."""
        key = f"files:{change_id}:{revision}"
        cached = self._cached_blob(key, revision)
        if cached is not None:
            data = json.loads(cached)
        else:
            data = self._get_json(
                f"/a/changes/{_quote(change_id)}/revisions/{_quote(revision)}/files"
            )
            self._store_blob(key, revision, json.dumps(data), "files")
        return self._validate(_FILE_MAP.validate_python, data or {})

    def get_file_diff(
        self,
        change_id: str,
        path: str,
        revision: str = "current",
        base: Optional[str] = None,
    ) -> FileDiffContent:
        """Return Gerrit's structured diff of one file, optionally against patchset *base*."""
        key = f"diff:{change_id}:{revision}:{path}:{base or ''}"
        cached = self._cached_blob(key, revision)
        if cached is not None:
            data = json.loads(cached)
        else:
            params = {"base": base} if base else None
            data = self._get_json(
                f"/a/changes/{_quote(change_id)}/revisions/{_quote(revision)}"
                f"/files/{_quote(path)}/diff",
                params=params,
            )
            self._store_blob(key, revision, json.dumps(data), "diff")
        return self._validate(FileDiffContent.model_validate, data)

    def get_file_content(self, change_id: str, path: str, revision: str = "current") -> str:
        """Return the full text of *path* at *revision*."""
        key = f"content:{change_id}:{revision}:{path}"
        cached = self._cached_blob(key, revision)
        if cached is not None:
            return cached
        raw = self._get_text(
            f"/a/changes/{_quote(change_id)}/revisions/{_quote(revision)}"
            f"/files/{_quote(path)}/content"
        )
        content = _decode_base64(raw, "file content")
        self._store_blob(key, revision, content, "content")
        return content

    def get_patch(self, change_id: str, revision: str = "current") -> str:
        """Return the revision as a ``git format-patch`` style text."""
        raw = self._get_text(f"/a/changes/{_quote(change_id)}/revisions/{_quote(revision)}/patch")
        return _decode_base64(raw, "patch")

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _guarded(self, operation: Callable[[CacheManager], T]) -> Optional[T]:
        """Run *operation* against the cache, or return ``None`` if it fails."""
        if self._cache is None:
            return None
        try:
            return operation(self._cache)
        except CacheError as exc:
            logger.warning("Cache %s failed, using live API: %s", exc.operation, exc)
            return None

    def _cached_blob(self, key: str, revision: str) -> Optional[str]:
        if not _is_pinned(revision):
            return None
        return self._guarded(lambda c: c.get_cache_metadata(key))

    def _store_blob(self, key: str, revision: str, value: str, kind: str) -> None:
        if not _is_pinned(revision):
            return
        self._guarded(lambda c: c.set_cache_metadata(key, value, compute_ttl(kind=kind)))

    def _validate(self, validator: Callable[[Any], T], data: Any) -> T:
        try:
            return validator(data)
        except ValidationError as exc:
            raise ApiResponseError("Invalid response format from server") from exc

    def _send(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[Any] = None,
    ) -> httpx.Response:
        """Send one request and map failures to typed exceptions."""
        assert self._client is not None, "Client not initialised -- use as context manager"
        logger.debug("%s %s", method, path)
        try:
            response = self._client.request(method, path, params=params, json=json_body)
        except httpx.TransportError as exc:
            raise ConnectionError_(f"Request to {self._credentials.host} failed: {exc}") from exc
        self._map_response_error(response)
        return response

    def _request_json(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[Any] = None,
    ) -> Any:
        """Send a request and decode its prefixed JSON body (``None`` if empty)."""
        response = self._send(method, path, params=params, json_body=json_body)
        text = strip_xssi_prefix(response.text)
        if not text.strip():
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise ApiResponseError(
                "Failed to parse response - invalid JSON format"
            ) from exc

    def _get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        return self._request_json("GET", path, params=params)

    def _get_text(self, path: str) -> str:
        return self._send("GET", path).text

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        msg = response.text.strip()[:200] if response.text else ""
        prefix = f"HTTP {status}"
        full_msg = f"{prefix}: {msg}" if msg else prefix

        if status in (401, 403):
            raise AuthError(full_msg)
        if status == 404:
            raise NotFoundError(full_msg)
        if status == 409:
            raise ConflictError(full_msg, status_code=status)
        raise ServerError(full_msg, status_code=status)


def _recache(cache: CacheManager, change: ChangeInfo) -> None:
    previous = cache.get_change_etag(change.id)
    fingerprint = cache.save_change(change)
    if previous not in (None, fingerprint):
        logger.debug("Change %s updated since it was cached", change.number)


def _decode_base64(raw: str, what: str) -> str:
    try:
        return base64.b64decode(raw.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise ApiResponseError(f"Failed to decode {what}") from exc
