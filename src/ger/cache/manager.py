"""Expiry-aware cache facade used by the rest of ger.

:class:`CacheManager` wraps a :class:`~ger.cache.store.CacheStore` and is
the only cache component callers touch. It keeps no state of its own: every
call goes to the store, so two processes sharing the database file always
observe each other's writes.

Each entry moves through these states (derived from ``expires_at`` and the
store's clock, never stored)::

    ABSENT --save--> FRESH --time--> EXPIRED --read/invalidate/sweep--> ABSENT
                       ^                |
                       +-----save-------+

The one rule that must never break: no read returns an expired entry.
:meth:`CacheManager.get_change` deletes an expired row on the read that
finds it and reports a miss.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Union

from ger.cache.policy import compute_fingerprint, compute_ttl, is_expired
from ger.cache.store import CacheStore, SweepResult
from ger.models import ChangeInfo, ChangeStatus

logger = logging.getLogger(__name__)


class CacheManager:
    """Read, write, invalidate, and sweep cached changes and metadata.

    Args:
        store: An initialised store. Its clock drives every expiry check.

    Example::

        manager = CacheManager(store)
        change = manager.get_change("12345")
        if change is None:
            change = client.fetch_change("12345")
            manager.save_change(change)
    """

    def __init__(self, store: CacheStore) -> None:
        self._store = store

    @property
    def store(self) -> CacheStore:
        """The underlying persistent store."""
        return self._store

    # ------------------------------------------------------------------ #
    # Changes
    # ------------------------------------------------------------------ #

    def get_change(self, change_id: str) -> Optional[ChangeInfo]:
        """Return the cached change, or ``None`` if absent or expired.

        An expired row is deleted before returning ``None``.
        """
        row = self._store.get_row(change_id)
        if row is None:
            logger.debug("Cache miss for change %s", change_id)
            return None
        if is_expired(row.expires_at, self._store.now()):
            logger.debug("Evicting expired change %s", change_id)
            self._store.delete_by_id(row.change.id)
            return None
        logger.debug("Cache hit for change %s", change_id)
        return row.change

    def save_change(self, change: ChangeInfo, etag: Optional[str] = None) -> str:
        """Cache *change* with a TTL derived from its status.

        Args:
            change: The change to store. Overwrites any earlier snapshot
                with the same id.
            etag: Fingerprint to store. Computed from the Change-Id,
                ``updated`` and ``status`` when omitted.

        Returns:
            The stored fingerprint.
        """
        expires_at = self._store.now() + compute_ttl(change.status)
        fingerprint = etag or compute_fingerprint(
            change.change_id, change.updated, change.status.value
        )
        self._store.upsert(change, fingerprint=fingerprint, expires_at=expires_at)
        return fingerprint

    def search_changes(
        self,
        status: Union[ChangeStatus, str, None] = None,
        project: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[ChangeInfo]:
        """Return unexpired cached changes, most recently updated first.

        Expired rows awaiting the sweep are left out, so a search never
        shows a change that :meth:`get_change` would refuse to return.
        """
        return self._store.search(
            status=status, project=project, limit=limit, include_expired=False
        )

    def invalidate_change(self, change_id: str) -> None:
        """Drop the cached change regardless of its expiry.

        Called after any mutation on the server so the next read refetches.
        """
        removed = self._store.delete_by_id(change_id)
        if removed:
            logger.debug("Invalidated cached change %s", change_id)

    def is_change_stale(self, change_id: str) -> bool:
        """Return True if the change is not cached or its entry has expired."""
        row = self._store.get_row(change_id)
        if row is None:
            return True
        return is_expired(row.expires_at, self._store.now())

    def get_change_etag(self, change_id: str) -> Optional[str]:
        """Return the stored fingerprint of a fresh entry, else ``None``."""
        row = self._store.get_row(change_id)
        if row is None or is_expired(row.expires_at, self._store.now()):
            return None
        return row.etag

    def get_or_fetch_change(
        self, change_id: str, fetch: Callable[[], ChangeInfo]
    ) -> ChangeInfo:
        """Return the cached change, calling *fetch* and caching its result on a miss."""
        cached = self.get_change(change_id)
        if cached is not None:
            return cached
        change = fetch()
        self.save_change(change)
        return change

    # ------------------------------------------------------------------ #
    # Metadata
    # ------------------------------------------------------------------ #

    def get_cache_metadata(self, key: str) -> Optional[str]:
        """Return the metadata value for *key*, or ``None`` if absent or expired.

        Like :meth:`get_change`, an expired entry is deleted on the read
        that finds it.
        """
        entry = self._store.get_metadata_entry(key)
        if entry is None:
            return None
        if is_expired(entry.expires_at, self._store.now()):
            logger.debug("Evicting expired metadata %s", key)
            self._store.delete_metadata(key)
            return None
        return entry.value

    def set_cache_metadata(
        self, key: str, value: str, ttl_seconds: Optional[int] = None
    ) -> None:
        """Store a metadata value; ``ttl_seconds=None`` means it never expires."""
        self._store.set_metadata(key, value, ttl_seconds)

    # ------------------------------------------------------------------ #
    # Maintenance
    # ------------------------------------------------------------------ #

    def clear_expired_cache(self) -> SweepResult:
        """Physically delete every expired row.

        There is no background scheduler; ``ger`` calls this once at startup.
        """
        return self._store.sweep_expired()
