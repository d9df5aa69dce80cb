"""SQLite-backed persistent store for cached changes and metadata blobs.

:class:`CacheStore` owns the cache database file and every row in it. It
knows nothing about freshness rules beyond the raw ``expires_at`` column:
the expiry-aware semantics (lazy eviction, staleness) live in
:class:`~ger.cache.manager.CacheManager`.

The store is built on SQLAlchemy Core. Every externally supplied value
reaches SQLite as a bound parameter; no query text is assembled from
input. Each public method is one statement, or a short fixed batch in a
single transaction, and translates engine failures into the
:class:`~ger.exceptions.CacheError` subclass for that operation.

Several ``ger`` processes may share the file. WAL journaling and a busy
timeout let one writer and many readers proceed without extra locking at
this layer; the last writer wins on upsert.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator, Mapping, NamedTuple, Optional, Union

from sqlalchemy import create_engine, delete, event, func, or_, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ger.cache.policy import compute_fingerprint, compute_ttl
from ger.cache.schema import cache_metadata, changes, comments, metadata
from ger.exceptions import (
    CacheError,
    CacheInitializationError,
    CacheInvalidateError,
    CacheMetadataError,
    CacheReadError,
    CacheSearchError,
    CacheSweepError,
    CacheWriteError,
)
from ger.models import AccountInfo, ChangeInfo, ChangeStatus

logger = logging.getLogger(__name__)

MEMORY = ":memory:"
"""Pass as *path* to keep the whole store in memory (tests)."""

_BUSY_TIMEOUT_MS = 5000


@dataclass(frozen=True)
class CachedRow:
    """A decoded ``changes`` row together with its cache-control columns."""

    change: ChangeInfo
    expires_at: Optional[int]
    etag: Optional[str]
    cached_at: int


@dataclass(frozen=True)
class MetadataEntry:
    """A raw ``cache_metadata`` row, regardless of expiry."""

    key: str
    value: str
    expires_at: Optional[int]
    created_at: int
    updated_at: int


class SweepResult(NamedTuple):
    """Row counts removed by :meth:`CacheStore.sweep_expired`."""

    changes: int
    metadata: int


def row_to_change(row: Mapping[str, Any]) -> ChangeInfo:
    """Decode a ``changes`` row into a :class:`~ger.models.ChangeInfo`.

    This is the only place that maps columns to model fields. Empty owner
    strings are normalised to ``None``.
    """
    return ChangeInfo(
        id=row["id"],
        project=row["project"],
        branch=row["branch"],
        change_id=row["change_id"],
        subject=row["subject"],
        status=ChangeStatus(row["status"]),
        created=row["created"],
        updated=row["updated"],
        insertions=row["insertions"],
        deletions=row["deletions"],
        number=row["number"],
        owner=AccountInfo(
            account_id=row["owner_account_id"],
            name=row["owner_name"] or None,
            email=row["owner_email"] or None,
            username=row["owner_username"] or None,
        ),
    )


def _change_to_row(change: ChangeInfo) -> dict[str, Any]:
    return {
        "id": change.id,
        "project": change.project,
        "branch": change.branch,
        "change_id": change.change_id,
        "subject": change.subject,
        "status": change.status.value,
        "created": change.created,
        "updated": change.updated,
        "insertions": change.insertions,
        "deletions": change.deletions,
        "number": change.number,
        "owner_account_id": change.owner.account_id,
        "owner_name": change.owner.name,
        "owner_email": change.owner.email,
        "owner_username": change.owner.username,
    }


def _match_change(key: str):
    """WHERE clause matching a change by long id, Change-Id token, or number."""
    clauses = [changes.c.id == key, changes.c.change_id == key]
    if key.isascii() and key.isdigit():
        clauses.append(changes.c.number == int(key))
    return or_(*clauses)


def _apply_pragmas(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.execute("PRAGMA journal_mode = WAL")
        cursor.execute("PRAGMA synchronous = NORMAL")
        cursor.execute(f"PRAGMA busy_timeout = {_BUSY_TIMEOUT_MS}")
        cursor.execute("PRAGMA temp_store = MEMORY")
    finally:
        cursor.close()


class CacheStore:
    """Durable storage for :class:`~ger.models.ChangeInfo` rows and metadata blobs.

    Args:
        path: Location of the SQLite file, or :data:`MEMORY`.
        clock: Callable returning the current Unix time in seconds. Tests
            inject a fake clock to simulate expiry.

    Example::

        store = CacheStore(get_cache_db_path())
        store.initialize()
        store.upsert(change)
        row = store.get_row(change.change_id)
    """

    def __init__(
        self,
        path: Union[str, Path],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._path = str(path)
        self._clock = clock
        self._engine: Optional[Engine] = None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    @property
    def path(self) -> str:
        """The database location this store was created with."""
        return self._path

    @property
    def clock(self) -> Callable[[], float]:
        """The time source used for every expiry computation."""
        return self._clock

    def now(self) -> int:
        """Current time in whole epoch seconds, according to :attr:`clock`."""
        return int(self._clock())

    def initialize(self) -> None:
        """Open the database and create tables and indexes if absent.

        Idempotent: calling it on an existing database leaves data intact.

        Raises:
            CacheInitializationError: If the directory, engine, or schema
                cannot be created.
        """
        if self._engine is not None:
            return
        try:
            if self._path == MEMORY:
                engine = create_engine(
                    "sqlite://",
                    poolclass=StaticPool,
                    connect_args={"check_same_thread": False},
                )
            else:
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
                engine = create_engine(
                    f"sqlite:///{self._path}",
                    connect_args={"timeout": _BUSY_TIMEOUT_MS / 1000},
                )
            event.listen(engine, "connect", _apply_pragmas)
            metadata.create_all(engine)
        except (OSError, SQLAlchemyError) as exc:
            raise CacheInitializationError(
                f"Failed to initialize cache database at {self._path}: {exc}"
            ) from exc
        self._engine = engine
        logger.debug("Opened cache database at %s", self._path)

    def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def __enter__(self) -> CacheStore:
        self.initialize()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @contextmanager
    def _transaction(
        self, error_cls: type[CacheError], message: str
    ) -> Iterator[Connection]:
        """Yield a connection in a transaction, translating engine errors."""
        if self._engine is None:
            raise error_cls(f"{message}: cache store is not initialised")
        try:
            with self._engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            raise error_cls(f"{message}: {exc}") from exc

    # ------------------------------------------------------------------ #
    # Changes
    # ------------------------------------------------------------------ #

    def get(self, id_or_token: str) -> Optional[ChangeInfo]:
        """Look up a change by long id, Change-Id token, or change number.

        No expiry check is applied here.

        Raises:
            CacheReadError: On database failure.
        """
        row = self.get_row(id_or_token)
        return row.change if row is not None else None

    def get_row(self, id_or_token: str) -> Optional[CachedRow]:
        """Like :meth:`get`, but also return ``expires_at``, ``etag`` and ``cached_at``."""
        with self._transaction(CacheReadError, "Failed to get change from cache") as conn:
            row = conn.execute(
                select(changes).where(_match_change(id_or_token)).limit(1)
            ).mappings().first()
        if row is None:
            return None
        return CachedRow(
            change=row_to_change(row),
            expires_at=row["expires_at"],
            etag=row["etag"],
            cached_at=row["cached_at"],
        )

    def upsert(
        self,
        change: ChangeInfo,
        fingerprint: Optional[str] = None,
        expires_at: Optional[int] = None,
    ) -> str:
        """Insert or replace a change keyed by its long id.

        Args:
            change: The change to store.
            fingerprint: ETag to store. Computed from ``change_id``,
                ``updated`` and ``status`` when omitted.
            expires_at: Absolute expiry in epoch seconds. Defaults to now
                plus the TTL for ``change.status``.

        Returns:
            The fingerprint that was stored.

        Raises:
            CacheWriteError: On database failure.
        """
        now = self.now()
        if expires_at is None:
            expires_at = now + compute_ttl(change.status)
        if fingerprint is None:
            fingerprint = compute_fingerprint(
                change.change_id, change.updated, change.status.value
            )
        values = _change_to_row(change)
        values.update(cached_at=now, expires_at=expires_at, etag=fingerprint)
        with self._transaction(CacheWriteError, "Failed to save change to cache") as conn:
            conn.execute(changes.insert().prefix_with("OR REPLACE").values(**values))
        return fingerprint

    def search(
        self,
        status: Union[ChangeStatus, str, None] = None,
        project: Optional[str] = None,
        limit: Optional[int] = None,
        include_expired: bool = True,
    ) -> list[ChangeInfo]:
        """Return cached changes, most recently updated first.

        Args:
            status: Only return changes with this status.
            project: Only return changes in this project.
            limit: Maximum number of rows.
            include_expired: When ``False``, rows whose ``expires_at`` is in
                the past are left out.

        Raises:
            CacheSearchError: On database failure.
        """
        query = select(changes)
        if status:
            if isinstance(status, ChangeStatus):
                status = status.value
            query = query.where(changes.c.status == status)
        if project:
            query = query.where(changes.c.project == project)
        if not include_expired:
            query = query.where(
                or_(changes.c.expires_at.is_(None), changes.c.expires_at >= self.now())
            )
        query = query.order_by(changes.c.updated.desc())
        if limit:
            query = query.limit(limit)
        with self._transaction(CacheSearchError, "Failed to search cached changes") as conn:
            rows = conn.execute(query).mappings().all()
        return [row_to_change(row) for row in rows]

    def delete_by_id(self, id_or_token: str) -> int:
        """Delete the change matching *id_or_token*; no-op if absent.

        Returns:
            The number of rows removed.

        Raises:
            CacheInvalidateError: On database failure.
        """
        with self._transaction(CacheInvalidateError, "Failed to invalidate change") as conn:
            result = conn.execute(delete(changes).where(_match_change(id_or_token)))
        return result.rowcount

    def raw_change_ids(self) -> list[str]:
        """Return the long id of every physically present row, ignoring expiry."""
        with self._transaction(CacheSearchError, "Failed to scan cached changes") as conn:
            return list(conn.execute(select(changes.c.id).order_by(changes.c.id)).scalars())

    # ------------------------------------------------------------------ #
    # Metadata
    # ------------------------------------------------------------------ #

    def get_metadata(self, key: str) -> Optional[str]:
        """Return the value for *key* unless it has expired.

        Expired rows are treated as absent but left in place for the sweep.

        Raises:
            CacheMetadataError: On database failure.
        """
        query = select(cache_metadata.c.value).where(
            cache_metadata.c.key == key,
            or_(
                cache_metadata.c.expires_at.is_(None),
                cache_metadata.c.expires_at >= self.now(),
            ),
        )
        with self._transaction(CacheMetadataError, "Failed to get cache metadata") as conn:
            return conn.execute(query).scalar_one_or_none()

    def get_metadata_entry(self, key: str) -> Optional[MetadataEntry]:
        """Return the raw metadata row for *key*, expired or not."""
        with self._transaction(CacheMetadataError, "Failed to get cache metadata") as conn:
            row = conn.execute(
                select(cache_metadata).where(cache_metadata.c.key == key)
            ).mappings().first()
        if row is None:
            return None
        return MetadataEntry(**dict(row))

    def set_metadata(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        """Insert or replace a metadata entry.

        Args:
            key: Entry key.
            value: Entry value.
            ttl_seconds: Lifetime in seconds. ``None`` stores an entry that
                never expires; a negative value stores one that is already
                expired.

        Raises:
            CacheMetadataError: On database failure.
        """
        now = self.now()
        expires_at = now + ttl_seconds if ttl_seconds is not None else None
        stmt = sqlite_insert(cache_metadata).values(
            key=key,
            value=value,
            expires_at=expires_at,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[cache_metadata.c.key],
            set_={
                "value": stmt.excluded.value,
                "expires_at": stmt.excluded.expires_at,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        with self._transaction(CacheMetadataError, "Failed to set cache metadata") as conn:
            conn.execute(stmt)

    def delete_metadata(self, key: str) -> None:
        """Delete the metadata entry for *key*; no-op if absent."""
        with self._transaction(CacheMetadataError, "Failed to delete cache metadata") as conn:
            conn.execute(delete(cache_metadata).where(cache_metadata.c.key == key))

    # ------------------------------------------------------------------ #
    # Maintenance
    # ------------------------------------------------------------------ #

    def sweep_expired(self) -> SweepResult:
        """Delete every expired change and metadata row.

        Rows without an expiry are kept.

        Raises:
            CacheSweepError: On database failure.
        """
        now = self.now()
        with self._transaction(CacheSweepError, "Failed to clear expired cache") as conn:
            removed_changes = conn.execute(
                delete(changes).where(
                    changes.c.expires_at.is_not(None), changes.c.expires_at < now
                )
            ).rowcount
            removed_metadata = conn.execute(
                delete(cache_metadata).where(
                    cache_metadata.c.expires_at.is_not(None),
                    cache_metadata.c.expires_at < now,
                )
            ).rowcount
        logger.debug(
            "Swept %d expired changes and %d metadata entries",
            removed_changes,
            removed_metadata,
        )
        return SweepResult(removed_changes, removed_metadata)

    def clear(self) -> None:
        """Delete every row from every cache table."""
        with self._transaction(CacheInvalidateError, "Failed to clear cache") as conn:
            conn.execute(delete(comments))
            conn.execute(delete(changes))
            conn.execute(delete(cache_metadata))

    def stats(self) -> dict[str, Any]:
        """Return row counts for ``ger cache stats``."""
        now = self.now()

        def _count(conn: Connection, table: Any, expired_only: bool = False) -> int:
            query = select(func.count()).select_from(table)
            if expired_only:
                query = query.where(
                    table.c.expires_at.is_not(None), table.c.expires_at < now
                )
            return conn.execute(query).scalar_one()

        with self._transaction(CacheReadError, "Failed to read cache statistics") as conn:
            return {
                "path": self._path,
                "changes": _count(conn, changes),
                "expired_changes": _count(conn, changes, expired_only=True),
                "metadata": _count(conn, cache_metadata),
                "expired_metadata": _count(conn, cache_metadata, expired_only=True),
            }
