"""SQLAlchemy Core table definitions for the local cache database.

The layout is shared with every ``ger`` process of the user, so column
names and types here are a compatibility boundary: change them only with
a migration.

Timestamps that the cache itself manages (``cached_at``, ``expires_at``,
``created_at``, ``updated_at``) are integer Unix epoch seconds. The
``created``/``updated`` columns of ``changes`` hold Gerrit's own timestamp
strings, which sort lexicographically in time order.
"""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    text,
)

_EPOCH_NOW = text("(CAST(strftime('%s', 'now') AS INTEGER))")

metadata = MetaData()

changes = Table(
    "changes",
    metadata,
    Column("id", String, primary_key=True),
    Column("project", String, nullable=False),
    Column("branch", String, nullable=False),
    Column("change_id", String, nullable=False, unique=True),
    Column("subject", Text, nullable=False),
    Column("status", String, nullable=False),
    Column("created", String, nullable=False),
    Column("updated", String, nullable=False),
    Column("insertions", Integer, nullable=False),
    Column("deletions", Integer, nullable=False),
    Column("number", Integer, nullable=False),
    Column("owner_account_id", Integer, nullable=False),
    Column("owner_name", String),
    Column("owner_email", String),
    Column("owner_username", String),
    Column("cached_at", Integer, nullable=False, server_default=_EPOCH_NOW),
    Column("expires_at", Integer),
    Column("etag", String),
)

# Part of the on-disk layout but not written by ger yet; inline comments are
# always fetched live. Rows cascade away with their change.
comments = Table(
    "comments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "change_id",
        String,
        ForeignKey("changes.change_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("revision_id", String, nullable=False),
    Column("file_path", String),
    Column("line_number", Integer),
    Column("message", Text, nullable=False),
    Column("author_account_id", Integer, nullable=False),
    Column("author_name", String),
    Column("author_email", String),
    Column("created", String, nullable=False),
    Column("updated", String, nullable=False),
    Column("unresolved", Boolean, server_default=text("0")),
    Column("cached_at", Integer, nullable=False, server_default=_EPOCH_NOW),
)

cache_metadata = Table(
    "cache_metadata",
    metadata,
    Column("key", String, primary_key=True),
    Column("value", Text, nullable=False),
    Column("expires_at", Integer),
    Column("created_at", Integer, nullable=False, server_default=_EPOCH_NOW),
    Column("updated_at", Integer, nullable=False, server_default=_EPOCH_NOW),
)

Index("idx_changes_status", changes.c.status)
Index("idx_changes_project", changes.c.project)
Index("idx_changes_updated", changes.c.updated)
Index("idx_changes_expires_at", changes.c.expires_at)
Index("idx_comments_change_id", comments.c.change_id)
Index("idx_comments_file_path", comments.c.file_path)
Index("idx_cache_metadata_expires", cache_metadata.c.expires_at)
