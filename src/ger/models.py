"""Canonical Pydantic models shared across all ger modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`OutputConfig`, :class:`CacheConfig`, :class:`GlobalConfig`, and
    :class:`GerritCredentials`.

**Gerrit REST models** -- decoded from Gerrit's JSON responses and, for
:class:`ChangeInfo`, persisted in the local cache:
    :class:`ChangeStatus`, :class:`AccountInfo`, :class:`ChangeInfo`,
    :class:`FileInfo`, :class:`DiffSection`, :class:`FileDiffContent`,
    :class:`CommentInfo`, :class:`ReviewInput`, and :class:`DiffOptions`.

Gerrit prefixes some field names with an underscore (``_number``,
``_account_id``). Pydantic treats such names as private, so the models
expose them under plain names with the Gerrit spelling as the alias.
``populate_by_name`` lets callers use either spelling.
"""

from __future__ import annotations

import enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Config models ---


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: Literal["auto", "json", "plain", "rich", "xml"] = Field(
        default="auto", description="Output format: auto, json, plain, rich, xml"
    )


class CacheConfig(BaseModel):
    """Local change cache settings stored in :class:`GlobalConfig`."""

    enabled: bool = Field(default=True, description="Enable the local change cache")
    sweep_on_startup: bool = Field(
        default=True, description="Delete expired cache rows when ger starts"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/ger/config.json``.

    Loaded and saved by :func:`~ger.config.load_global_config` and
    :func:`~ger.config.save_global_config`. CLI flags override these values
    for a single invocation.
    """

    output: OutputConfig = Field(default_factory=OutputConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)


class GerritCredentials(BaseModel):
    """Connection details for a Gerrit server.

    ``password`` is the HTTP password generated in Gerrit's settings page,
    not the user's login password.
    """

    host: str = Field(
        description="Gerrit server URL", pattern=r"^https?://.+$"
    )
    username: str = Field(min_length=1, description="Gerrit username")
    password: str = Field(min_length=1, description="HTTP password or API token")

    @field_validator("host")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


# --- Gerrit REST models ---


class ChangeStatus(str, enum.Enum):
    """Lifecycle status of a Gerrit change."""

    NEW = "NEW"
    MERGED = "MERGED"
    ABANDONED = "ABANDONED"
    DRAFT = "DRAFT"


class AccountInfo(BaseModel):
    """A Gerrit account reference as embedded in changes and comments."""

    model_config = ConfigDict(populate_by_name=True)

    account_id: int = Field(alias="_account_id")
    name: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None

    @property
    def display_name(self) -> str:
        """Best human-readable label for the account."""
        return self.name or self.username or self.email or str(self.account_id)


class ChangeInfo(BaseModel):
    """A snapshot of a reviewable change.

    ``id`` is Gerrit's long identifier (``project~branch~Change-Id``) and is
    the primary key of the cache. ``change_id`` is the ``I...`` Change-Id
    token, which is also unique in the cache and accepted by every lookup.

    ``labels``, ``submittable`` and ``work_in_progress`` only come from live
    API responses; they are not persisted in the cache.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    project: str
    branch: str
    change_id: str
    subject: str
    status: ChangeStatus
    created: str = ""
    updated: str = ""
    insertions: int = 0
    deletions: int = 0
    number: int = Field(alias="_number")
    owner: AccountInfo
    labels: Optional[dict[str, Any]] = None
    submittable: Optional[bool] = None
    work_in_progress: Optional[bool] = None


class FileInfo(BaseModel):
    """Per-file entry from ``/revisions/{rev}/files``."""

    model_config = ConfigDict(extra="ignore")

    status: Optional[str] = None
    lines_inserted: int = 0
    lines_deleted: int = 0
    size_delta: Optional[int] = None
    size: Optional[int] = None
    old_path: Optional[str] = None
    binary: bool = False


class DiffSection(BaseModel):
    """One content block of a Gerrit file diff.

    ``ab`` holds lines common to both sides, ``a`` lines only in the old
    file, ``b`` lines only in the new file, and ``skip`` a count of
    unchanged lines omitted from the response.
    """

    ab: Optional[list[str]] = None
    a: Optional[list[str]] = None
    b: Optional[list[str]] = None
    skip: Optional[int] = None


class FileDiffContent(BaseModel):
    """Response of ``/revisions/{rev}/files/{path}/diff``."""

    model_config = ConfigDict(extra="ignore")

    change_type: Optional[str] = None
    diff_header: Optional[list[str]] = None
    content: list[DiffSection] = Field(default_factory=list)


class CommentInfo(BaseModel):
    """An inline comment on a revision of a change."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    path: Optional[str] = None
    line: Optional[int] = None
    message: str
    author: Optional[AccountInfo] = None
    updated: Optional[str] = None
    unresolved: Optional[bool] = None
    in_reply_to: Optional[str] = None
    patch_set: Optional[int] = None


class ReviewInput(BaseModel):
    """Body for ``POST /changes/{id}/revisions/current/review``."""

    message: Optional[str] = None
    labels: Optional[dict[str, int]] = None


class DiffOptions(BaseModel):
    """Options accepted by :func:`~ger.diff.get_diff`."""

    format: str = Field(default="unified", description="unified, json, or files")
    patchset: Optional[int] = None
    file: Optional[str] = None
    full_files: bool = False
    base: Optional[int] = None
