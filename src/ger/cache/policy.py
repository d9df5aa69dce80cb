"""TTL policy and fingerprint generation for the change cache.

Everything here is pure: no I/O, no clock reads. Callers pass ``now``
explicitly so tests can drive expiry with a simulated clock.

TTLs follow how volatile each kind of data is. Drafts and open changes
move quickly; merged and abandoned changes are effectively frozen. Of the
per-file blobs, the file list is cached shortest and raw content longest.
"""

from __future__ import annotations

import base64
import hashlib
from typing import Optional, Union

from ger.models import ChangeStatus

_MINUTE = 60
_HOUR = 60 * _MINUTE
_DAY = 24 * _HOUR

FINGERPRINT_LENGTH = 16
"""Number of characters kept from the encoded fingerprint."""

_FINGERPRINT_SEPARATOR = "|"


class CacheTTL:
    """Time-to-live constants in seconds."""

    CHANGE_DRAFT = 2 * _MINUTE
    CHANGE_NEW = 5 * _MINUTE
    CHANGE_MERGED = _DAY
    CHANGE_ABANDONED = 7 * _DAY

    FILES_LIST = 10 * _MINUTE
    FILE_DIFF = 30 * _MINUTE
    FILE_CONTENT = _HOUR

    DEFAULT = 15 * _MINUTE


_KIND_TTL = {
    "files": CacheTTL.FILES_LIST,
    "diff": CacheTTL.FILE_DIFF,
    "content": CacheTTL.FILE_CONTENT,
}

_STATUS_TTL = {
    ChangeStatus.DRAFT.value: CacheTTL.CHANGE_DRAFT,
    ChangeStatus.NEW.value: CacheTTL.CHANGE_NEW,
    ChangeStatus.MERGED.value: CacheTTL.CHANGE_MERGED,
    ChangeStatus.ABANDONED.value: CacheTTL.CHANGE_ABANDONED,
}


def compute_ttl(
    status: Union[ChangeStatus, str, None] = None,
    kind: Optional[str] = None,
) -> int:
    """Return the TTL in seconds for a change status or a blob kind.

    Args:
        status: Change status (enum or its string value).
        kind: ``"files"``, ``"diff"`` or ``"content"``. Takes precedence
            over *status* when given.

    Returns:
        The TTL in seconds. Unknown or missing classifications get
        :attr:`CacheTTL.DEFAULT`.
    """
    if kind is not None and kind in _KIND_TTL:
        return _KIND_TTL[kind]
    if isinstance(status, ChangeStatus):
        status = status.value
    return _STATUS_TTL.get(status or "", CacheTTL.DEFAULT)


def is_expired(expires_at: Optional[int], now: float) -> bool:
    """Return True once *now* is past *expires_at*.

    ``None`` means the entry never expires. An entry is still fresh at the
    exact second it expires and expired strictly after.
    """
    if expires_at is None:
        return False
    return now > expires_at


def compute_fingerprint(*values: Union[str, int, float]) -> str:
    """Derive a short ETag-like tag from an ordered tuple of scalars.

    The values are joined with ``|``, reduced to a 12-byte BLAKE2b digest,
    and base64-encoded into :data:`FINGERPRINT_LENGTH` characters. Every
    value contributes to the result, so a long Change-Id in first position
    does not mask a new ``updated`` timestamp behind it. The tag is
    deterministic across processes and meant as a change-detection hint,
    not a security primitive.
    """
    combined = _FINGERPRINT_SEPARATOR.join(str(v) for v in values)
    digest = hashlib.blake2b(combined.encode("utf-8"), digest_size=12).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii")[:FINGERPRINT_LENGTH]
