"""Tests for TTL policy, expiry checks, and fingerprints."""

from __future__ import annotations

import pytest

from ger.cache.policy import (
    FINGERPRINT_LENGTH,
    CacheTTL,
    compute_fingerprint,
    compute_ttl,
    is_expired,
)
from ger.models import ChangeStatus


# ------------------------------------------------------------------ #
# compute_ttl
# ------------------------------------------------------------------ #


class TestComputeTTL:
    def test_status_ttls_are_ordered_by_volatility(self) -> None:
        """Drafts expire first, abandoned changes last."""
        assert (
            compute_ttl(ChangeStatus.DRAFT)
            < compute_ttl(ChangeStatus.NEW)
            < compute_ttl(ChangeStatus.MERGED)
            < compute_ttl(ChangeStatus.ABANDONED)
        )

    def test_kind_ttls_are_ordered(self) -> None:
        """File lists expire before diffs, diffs before file content."""
        assert compute_ttl(kind="files") < compute_ttl(kind="diff") < compute_ttl(kind="content")

    @pytest.mark.parametrize(
        "status, expected",
        [
            (ChangeStatus.DRAFT, 120),
            (ChangeStatus.NEW, 300),
            (ChangeStatus.MERGED, 86400),
            (ChangeStatus.ABANDONED, 604800),
        ],
    )
    def test_status_values(self, status: ChangeStatus, expected: int) -> None:
        assert compute_ttl(status) == expected

    def test_status_accepts_plain_strings(self) -> None:
        assert compute_ttl("MERGED") == CacheTTL.CHANGE_MERGED

    def test_kind_takes_precedence_over_status(self) -> None:
        assert compute_ttl(ChangeStatus.DRAFT, kind="content") == CacheTTL.FILE_CONTENT

    def test_unknown_values_fall_back_to_default(self) -> None:
        assert compute_ttl() == CacheTTL.DEFAULT
        assert compute_ttl("SUBMITTED") == CacheTTL.DEFAULT
        assert compute_ttl(kind="thumbnail") == CacheTTL.DEFAULT

    def test_default_is_fifteen_minutes(self) -> None:
        assert CacheTTL.DEFAULT == 900


# ------------------------------------------------------------------ #
# is_expired
# ------------------------------------------------------------------ #


class TestIsExpired:
    def test_none_never_expires(self) -> None:
        assert is_expired(None, 10**12) is False

    def test_fresh_until_the_expiry_second(self) -> None:
        assert is_expired(1000, 999) is False
        assert is_expired(1000, 1000) is False

    def test_expired_strictly_after(self) -> None:
        assert is_expired(1000, 1001) is True


# ------------------------------------------------------------------ #
# compute_fingerprint
# ------------------------------------------------------------------ #


class TestComputeFingerprint:
    def test_deterministic(self) -> None:
        a = compute_fingerprint("I123", "2024-01-15 12:00:00", "NEW")
        b = compute_fingerprint("I123", "2024-01-15 12:00:00", "NEW")
        assert a == b

    def test_fixed_length(self) -> None:
        assert len(compute_fingerprint("x")) == FINGERPRINT_LENGTH
        assert len(compute_fingerprint("x" * 500, 1, 2.5)) == FINGERPRINT_LENGTH

    def test_zero_arguments(self) -> None:
        fingerprint = compute_fingerprint()
        assert isinstance(fingerprint, str)
        assert 0 < len(fingerprint) <= FINGERPRINT_LENGTH
        assert compute_fingerprint() == fingerprint

    @pytest.mark.parametrize(
        "values",
        [
            ("I999", "2024-01-15 12:00:00", "NEW"),
            ("I123", "2024-01-16 09:30:00", "NEW"),
            ("I123", "2024-01-15 12:00:00", "MERGED"),
        ],
    )
    def test_any_single_argument_change_alters_output(self, values: tuple) -> None:
        base = compute_fingerprint("I123", "2024-01-15 12:00:00", "NEW")
        assert compute_fingerprint(*values) != base

    def test_long_leading_value_does_not_mask_later_values(self) -> None:
        """A full 41-character Change-Id in front still lets ``updated`` show through."""
        change_id = "I8473b95934b5732ac55d26311a706c9c2bde9940"
        a = compute_fingerprint(change_id, "2024-01-15 12:00:00", "NEW")
        b = compute_fingerprint(change_id, "2024-01-15 12:00:01", "NEW")
        assert a != b

    def test_url_safe_characters(self) -> None:
        fingerprint = compute_fingerprint("I123", "ts", "NEW")
        assert "+" not in fingerprint
        assert "/" not in fingerprint
