"""Tests for the per-deal link token authority.

Covers derivation (HMAC-SHA256, 16 hex chars), fail-closed behaviour when
no secret is configured, and the fixed-width truncate/pad comparison.
"""

from __future__ import annotations

import hmac
import itertools
from unittest.mock import patch

import pytest

from src.sketch_review.core.errors import ConfigurationError
from src.sketch_review.core.security import TOKEN_LENGTH, TokenAuthority
from tests.fakes import TEST_SECRET, token_for


@pytest.fixture
def authority() -> TokenAuthority:
    return TokenAuthority(TEST_SECRET)


# ── Issue ───────────────────────────────────────────────────────────────────


class TestIssue:
    def test_token_is_truncated_hmac_hex(self, authority):
        """Token equals the first 16 hex chars of HMAC-SHA256(secret, dealId)."""
        token = authority.issue("12345")
        assert token == token_for("12345")
        assert len(token) == TOKEN_LENGTH
        assert all(c in "0123456789abcdef" for c in token)

    def test_numeric_and_string_ids_derive_the_same_token(self, authority):
        """Deal ids are stringified before signing."""
        assert authority.issue(12345) == authority.issue("12345")

    def test_different_deals_get_different_tokens(self, authority):
        assert authority.issue("1") != authority.issue("2")

    def test_rotating_the_secret_changes_tokens(self):
        assert TokenAuthority("a").issue("1") != TokenAuthority("b").issue("1")

    def test_issue_without_secret_raises(self):
        """Issuing requires a configured secret."""
        with pytest.raises(ConfigurationError):
            TokenAuthority("").issue("12345")


# ── Verify ──────────────────────────────────────────────────────────────────


class TestVerify:
    def test_issued_token_verifies(self, authority):
        assert authority.verify("12345", authority.issue("12345")) is True

    def test_token_for_other_deal_is_rejected(self, authority):
        assert authority.verify("12345", authority.issue("54321")) is False

    def test_tampered_token_is_rejected(self, authority):
        token = authority.issue("12345")
        flipped = ("1" if token[0] != "1" else "2") + token[1:]
        assert authority.verify("12345", flipped) is False

    def test_missing_secret_denies_every_token(self):
        """Fail closed: with no secret even the 'right' token is refused."""
        unconfigured = TokenAuthority(None)
        assert unconfigured.configured is False
        assert unconfigured.verify("12345", token_for("12345", "")) is False

    @pytest.mark.parametrize("supplied", [None, ""])
    def test_missing_token_is_rejected(self, authority, supplied):
        assert authority.verify("12345", supplied) is False

    def test_overlong_token_is_truncated_before_compare(self, authority):
        """Characters beyond the 16th are ignored."""
        assert authority.verify("12345", authority.issue("12345") + "trailing") is True

    def test_short_token_is_padded_with_zeros(self, authority):
        """A 15-char prefix matches only when the real token ends in '0'."""
        deal_id = next(
            str(i) for i in itertools.count(1) if authority.issue(str(i)).endswith("0")
        )
        token = authority.issue(deal_id)
        assert authority.verify(deal_id, token[:-1]) is True

    def test_short_token_is_rejected_when_padding_differs(self, authority):
        deal_id = next(
            str(i) for i in itertools.count(1) if not authority.issue(str(i)).endswith("0")
        )
        token = authority.issue(deal_id)
        assert authority.verify(deal_id, token[:-1]) is False

    def test_non_ascii_token_is_rejected(self, authority):
        assert authority.verify("12345", "é" * 16) is False

    @pytest.mark.parametrize(
        "supplied",
        ["abc", token_for("12345"), token_for("12345") + "trailing", "é" * 16, "0" * 16],
    )
    def test_compare_is_constant_time_over_fixed_width(self, authority, supplied):
        """Every verify makes exactly one compare_digest call on two 16-byte buffers."""
        with patch(
            "src.sketch_review.core.security.hmac.compare_digest", wraps=hmac.compare_digest
        ) as compare:
            authority.verify("12345", supplied)

        compare.assert_called_once()
        expected, candidate = compare.call_args.args
        assert isinstance(expected, bytes)
        assert isinstance(candidate, bytes)
        assert len(expected) == len(candidate) == TOKEN_LENGTH
