"""Access tokens for the public PO review and upload links.

A deal's access token is ``HMAC-SHA256(secret, str(deal_id))`` hex-encoded
and truncated to 16 characters. It is a pure function of (deal id, secret):
there is no expiry, and rotating the secret invalidates every link.

Verification fails closed when no secret is configured and compares over a
fixed 16-character buffer with a constant-time comparison. Failed attempts
are not tracked (no rate limiting or lockout).
"""

from __future__ import annotations

import hashlib
import hmac

import structlog

from src.sketch_review.core.errors import ConfigurationError

logger = structlog.get_logger(__name__)

TOKEN_LENGTH = 16
TOKEN_PAD_CHAR = "0"


class TokenAuthority:
    """Derives and verifies per-deal access tokens from a shared secret.

    Args:
        secret: Shared HMAC secret. An empty secret denies every token.
    """

    def __init__(self, secret: str | None) -> None:
        self._secret = secret or ""

    @property
    def configured(self) -> bool:
        return bool(self._secret)

    def _derive(self, deal_id: str | int) -> str:
        digest = hmac.new(
            self._secret.encode("utf-8"),
            str(deal_id).encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        return digest[:TOKEN_LENGTH]

    def issue(self, deal_id: str | int) -> str:
        """Return the access token for a deal.

        Raises:
            ConfigurationError: If no secret is configured.
        """
        if not self._secret:
            raise ConfigurationError("PO quote secret not configured")
        return self._derive(deal_id)

    def verify(self, deal_id: str | int, supplied: str | None) -> bool:
        """Check a supplied token against the expected token for ``deal_id``.

        The supplied value is encoded, truncated to 16 bytes and right-padded
        with ``b"0"``, so both sides of the comparison are 16 bytes long.
        """
        if not self._secret or not supplied:
            return False

        expected = self._derive(deal_id)
        candidate = str(supplied).encode("utf-8")[:TOKEN_LENGTH]
        candidate = candidate.ljust(TOKEN_LENGTH, TOKEN_PAD_CHAR.encode())
        valid = hmac.compare_digest(expected.encode("utf-8"), candidate)
        if not valid:
            logger.info("token.rejected", deal_id=str(deal_id))
        return valid
