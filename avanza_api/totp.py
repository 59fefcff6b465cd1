"""Time-based one-time codes (RFC 6238) for second-factor login."""

from __future__ import annotations

import base64
import hashlib
import hmac
import time

TOTP_DIGITS = 6
TOTP_INTERVAL = 30


def _decode_secret(secret: str) -> bytes:
    normalized = secret.replace(" ", "").upper()
    padding = -len(normalized) % 8
    return base64.b32decode(normalized + "=" * padding)


def generate_code(
    secret: str,
    timestamp: float | None = None,
    *,
    digits: int = TOTP_DIGITS,
    interval: int = TOTP_INTERVAL,
) -> str:
    """Generate the one-time code for ``secret`` at ``timestamp``.

    Args:
        secret: Base32-encoded shared secret (spaces and missing padding are tolerated).
        timestamp: Unix timestamp (default: now).
        digits: Number of digits in the code.
        interval: Time step in seconds.

    Returns:
        Zero-padded code string.
    """
    if timestamp is None:
        timestamp = time.time()

    counter = int(timestamp) // interval
    key = _decode_secret(secret)

    digest = hmac.new(key, counter.to_bytes(8, "big"), hashlib.sha1).digest()

    # Dynamic truncation
    offset = digest[-1] & 0x0F
    code = (
        ((digest[offset] & 0x7F) << 24)
        | ((digest[offset + 1] & 0xFF) << 16)
        | ((digest[offset + 2] & 0xFF) << 8)
        | (digest[offset + 3] & 0xFF)
    )
    return str(code % (10**digits)).zfill(digits)
