"""Tests for one-time code generation."""

import pytest

from avanza_api.totp import generate_code

# RFC 6238 appendix B seed "12345678901234567890" in base32
RFC_SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


@pytest.mark.parametrize(
    ("timestamp", "expected"),
    [
        (59, "287082"),
        (1111111109, "081804"),
        (1234567890, "005924"),
        (2000000000, "279037"),
    ],
)
def test_rfc6238_vectors(timestamp: int, expected: str) -> None:
    assert generate_code(RFC_SECRET, timestamp) == expected


def test_code_is_stable_within_interval() -> None:
    assert generate_code(RFC_SECRET, 60) == generate_code(RFC_SECRET, 89)


def test_secret_formatting_is_tolerated() -> None:
    spaced = "gezd gnbv gy3t qojq gezd gnbv gy3t qojq"

    assert generate_code(spaced, 59) == "287082"


def test_unpadded_secret() -> None:
    # Length not a multiple of eight needs padding to decode
    assert len(generate_code("GEZDGNBVGY3TQOJQGEZDGNBVGY", 0)) == 6
