"""Tests for the Keccak-256 helpers."""

import pytest

from batchmint.utils.hash import DIGEST_SIZE, hex_to_digest, keccak_digest, keccak_hexdigest

EMPTY_KECCAK = "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"


def test_keccak_digest_matches_known_vector() -> None:
    assert keccak_digest(b"").hex() == EMPTY_KECCAK
    assert len(keccak_digest(b"batch")) == DIGEST_SIZE


def test_keccak_hexdigest_is_prefixed() -> None:
    assert keccak_hexdigest(b"") == "0x" + EMPTY_KECCAK


def test_hex_to_digest_accepts_prefixed_and_bare_values() -> None:
    digest = keccak_digest(b"root")
    assert hex_to_digest("0x" + digest.hex()) == digest
    assert hex_to_digest(digest.hex()) == digest


def test_hex_to_digest_rejects_wrong_length() -> None:
    with pytest.raises(ValueError):
        hex_to_digest("0x1234")
