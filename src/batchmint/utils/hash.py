# src/batchmint/utils/hash.py
"""Keccak-256 helpers matching the ledger contract's hashing."""

from __future__ import annotations

from eth_utils import keccak

DIGEST_SIZE = 32


def keccak_digest(data: bytes) -> bytes:
    """Return the 32-byte Keccak-256 digest of the supplied data."""
    return keccak(primitive=data)


def keccak_hexdigest(data: bytes) -> str:
    """Return the 0x-prefixed hexadecimal Keccak-256 digest of the supplied data."""
    return "0x" + keccak_digest(data).hex()


def hex_to_digest(value: str) -> bytes:
    """Decode a (optionally 0x-prefixed) 32-byte hex digest.

    Raises:
        ValueError: If the value is not valid hex or not 32 bytes long.
    """
    raw = value[2:] if value.startswith(("0x", "0X")) else value
    digest = bytes.fromhex(raw)
    if len(digest) != DIGEST_SIZE:
        raise ValueError(f"Expected a {DIGEST_SIZE}-byte digest, got {len(digest)} bytes")
    return digest
