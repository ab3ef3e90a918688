"""Canonical leaf construction and sorted-pair Merkle trees.

Leaves hash the decimal string of the token identifier only; the metadata URI
is never part of a leaf. Sibling pairs are ordered bytewise before hashing, so
a proof verifies without position bits. A lone node at the end of a level is
promoted to the next level unchanged. Together these match OpenZeppelin's
``MerkleProof.verify`` and ``merkletreejs`` with ``sortPairs``.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from batchmint.utils.hash import keccak_digest

__all__ = ["MerkleTree", "build_tree", "hash_pair", "hex_proof", "leaf", "verify_proof"]


def leaf(token_id: int) -> bytes:
    """Return the canonical leaf for a token identifier."""
    if token_id < 1:
        raise ValueError(f"Token identifiers start at 1, got {token_id}")
    return keccak_digest(str(token_id).encode("utf-8"))


def hash_pair(a: bytes, b: bytes) -> bytes:
    """Combine two sibling nodes with the sorted-pair rule."""
    if a <= b:
        return keccak_digest(a + b)
    return keccak_digest(b + a)


class MerkleTree:
    """Merkle tree over the leaves of a set of token identifiers.

    Use :func:`build_tree` to construct one; identifiers are de-duplicated and
    sorted ascending so that equal sets always produce equal roots.
    """

    def __init__(self, token_ids: Sequence[int]) -> None:
        if not token_ids:
            raise ValueError("Cannot build a Merkle tree over an empty identifier set")
        self.token_ids: tuple[int, ...] = tuple(token_ids)
        self._positions = {token_id: index for index, token_id in enumerate(self.token_ids)}
        self.levels: list[list[bytes]] = [[leaf(token_id) for token_id in self.token_ids]]
        while len(self.levels[-1]) > 1:
            self.levels.append(self._next_level(self.levels[-1]))

    @staticmethod
    def _next_level(nodes: list[bytes]) -> list[bytes]:
        parents: list[bytes] = []
        for index in range(0, len(nodes), 2):
            if index + 1 < len(nodes):
                parents.append(hash_pair(nodes[index], nodes[index + 1]))
            else:
                parents.append(nodes[index])
        return parents

    @property
    def root(self) -> bytes:
        """Return the 32-byte root digest."""
        return self.levels[-1][0]

    @property
    def hex_root(self) -> str:
        """Return the root as a 0x-prefixed hex string."""
        return "0x" + self.root.hex()

    def __contains__(self, token_id: object) -> bool:
        return token_id in self._positions

    def __len__(self) -> int:
        return len(self.token_ids)

    def proof(self, token_id: int) -> list[bytes]:
        """Return the sibling hashes from ``leaf(token_id)`` up to the root.

        Raises:
            KeyError: If the identifier is not part of this tree.
        """
        index = self._positions[token_id]
        siblings: list[bytes] = []
        for level in self.levels[:-1]:
            sibling = index ^ 1
            if sibling < len(level):
                siblings.append(level[sibling])
            index //= 2
        return siblings


def build_tree(token_ids: Iterable[int]) -> MerkleTree:
    """Build a deterministic tree over ``token_ids`` regardless of input order."""
    return MerkleTree(sorted(set(token_ids)))


def verify_proof(root: bytes, leaf_hash: bytes, proof: Iterable[bytes]) -> bool:
    """Fold ``proof`` onto ``leaf_hash`` the way the ledger verifier does."""
    computed = leaf_hash
    for sibling in proof:
        computed = hash_pair(computed, sibling)
    return computed == root


def hex_proof(proof: Iterable[bytes]) -> list[str]:
    """Encode proof nodes as 0x-prefixed hex strings for the wire."""
    return ["0x" + node.hex() for node in proof]
