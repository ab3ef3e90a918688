"""Exception hierarchy for the batch commit-reveal engine.

Every exception carries a machine-readable ``reason`` that the engine copies
into its failure results.
"""

from __future__ import annotations

import asyncio
from typing import Any


class MintError(RuntimeError):
    """Base exception raised for engine failures."""

    reason = "internal_error"


class AllocationError(MintError):
    """Raised when the identifier counter cannot be read or advanced."""

    reason = "allocation_failed"


class LedgerError(MintError):
    """Base exception raised for ledger collaborator failures."""

    reason = "ledger_error"


class LedgerDisabledError(LedgerError):
    """Raised when ledger operations are attempted without a configured ledger."""

    reason = "ledger_disabled"


class LedgerCommitError(LedgerError):
    """Raised when a root commit fails, reverts or does not confirm in time."""

    reason = "ledger_commit_failed"


class LedgerCommitTimeout(LedgerCommitError):
    """Raised when the caller stops waiting for a commit that is still in flight.

    ``pending`` resolves once the transaction finally confirms or fails, so
    a root that lands late can still be recorded.
    """

    def __init__(self, message: str, pending: asyncio.Future[Any]) -> None:
        super().__init__(message)
        self.pending = pending


class LedgerRevealError(LedgerError):
    """Raised when a reveal submission fails, reverts or does not confirm in time."""

    reason = "ledger_reveal_failed"


class ConsistencyError(MintError):
    """Base exception for states the engine's invariants rule out."""

    reason = "consistency_error"


class MissingMetadataError(ConsistencyError):
    """Raised when a live batch has no metadata entry for one of its identifiers."""

    reason = "missing_metadata"

    def __init__(self, token_id: int) -> None:
        super().__init__(f"No metadata URI stored for token {token_id}")
        self.token_id = token_id


class RootMismatchError(ConsistencyError):
    """Raised when a rebuilt tree does not reproduce the committed root."""

    reason = "root_mismatch"

    def __init__(self, expected: bytes, actual: bytes) -> None:
        super().__init__(
            f"Rebuilt root 0x{actual.hex()} does not match committed root 0x{expected.hex()}"
        )
        self.expected = expected
        self.actual = actual
