"""Inclusion proofs for identifiers of committed batches."""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from batchmint.db.time import unix_now
from batchmint.repositories.batch_repo import BatchRecord, BatchStore
from batchmint.services.errors import MissingMetadataError, RootMismatchError
from batchmint.services.lifecycle import RevealThresholdSource, is_revealable
from batchmint.services.merkle import build_tree

__all__ = ["ProofService", "RevealProof", "RevealRejected"]

REASON_NOT_FOUND = "not_found"
REASON_EXPIRED = "expired"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RevealProof:
    """Everything the ledger needs to accept one identifier's metadata."""

    batch: BatchRecord
    token_id: int
    uri: str
    proof: list[bytes]
    threshold: int
    elapsed: int

    @property
    def root_index(self) -> int:
        """Return which committed root the ledger should check against."""
        return self.batch.root_index

    @property
    def time_remaining(self) -> int:
        """Return the seconds left in the batch's reveal window."""
        return self.threshold - self.elapsed


@dataclass(frozen=True)
class RevealRejected:
    """A routine reason why no proof was produced."""

    reason: str
    message: str
    elapsed: int | None = None
    threshold: int | None = None


class ProofService:
    """Rebuilds historical trees and extracts inclusion proofs."""

    def __init__(
        self,
        store: BatchStore,
        thresholds: RevealThresholdSource,
        clock: Callable[[], int] = unix_now,
    ) -> None:
        self.store = store
        self.thresholds = thresholds
        self._clock = clock

    async def reveal(self, owner: str, token_id: int) -> RevealProof | RevealRejected:
        """Produce the proof for ``token_id`` of ``owner``'s batch.

        The batch, validity and metadata are read in one session, so a batch
        removed by a concurrent sweep yields ``not_found`` rather than a proof
        for deleted data.

        Raises:
            MissingMetadataError: If any identifier of the live batch has no URI.
            RootMismatchError: If the rebuilt root differs from the committed one.
        """
        threshold = await self.thresholds.current()

        with self.store.reader() as db:
            batch = self.store.find_owning(owner, token_id, db)
            if batch is None:
                return RevealRejected(
                    reason=REASON_NOT_FOUND,
                    message="Token not found or not owned by user",
                )

            now = self._clock()
            if batch.committed_at is None or not is_revealable(batch.committed_at, now, threshold):
                elapsed = None if batch.committed_at is None else now - batch.committed_at
                return RevealRejected(
                    reason=REASON_EXPIRED,
                    message="Reveal period has expired for this token",
                    elapsed=elapsed,
                    threshold=threshold,
                )

            uris = self.store.get_uris(batch.token_ids, db)

        missing = next((member for member in batch.token_ids if member not in uris), None)
        if missing is not None:
            error = MissingMetadataError(missing)
            logger.error("Batch %d-%d of %s: %s", batch.start_id, batch.end_id, owner, error)
            raise error

        tree = build_tree(uris)
        if tree.root != batch.root_digest:
            error = RootMismatchError(batch.root_digest, tree.root)
            logger.error("Batch %d-%d of %s: %s", batch.start_id, batch.end_id, owner, error)
            raise error

        return RevealProof(
            batch=batch,
            token_id=token_id,
            uri=uris[token_id],
            proof=tree.proof(token_id),
            threshold=threshold,
            elapsed=now - batch.committed_at,
        )
