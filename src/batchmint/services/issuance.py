"""Allocate, commit and record one batch for an owner."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from sqlalchemy.exc import SQLAlchemyError

from batchmint.core.settings import settings
from batchmint.db.time import to_iso, unix_now
from batchmint.repositories.batch_repo import BatchStore
from batchmint.schemas.batch import IssuanceResult
from batchmint.services.allocator import IdentifierAllocator
from batchmint.services.errors import LedgerCommitError, LedgerCommitTimeout, MintError
from batchmint.services.ledger import LedgerClient
from batchmint.services.lifecycle import RevealThresholdSource
from batchmint.services.merkle import build_tree
from batchmint.services.uri_policy import WeightedURIPolicy

logger = logging.getLogger(__name__)


class IssuanceService:
    """Runs the commit half of the protocol for one owner at a time.

    No batch or metadata is written unless the ledger confirms the root.
    Identifiers allocated for a failed attempt are skipped for good.
    """

    def __init__(
        self,
        allocator: IdentifierAllocator,
        store: BatchStore,
        ledger: LedgerClient,
        uri_policy: WeightedURIPolicy,
        thresholds: RevealThresholdSource,
        clock: Callable[[], int] = unix_now,
        commit_timeout: float | None = None,
    ) -> None:
        self.allocator = allocator
        self.store = store
        self.ledger = ledger
        self.uri_policy = uri_policy
        self.thresholds = thresholds
        self._clock = clock
        self._commit_timeout = (
            float(settings.ledger_timeout_seconds) if commit_timeout is None else commit_timeout
        )

    async def issue(self, owner: str, quantity: int | None = None) -> IssuanceResult:
        """Mint a batch of ``quantity`` identifiers (capped at ``NFTS_PER_USER``)."""
        address = owner.lower()
        limit = settings.nfts_per_user
        if quantity is None:
            quantity = limit
        if quantity < 1:
            return IssuanceResult(
                success=False,
                reason="invalid_quantity",
                error="Invalid quantity. Must be at least 1.",
                address=address,
            )
        if quantity > limit:
            logger.info("Limiting mint quantity from %d to %d", quantity, limit)
            quantity = limit

        try:
            id_range = self.allocator.allocate(quantity)
            uris = {token_id: self.uri_policy.pick_uri() for token_id in id_range.token_ids}
            tree = build_tree(id_range.token_ids)
            commit = asyncio.ensure_future(self.ledger.commit(tree.root, address, quantity))
            try:
                receipt = await asyncio.wait_for(
                    asyncio.shield(commit), timeout=self._commit_timeout
                )
            except TimeoutError as exc:
                self._watch_late_commit(commit, tree.root, address)
                raise LedgerCommitError(
                    f"Root commit did not confirm within {self._commit_timeout}s"
                ) from exc
            except LedgerCommitTimeout as exc:
                self._watch_late_commit(exc.pending, tree.root, address)
                raise
        except MintError as exc:
            logger.warning("Issuance for %s failed: %s", address, exc)
            return IssuanceResult(
                success=False, reason=exc.reason, error=str(exc), address=address
            )
        except ValueError as exc:
            logger.warning("Issuance for %s failed: %s", address, exc)
            return IssuanceResult(
                success=False, reason="metadata_unavailable", error=str(exc), address=address
            )

        committed_at = self._clock()
        try:
            root_index = self.store.record_root(
                owner=address,
                root_digest=tree.root,
                committed_at=committed_at,
                tx_hash=receipt.tx_hash,
            )
        except SQLAlchemyError as exc:
            logger.error(
                "Root %s for %s confirmed in %s but could not be recorded; "
                "the stored root history no longer matches the ledger",
                tree.hex_root,
                address,
                receipt.tx_hash,
                exc_info=True,
            )
            return IssuanceResult(
                success=False, reason="store_unavailable", error=str(exc), address=address
            )

        try:
            record = self.store.append(
                owner=address,
                start_id=id_range.start_id,
                count=id_range.count,
                root_digest=tree.root,
                committed_at=committed_at,
                uris=uris,
                tx_hash=receipt.tx_hash,
                root_index=root_index,
            )
        except SQLAlchemyError as exc:
            logger.error(
                "Root %d (%s) for %s confirmed in %s but its batch could not be recorded",
                root_index,
                tree.hex_root,
                address,
                receipt.tx_hash,
                exc_info=True,
            )
            return IssuanceResult(
                success=False, reason="store_unavailable", error=str(exc), address=address
            )

        threshold = await self.thresholds.current()
        logger.info(
            "Minted tokens %d-%d for %s (root %s)",
            record.start_id,
            record.end_id,
            address,
            record.hex_root,
        )
        return IssuanceResult(
            success=True,
            address=address,
            start_token_id=record.start_id,
            end_token_id=record.end_id,
            quantity=record.count,
            merkle_root=record.hex_root,
            root_index=record.root_index,
            transaction_hash=receipt.tx_hash,
            reveal_expires_at=to_iso(committed_at + threshold),
            reveal_threshold_seconds=threshold,
        )

    def _watch_late_commit(self, pending: asyncio.Future, root: bytes, owner: str) -> None:
        """Record the root's position if a commit we stopped waiting for confirms later."""

        def settle(done: asyncio.Future) -> None:
            if done.cancelled():
                return
            exc = done.exception()
            if isinstance(exc, LedgerCommitTimeout):
                self._watch_late_commit(exc.pending, root, owner)
                return
            if exc is not None:
                logger.info("Timed-out root commit for %s did not land: %s", owner, exc)
                return

            receipt = done.result()
            try:
                root_index = self.store.record_root(
                    owner=owner,
                    root_digest=root,
                    committed_at=self._clock(),
                    tx_hash=receipt.tx_hash,
                )
            except SQLAlchemyError:
                logger.error(
                    "Late root 0x%s for %s confirmed in %s but could not be recorded",
                    root.hex(),
                    owner,
                    receipt.tx_hash,
                    exc_info=True,
                )
                return
            logger.warning(
                "Root 0x%s for %s confirmed after the issuance gave up; "
                "recorded as root %d without a batch",
                root.hex(),
                owner,
                root_index,
            )

        pending.add_done_callback(settle)
