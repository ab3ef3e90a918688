"""Outward interface of the commit-reveal engine.

``MintEngine`` wires the allocator, stores, proof service, lifecycle manager
and cadence scheduler together and converts their exceptions into result
models, so callers (HTTP routes, the background worker) never see a raw
exception for an expected failure.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from batchmint.core.settings import settings
from batchmint.db.time import to_iso, unix_now
from batchmint.repositories.account_repo import AccountStore
from batchmint.repositories.batch_repo import BatchRecord, BatchStore
from batchmint.schemas import (
    AccountListResult,
    AccountOut,
    ActivityResult,
    BatchOut,
    CleanupResult,
    IssuanceResult,
    ReapResult,
    RemoveAccountResult,
    RevealResult,
    UserBatchesResult,
)
from batchmint.services.allocator import IdentifierAllocator
from batchmint.services.cadence import CadenceScheduler
from batchmint.services.errors import ConsistencyError, LedgerError
from batchmint.services.issuance import IssuanceService
from batchmint.services.ledger import LedgerClient, get_ledger_client
from batchmint.services.lifecycle import LifecycleManager, RevealThresholdSource, is_revealable
from batchmint.services.merkle import hex_proof
from batchmint.services.proofs import ProofService, RevealRejected
from batchmint.services.uri_policy import WeightedURIPolicy, get_uri_policy

logger = logging.getLogger(__name__)

STORE_UNAVAILABLE = "store_unavailable"


class MintEngine:
    """Facade over every engine operation."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        ledger: LedgerClient | None = None,
        uri_policy: WeightedURIPolicy | None = None,
        clock: Callable[[], int] = unix_now,
    ) -> None:
        self.ledger = ledger if ledger is not None else get_ledger_client()
        self._clock = clock
        self.batches = BatchStore(session_factory)
        self.accounts = AccountStore(session_factory)
        self.allocator = IdentifierAllocator(session_factory)
        self.thresholds = RevealThresholdSource(self.ledger)
        self.issuance = IssuanceService(
            self.allocator,
            self.batches,
            self.ledger,
            uri_policy if uri_policy is not None else get_uri_policy(),
            self.thresholds,
            clock=clock,
        )
        self.proofs = ProofService(self.batches, self.thresholds, clock=clock)
        self.lifecycle = LifecycleManager(self.batches, self.thresholds, clock=clock)
        self.cadence = CadenceScheduler(self.accounts, self.issuance, clock=clock)

    async def trigger_activity(
        self, owner: str, trigger_issuance: bool = True, wait: bool = True
    ) -> ActivityResult:
        """Record an activity signal, issuing on first or returning activity.

        ``wait=False`` records the activity but leaves any triggered issuance
        running in the background.
        """
        try:
            return await self.cadence.on_activity(
                owner, trigger_issuance=trigger_issuance, wait=wait
            )
        except SQLAlchemyError as exc:
            logger.warning("Recording activity for %s failed: %s", owner, exc)
            return ActivityResult(
                success=False, reason=STORE_UNAVAILABLE, error=str(exc), address=owner.lower()
            )

    async def request_reveal(self, owner: str, token_id: int, submit: bool = True) -> RevealResult:
        """Build the inclusion proof for ``token_id`` and optionally submit it."""
        address = owner.lower()
        try:
            outcome = await self.proofs.reveal(address, token_id)
        except ConsistencyError as exc:
            logger.error("Cannot reveal token %d for %s", token_id, address, exc_info=True)
            return RevealResult(
                success=False,
                reason=exc.reason,
                error=str(exc),
                address=address,
                token_id=token_id,
            )
        except SQLAlchemyError as exc:
            logger.warning("Reveal of token %d for %s failed: %s", token_id, address, exc)
            return RevealResult(
                success=False,
                reason=STORE_UNAVAILABLE,
                error=str(exc),
                address=address,
                token_id=token_id,
            )

        if isinstance(outcome, RevealRejected):
            return RevealResult(
                success=False,
                reason=outcome.reason,
                error=outcome.message,
                address=address,
                token_id=token_id,
                time_elapsed=outcome.elapsed,
                reveal_threshold=outcome.threshold,
            )

        batch = outcome.batch
        result = RevealResult(
            success=True,
            address=address,
            token_id=token_id,
            uri=outcome.uri,
            proof=hex_proof(outcome.proof),
            root_index=outcome.root_index,
            merkle_root=batch.hex_root,
            batch_expires_at=to_iso(batch.committed_at + outcome.threshold),
            time_remaining_seconds=outcome.time_remaining,
            time_elapsed=outcome.elapsed,
            reveal_threshold=outcome.threshold,
        )
        if not submit or not self.ledger.enabled:
            return result

        try:
            receipt = await self.ledger.reveal(
                token_id, outcome.root_index, outcome.proof, outcome.uri
            )
        except LedgerError as exc:
            logger.warning("Reveal submission for token %d failed: %s", token_id, exc)
            return result.model_copy(
                update={"success": False, "reason": exc.reason, "error": str(exc)}
            )
        return result.model_copy(update={"transaction_hash": receipt.tx_hash})

    def _batch_out(self, record: BatchRecord, now: int, threshold: int) -> BatchOut:
        committed_at = record.committed_at
        return BatchOut(
            owner=record.owner,
            start_token_id=record.start_id,
            end_token_id=record.end_id,
            quantity=record.count,
            merkle_root=record.hex_root,
            root_index=record.root_index,
            committed_at=committed_at,
            revealable=committed_at is not None
            and is_revealable(committed_at, now, threshold),
            expires_at=None if committed_at is None else to_iso(committed_at + threshold),
        )

    async def list_batches(self, owner: str) -> UserBatchesResult:
        """Return ``owner``'s live batches and which identifiers are revealable."""
        address = owner.lower()
        threshold = await self.thresholds.current()
        try:
            records = self.batches.list_by_owner(address)
        except SQLAlchemyError as exc:
            logger.warning("Listing batches for %s failed: %s", address, exc)
            return UserBatchesResult(
                success=False, reason=STORE_UNAVAILABLE, error=str(exc), address=address
            )

        now = self._clock()
        batches = [self._batch_out(record, now, threshold) for record in records]
        token_ids: list[int] = []
        revealable: list[int] = []
        for record, view in zip(records, batches):
            token_ids.extend(record.token_ids)
            if view.revealable:
                revealable.extend(record.token_ids)
        return UserBatchesResult(
            success=True,
            address=address,
            token_ids=token_ids,
            revealable_token_ids=revealable,
            batches=batches,
            reveal_threshold_seconds=threshold,
        )

    async def run_global_cleanup(self) -> CleanupResult:
        """Remove every expired batch and all orphaned metadata."""
        return await self.lifecycle.run_global_cleanup()

    async def run_owner_cleanup(self, owner: str) -> CleanupResult:
        """Remove ``owner``'s expired batches and all orphaned metadata."""
        return await self.lifecycle.run_owner_cleanup(owner.lower())

    async def remove_account(self, owner: str) -> RemoveAccountResult:
        """Clean up ``owner``'s expired batches, then forget the account."""
        address = owner.lower()
        cleanup = await self.lifecycle.run_owner_cleanup(address)
        try:
            removed = await self.cadence.remove_account(address)
        except SQLAlchemyError as exc:
            logger.warning("Removing account %s failed: %s", address, exc)
            return RemoveAccountResult(
                success=False,
                reason=STORE_UNAVAILABLE,
                error=str(exc),
                address=address,
                cleanup=cleanup,
            )
        if removed:
            logger.info("Removed account %s", address)
        return RemoveAccountResult(success=True, address=address, removed=removed, cleanup=cleanup)

    async def mint(self, owner: str, quantity: int) -> IssuanceResult:
        """Issue one batch of ``quantity`` identifiers; a known account's cadence restarts."""
        try:
            return await self.cadence.mint(owner, quantity)
        except SQLAlchemyError as exc:
            logger.warning("Minting for %s failed: %s", owner, exc)
            return IssuanceResult(
                success=False, reason=STORE_UNAVAILABLE, error=str(exc), address=owner.lower()
            )

    async def mint_for_user(self, owner: str) -> IssuanceResult:
        """Issue the standard batch for a known account and restart its cadence."""
        try:
            return await self.cadence.issue_now(owner)
        except SQLAlchemyError as exc:
            logger.warning("Minting for %s failed: %s", owner, exc)
            return IssuanceResult(
                success=False, reason=STORE_UNAVAILABLE, error=str(exc), address=owner.lower()
            )

    async def list_accounts(self) -> AccountListResult:
        """Report every known account and whether it is still active."""
        inactivity = self.cadence.inactivity
        try:
            accounts = self.accounts.list_all()
        except SQLAlchemyError as exc:
            logger.warning("Listing accounts failed: %s", exc)
            return AccountListResult(
                success=False,
                reason=STORE_UNAVAILABLE,
                error=str(exc),
                inactivity_threshold_seconds=inactivity,
            )

        now = self._clock()
        users = [
            AccountOut(
                address=account.owner,
                last_active=to_iso(account.last_active_at),
                last_mint_time=to_iso(account.last_issued_at) if account.last_issued_at else None,
                is_active=now - account.last_active_at < inactivity,
                inactive_in_seconds=max(0, now - account.last_active_at),
            )
            for account in accounts
        ]
        return AccountListResult(
            success=True,
            users=users,
            count=len(users),
            inactivity_threshold_seconds=inactivity,
        )

    async def reap_inactive(self) -> ReapResult:
        """Forget accounts idle for longer than the inactivity window."""
        inactivity = self.cadence.inactivity
        try:
            removed = await self.cadence.reap_inactive()
            remaining = len(self.accounts.list_all())
        except SQLAlchemyError as exc:
            logger.warning("Inactivity reaper failed: %s", exc)
            return ReapResult(
                success=False,
                reason=STORE_UNAVAILABLE,
                error=str(exc),
                inactivity_threshold_seconds=inactivity,
            )
        return ReapResult(
            success=True,
            removed_count=removed,
            remaining_count=remaining,
            inactivity_threshold_seconds=inactivity,
        )

    async def public_config(self) -> dict[str, Any]:
        """Return the settings clients need to schedule their own reveals."""
        return {
            "success": True,
            "reveal_threshold_seconds": await self.thresholds.current(),
            "nfts_per_user": settings.nfts_per_user,
            "mint_interval_seconds": self.cadence.mint_interval,
            "user_inactivity_seconds": self.cadence.inactivity,
            "ledger_enabled": self.ledger.enabled,
        }


class _MintEngineSingleton:
    """Singleton wrapper for MintEngine."""

    _instance: MintEngine | None = None

    @classmethod
    def get_instance(cls) -> MintEngine:
        """Get or create the singleton engine instance."""
        if cls._instance is None:
            cls._instance = MintEngine()
        return cls._instance


def get_engine() -> MintEngine:
    """Return the process-wide engine."""
    return _MintEngineSingleton.get_instance()
