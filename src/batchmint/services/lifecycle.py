"""Batch validity and expiration cleanup."""

from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy.exc import SQLAlchemyError

from batchmint.core.settings import settings
from batchmint.db.time import to_iso, unix_now
from batchmint.repositories.batch_repo import BatchRecord, BatchStore
from batchmint.schemas.cleanup import CleanupResult
from batchmint.services.errors import LedgerError
from batchmint.services.ledger import LedgerClient

logger = logging.getLogger(__name__)

# Legacy rows without a commit time are dated this far past the threshold.
LEGACY_BATCH_AGE_PADDING = 60


def is_revealable(committed_at: int, now: int, threshold: int) -> bool:
    """Return True while ``now`` lies inside the reveal window of a batch.

    The window is half-open: a batch is expired once exactly ``threshold``
    seconds have elapsed.
    """
    return now - committed_at < threshold


class RevealThresholdSource:
    """Supplies the current reveal threshold, read fresh on every call.

    The configured ``REVEAL_THRESHOLD_SECONDS`` wins; otherwise the ledger's
    value is used, falling back to the default when the ledger is unreachable.
    """

    def __init__(
        self,
        ledger: LedgerClient | None = None,
        configured: Callable[[], int | None] | None = None,
        default: int | None = None,
    ) -> None:
        self._ledger = ledger
        self._configured = configured or (lambda: settings.reveal_threshold_seconds)
        self._default = default

    @property
    def default(self) -> int:
        """Return the fallback threshold."""
        if self._default is not None:
            return self._default
        return settings.default_reveal_threshold_seconds

    async def current(self) -> int:
        """Return the reveal threshold in seconds."""
        configured = self._configured()
        if configured is not None:
            return int(configured)
        if self._ledger is None or not self._ledger.enabled:
            return self.default
        try:
            return int(await self._ledger.reveal_threshold())
        except LedgerError as exc:
            logger.warning("Falling back to default reveal threshold: %s", exc)
            return self.default


class LifecycleManager:
    """Removes expired batches and the metadata they no longer need."""

    def __init__(
        self,
        store: BatchStore,
        thresholds: RevealThresholdSource,
        clock: Callable[[], int] = unix_now,
    ) -> None:
        self.store = store
        self.thresholds = thresholds
        self._clock = clock

    def _keep(self, now: int, threshold: int) -> Callable[[BatchRecord], bool]:
        def keep(record: BatchRecord) -> bool:
            committed_at = record.committed_at
            if committed_at is None:
                committed_at = now - (threshold + LEGACY_BATCH_AGE_PADDING)
                logger.info(
                    "Dated legacy batch %d-%d of %s as expired",
                    record.start_id,
                    record.end_id,
                    record.owner,
                )
            return is_revealable(committed_at, now, threshold)

        return keep

    async def sweep_expired_batches(self) -> int:
        """Drop every batch outside the reveal window; return the number removed."""
        threshold = await self.thresholds.current()
        removed = self.store.sweep(self._keep(self._clock(), threshold))
        if removed:
            logger.info("Cleaned up %d expired batches", len(removed))
        return len(removed)

    async def sweep_orphaned_metadata(self) -> int:
        """Drop metadata not covered by a revealable batch; return the number removed."""
        threshold = await self.thresholds.current()
        removed = self.store.sweep_uris(self._keep(self._clock(), threshold))
        if removed:
            logger.info("Cleaned up %d expired token URIs", removed)
        return removed

    async def sweep_owner_batches(self, owner: str) -> int:
        """Drop ``owner``'s expired batches only; return the number removed."""
        threshold = await self.thresholds.current()
        removed = self.store.sweep(self._keep(self._clock(), threshold), owner=owner)
        if removed:
            logger.info("Cleaned up %d expired batches for %s", len(removed), owner)
        return len(removed)

    async def run_global_cleanup(self) -> CleanupResult:
        """Sweep batches, then metadata, in one pass."""
        try:
            batches_removed = await self.sweep_expired_batches()
            uris_removed = await self.sweep_orphaned_metadata()
            threshold = await self.thresholds.current()
        except SQLAlchemyError as exc:
            logger.warning("Global cleanup failed: %s", exc)
            return CleanupResult(
                success=False,
                reason="store_unavailable",
                error=str(exc),
                timestamp=to_iso(self._clock()),
            )
        return CleanupResult(
            success=True,
            batches_removed=batches_removed,
            uris_removed=uris_removed,
            reveal_threshold=threshold,
            timestamp=to_iso(self._clock()),
        )

    async def run_owner_cleanup(self, owner: str) -> CleanupResult:
        """Sweep one owner's batches, then all orphaned metadata."""
        try:
            batches_removed = await self.sweep_owner_batches(owner)
            uris_removed = await self.sweep_orphaned_metadata()
            threshold = await self.thresholds.current()
        except SQLAlchemyError as exc:
            logger.warning("Cleanup for %s failed: %s", owner, exc)
            return CleanupResult(
                success=False,
                reason="store_unavailable",
                error=str(exc),
                user=owner,
                timestamp=to_iso(self._clock()),
            )
        return CleanupResult(
            success=True,
            batches_removed=batches_removed,
            uris_removed=uris_removed,
            user=owner,
            reveal_threshold=threshold,
            timestamp=to_iso(self._clock()),
        )
