"""Per-account activity tracking and issuance cadence."""
from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable

from batchmint.core.settings import settings
from batchmint.db.time import unix_now
from batchmint.repositories.account_repo import AccountSnapshot, AccountStore
from batchmint.schemas.account import ActivityResult
from batchmint.schemas.batch import IssuanceResult
from batchmint.services.issuance import IssuanceService

logger = logging.getLogger(__name__)

DueCheck = Callable[[AccountSnapshot, int], bool]


class CadenceScheduler:
    """Decides when each active account receives a new batch.

    Issuance for one account is serialized by a per-account lock and the due
    condition is checked again once the lock is held, so triggers that queue
    behind a running issuance do not mint a second batch for the same
    interval. Different accounts never wait on each other.
    """

    def __init__(
        self,
        accounts: AccountStore,
        issuance: IssuanceService,
        clock: Callable[[], int] = unix_now,
        mint_interval: int | None = None,
        inactivity: int | None = None,
    ) -> None:
        self.accounts = accounts
        self.issuance = issuance
        self._clock = clock
        self._mint_interval = mint_interval
        self._inactivity = inactivity
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._deferred: set[asyncio.Task[IssuanceResult | None]] = set()

    @property
    def mint_interval(self) -> int:
        if self._mint_interval is not None:
            return self._mint_interval
        return settings.mint_interval_seconds

    @property
    def inactivity(self) -> int:
        if self._inactivity is not None:
            return self._inactivity
        return settings.user_inactivity_seconds

    def is_due(self, account: AccountSnapshot, now: int) -> bool:
        """Return True once a full mint interval has passed since the last batch."""
        return now - account.last_issued_at >= self.mint_interval

    async def _issue_if(self, owner: str, due: DueCheck) -> IssuanceResult | None:
        async with self._locks[owner]:
            account = self.accounts.get(owner)
            if account is None or not due(account, self._clock()):
                return None
            result = await self.issuance.issue(owner)
            if result.success:
                self.accounts.mark_issued(owner, self._clock())
            return result

    async def on_activity(
        self, owner: str, trigger_issuance: bool = True, wait: bool = True
    ) -> ActivityResult:
        """Record activity for ``owner`` and issue on first or returning activity.

        With ``wait=False`` the triggered issuance runs as a tracked background
        task and the result carries no issuance outcome.
        """
        address = owner.lower()
        now = self._clock()
        update = self.accounts.record_activity(address, now, self.inactivity)

        issuance = None
        if trigger_issuance and update.triggers_issuance:
            logger.info(
                "Triggering mint for %s (new: %s, returning after inactivity: %s)",
                address,
                update.first_activity,
                update.returning,
            )
            # Skip if another trigger already issued after this activity was recorded.
            pending = self._issue_if(address, lambda account, _: account.last_issued_at < now)
            if wait:
                issuance = await pending
            else:
                self._defer(address, pending)

        account = self.accounts.get(address) or update.account
        return ActivityResult(
            success=True,
            address=address,
            first_activity=update.first_activity,
            returning=update.returning,
            last_active_at=account.last_active_at,
            last_issued_at=account.last_issued_at,
            issuance=issuance,
        )

    async def issue_now(self, owner: str) -> IssuanceResult:
        """Issue for a known account regardless of cadence."""
        address = owner.lower()
        result = await self._issue_if(address, lambda account, now: True)
        if result is None:
            return IssuanceResult(
                success=False,
                reason="unknown_account",
                error="User is not logged in",
                address=address,
            )
        return result

    async def mint(self, owner: str, quantity: int) -> IssuanceResult:
        """Issue an explicit batch under the account's lock.

        A known account's cadence restarts from this batch; an address with no
        account record is minted for without being tracked.
        """
        address = owner.lower()
        async with self._locks[address]:
            result = await self.issuance.issue(address, quantity)
            if result.success and self.accounts.get(address) is not None:
                self.accounts.mark_issued(address, self._clock())
            return result

    def _defer(self, owner: str, pending: Awaitable[IssuanceResult | None]) -> None:
        task = asyncio.ensure_future(pending)
        self._deferred.add(task)

        def settle(done: asyncio.Task[IssuanceResult | None]) -> None:
            self._deferred.discard(done)
            if not done.cancelled() and done.exception() is not None:
                logger.error(
                    "Background issuance for %s failed",
                    owner,
                    exc_info=done.exception(),
                )

        task.add_done_callback(settle)

    async def drain(self) -> None:
        """Wait for every background issuance started by ``on_activity``."""
        while self._deferred:
            await asyncio.gather(*self._deferred, return_exceptions=True)

    async def periodic_cadence_check(self) -> list[IssuanceResult]:
        """Issue for every account whose mint interval has elapsed."""
        owners = [account.owner for account in self.accounts.list_all()]
        if not owners:
            return []

        outcomes = await asyncio.gather(
            *(self._issue_if(owner, self.is_due) for owner in owners),
            return_exceptions=True,
        )
        results: list[IssuanceResult] = []
        for owner, outcome in zip(owners, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Error checking minting for %s: %s", owner, outcome)
            elif outcome is not None:
                results.append(outcome)
        if results:
            logger.info(
                "Cadence check issued %d of %d batches",
                sum(1 for result in results if result.success),
                len(results),
            )
        return results

    def _forget_lock(self, owner: str) -> None:
        lock = self._locks.get(owner)
        if lock is not None and not lock.locked():
            del self._locks[owner]

    async def reap_inactive(self) -> int:
        """Delete accounts idle longer than the inactivity window; batches are kept."""
        removed = self.accounts.delete_inactive(self._clock(), self.inactivity)
        for account in removed:
            logger.info(
                "User %s considered offline (last active: %d, threshold: %ds)",
                account.owner,
                account.last_active_at,
                self.inactivity,
            )
            self._forget_lock(account.owner)
        return len(removed)

    async def remove_account(self, owner: str) -> bool:
        """Forget ``owner``; return True if a record existed."""
        address = owner.lower()
        removed = self.accounts.delete(address)
        self._forget_lock(address)
        return removed
