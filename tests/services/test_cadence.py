"""Tests for per-account activity tracking and issuance cadence."""

import asyncio

import pytest

from batchmint.repositories.account_repo import AccountStore
from batchmint.repositories.batch_repo import BatchStore
from batchmint.services.cadence import CadenceScheduler
from batchmint.services.engine import MintEngine
from batchmint.services.errors import LedgerCommitError


@pytest.fixture()
def cadence(mint_engine: MintEngine) -> CadenceScheduler:
    return mint_engine.cadence


@pytest.mark.asyncio
async def test_first_activity_issues_a_batch(
    cadence: CadenceScheduler, account_store: AccountStore, clock, owner: str
) -> None:
    result = await cadence.on_activity(owner)

    assert result.first_activity
    assert result.issuance is not None and result.issuance.success
    assert result.last_issued_at == clock.now
    assert account_store.get(owner).last_issued_at == clock.now


@pytest.mark.asyncio
async def test_repeated_activity_does_not_issue(
    cadence: CadenceScheduler, fake_ledger, clock, owner: str
) -> None:
    await cadence.on_activity(owner)
    clock.advance(30)
    result = await cadence.on_activity(owner)

    assert not result.first_activity and not result.returning
    assert result.issuance is None
    assert len(fake_ledger.commits) == 1


@pytest.mark.asyncio
async def test_returning_after_inactivity_issues_again(
    cadence: CadenceScheduler, fake_ledger, clock, owner: str
) -> None:
    await cadence.on_activity(owner)
    clock.advance(301)
    result = await cadence.on_activity(owner)

    assert result.returning
    assert result.issuance.success
    assert len(fake_ledger.commits) == 2


@pytest.mark.asyncio
async def test_activity_without_trigger_only_records(
    cadence: CadenceScheduler, account_store: AccountStore, fake_ledger, owner: str
) -> None:
    result = await cadence.on_activity(owner, trigger_issuance=False)

    assert result.first_activity
    assert result.issuance is None
    assert fake_ledger.commits == []
    assert account_store.get(owner).last_issued_at == 0


@pytest.mark.asyncio
async def test_failed_issuance_leaves_last_issued_unchanged(
    cadence: CadenceScheduler, account_store: AccountStore, fake_ledger, owner: str
) -> None:
    fake_ledger.commit_error = LedgerCommitError("reverted")

    result = await cadence.on_activity(owner)

    assert result.issuance is not None and not result.issuance.success
    assert account_store.get(owner).last_issued_at == 0

    fake_ledger.commit_error = None
    [retry] = await cadence.periodic_cadence_check()
    assert retry.success


@pytest.mark.asyncio
async def test_concurrent_triggers_issue_once_per_interval(
    cadence: CadenceScheduler, fake_ledger, owner: str
) -> None:
    await cadence.on_activity(owner, trigger_issuance=False)
    fake_ledger.commit_delay = 0.05

    await asyncio.gather(cadence.periodic_cadence_check(), cadence.periodic_cadence_check())

    assert len(fake_ledger.commits) == 1


@pytest.mark.asyncio
async def test_activity_racing_cadence_check_issues_once(
    cadence: CadenceScheduler, fake_ledger, owner: str
) -> None:
    fake_ledger.commit_delay = 0.05

    await asyncio.gather(cadence.on_activity(owner), cadence.periodic_cadence_check())

    assert len(fake_ledger.commits) == 1


@pytest.mark.asyncio
async def test_cadence_check_issues_only_for_due_accounts(
    cadence: CadenceScheduler, fake_ledger, clock, owner: str, other_owner: str
) -> None:
    await cadence.on_activity(owner)
    clock.advance(200)
    await cadence.on_activity(other_owner)
    clock.advance(100)

    results = await cadence.periodic_cadence_check()

    assert [r.address for r in results] == [owner]
    assert [commit[1] for commit in fake_ledger.commits] == [owner, other_owner, owner]


@pytest.mark.asyncio
async def test_reaper_forgets_idle_accounts_but_keeps_batches(
    cadence: CadenceScheduler,
    account_store: AccountStore,
    batch_store: BatchStore,
    clock,
    owner: str,
    other_owner: str,
) -> None:
    await cadence.on_activity(owner)
    clock.advance(250)
    await cadence.on_activity(other_owner, trigger_issuance=False)
    clock.advance(51)

    assert await cadence.reap_inactive() == 1
    assert [a.owner for a in account_store.list_all()] == [other_owner]
    assert [r.owner for r in batch_store.list_all()] == [owner]


@pytest.mark.asyncio
async def test_remove_account(cadence: CadenceScheduler, account_store: AccountStore, owner: str) -> None:
    await cadence.on_activity(owner, trigger_issuance=False)

    assert await cadence.remove_account(owner.upper().replace("0X", "0x"))
    assert account_store.get(owner) is None
    assert not await cadence.remove_account(owner)


@pytest.mark.asyncio
async def test_issue_now_requires_known_account(cadence: CadenceScheduler, owner: str) -> None:
    result = await cadence.issue_now(owner)

    assert not result.success
    assert result.reason == "unknown_account"


@pytest.mark.asyncio
async def test_explicit_mint_restarts_the_cadence(
    cadence: CadenceScheduler, account_store: AccountStore, fake_ledger, clock, owner: str
) -> None:
    await cadence.on_activity(owner, trigger_issuance=False)
    clock.advance(400)

    minted = await cadence.mint(owner, 2)

    assert minted.success and minted.quantity == 2
    assert account_store.get(owner).last_issued_at == clock.now
    assert await cadence.periodic_cadence_check() == []
    assert len(fake_ledger.commits) == 1


@pytest.mark.asyncio
async def test_explicit_mint_and_cadence_check_do_not_overlap(
    cadence: CadenceScheduler, fake_ledger, clock, owner: str
) -> None:
    await cadence.on_activity(owner, trigger_issuance=False)
    clock.advance(400)
    fake_ledger.commit_delay = 0.05

    minted, due = await asyncio.gather(cadence.mint(owner, 2), cadence.periodic_cadence_check())

    assert minted.success
    assert due == []
    assert len(fake_ledger.commits) == 1


@pytest.mark.asyncio
async def test_explicit_mint_for_untracked_address_is_not_recorded(
    cadence: CadenceScheduler, account_store: AccountStore, owner: str
) -> None:
    minted = await cadence.mint(owner, 1)

    assert minted.success
    assert account_store.get(owner) is None


@pytest.mark.asyncio
async def test_deferred_activity_issues_in_background(
    cadence: CadenceScheduler, account_store: AccountStore, fake_ledger, clock, owner: str
) -> None:
    result = await cadence.on_activity(owner, wait=False)

    assert result.first_activity
    assert result.issuance is None

    await cadence.drain()

    assert len(fake_ledger.commits) == 1
    assert account_store.get(owner).last_issued_at == clock.now
