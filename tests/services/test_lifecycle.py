"""Tests for reveal validity, threshold lookup and cleanup sweeps."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from batchmint.models import Batch
from batchmint.repositories.batch_repo import BatchStore
from batchmint.services.errors import LedgerError
from batchmint.services.ledger import LedgerClient
from batchmint.services.lifecycle import LifecycleManager, RevealThresholdSource, is_revealable
from batchmint.services.merkle import build_tree


@pytest.fixture()
def lifecycle(batch_store: BatchStore, thresholds: RevealThresholdSource, clock) -> LifecycleManager:
    return LifecycleManager(batch_store, thresholds, clock=clock)


def test_reveal_window_is_half_open() -> None:
    assert is_revealable(1000, 1000, 60)
    assert is_revealable(1000, 1059, 60)
    assert not is_revealable(1000, 1060, 60)
    assert not is_revealable(1000, 1061, 60)


@pytest.mark.asyncio
async def test_configured_threshold_wins_over_ledger() -> None:
    ledger = AsyncMock(spec=LedgerClient)
    ledger.enabled = True
    ledger.reveal_threshold.return_value = 900
    source = RevealThresholdSource(ledger, configured=lambda: 120)

    assert await source.current() == 120
    ledger.reveal_threshold.assert_not_called()


@pytest.mark.asyncio
async def test_ledger_threshold_is_read_fresh_each_time() -> None:
    ledger = AsyncMock(spec=LedgerClient)
    ledger.enabled = True
    ledger.reveal_threshold.side_effect = [900, 450]
    source = RevealThresholdSource(ledger, configured=lambda: None)

    assert await source.current() == 900
    assert await source.current() == 450


@pytest.mark.asyncio
async def test_ledger_failure_falls_back_to_default() -> None:
    ledger = AsyncMock(spec=LedgerClient)
    ledger.enabled = True
    ledger.reveal_threshold.side_effect = LedgerError("rpc down")
    source = RevealThresholdSource(ledger, configured=lambda: None, default=300)

    assert await source.current() == 300


@pytest.mark.asyncio
async def test_disabled_ledger_uses_default() -> None:
    ledger = AsyncMock(spec=LedgerClient)
    ledger.enabled = False
    source = RevealThresholdSource(ledger, configured=lambda: None, default=300)

    assert await source.current() == 300
    ledger.reveal_threshold.assert_not_called()


@pytest.mark.asyncio
async def test_sweep_removes_batches_at_the_threshold(
    lifecycle: LifecycleManager, batch_store: BatchStore, add_batch, clock, owner: str
) -> None:
    add_batch(owner, 1, 5, committed_at=clock.now - 60)
    add_batch(owner, 6, 5, committed_at=clock.now - 59)

    assert await lifecycle.sweep_expired_batches() == 1
    assert [r.start_id for r in batch_store.list_all()] == [6]


@pytest.mark.asyncio
async def test_legacy_batch_without_commit_time_is_removed(
    lifecycle: LifecycleManager, batch_store: BatchStore, session_factory, add_batch, owner: str
) -> None:
    add_batch(owner, 6, 2)
    with session_factory() as db:
        db.add(
            Batch(
                owner=owner,
                start_id=1,
                count=5,
                root_digest=build_tree(range(1, 6)).root,
                committed_at=None,
                root_index=99,
            )
        )
        db.commit()

    assert await lifecycle.sweep_expired_batches() == 1
    assert [r.start_id for r in batch_store.list_all()] == [6]


@pytest.mark.asyncio
async def test_global_cleanup_keeps_metadata_in_step_with_batches(
    lifecycle: LifecycleManager,
    batch_store: BatchStore,
    add_batch,
    clock,
    owner: str,
    other_owner: str,
) -> None:
    add_batch(owner, 1, 5)
    add_batch(other_owner, 6, 5)
    clock.advance(30)
    add_batch(owner, 11, 5)
    clock.advance(40)

    result = await lifecycle.run_global_cleanup()

    assert result.success
    assert (result.batches_removed, result.uris_removed) == (2, 10)
    assert result.reveal_threshold == 60
    assert batch_store.uri_ids() == set(range(11, 16))
    live = {token_id for record in batch_store.list_all() for token_id in record.token_ids}
    assert batch_store.uri_ids() == live


@pytest.mark.asyncio
async def test_owner_cleanup_does_not_touch_other_owners(
    lifecycle: LifecycleManager,
    batch_store: BatchStore,
    add_batch,
    clock,
    owner: str,
    other_owner: str,
) -> None:
    add_batch(owner, 1, 5)
    add_batch(other_owner, 6, 5)
    clock.advance(120)

    result = await lifecycle.run_owner_cleanup(owner)

    assert result.success
    assert result.user == owner
    assert result.batches_removed == 1
    assert [r.owner for r in batch_store.list_all()] == [other_owner]
    # The metadata sweep is global: URIs of the other owner's expired batch go as well.
    assert batch_store.uri_ids() == set()


@pytest.mark.asyncio
async def test_cleanup_reports_store_failure(
    lifecycle: LifecycleManager, batch_store: BatchStore, mocker
) -> None:
    mocker.patch.object(
        batch_store,
        "sweep",
        side_effect=OperationalError("DELETE", {}, Exception("disk I/O error")),
    )

    result = await lifecycle.run_global_cleanup()

    assert not result.success
    assert result.reason == "store_unavailable"
