"""Tests for account record persistence."""

from batchmint.repositories.account_repo import AccountStore


def test_record_activity_classifies_transitions(account_store: AccountStore, owner: str) -> None:
    first = account_store.record_activity(owner, 1000, 300)
    again = account_store.record_activity(owner, 1300, 300)
    returning = account_store.record_activity(owner, 1601, 300)

    assert first.first_activity and first.triggers_issuance
    assert not again.triggers_issuance
    assert returning.returning and not returning.first_activity
    assert account_store.get(owner).last_active_at == 1601


def test_mark_issued_requires_existing_record(account_store: AccountStore, owner: str) -> None:
    assert not account_store.mark_issued(owner, 1000)

    account_store.record_activity(owner, 1000, 300)
    assert account_store.mark_issued(owner, 1005)
    assert account_store.get(owner).last_issued_at == 1005


def test_delete_inactive_uses_strict_inequality(
    account_store: AccountStore, owner: str, other_owner: str
) -> None:
    account_store.record_activity(owner, 1000, 300)
    account_store.record_activity(other_owner, 1001, 300)

    removed = account_store.delete_inactive(1301, 300)

    assert [a.owner for a in removed] == [owner]
    assert [a.owner for a in account_store.list_all()] == [other_owner]
    assert account_store.delete(other_owner)
    assert not account_store.delete(other_owner)
