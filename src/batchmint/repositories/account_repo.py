"""Data access for per-account scheduling records."""
from __future__ import annotations

import threading
from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from batchmint.db.session import SessionLocal
from batchmint.models import AccountRecord

__all__ = ["AccountSnapshot", "AccountStore", "ActivityUpdate"]


@dataclass(frozen=True)
class AccountSnapshot:
    """Read-only copy of an account record."""

    owner: str
    last_active_at: int
    last_issued_at: int

    @classmethod
    def from_row(cls, row: AccountRecord) -> AccountSnapshot:
        """Snapshot an ORM row."""
        return cls(
            owner=row.owner,
            last_active_at=int(row.last_active_at),
            last_issued_at=int(row.last_issued_at or 0),
        )


@dataclass(frozen=True)
class ActivityUpdate:
    """Outcome of recording one activity signal."""

    account: AccountSnapshot
    first_activity: bool
    returning: bool

    @property
    def triggers_issuance(self) -> bool:
        """Return True when the signal is a transition into activity."""
        return self.first_activity or self.returning


class AccountStore:
    """Thin wrapper around database access for account records."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        """Initialize the store with an optional session factory."""
        self._session_factory = session_factory or SessionLocal
        self._lock = threading.Lock()

    def get(self, owner: str) -> AccountSnapshot | None:
        """Return the record for ``owner`` if one exists."""
        with self._session_factory() as db:
            row = db.get(AccountRecord, owner)
            return AccountSnapshot.from_row(row) if row else None

    def list_all(self) -> list[AccountSnapshot]:
        """Return every known account ordered by address."""
        with self._session_factory() as db:
            rows = db.scalars(select(AccountRecord).order_by(AccountRecord.owner))
            return [AccountSnapshot.from_row(row) for row in rows]

    def record_activity(self, owner: str, now: int, inactivity_seconds: int) -> ActivityUpdate:
        """Create or refresh ``owner``'s record and classify the transition."""
        with self._lock, self._session_factory() as db:
            row = db.get(AccountRecord, owner)
            first_activity = row is None
            returning = False
            if row is None:
                row = AccountRecord(owner=owner, last_active_at=now, last_issued_at=0)
                db.add(row)
            else:
                returning = now - int(row.last_active_at) > inactivity_seconds
                row.last_active_at = now
            db.commit()
            return ActivityUpdate(
                account=AccountSnapshot.from_row(row),
                first_activity=first_activity,
                returning=returning,
            )

    def mark_issued(self, owner: str, issued_at: int) -> bool:
        """Set ``last_issued_at``; return False if the record no longer exists."""
        with self._lock, self._session_factory() as db:
            row = db.get(AccountRecord, owner)
            if row is None:
                return False
            row.last_issued_at = issued_at
            db.commit()
            return True

    def delete(self, owner: str) -> bool:
        """Delete ``owner``'s record; return True if one existed."""
        with self._lock, self._session_factory() as db:
            result = db.execute(delete(AccountRecord).where(AccountRecord.owner == owner))
            db.commit()
            return bool(result.rowcount)

    def delete_inactive(self, now: int, inactivity_seconds: int) -> list[AccountSnapshot]:
        """Delete and return every record idle for longer than ``inactivity_seconds``."""
        with self._lock, self._session_factory() as db:
            rows = db.scalars(
                select(AccountRecord).where(
                    AccountRecord.last_active_at < now - inactivity_seconds
                )
            ).all()
            removed = [AccountSnapshot.from_row(row) for row in rows]
            for row in rows:
                db.delete(row)
            db.commit()
            return removed
