"""Token identifier range allocation."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from batchmint.db.session import SessionLocal
from batchmint.models import MintCounter
from batchmint.services.errors import AllocationError

COUNTER_ROW_ID = 1

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdRange:
    """Contiguous identifier range ``[start_id, start_id + count)``."""

    start_id: int
    count: int

    @property
    def end_id(self) -> int:
        """Return the last identifier in the range (inclusive)."""
        return self.start_id + self.count - 1

    @property
    def token_ids(self) -> range:
        """Return every identifier in the range."""
        return range(self.start_id, self.start_id + self.count)


def ensure_counter_row(db: Session) -> MintCounter:
    """Return the counter row, creating it on first use."""
    counter = db.get(MintCounter, COUNTER_ROW_ID)
    if counter is not None:
        return counter
    counter = MintCounter(id=COUNTER_ROW_ID, last_allocated_id=0, roots_committed=0)
    db.add(counter)
    try:
        db.flush()
    except IntegrityError:
        # Another writer created it first; nothing else is pending at this point.
        db.rollback()
        counter = db.get(MintCounter, COUNTER_ROW_ID, populate_existing=True)
    return counter


class IdentifierAllocator:
    """Hands out non-overlapping identifier ranges.

    Each allocation is a single ``UPDATE ... RETURNING`` against the counter
    row, so concurrent callers (including other processes sharing the
    database) are serialized by the store itself.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory or SessionLocal

    def allocate(self, count: int) -> IdRange:
        """Reserve ``count`` fresh identifiers.

        Identifiers reserved by an issuance that later fails are skipped,
        never handed out again.

        Raises:
            ValueError: If ``count`` is smaller than 1.
            AllocationError: If the counter store is unavailable.
        """
        if count < 1:
            raise ValueError(f"Allocation count must be at least 1, got {count}")

        try:
            with self._session_factory() as db:
                ensure_counter_row(db)
                last_id = db.execute(
                    update(MintCounter)
                    .where(MintCounter.id == COUNTER_ROW_ID)
                    .values(last_allocated_id=MintCounter.last_allocated_id + count)
                    .returning(MintCounter.last_allocated_id)
                ).scalar_one()
                db.commit()
        except SQLAlchemyError as exc:
            logger.warning("Identifier allocation of %d failed: %s", count, exc)
            raise AllocationError(f"Identifier counter unavailable: {exc}") from exc

        id_range = IdRange(start_id=int(last_id) - count + 1, count=count)
        logger.debug("Allocated identifiers %d-%d", id_range.start_id, id_range.end_id)
        return id_range

    def peek(self) -> int:
        """Return the last allocated identifier without advancing the counter."""
        try:
            with self._session_factory() as db:
                counter = db.get(MintCounter, COUNTER_ROW_ID)
                return int(counter.last_allocated_id) if counter else 0
        except SQLAlchemyError as exc:
            raise AllocationError(f"Identifier counter unavailable: {exc}") from exc
