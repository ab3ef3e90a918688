"""Data access for committed batches and their metadata entries."""
from __future__ import annotations

import threading
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from batchmint.db.session import SessionLocal
from batchmint.models import Batch, CommittedRoot, TokenURI
from batchmint.services.allocator import ensure_counter_row

__all__ = ["BatchRecord", "BatchStore"]

# Keep IN (...) parameter lists well below SQLite's variable limit.
_DELETE_CHUNK = 500


@dataclass(frozen=True)
class BatchRecord:
    """Read-only snapshot of a stored batch."""

    id: int
    owner: str
    start_id: int
    count: int
    root_digest: bytes
    committed_at: int | None
    root_index: int
    tx_hash: str | None = None

    @classmethod
    def from_row(cls, row: Batch) -> BatchRecord:
        """Snapshot an ORM row."""
        return cls(
            id=row.id,
            owner=row.owner,
            start_id=int(row.start_id),
            count=int(row.count),
            root_digest=bytes(row.root_digest),
            committed_at=None if row.committed_at is None else int(row.committed_at),
            root_index=int(row.root_index),
            tx_hash=row.tx_hash,
        )

    @property
    def end_id(self) -> int:
        """Return the last identifier covered by this batch (inclusive)."""
        return self.start_id + self.count - 1

    @property
    def token_ids(self) -> range:
        """Return every identifier covered by this batch."""
        return range(self.start_id, self.start_id + self.count)

    @property
    def hex_root(self) -> str:
        """Return the committed root as a 0x-prefixed hex string."""
        return "0x" + self.root_digest.hex()

    def covers(self, token_id: int) -> bool:
        """Return True if ``token_id`` falls inside this batch's range."""
        return self.start_id <= token_id < self.start_id + self.count


class BatchStore:
    """Authoritative record of committed batches and the metadata map.

    Every mutation runs under one process-wide writer lock inside a single
    transaction, so an append can never land between a sweep's read and its
    write. Reads return :class:`BatchRecord` snapshots and never observe a
    partially written batch.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        """Initialize the store with an optional session factory."""
        self._session_factory = session_factory or SessionLocal
        self._write_lock = threading.RLock()

    @contextmanager
    def writer(self) -> Iterator[Session]:
        """Yield a session that holds the writer lock and commits as a unit."""
        with self._write_lock, self._session_factory() as db:
            try:
                yield db
                db.commit()
            except Exception:
                db.rollback()
                raise

    @contextmanager
    def reader(self) -> Iterator[Session]:
        """Yield a session for a consistent multi-step read."""
        with self._session_factory() as db:
            yield db

    def record_root(
        self,
        *,
        owner: str,
        root_digest: bytes,
        committed_at: int,
        tx_hash: str | None = None,
    ) -> int:
        """Record a root the ledger just confirmed and return its position.

        Runs in its own transaction so the position is kept even when the
        matching batch is never stored.
        """
        with self.writer() as db:
            return self._record_root(db, owner, root_digest, committed_at, tx_hash)

    def append(
        self,
        *,
        owner: str,
        start_id: int,
        count: int,
        root_digest: bytes,
        committed_at: int,
        uris: Mapping[int, str],
        tx_hash: str | None = None,
        root_index: int | None = None,
    ) -> BatchRecord:
        """Record a confirmed batch together with its metadata entries.

        Args:
            owner: Normalized account address.
            start_id: First identifier of the range.
            count: Number of identifiers in the range.
            root_digest: Root committed to the ledger.
            committed_at: Unix seconds at which the ledger confirmed the root.
            uris: Metadata URI for every identifier of the range.
            tx_hash: Ledger transaction hash, if known.
            root_index: Position returned by :meth:`record_root`. When omitted
                the root is recorded in the same transaction as the batch.

        Raises:
            ValueError: If ``uris`` does not cover exactly the batch's range.
        """
        if set(uris) != set(range(start_id, start_id + count)):
            raise ValueError("Metadata URIs must cover exactly the batch's identifier range")

        with self.writer() as db:
            if root_index is None:
                root_index = self._record_root(db, owner, root_digest, committed_at, tx_hash)

            row = Batch(
                owner=owner,
                start_id=start_id,
                count=count,
                root_digest=root_digest,
                committed_at=committed_at,
                root_index=root_index,
                tx_hash=tx_hash,
            )
            db.add(row)
            db.add_all(TokenURI(token_id=token_id, uri=uri) for token_id, uri in uris.items())
            db.flush()
            return BatchRecord.from_row(row)

    def list_by_owner(self, owner: str, db: Session | None = None) -> list[BatchRecord]:
        """Return one owner's batches ordered by first identifier."""
        stmt = select(Batch).where(Batch.owner == owner).order_by(Batch.start_id)
        return self._select(stmt, db)

    def list_all(self, db: Session | None = None) -> list[BatchRecord]:
        """Return every batch ordered by first identifier."""
        return self._select(select(Batch).order_by(Batch.start_id), db)

    def find_owning(
        self, owner: str, token_id: int, db: Session | None = None
    ) -> BatchRecord | None:
        """Return the owner's batch whose range contains ``token_id``."""
        stmt = (
            select(Batch)
            .where(
                Batch.owner == owner,
                Batch.start_id <= token_id,
                Batch.start_id + Batch.count > token_id,
            )
            .limit(1)
        )
        records = self._select(stmt, db)
        return records[0] if records else None

    def replace_all(self, survivors: Sequence[BatchRecord]) -> int:
        """Atomically reduce the collection to ``survivors``; return the number removed."""
        with self.writer() as db:
            return self._replace_all(db, survivors)

    def sweep(
        self,
        keep: Callable[[BatchRecord], bool],
        owner: str | None = None,
    ) -> list[BatchRecord]:
        """Remove batches rejected by ``keep`` and return them.

        The read, partition and write happen under the writer lock. When
        ``owner`` is given only that owner's batches are considered; all other
        batches survive untouched.
        """
        with self.writer() as db:
            records = self.list_all(db) if owner is None else self.list_by_owner(owner, db)
            removed = [record for record in records if not keep(record)]
            # Delete exactly what was partitioned out; rows appended meanwhile survive.
            self._delete_batches(db, [record.id for record in removed])
            return removed

    def get_uri(self, token_id: int, db: Session | None = None) -> str | None:
        """Return the metadata URI stored for ``token_id``."""
        if db is not None:
            entry = db.get(TokenURI, token_id)
            return entry.uri if entry else None
        with self.reader() as session:
            return self.get_uri(token_id, session)

    def get_uris(self, token_ids: range, db: Session) -> dict[int, str]:
        """Return the stored metadata URIs inside ``token_ids``."""
        stmt = select(TokenURI).where(
            TokenURI.token_id >= token_ids.start,
            TokenURI.token_id < token_ids.stop,
        )
        return {int(entry.token_id): entry.uri for entry in db.scalars(stmt)}

    def uri_ids(self) -> set[int]:
        """Return every identifier that has a metadata entry."""
        with self.reader() as db:
            return {int(token_id) for token_id in db.scalars(select(TokenURI.token_id))}

    def sweep_uris(self, keep: Callable[[BatchRecord], bool]) -> int:
        """Delete metadata not covered by a batch accepted by ``keep``.

        Returns:
            Number of metadata entries removed.
        """
        with self.writer() as db:
            # Metadata first: a batch appended after this read is then always
            # visible to the batch read below, so its entries are kept.
            stored = [int(token_id) for token_id in db.scalars(select(TokenURI.token_id))]
            covered: set[int] = set()
            for record in self.list_all(db):
                if keep(record):
                    covered.update(record.token_ids)
            orphaned = [token_id for token_id in stored if token_id not in covered]
            for offset in range(0, len(orphaned), _DELETE_CHUNK):
                chunk = orphaned[offset : offset + _DELETE_CHUNK]
                db.execute(delete(TokenURI).where(TokenURI.token_id.in_(chunk)))
            return len(orphaned)

    def _select(self, stmt, db: Session | None) -> list[BatchRecord]:
        if db is not None:
            return [BatchRecord.from_row(row) for row in db.scalars(stmt)]
        with self.reader() as session:
            return [BatchRecord.from_row(row) for row in session.scalars(stmt)]

    @staticmethod
    def _record_root(
        db: Session, owner: str, root_digest: bytes, committed_at: int, tx_hash: str | None
    ) -> int:
        counter = ensure_counter_row(db)
        root_index = int(counter.roots_committed)
        counter.roots_committed = root_index + 1
        db.add(
            CommittedRoot(
                root_index=root_index,
                root_digest=root_digest,
                owner=owner,
                tx_hash=tx_hash,
                committed_at=committed_at,
            )
        )
        db.flush()
        return root_index

    @staticmethod
    def _delete_batches(db: Session, batch_ids: Sequence[int]) -> None:
        for offset in range(0, len(batch_ids), _DELETE_CHUNK):
            chunk = batch_ids[offset : offset + _DELETE_CHUNK]
            db.execute(delete(Batch).where(Batch.id.in_(chunk)))

    def _replace_all(self, db: Session, survivors: Sequence[BatchRecord]) -> int:
        keep_ids = {record.id for record in survivors}
        existing = [int(batch_id) for batch_id in db.scalars(select(Batch.id))]
        doomed = [batch_id for batch_id in existing if batch_id not in keep_ids]
        self._delete_batches(db, doomed)
        return len(doomed)
