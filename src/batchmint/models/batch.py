# src/batchmint/models/batch.py
"""SQLAlchemy model for committed identifier batches."""

from sqlalchemy import BigInteger, Integer, LargeBinary, Text
from sqlalchemy.orm import Mapped, mapped_column

from batchmint.db.session import Base


class Batch(Base):
    """A contiguous range of token identifiers sharing one committed Merkle root.

    Covers identifiers ``[start_id, start_id + count)``. Rows are immutable
    once written; only the lifecycle sweeps delete them.
    """

    __tablename__ = "batch"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Lowercase account address.
    owner: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    start_id: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    count: Mapped[int] = mapped_column(Integer, nullable=False)
    root_digest: Mapped[bytes] = mapped_column(LargeBinary(32), nullable=False)
    # Null only on legacy rows; the lifecycle sweep treats those as expired.
    committed_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    # Position of the root in the ledger's ordered root history.
    root_index: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    tx_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
