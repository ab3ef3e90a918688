# src/batchmint/models/counter.py
"""Process-wide monotonic counters."""

from sqlalchemy import BigInteger
from sqlalchemy.orm import Mapped, mapped_column

from batchmint.db.session import Base


class MintCounter(Base):
    """Single-row counters for identifier allocation and root ordering.

    ``last_allocated_id`` is only ever incremented by the allocator.
    ``roots_committed`` counts roots confirmed by the ledger and supplies
    each root's ``root_index``.
    """

    __tablename__ = "mint_counter"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, default=1)
    last_allocated_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    roots_committed: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
