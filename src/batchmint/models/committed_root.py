# src/batchmint/models/committed_root.py
"""SQLAlchemy model for the ledger's ordered root history."""

from sqlalchemy import BigInteger, LargeBinary, Text
from sqlalchemy.orm import Mapped, mapped_column

from batchmint.db.session import Base


class CommittedRoot(Base):
    """One root the ledger confirmed, keyed by its position in the ledger's history.

    A row is written as soon as the ledger confirms, before the matching batch
    is stored, so roots whose batch could not be recorded (or that confirmed
    after the issuance gave up waiting) still occupy their position. Rows are
    never swept.
    """

    __tablename__ = "committed_root"

    root_index: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    root_digest: Mapped[bytes] = mapped_column(LargeBinary(32), nullable=False)
    owner: Mapped[str] = mapped_column(Text, nullable=False)
    tx_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
    committed_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
