# src/batchmint/models/account.py
"""Per-account scheduling state."""

from sqlalchemy import BigInteger, Text
from sqlalchemy.orm import Mapped, mapped_column

from batchmint.db.session import Base


class AccountRecord(Base):
    """Activity and issuance timestamps for one account, in unix seconds."""

    __tablename__ = "account"

    owner: Mapped[str] = mapped_column(Text, primary_key=True)
    last_active_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # 0 until the first successful issuance.
    last_issued_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
