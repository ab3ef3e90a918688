# src/batchmint/models/token_uri.py
"""Metadata entries mapping a token identifier to its URI."""

from sqlalchemy import BigInteger, Text
from sqlalchemy.orm import Mapped, mapped_column

from batchmint.db.session import Base


class TokenURI(Base):
    """Opaque metadata URI chosen for a single token identifier."""

    __tablename__ = "token_uri"

    token_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    uri: Mapped[str] = mapped_column(Text, nullable=False)
