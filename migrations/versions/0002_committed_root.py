"""record every root confirmed by the ledger

Revision ID: 0002_committed_root
Revises: 0001_initial
Create Date: 2026-10-19 15:00:00.000000

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0002_committed_root"
down_revision: Union[str, Sequence[str], None] = "0001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the committed_root table and backfill it from existing batches."""
    op.create_table(
        "committed_root",
        sa.Column("root_index", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("root_digest", sa.LargeBinary(length=32), nullable=False),
        sa.Column("owner", sa.Text(), nullable=False),
        sa.Column("tx_hash", sa.Text(), nullable=True),
        sa.Column("committed_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("root_index"),
    )
    op.execute(
        "INSERT INTO committed_root (root_index, root_digest, owner, tx_hash, committed_at) "
        "SELECT root_index, root_digest, owner, tx_hash, COALESCE(committed_at, 0) FROM batch"
    )


def downgrade() -> None:
    """Drop the committed_root table."""
    op.drop_table("committed_root")
