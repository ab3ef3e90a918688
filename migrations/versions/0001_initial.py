"""initial batch mint schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create batch, metadata, account and counter tables."""
    op.create_table(
        "batch",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("owner", sa.Text(), nullable=False),
        sa.Column("start_id", sa.BigInteger(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False),
        sa.Column("root_digest", sa.LargeBinary(length=32), nullable=False),
        sa.Column("committed_at", sa.BigInteger(), nullable=True),
        sa.Column("root_index", sa.BigInteger(), nullable=False),
        sa.Column("tx_hash", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("start_id"),
        sa.UniqueConstraint("root_index"),
    )
    op.create_index("ix_batch_owner", "batch", ["owner"], unique=False)

    op.create_table(
        "token_uri",
        sa.Column("token_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("uri", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("token_id"),
    )

    op.create_table(
        "account",
        sa.Column("owner", sa.Text(), nullable=False),
        sa.Column("last_active_at", sa.BigInteger(), nullable=False),
        sa.Column("last_issued_at", sa.BigInteger(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("owner"),
    )

    op.create_table(
        "mint_counter",
        sa.Column("id", sa.BigInteger(), nullable=False),
        sa.Column("last_allocated_id", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("roots_committed", sa.BigInteger(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.bulk_insert(
        sa.table(
            "mint_counter",
            sa.column("id", sa.BigInteger()),
            sa.column("last_allocated_id", sa.BigInteger()),
            sa.column("roots_committed", sa.BigInteger()),
        ),
        [{"id": 1, "last_allocated_id": 0, "roots_committed": 0}],
    )


def downgrade() -> None:
    """Drop every table created by this revision."""
    op.drop_table("mint_counter")
    op.drop_table("account")
    op.drop_table("token_uri")
    op.drop_index("ix_batch_owner", table_name="batch")
    op.drop_table("batch")
