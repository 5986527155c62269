"""Initial schema: per-user key-value state and daily API call counts.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Key-value table (ratings, rejection log, not-interested sets)
    op.create_table(
        "kv_entries",
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("key"),
    )

    # Daily API call counts
    op.create_table(
        "api_call_counts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("day", sa.String(), nullable=False),
        sa.Column("media_kind", sa.String(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("media_kind IN ('movie', 'tv')", name="ck_api_call_counts_kind"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("day", "media_kind", name="uq_api_call_counts_day_kind"),
    )
    op.create_index("ix_api_call_counts_day", "api_call_counts", ["day"])


def downgrade() -> None:
    op.drop_index("ix_api_call_counts_day", table_name="api_call_counts")
    op.drop_table("api_call_counts")
    op.drop_table("kv_entries")
