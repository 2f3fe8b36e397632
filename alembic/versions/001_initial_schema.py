"""Initial schema: users and decisions.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 00:00:00.000000

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
    # Users table
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_seen_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )

    # Decisions table: one row per (bucket, user_category_item) document
    op.create_table(
        "decisions",
        sa.Column("bucket", sa.String(), nullable=False),
        sa.Column("doc_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(), nullable=False, server_default=""),
        sa.Column("year", sa.String(), nullable=False, server_default="N/A"),
        sa.Column("poster_path", sa.String(), nullable=True),
        sa.Column("rating", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("genre_ids_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "bucket IN ('watched', 'watchlisted', 'skipped')",
            name="ck_decisions_bucket",
        ),
        sa.CheckConstraint("category IN ('movie', 'series')", name="ck_decisions_category"),
        sa.PrimaryKeyConstraint("bucket", "doc_id"),
    )
    op.create_index(
        "ix_decisions_user_category_bucket",
        "decisions",
        ["user_id", "category", "bucket"],
    )


def downgrade() -> None:
    op.drop_index("ix_decisions_user_category_bucket", table_name="decisions")
    op.drop_table("decisions")
    op.drop_table("users")
