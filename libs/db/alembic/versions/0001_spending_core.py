# ruff: noqa: I001
"""Core spending tables: categories, transactions, remembered locations.

Revision ID: 0001_spending_core
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_spending_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "st_categories",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("emoji", sa.String(), nullable=False),
        sa.Column("en_name", sa.Text(), nullable=True),
        sa.Column("zh_name", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
    )
    op.create_index("ix_st_categories_owner_id", "st_categories", ["owner_id"])

    op.create_table(
        "st_transactions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column(
            "category_id",
            sa.String(),
            sa.ForeignKey("st_categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("kind", sa.String(), nullable=False, server_default=sa.text("'expense'")),
        sa.Column("origin", sa.String(), nullable=False, server_default=sa.text("'web'")),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_st_tx_amount_positive"),
        sa.CheckConstraint("kind in ('expense','income')", name="ck_st_tx_kind"),
        sa.CheckConstraint("origin in ('web','api')", name="ck_st_tx_origin"),
    )
    # Owner-scoped scans back both the history list and the aggregation windows
    op.create_index(
        "ix_st_transactions_owner_created", "st_transactions", ["owner_id", "created_at"]
    )
    op.create_index(
        "ix_st_transactions_owner_category", "st_transactions", ["owner_id", "category_id"]
    )

    op.create_table(
        "st_remembered_locations",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("latitude", sa.Float(precision=53), nullable=False),
        sa.Column("longitude", sa.Float(precision=53), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column(
            "category_id",
            sa.String(),
            sa.ForeignKey("st_categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("visit_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.CheckConstraint("latitude >= -90 AND latitude <= 90", name="ck_st_loc_latitude"),
        sa.CheckConstraint(
            "longitude >= -180 AND longitude <= 180", name="ck_st_loc_longitude"
        ),
        sa.CheckConstraint("visit_count >= 1", name="ck_st_loc_visit_count"),
        sa.CheckConstraint("amount > 0", name="ck_st_loc_amount_positive"),
    )
    op.create_index(
        "ix_st_remembered_locations_owner_id", "st_remembered_locations", ["owner_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_st_remembered_locations_owner_id", table_name="st_remembered_locations")
    op.drop_table("st_remembered_locations")
    op.drop_index("ix_st_transactions_owner_category", table_name="st_transactions")
    op.drop_index("ix_st_transactions_owner_created", table_name="st_transactions")
    op.drop_table("st_transactions")
    op.drop_index("ix_st_categories_owner_id", table_name="st_categories")
    op.drop_table("st_categories")
