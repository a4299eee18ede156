"""create_coupon_tables

Revision ID: 3e8d5a1c7b20
Revises:
Create Date: 2026-10-18
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3e8d5a1c7b20"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TIERS = ("low", "mid", "high", "pro", "extreme")


def upgrade() -> None:
    op.create_table(
        "coupons",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("coupon_id", sa.String(length=100), nullable=False),
        sa.Column("category", sa.String(length=200), nullable=True),
        sa.Column("brand", sa.String(length=200), nullable=True),
        sa.Column("model", sa.String(length=200), nullable=True),
        sa.Column("fsn_list", sa.Text(), nullable=True),
        sa.Column("min_range", sa.String(length=50), nullable=True),
        sa.Column("max_range", sa.String(length=50), nullable=True),
        *[sa.Column(f"value_{tier}", sa.String(length=50), nullable=True) for tier in TIERS],
        *[sa.Column(f"count_{tier}", sa.String(length=50), nullable=True) for tier in TIERS],
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_coupons_coupon_id"), "coupons", ["coupon_id"], unique=True)
    op.create_index(op.f("ix_coupons_brand"), "coupons", ["brand"], unique=False)

    op.create_table(
        "coupon_links",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("coupon_id", sa.String(length=100), nullable=False),
        sa.Column("link", sa.Text(), nullable=False),
        sa.Column("coupon_type", sa.String(length=20), nullable=False),
        sa.Column("is_used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_coupon_links_coupon_id"), "coupon_links", ["coupon_id"], unique=False)
    op.create_index(op.f("ix_coupon_links_coupon_type"), "coupon_links", ["coupon_type"], unique=False)
    op.create_index(op.f("ix_coupon_links_is_used"), "coupon_links", ["is_used"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_coupon_links_is_used"), table_name="coupon_links")
    op.drop_index(op.f("ix_coupon_links_coupon_type"), table_name="coupon_links")
    op.drop_index(op.f("ix_coupon_links_coupon_id"), table_name="coupon_links")
    op.drop_table("coupon_links")
    op.drop_index(op.f("ix_coupons_brand"), table_name="coupons")
    op.drop_index(op.f("ix_coupons_coupon_id"), table_name="coupons")
    op.drop_table("coupons")
