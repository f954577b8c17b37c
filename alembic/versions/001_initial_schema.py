"""Initial schema - costing and pricing tables

Revision ID: 001
Revises:
Create Date: 2026-10-17

Creates:
- ingredients
- ingredient_cost_history
- products
- bom_lines
- sales_channels
- product_channel_prices
- pricing_config
- sales
- price_change_audit
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # === INGREDIENTS ===
    op.create_table(
        "ingredients",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("unit_of_measure", sa.String(20), nullable=False),
        sa.Column("unit_cost", sa.Numeric(12, 4), nullable=False, server_default="0"),
        sa.Column("is_composed", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("yield_quantity", sa.Numeric(10, 3), server_default="1"),
        sa.Column("is_active", sa.Boolean, server_default="true"),
        sa.Column("notes", sa.Text),
        sa.Column("created_at", sa.TIMESTAMP, server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP, server_default=sa.func.now()),
    )

    op.create_table(
        "ingredient_cost_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "ingredient_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("previous_cost", sa.Numeric(12, 4), nullable=False),
        sa.Column("new_cost", sa.Numeric(12, 4), nullable=False),
        sa.Column("source", sa.String(20)),
        sa.Column("created_at", sa.TIMESTAMP, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_cost_history_lookup", "ingredient_cost_history", ["ingredient_id", "created_at"])

    # === PRODUCTS ===
    op.create_table(
        "products",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("category", sa.String(50)),
        sa.Column("base_price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("unit_cost", sa.Numeric(12, 4)),
        sa.Column("yield_quantity", sa.Numeric(10, 3), nullable=False, server_default="1"),
        sa.Column("is_active", sa.Boolean, server_default="true"),
        sa.Column("created_at", sa.TIMESTAMP, server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP, server_default=sa.func.now()),
    )

    # Owner is polymorphic (product or composed ingredient), so no FK on owner_id
    op.create_table(
        "bom_lines",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("owner_type", sa.String(20), nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "ingredient_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("quantity_per_batch", sa.Numeric(12, 4), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP, server_default=sa.func.now()),
        sa.UniqueConstraint("owner_type", "owner_id", "ingredient_id", name="uq_bom_lines"),
        sa.CheckConstraint("owner_type IN ('product', 'ingredient')", name="ck_bom_lines_owner_type"),
        sa.CheckConstraint("quantity_per_batch > 0", name="ck_bom_lines_quantity"),
    )
    op.create_index("idx_bom_lines_owner", "bom_lines", ["owner_type", "owner_id"])
    op.create_index("idx_bom_lines_ingredient", "bom_lines", ["ingredient_id"])

    # === CHANNELS ===
    op.create_table(
        "sales_channels",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
        sa.Column("commission_rate", sa.Numeric(5, 4), nullable=False, server_default="0"),
        sa.Column("is_counter", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("is_active", sa.Boolean, server_default="true"),
        sa.Column("sort_order", sa.Integer, server_default="0"),
        sa.Column("created_at", sa.TIMESTAMP, server_default=sa.func.now()),
    )

    op.create_table(
        "product_channel_prices",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "product_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "channel_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("sales_channels.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP, server_default=sa.func.now()),
        sa.UniqueConstraint("product_id", "channel_id", name="uq_product_channel_prices"),
    )

    op.create_table(
        "pricing_config",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("target_margin_rate", sa.Numeric(5, 4), nullable=False),
        sa.Column("target_cmv_rate", sa.Numeric(5, 4), nullable=False),
        sa.Column("average_tax_rate", sa.Numeric(5, 4), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP, server_default=sa.func.now()),
    )

    # === SALES ===
    op.create_table(
        "sales",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "product_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("products.id", ondelete="SET NULL"),
        ),
        sa.Column(
            "channel_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("sales_channels.id", ondelete="SET NULL"),
        ),
        sa.Column("quantity", sa.Integer, nullable=False, server_default="1"),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("sold_on", sa.DATE, nullable=False),
        sa.Column("created_at", sa.TIMESTAMP, server_default=sa.func.now()),
    )
    op.create_index("idx_sales_product_date", "sales", ["product_id", "sold_on"])

    # === AUDIT ===
    op.create_table(
        "price_change_audit",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "product_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "channel_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("sales_channels.id", ondelete="SET NULL"),
        ),
        sa.Column("previous_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("new_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("source", sa.String(20), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_price_change_audit_product", "price_change_audit", ["product_id", "created_at"])


def downgrade() -> None:
    op.drop_table("price_change_audit")
    op.drop_table("sales")
    op.drop_table("pricing_config")
    op.drop_table("product_channel_prices")
    op.drop_table("sales_channels")
    op.drop_table("bom_lines")
    op.drop_table("products")
    op.drop_table("ingredient_cost_history")
    op.drop_table("ingredients")
