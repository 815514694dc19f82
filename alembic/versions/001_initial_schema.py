"""Initial schema: catalog, drinks, promos, orders

Revision ID: 001_initial_schema
Revises: 
Create Date: 2026-10-18

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
    # Ingredients
    op.create_table(
        "ingredients",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("category", sa.String(80), nullable=True),
        sa.Column("unit_default", sa.String(20), nullable=False, server_default="g"),
        sa.Column("grams_per_unit", sa.Float, nullable=True),
        sa.Column("density_g_per_ml", sa.Float, nullable=True),
        sa.Column("allergen_tags", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("is_addon", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_ingredients_is_active", "ingredients", ["is_active"])

    op.create_table(
        "ingredient_nutrition",
        sa.Column("ingredient_id", sa.String(36), sa.ForeignKey("ingredients.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("per_100g_energy_kcal", sa.Float, nullable=False, server_default="0"),
        sa.Column("per_100g_protein_g", sa.Float, nullable=False, server_default="0"),
        sa.Column("per_100g_fat_g", sa.Float, nullable=False, server_default="0"),
        sa.Column("per_100g_carbs_g", sa.Float, nullable=False, server_default="0"),
        sa.Column("per_100g_sugars_g", sa.Float, nullable=True),
        sa.Column("per_100g_fiber_g", sa.Float, nullable=True),
        sa.Column("per_100g_sodium_mg", sa.Float, nullable=True),
    )

    op.create_table(
        "ingredient_pricing",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("ingredient_id", sa.String(36), sa.ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False),
        sa.Column("pricing_mode", sa.String(20), nullable=False),
        sa.Column("base_price_cents", sa.Integer, nullable=True),
        sa.Column("rate_cents", sa.Float, nullable=True),
        sa.Column("unit_label", sa.String(40), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_ingredient_pricing_ingredient_id", "ingredient_pricing", ["ingredient_id"])

    # Drinks
    op.create_table(
        "drinks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("base_size_ml", sa.Integer, nullable=True),
        sa.Column("price_cents", sa.Integer, nullable=False, server_default="0"),
        sa.Column("image_url", sa.Text, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "drink_sizes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("drink_id", sa.String(36), sa.ForeignKey("drinks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("label", sa.String(40), nullable=True),
        sa.Column("size_ml", sa.Integer, nullable=False),
        sa.Column("price_cents", sa.Integer, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.UniqueConstraint("drink_id", "size_ml", name="uq_drink_sizes_drink_size"),
    )

    op.create_table(
        "drink_ingredients",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("drink_id", sa.String(36), sa.ForeignKey("drinks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("size_id", sa.String(36), sa.ForeignKey("drink_sizes.id", ondelete="CASCADE"), nullable=True),
        sa.Column("ingredient_id", sa.String(36), sa.ForeignKey("ingredients.id"), nullable=False),
        sa.Column("amount", sa.Float, nullable=False),
        sa.Column("unit", sa.String(20), nullable=False),
        sa.Column("role", sa.String(10), nullable=False, server_default="base"),
        sa.Column("is_required", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
    )
    op.create_index("ix_drink_ingredients_drink_id", "drink_ingredients", ["drink_id"])

    # Promotions
    op.create_table(
        "promos",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("code", sa.String(50), unique=True, nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("promo_type", sa.String(20), nullable=False),
        sa.Column("params", sa.JSON, nullable=False, server_default="{}"),
        sa.Column("min_order_cents", sa.Integer, nullable=True),
        sa.Column("max_discount_cents", sa.Integer, nullable=True),
        sa.Column("usage_limit_total", sa.Integer, nullable=True),
        sa.Column("usage_limit_per_customer", sa.Integer, nullable=True),
        sa.Column("applicable_drink_ids", sa.JSON, nullable=True),
        sa.Column("valid_from", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("priority", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_promos_active_validity", "promos", ["is_active", "valid_from", "valid_until"])

    # Orders
    op.create_table(
        "orders",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tracking_code", sa.String(32), unique=True, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("pickup_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("guest_name", sa.String(200), nullable=False),
        sa.Column("guest_phone", sa.String(40), nullable=False),
        sa.Column("customer_identifier", sa.String(255), nullable=True),
        sa.Column("payment_method", sa.String(20), nullable=False),
        sa.Column("payment_status", sa.String(30), nullable=False, server_default="unpaid"),
        sa.Column("payment_reference", sa.String(120), nullable=True),
        sa.Column("payment_proof_url", sa.Text, nullable=True),
        sa.Column("subtotal_cents", sa.Integer, nullable=False, server_default="0"),
        sa.Column("promo_id", sa.String(36), sa.ForeignKey("promos.id", ondelete="SET NULL"), nullable=True),
        sa.Column("promo_code_applied", sa.String(50), nullable=True),
        sa.Column("promo_discount_cents", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_cents", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_orders_status", "orders", ["status"])

    op.create_table(
        "promo_usage",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("promo_id", sa.String(36), sa.ForeignKey("promos.id", ondelete="CASCADE"), nullable=False),
        sa.Column("order_id", sa.String(36), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("customer_identifier", sa.String(255), nullable=True),
        sa.Column("discount_cents", sa.Integer, nullable=False),
        sa.Column("applied_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_promo_usage_promo_customer", "promo_usage", ["promo_id", "customer_identifier"])

    op.create_table(
        "order_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("order_id", sa.String(36), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("drink_id", sa.String(36), nullable=True),
        sa.Column("item_name", sa.String(200), nullable=False),
        sa.Column("size_ml", sa.Integer, nullable=True),
        sa.Column("unit_price_cents", sa.Integer, nullable=False),
        sa.Column("line_total_cents", sa.Integer, nullable=False),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])

    op.create_table(
        "order_item_ingredients",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("order_item_id", sa.String(36), sa.ForeignKey("order_items.id", ondelete="CASCADE"), nullable=False),
        sa.Column("ingredient_id", sa.String(36), nullable=False),
        sa.Column("ingredient_name", sa.String(200), nullable=True),
        sa.Column("amount", sa.Float, nullable=False),
        sa.Column("unit", sa.String(20), nullable=False),
        sa.Column("is_extra", sa.Boolean, nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_order_item_ingredients_item_id", "order_item_ingredients", ["order_item_id"])

    # Status audit trail
    op.create_table(
        "order_status_events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("order_id", sa.String(36), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("from_status", sa.String(20), nullable=True),
        sa.Column("to_status", sa.String(20), nullable=False),
        sa.Column("actor", sa.String(120), nullable=True),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_order_status_events_order_id", "order_status_events", ["order_id"])


def downgrade() -> None:
    op.drop_table("order_status_events")
    op.drop_table("order_item_ingredients")
    op.drop_table("order_items")
    op.drop_table("promo_usage")
    op.drop_table("orders")
    op.drop_table("promos")
    op.drop_table("drink_ingredients")
    op.drop_table("drink_sizes")
    op.drop_table("drinks")
    op.drop_table("ingredient_pricing")
    op.drop_table("ingredient_nutrition")
    op.drop_table("ingredients")
