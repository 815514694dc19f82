"""SQLAlchemy ORM models for Brewline.

Tables:
- ingredients / ingredient_nutrition / ingredient_pricing: catalog inputs (read-only to the core)
- drinks / drink_sizes / drink_ingredients: base recipes and size variants
- promos / promo_usage: promotion definitions and per-order redemption
- orders / order_items / order_item_ingredients: immutable order snapshot
- order_status_events: audit trail of status changes
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Text,
    Integer,
    Boolean,
    Float,
    ForeignKey,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from .db import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


# --- Catalog ---

class Ingredient(Base):
    """A purchasable/usable ingredient with its unit conversion attributes."""
    __tablename__ = "ingredients"
    __table_args__ = (
        Index("ix_ingredients_is_active", "is_active"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)

    # gram | milliliter | scoop | piece
    unit_default: Mapped[str] = mapped_column(String(20), nullable=False, server_default="g")
    grams_per_unit: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    density_g_per_ml: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    allergen_tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_addon: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    nutrition: Mapped[Optional["IngredientNutrition"]] = relationship(
        "IngredientNutrition", back_populates="ingredient", uselist=False, cascade="all, delete-orphan"
    )
    pricing: Mapped[list["IngredientPricing"]] = relationship(
        "IngredientPricing", back_populates="ingredient", cascade="all, delete-orphan"
    )


class IngredientNutrition(Base):
    """Per-100g nutrition for one ingredient. Extras (sugars/fiber/sodium) may be unknown."""
    __tablename__ = "ingredient_nutrition"

    ingredient_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("ingredients.id", ondelete="CASCADE"), primary_key=True
    )
    per_100g_energy_kcal: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    per_100g_protein_g: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    per_100g_fat_g: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    per_100g_carbs_g: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    per_100g_sugars_g: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    per_100g_fiber_g: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    per_100g_sodium_mg: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    ingredient: Mapped["Ingredient"] = relationship("Ingredient", back_populates="nutrition")


class IngredientPricing(Base):
    """One pricing row per (ingredient, mode). Money in cents."""
    __tablename__ = "ingredient_pricing"
    __table_args__ = (
        Index("ix_ingredient_pricing_ingredient_id", "ingredient_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    ingredient_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False
    )
    # flat | per_gram | per_ml | per_unit
    pricing_mode: Mapped[str] = mapped_column(String(20), nullable=False)
    base_price_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rate_cents: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # cents per g / ml / unit
    unit_label: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    ingredient: Mapped["Ingredient"] = relationship("Ingredient", back_populates="pricing")


class Drink(Base):
    """A menu drink with its base recipe."""
    __tablename__ = "drinks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    base_size_ml: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    sizes: Mapped[list["DrinkSize"]] = relationship(
        "DrinkSize", back_populates="drink", cascade="all, delete-orphan",
        order_by="DrinkSize.size_ml"
    )
    lines: Mapped[list["DrinkIngredient"]] = relationship(
        "DrinkIngredient", back_populates="drink", cascade="all, delete-orphan",
        order_by="DrinkIngredient.position"
    )

    @property
    def base_lines(self) -> list["DrinkIngredient"]:
        return [line for line in self.lines if line.size_id is None]


class DrinkSize(Base):
    """A named serving size. May carry its own override line list."""
    __tablename__ = "drink_sizes"
    __table_args__ = (
        UniqueConstraint("drink_id", "size_ml", name="uq_drink_sizes_drink_size"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    drink_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("drinks.id", ondelete="CASCADE"), nullable=False
    )
    label: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)  # "12oz"
    size_ml: Mapped[int] = mapped_column(Integer, nullable=False)
    price_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    drink: Mapped["Drink"] = relationship("Drink", back_populates="sizes")
    lines: Mapped[list["DrinkIngredient"]] = relationship(
        "DrinkIngredient", back_populates="size", cascade="all, delete-orphan",
        order_by="DrinkIngredient.position"
    )


class DrinkIngredient(Base):
    """A recipe line. size_id NULL = base recipe line; otherwise a size override line."""
    __tablename__ = "drink_ingredients"
    __table_args__ = (
        Index("ix_drink_ingredients_drink_id", "drink_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    drink_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("drinks.id", ondelete="CASCADE"), nullable=False
    )
    size_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("drink_sizes.id", ondelete="CASCADE"), nullable=True
    )
    ingredient_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("ingredients.id"), nullable=False
    )
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    role: Mapped[str] = mapped_column(String(10), nullable=False, default="base")  # base | extra
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    drink: Mapped["Drink"] = relationship("Drink", back_populates="lines")
    size: Mapped[Optional["DrinkSize"]] = relationship("DrinkSize", back_populates="lines")


# --- Promotions ---

class Promo(Base):
    """Promotion definition. Type-specific parameters live in `params` (JSON)."""
    __tablename__ = "promos"
    __table_args__ = (
        Index("ix_promos_active_validity", "is_active", "valid_from", "valid_until"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # percentage | fixed_amount | bundle | free_addon | buy_x_get_y
    promo_type: Mapped[str] = mapped_column(String(20), nullable=False)
    params: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    min_order_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_discount_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    usage_limit_total: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    usage_limit_per_customer: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    applicable_drink_ids: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)

    valid_from: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    valid_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # higher wins

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class PromoUsage(Base):
    __tablename__ = "promo_usage"
    __table_args__ = (
        Index("ix_promo_usage_promo_customer", "promo_id", "customer_identifier"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    promo_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("promos.id", ondelete="CASCADE"), nullable=False
    )
    order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    customer_identifier: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    discount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    applied_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


# --- Orders ---

class Order(Base):
    """Order header. Status only changes through the fulfillment state machine."""
    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    tracking_code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)

    # pending | in_progress | ready | picked_up | cancelled
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    pickup_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    guest_name: Mapped[str] = mapped_column(String(200), nullable=False)
    guest_phone: Mapped[str] = mapped_column(String(40), nullable=False)
    customer_identifier: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)  # cash | gcash | bank
    payment_status: Mapped[str] = mapped_column(String(30), nullable=False, default="unpaid")
    payment_reference: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    payment_proof_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    promo_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("promos.id", ondelete="SET NULL"), nullable=True
    )
    promo_code_applied: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    promo_discount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan",
        order_by="OrderItem.position"
    )
    status_events: Mapped[list["OrderStatusEvent"]] = relationship(
        "OrderStatusEvent", back_populates="order", cascade="all, delete-orphan",
        order_by="OrderStatusEvent.created_at"
    )


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        Index("ix_order_items_order_id", "order_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    drink_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    size_ml: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    line_total_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    order: Mapped["Order"] = relationship("Order", back_populates="items")
    ingredients: Mapped[list["OrderItemIngredient"]] = relationship(
        "OrderItemIngredient", back_populates="order_item", cascade="all, delete-orphan"
    )


class OrderItemIngredient(Base):
    __tablename__ = "order_item_ingredients"
    __table_args__ = (
        Index("ix_order_item_ingredients_item_id", "order_item_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    order_item_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("order_items.id", ondelete="CASCADE"), nullable=False
    )
    ingredient_id: Mapped[str] = mapped_column(String(36), nullable=False)
    ingredient_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    is_extra: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    order_item: Mapped["OrderItem"] = relationship("OrderItem", back_populates="ingredients")


class OrderStatusEvent(Base):
    """Audit row written for every accepted status transition."""
    __tablename__ = "order_status_events"
    __table_args__ = (
        Index("ix_order_status_events_order_id", "order_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    from_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    actor: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    order: Mapped["Order"] = relationship("Order", back_populates="status_events")
