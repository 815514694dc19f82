"""
Tests for CartState and cart item building.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from brewline.schemas import CartItemIn, LineIngredient, Promotion
from brewline.services.cart import CartState, build_cart_item
from brewline.services.promotions import UsageCounts

NOW = datetime.now(timezone.utc)


def promo(params, **kw):
    return Promotion(
        id="p1", code="P1", name="P1", params=params,
        valid_from=NOW - timedelta(days=1), **kw,
    )


def item(price, size_ml=355):
    return CartItemIn(drink_id="latte", size_ml=size_ml, unit_price_cents=price)


def test_subtotal_and_total():
    cart = CartState()
    cart.add_item(item(15000))
    cart.add_item(item(18000))
    assert cart.subtotal_cents == 33000
    assert cart.total_cents == 33000


def test_apply_percentage():
    cart = CartState(items=[item(500)])
    assert cart.apply_promotion(promo({"type": "percentage", "percent": 10}))
    assert cart.discount_cents == 50
    assert cart.total_cents == 450


def test_failed_promotion_records_error():
    cart = CartState(items=[item(500)])
    assert not cart.apply_promotion(promo({"type": "percentage", "percent": 10}, min_order_cents=1000))
    assert cart.promo is None
    assert cart.promo_error.kind == "threshold_not_met"
    assert cart.total_cents == 500


def test_promotion_rechecked_when_cart_changes():
    cart = CartState(items=[item(600), item(600)])
    assert cart.apply_promotion(promo({"type": "fixed_amount", "amount_cents": 200}, min_order_cents=1000))
    cart.remove_item(0)
    assert cart.promo is None
    assert cart.discount_cents == 0
    assert cart.promo_error.kind == "threshold_not_met"


def test_recheck_keeps_customer_usage_cap():
    cart = CartState(items=[item(600)])
    capped = promo({"type": "percentage", "percent": 10}, usage_limit_per_customer=1)
    assert cart.apply_promotion(capped, customer_identifier="09171234567", usage=UsageCounts())
    cart.add_item(item(600))
    assert cart.promo is not None
    assert cart.customer_identifier == "09171234567"

    cart.usage = UsageCounts(total=1, by_customer=1)
    cart.add_item(item(600))
    assert cart.promo is None
    assert cart.promo_error.kind == "usage_exceeded"


def test_discount_follows_subtotal():
    cart = CartState(items=[item(1000)])
    cart.apply_promotion(promo({"type": "percentage", "percent": 10}))
    cart.add_item(item(1000))
    assert cart.discount_cents == 200


def test_sessions_are_independent():
    a, b = CartState(), CartState()
    a.add_item(item(100))
    assert b.is_empty
    a.clear()
    assert a.is_empty and a.promo is None


def test_item_nutrition():
    milk = SimpleNamespace(id="milk", density_g_per_ml=1.0, grams_per_unit=None, allergen_tags=[])
    milk_n = SimpleNamespace(
        ingredient_id="milk", per_100g_energy_kcal=50, per_100g_protein_g=3, per_100g_fat_g=2,
        per_100g_carbs_g=5, per_100g_sugars_g=5, per_100g_fiber_g=0, per_100g_sodium_mg=40,
    )
    cart = CartState(items=[CartItemIn(lines=[LineIngredient(ingredient_id="milk", amount=200, unit="ml")])])
    res = cart.item_nutrition(0, {"milk": milk}, {"milk": milk_n})
    assert res.totals.energy_kcal == pytest.approx(100)
    assert res.complete


def test_build_cart_item_prices_extras():
    base_lines = [SimpleNamespace(ingredient_id="espresso", amount=60, unit="ml", role="base", size_id=None)]
    drink = SimpleNamespace(id="latte", name="Latte", base_size_ml=355, price_cents=15000, base_lines=base_lines)
    size = SimpleNamespace(size_ml=473, price_cents=18000, lines=[])
    syrup = SimpleNamespace(id="syrup", name="Caramel", density_g_per_ml=1.3, grams_per_unit=None)
    pricing = {"syrup": [SimpleNamespace(
        ingredient_id="syrup", pricing_mode="per_ml", base_price_cents=None,
        rate_cents=2.0, unit_label=None, is_active=True,
    )]}

    built = build_cart_item(
        drink, size, [LineIngredient(ingredient_id="syrup", amount=15, unit="ml")],
        {"syrup": syrup}, pricing,
    )
    assert built.unit_price_cents == 18030
    assert built.base_price_cents == 18000
    assert built.addons_price_cents == 30
    extras = [l for l in built.lines if l.is_extra]
    assert extras[0].name == "Caramel"
    assert extras[0].price_cents == 30
    assert [l.amount for l in built.lines if not l.is_extra] == [79.9]
