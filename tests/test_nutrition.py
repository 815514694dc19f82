"""
Tests for the Nutrition Aggregator.
"""

from types import SimpleNamespace

import pytest

from brewline.schemas import LineIngredient
from brewline.services.nutrition import NutritionTotals, aggregate, breakdown

MILK = SimpleNamespace(id="milk", name="Milk", density_g_per_ml=1.03, grams_per_unit=None, allergen_tags=["dairy"])
SUGAR = SimpleNamespace(id="sugar", name="Sugar", density_g_per_ml=None, grams_per_unit=4, allergen_tags=[])
NUTS = SimpleNamespace(id="nuts", name="Hazelnut", density_g_per_ml=None, grams_per_unit=None, allergen_tags=["tree_nut"])

MILK_N = SimpleNamespace(
    ingredient_id="milk", per_100g_energy_kcal=64, per_100g_protein_g=3.3, per_100g_fat_g=3.6,
    per_100g_carbs_g=4.8, per_100g_sugars_g=4.8, per_100g_fiber_g=0, per_100g_sodium_mg=44,
)
SUGAR_N = SimpleNamespace(
    ingredient_id="sugar", per_100g_energy_kcal=387, per_100g_protein_g=0, per_100g_fat_g=0,
    per_100g_carbs_g=100, per_100g_sugars_g=100, per_100g_fiber_g=None, per_100g_sodium_mg=1,
)

INGREDIENTS = {"milk": MILK, "sugar": SUGAR, "nuts": NUTS}
NUTRITION = {"milk": MILK_N, "sugar": SUGAR_N}


def line(ingredient_id, amount, unit, role="base"):
    return LineIngredient(ingredient_id=ingredient_id, amount=amount, unit=unit, role=role)


def test_single_line_scales_per_100g():
    res = aggregate([line("milk", 100, "ml")], {"milk": MILK}, {"milk": MILK_N})
    # 100 ml * 1.03 g/ml = 103 g
    assert res.totals.energy_kcal == pytest.approx(64 * 1.03)
    assert res.totals.protein_g == pytest.approx(3.3 * 1.03)
    assert res.complete is True
    assert res.estimated is False
    assert res.allergens == frozenset({"dairy"})


def test_aggregation_is_linear():
    l1 = [line("milk", 240, "ml")]
    l2 = [line("milk", 60, "ml"), line("sugar", 2, "piece")]
    whole = aggregate(l1 + l2, INGREDIENTS, NUTRITION)
    parts = aggregate(l1, INGREDIENTS, NUTRITION) + aggregate(l2, INGREDIENTS, NUTRITION)
    for k, v in whole.totals.to_dict().items():
        assert v == pytest.approx(parts.totals.to_dict()[k])
    assert whole.complete == parts.complete
    assert whole.allergens == parts.allergens


def test_missing_nutrition_row_degrades():
    res = aggregate([line("milk", 100, "ml"), line("nuts", 10, "g")], INGREDIENTS, NUTRITION)
    assert res.complete is False
    assert res.totals.energy_kcal == pytest.approx(64 * 1.03)
    # allergens still reported for the unknown-nutrition ingredient
    assert "tree_nut" in res.allergens
    assert [(m.ingredient_id, m.what) for m in res.missing] == [("nuts", "nutrition")]


def test_missing_ingredient_degrades():
    res = aggregate([line("ghost", 10, "g")], INGREDIENTS, NUTRITION)
    assert res.complete is False
    assert res.totals == NutritionTotals()
    assert res.missing[0].what == "ingredient"


def test_unknown_optional_macro_marks_incomplete():
    res = aggregate([line("sugar", 10, "g")], INGREDIENTS, NUTRITION)
    assert res.complete is False
    assert res.totals.fiber_g == 0
    assert res.totals.carbs_g == pytest.approx(10)


def test_inexact_conversion_marks_estimated():
    res = aggregate([line("sugar", 5, "tbsp")], INGREDIENTS, NUTRITION)
    assert res.estimated is True
    assert any(m.what == "conversion" for m in res.missing)


def test_rounded_display_form():
    totals = NutritionTotals(energy_kcal=123.456, protein_g=1.04, sodium_mg=45.6)
    out = totals.rounded()
    assert out["energy_kcal"] == 123.5
    assert out["protein_g"] == 1.0
    assert out["sodium_mg"] == 46
    assert isinstance(out["sodium_mg"], int)


def test_breakdown_skips_missing():
    rows = breakdown([line("milk", 100, "ml"), line("nuts", 5, "g")], INGREDIENTS, NUTRITION)
    assert len(rows) == 1
    assert rows[0]["ingredient_id"] == "milk"
    assert rows[0]["grams_used"] == pytest.approx(103)
    assert rows[0]["contrib"]["sodium_mg"] == 45


def test_preview_endpoint_flags_missing_rows(client, catalog):
    res = client.post("/api/nutrition/preview", json={"lines": [
        {"ingredient_id": "ing-milk", "amount": 240, "unit": "ml"},
        {"ingredient_id": "ing-cream", "amount": 1, "unit": "scoop", "role": "extra"},
    ]})
    assert res.status_code == 200
    data = res.json()
    assert data["complete"] is False
    assert data["allergens"] == ["dairy"]
    assert data["totals"]["energy_kcal"] == pytest.approx(round(64 * 2.4 * 1.03, 1))
    assert data["missing"][0]["ingredient_id"] == "ing-cream"


def test_breakdown_endpoint(client, catalog):
    res = client.post("/api/nutrition/breakdown", json={"lines": [
        {"ingredient_id": "ing-espresso", "amount": 60, "unit": "ml"},
    ]})
    assert res.status_code == 200
    rows = res.json()
    assert rows[0]["name"] == "Espresso"
    assert rows[0]["factor"] == pytest.approx(0.6)
