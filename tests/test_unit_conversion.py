"""
Tests for the Unit Normalizer.
"""

from types import SimpleNamespace

import pytest

from brewline.services.unit_conversion import normalize_unit, to_grams, to_milliliters


def ing(**kw):
    base = {"id": "x", "density_g_per_ml": None, "grams_per_unit": None}
    base.update(kw)
    return SimpleNamespace(**base)


def test_grams_passthrough():
    r = to_grams(12.5, "g", ing())
    assert r.grams == 12.5
    assert r.exact is True


@pytest.mark.parametrize("amount,density", [(100, 1.03), (15, 1.3), (0.5, 0.92)])
def test_milliliters_use_density(amount, density):
    r = to_grams(amount, "milliliter", ing(density_g_per_ml=density))
    assert r.grams == pytest.approx(amount * density)
    assert r.exact is True


def test_milliliters_without_density_is_estimated():
    r = to_grams(100, "ml", ing())
    assert r.grams == 100
    assert r.exact is False
    assert "density" in r.note


def test_scoop_uses_grams_per_unit():
    r = to_grams(2, "scoops", ing(grams_per_unit=15))
    assert r.grams == 30
    assert r.exact is True


def test_piece_without_factor_is_estimated():
    r = to_grams(3, "pcs", ing())
    assert r.grams == 3
    assert r.exact is False


def test_unknown_unit_treated_as_grams():
    r = to_grams(4, "pump", ing(density_g_per_ml=1.2))
    assert r.grams == 4
    assert r.exact is False
    assert "pump" in r.note


def test_negative_amount_clamped():
    r = to_grams(-5, "g", ing())
    assert r.grams == 0
    assert r.exact is False


@pytest.mark.parametrize("amount", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_amount_clamped(amount):
    r = to_grams(amount, "ml", ing(density_g_per_ml=1.03))
    assert r.grams == 0
    assert r.exact is False
    assert to_milliliters(amount, "g", ing(density_g_per_ml=1.03)).milliliters == 0


def test_zero_density_is_not_a_factor():
    r = to_grams(10, "ml", ing(density_g_per_ml=0))
    assert r.exact is False


def test_normalize_unit_synonyms():
    assert normalize_unit("Grams") == "gram"
    assert normalize_unit(" ML ") == "milliliter"
    assert normalize_unit("millilitres") == "milliliter"
    assert normalize_unit("pc") == "piece"
    assert normalize_unit("cup") is None
    assert normalize_unit(None) is None


def test_to_milliliters_from_grams():
    r = to_milliliters(130, "g", ing(density_g_per_ml=1.3))
    assert r.milliliters == pytest.approx(100)
    assert r.exact is True


def test_to_milliliters_passthrough_ml():
    r = to_milliliters(15, "ml", ing())
    assert r.milliliters == 15
    assert r.exact is True


def test_to_milliliters_without_density():
    r = to_milliliters(50, "g", ing())
    assert r.milliliters == 50
    assert r.exact is False


def test_grams_endpoint(client, catalog):
    res = client.post("/api/units/grams", json={"ingredient_id": "ing-milk", "amount": 100, "unit": "ml"})
    assert res.status_code == 200
    data = res.json()
    assert data["grams"] == pytest.approx(103)
    assert data["exact"] is True


def test_grams_endpoint_unknown_ingredient(client):
    res = client.post("/api/units/grams", json={"ingredient_id": "nope", "amount": 1, "unit": "g"})
    assert res.status_code == 404


@pytest.mark.parametrize("raw", ["NaN", "Infinity", "-Infinity"])
def test_grams_endpoint_rejects_non_finite_amount(client, catalog, raw):
    body = '{"ingredient_id": "ing-milk", "amount": %s, "unit": "ml"}' % raw
    res = client.post("/api/units/grams", content=body, headers={"Content-Type": "application/json"})
    assert res.status_code == 422
