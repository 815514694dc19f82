"""
Tests for the Recipe Scaler.
"""

from types import SimpleNamespace

import pytest

from brewline.errors import ConfigurationError
from brewline.infra import redis_client
from brewline.infra.redis_cache import catalog_key
from brewline.schemas import LineIngredient
from brewline.services.recipe_scaler import resolve_lines, round_amount

BASE = [
    LineIngredient(ingredient_id="espresso", amount=60, unit="ml"),
    LineIngredient(ingredient_id="milk", amount=240.4, unit="ml"),
    LineIngredient(ingredient_id="sugar", amount=7.3, unit="g"),
]


def size(size_ml, lines=None):
    return SimpleNamespace(size_ml=size_ml, lines=lines or [])


def test_identity_scale_returns_base_amounts():
    out = resolve_lines(BASE, 355, size(355))
    assert [l.amount for l in out] == [60, 240.4, 7.3]


def test_scaled_amounts_round_to_one_decimal():
    out = resolve_lines(BASE, 355, size(473))
    ratio = 473 / 355
    for src, scaled in zip(BASE, out):
        assert scaled.amount == pytest.approx(src.amount * ratio, abs=0.05)
        assert scaled.amount == round(scaled.amount, 1)
    assert out[0].amount == 79.9


def test_override_used_verbatim():
    override = [LineIngredient(ingredient_id="espresso", amount=90, unit="ml")]
    out = resolve_lines(BASE, 355, size(473, override))
    assert [(l.ingredient_id, l.amount) for l in out] == [("espresso", 90)]


def test_empty_override_means_scale():
    out = resolve_lines(BASE, 355, size(710, []))
    assert out[0].amount == 120


def test_missing_base_size_without_override():
    with pytest.raises(ConfigurationError):
        resolve_lines(BASE, None, size(473))


def test_scaling_does_not_mutate_base():
    resolve_lines(BASE, 355, size(473))
    assert BASE[0].amount == 60


def test_round_amount_half_up():
    assert round_amount(0.25) == 0.3
    assert round_amount(1.05) == 1.1


def test_size_lines_endpoint_scaled(client, catalog):
    res = client.get("/api/drinks/drink-latte/sizes/473/lines")
    assert res.status_code == 200
    data = res.json()
    assert data["source"] == "scaled"
    amounts = {l["ingredient_id"]: l["amount"] for l in data["lines"]}
    assert amounts == {"ing-espresso": 79.9, "ing-milk": 319.8}
    assert data["nutrition"]["complete"] is True


def test_size_lines_endpoint_override(client, catalog):
    res = client.get("/api/drinks/drink-americano/sizes/473/lines")
    assert res.status_code == 200
    data = res.json()
    assert data["source"] == "override"
    assert [l["amount"] for l in data["lines"]] == [90, 250]


def test_size_lines_endpoint_unknown_size(client, catalog):
    res = client.get("/api/drinks/drink-latte/sizes/999/lines")
    assert res.status_code == 404


def test_size_lines_are_cached(client, catalog):
    key = catalog_key("size_lines", "drink-latte", 473)
    assert redis_client._redis_sync.get(key) is None

    first = client.get("/api/drinks/drink-latte/sizes/473/lines").json()
    assert redis_client._redis_sync.get(key) is not None
    assert redis_client._redis_sync.ttl(key) > 0

    second = client.get("/api/drinks/drink-latte/sizes/473/lines").json()
    assert second["lines"] == first["lines"]
