"""
Tests for the promotion endpoints.
"""

from datetime import datetime, timedelta, timezone


def cart(*prices, size_ml=355):
    return [{"drink_id": "drink-latte", "size_ml": size_ml, "unit_price_cents": p} for p in prices]


def test_validate_percentage(client, make_promo):
    make_promo("SAVE10", "percentage", {"percent": 10}, description="10% off everything")
    res = client.post("/api/promos/validate", json={"code": "save10", "cart": cart(500)})
    assert res.status_code == 200
    data = res.json()
    assert data["valid"] is True
    assert data["promo"]["code"] == "SAVE10"
    assert data["promo"]["label"] == "10% OFF"
    assert data["error"] is None


def test_validate_unknown_code(client):
    res = client.post("/api/promos/validate", json={"code": "NOPE", "cart": cart(500)})
    assert res.status_code == 200
    assert res.json()["error"] == {"kind": "not_found", "message": "Invalid promo code"}


def test_validate_not_yet_active(client, make_promo):
    make_promo("SOON", "percentage", {"percent": 10}, valid_from=datetime.now(timezone.utc) + timedelta(days=2))
    data = client.post("/api/promos/validate", json={"code": "SOON", "cart": cart(500)}).json()
    assert data["error"]["kind"] == "inactive"


def test_apply_fixed_amount_capped(client, make_promo):
    make_promo("FIFTY", "fixed_amount", {"amount_cents": 50})
    data = client.post("/api/promos/apply", json={"code": "FIFTY", "cart": cart(30)}).json()
    assert data["success"] is True
    assert data["discount_cents"] == 30
    assert data["new_subtotal_cents"] == 0
    assert data["applied_promo"]["code"] == "FIFTY"


def test_apply_with_explicit_subtotal(client, make_promo):
    make_promo("SAVE10", "percentage", {"percent": 10})
    data = client.post("/api/promos/apply", json={"code": "SAVE10", "cart": cart(100), "subtotal_cents": 500}).json()
    assert data["discount_cents"] == 50


def test_bundle_requires_variant_selection(client, make_promo):
    make_promo("PAIR", "bundle", {
        "items_quantity": 2,
        "size_requirements": {"355": 1, "473": 1},
        "variants": [{"id": "classic", "name": "Classic", "price_cents": 26000}],
    })
    body = {"code": "PAIR", "cart": cart(15000) + cart(18000, size_ml=473)}
    data = client.post("/api/promos/validate", json=body).json()
    assert data["valid"] is True
    assert data["requires_action"]["type"] == "select_variant"

    data = client.post("/api/promos/apply", json={**body, "selected_variant_id": "classic"}).json()
    assert data["discount_cents"] == 7000


def test_usage_limit_per_customer(client, catalog, make_promo):
    make_promo("ONCE", "percentage", {"percent": 10}, usage_limit_per_customer=1)
    order = {
        "pickup_time": (datetime.now(timezone.utc) + timedelta(hours=1)).isoformat(),
        "guest_name": "Ana",
        "guest_phone": "09171234567",
        "payment_method": "cash",
        "cart_items": [{"drink_id": "drink-latte", "size_ml": 355, "lines": []}],
        "promo_code": "ONCE",
    }
    assert client.post("/api/orders", json=order).status_code == 201

    data = client.post("/api/promos/validate", json={
        "code": "ONCE", "cart": cart(15000), "customer_identifier": "09171234567",
    }).json()
    assert data["error"]["kind"] == "usage_exceeded"

    assert client.post("/api/orders", json=order).status_code == 400


def test_best_promo_picks_highest_priority(client, make_promo):
    make_promo("LOW", "percentage", {"percent": 50}, priority=1)
    make_promo("HIGH", "fixed_amount", {"amount_cents": 100}, priority=10)
    data = client.post("/api/promos/best", json={"cart": cart(1000)}).json()
    assert data["promo"]["code"] == "HIGH"
    assert data["application"]["discount_cents"] == 100


def test_best_promo_none(client):
    assert client.post("/api/promos/best", json={"cart": cart(1000)}).json() == {"promo": None, "application": None}


def test_available_lists_running_promos(client, make_promo):
    make_promo("NOW", "percentage", {"percent": 5}, priority=2)
    make_promo("LATER", "percentage", {"percent": 5}, valid_from=datetime.now(timezone.utc) + timedelta(days=1))
    make_promo("OFF", "percentage", {"percent": 5}, is_active=False)
    data = client.get("/api/promos/available").json()
    assert [p["code"] for p in data] == ["NOW"]
