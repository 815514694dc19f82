from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
import fakeredis
import fakeredis.aioredis
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from brewline.main import app
from brewline.db import Base, get_db
from brewline.infra import redis_client
from brewline.models import (
    Drink,
    DrinkIngredient,
    DrinkSize,
    Ingredient,
    IngredientNutrition,
    IngredientPricing,
    Promo,
)
from brewline.routers.promos import limiter as promo_limiter
from brewline.settings import settings

# --- Test Database Setup ---

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # one shared connection so every session sees the same in-memory db
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def fast_settings(monkeypatch):
    monkeypatch.setattr(settings, "persistence_backoff_ms", 0)
    monkeypatch.setattr(promo_limiter, "enabled", False)
    yield


@pytest.fixture
def client():
    """Test client with DB override."""
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db_session():
    """Direct database session for setup."""
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def mock_redis():
    server = fakeredis.FakeServer()
    async_redis = fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)
    sync_redis = fakeredis.FakeRedis(server=server, decode_responses=True)

    redis_client._redis_async = async_redis
    redis_client._redis_sync = sync_redis

    yield

    redis_client._redis_async = None
    redis_client._redis_sync = None


# --- Catalog ---

@pytest.fixture
def catalog(db_session):
    """
    A small cafe menu:
    - Latte (355ml base, 355/473 sizes): espresso 60ml + milk 240ml
    - Iced Americano (355ml base) with an explicit 473ml override
    - Add-ons: caramel syrup (per ml) and whipped cream (per scoop)
    """
    espresso = Ingredient(id="ing-espresso", name="Espresso", density_g_per_ml=1.0)
    milk = Ingredient(id="ing-milk", name="Whole Milk", density_g_per_ml=1.03, allergen_tags=["dairy"])
    water = Ingredient(id="ing-water", name="Water", density_g_per_ml=1.0)
    caramel = Ingredient(id="ing-caramel", name="Caramel Syrup", density_g_per_ml=1.3, is_addon=True)
    cream = Ingredient(
        id="ing-cream", name="Whipped Cream", grams_per_unit=15, is_addon=True,
        unit_default="scoop", allergen_tags=["dairy"],
    )
    db_session.add_all([espresso, milk, water, caramel, cream])

    db_session.add_all([
        IngredientNutrition(
            ingredient_id="ing-espresso", per_100g_energy_kcal=2, per_100g_protein_g=0.1,
            per_100g_fat_g=0.2, per_100g_carbs_g=0, per_100g_sugars_g=0, per_100g_fiber_g=0,
            per_100g_sodium_mg=14,
        ),
        IngredientNutrition(
            ingredient_id="ing-milk", per_100g_energy_kcal=64, per_100g_protein_g=3.3,
            per_100g_fat_g=3.6, per_100g_carbs_g=4.8, per_100g_sugars_g=4.8, per_100g_fiber_g=0,
            per_100g_sodium_mg=44,
        ),
        IngredientNutrition(
            ingredient_id="ing-water", per_100g_energy_kcal=0, per_100g_protein_g=0,
            per_100g_fat_g=0, per_100g_carbs_g=0, per_100g_sugars_g=0, per_100g_fiber_g=0,
            per_100g_sodium_mg=0,
        ),
        IngredientNutrition(
            ingredient_id="ing-caramel", per_100g_energy_kcal=300, per_100g_protein_g=0,
            per_100g_fat_g=0, per_100g_carbs_g=75, per_100g_sugars_g=70, per_100g_fiber_g=0,
            per_100g_sodium_mg=60,
        ),
        # whipped cream intentionally has no nutrition row
    ])

    db_session.add_all([
        IngredientPricing(ingredient_id="ing-caramel", pricing_mode="per_ml", rate_cents=2.0),
        IngredientPricing(ingredient_id="ing-cream", pricing_mode="per_unit", rate_cents=2500, unit_label="scoop"),
    ])

    latte = Drink(id="drink-latte", name="Latte", base_size_ml=355, price_cents=15000)
    latte.sizes = [
        DrinkSize(id="size-latte-355", size_ml=355, label="12oz", price_cents=15000),
        DrinkSize(id="size-latte-473", size_ml=473, label="16oz", price_cents=18000),
    ]
    latte.lines = [
        DrinkIngredient(ingredient_id="ing-espresso", amount=60, unit="ml", position=0),
        DrinkIngredient(ingredient_id="ing-milk", amount=240, unit="ml", position=1),
    ]

    americano = Drink(id="drink-americano", name="Iced Americano", base_size_ml=355, price_cents=12000)
    big = DrinkSize(id="size-americano-473", size_ml=473, label="16oz", price_cents=14000)
    americano.sizes = [
        DrinkSize(id="size-americano-355", size_ml=355, label="12oz", price_cents=12000),
        big,
    ]
    americano.lines = [
        DrinkIngredient(ingredient_id="ing-espresso", amount=60, unit="ml", position=0),
        DrinkIngredient(ingredient_id="ing-water", amount=200, unit="ml", position=1),
        DrinkIngredient(ingredient_id="ing-espresso", amount=90, unit="ml", position=0, size=big),
        DrinkIngredient(ingredient_id="ing-water", amount=250, unit="ml", position=1, size=big),
    ]

    db_session.add_all([latte, americano])
    db_session.commit()

    return SimpleNamespace(latte=latte, americano=americano)


@pytest.fixture
def make_promo(db_session):
    """Insert a promotion row; valid since yesterday unless overridden."""
    def _make(code, promo_type, params, **kw):
        kw.setdefault("valid_from", datetime.now(timezone.utc) - timedelta(days=1))
        promo = Promo(code=code, name=kw.pop("name", code), promo_type=promo_type, params=params, **kw)
        db_session.add(promo)
        db_session.commit()
        db_session.refresh(promo)
        return promo
    return _make
