"""
Catalog reads.

Ingredients, nutrition, pricing, drinks and sizes are read-only inputs to
the valuation core. This module loads them by id or active flag and builds
the id-keyed maps the pure services expect.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..infra.redis_cache import catalog_key, get_or_set_json_sync
from ..models import (
    Drink,
    DrinkSize,
    Ingredient,
    IngredientNutrition,
    IngredientPricing,
)
from ..settings import settings
from .nutrition import aggregate, lookup_maps
from .pricing import group_pricing
from .recipe_scaler import resolve_lines

logger = logging.getLogger("brewline.catalog")


class LineContext:
    """Catalog rows needed to value a set of lines."""

    def __init__(self, ingredients_by_id: dict, nutrition_by_id: dict, pricing_by_ingredient: dict):
        self.ingredients_by_id = ingredients_by_id
        self.nutrition_by_id = nutrition_by_id
        self.pricing_by_ingredient = pricing_by_ingredient

    def nutrition_for(self, lines: Iterable):
        return aggregate(lines, self.ingredients_by_id, self.nutrition_by_id)


def get_ingredient(db: Session, ingredient_id: str) -> Optional[Ingredient]:
    return db.get(Ingredient, ingredient_id)


def get_ingredients(db: Session, ids: Iterable[str]) -> list[Ingredient]:
    ids = list(set(ids))
    if not ids:
        return []
    return list(db.scalars(select(Ingredient).where(Ingredient.id.in_(ids))).all())


def get_nutrition(db: Session, ids: Iterable[str]) -> list[IngredientNutrition]:
    ids = list(set(ids))
    if not ids:
        return []
    return list(db.scalars(
        select(IngredientNutrition).where(IngredientNutrition.ingredient_id.in_(ids))
    ).all())


def get_pricing_rows(db: Session, ids: Iterable[str], active_only: bool = True) -> list[IngredientPricing]:
    ids = list(set(ids))
    if not ids:
        return []
    stmt = select(IngredientPricing).where(IngredientPricing.ingredient_id.in_(ids))
    if active_only:
        stmt = stmt.where(IngredientPricing.is_active.is_(True))
    return list(db.scalars(stmt).all())


def load_line_context(db: Session, lines: Iterable) -> LineContext:
    ids = {l.ingredient_id for l in lines}
    ing_by_id, nutr_by_id = lookup_maps(get_ingredients(db, ids), get_nutrition(db, ids))
    return LineContext(ing_by_id, nutr_by_id, group_pricing(get_pricing_rows(db, ids)))


def get_drink(db: Session, drink_id: str, active_only: bool = True) -> Optional[Drink]:
    stmt = (
        select(Drink)
        .where(Drink.id == drink_id)
        .options(selectinload(Drink.sizes).selectinload(DrinkSize.lines), selectinload(Drink.lines))
    )
    if active_only:
        stmt = stmt.where(Drink.is_active.is_(True))
    return db.scalar(stmt)


def find_size(drink: Drink, size_ml: int) -> Optional[DrinkSize]:
    for s in drink.sizes:
        if s.size_ml == size_ml and s.is_active:
            return s
    return None


def size_lines_payload(db: Session, drink_id: str, size_ml: int) -> Optional[dict]:
    """
    Resolved lines for one drink size, cached in Redis for catalog_cache_ttl_sec.

    Returns None when the drink or size does not exist.
    Raises ConfigurationError when the base recipe cannot be scaled.
    """
    def compute():
        drink = get_drink(db, drink_id)
        if drink is None:
            return None
        size = find_size(drink, size_ml)
        if size is None:
            return None
        lines = resolve_lines(drink.base_lines, drink.base_size_ml, size)
        logger.debug(f"Resolved {len(lines)} lines for drink {drink_id} @ {size_ml}ml")
        return {
            "drink_id": drink.id,
            "size_ml": size.size_ml,
            "source": "override" if size.lines else "scaled",
            "lines": [l.model_dump(mode="json") for l in lines],
        }

    payload, hit = get_or_set_json_sync(
        catalog_key("size_lines", drink_id, size_ml),
        settings.catalog_cache_ttl_sec,
        compute,
    )
    if hit:
        logger.debug(f"Catalog cache hit for drink {drink_id} @ {size_ml}ml")
    return payload
