"""
Cart state for one ordering session.

A CartState is owned by its caller (one per session) and passed around
explicitly; there is no module-level cart. The applied promotion is
re-checked whenever the contents change so the discount never goes stale.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Mapping, Optional

from ..errors import PromotionError
from ..schemas import CartItemIn, LineIngredient, Promotion
from .nutrition import NutritionResult, aggregate
from .pricing import price_for_line
from .promotions import UsageCounts, total_after_discount, validate_and_apply
from .recipe_scaler import resolve_lines

logger = logging.getLogger("brewline.cart")


@dataclass
class CartState:
    items: list[CartItemIn] = field(default_factory=list)
    promo: Optional[Promotion] = None
    discount_cents: int = 0
    promo_error: Optional[PromotionError] = None
    selected_variant_id: Optional[str] = None
    selected_addon_id: Optional[str] = None
    customer_identifier: Optional[str] = None
    usage: Optional[UsageCounts] = None

    @property
    def subtotal_cents(self) -> int:
        return sum(i.unit_price_cents for i in self.items)

    @property
    def total_cents(self) -> int:
        return total_after_discount(self.subtotal_cents, self.discount_cents)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def add_item(self, item: CartItemIn) -> None:
        self.items.append(item)
        self._refresh_promotion()

    def remove_item(self, index: int) -> CartItemIn:
        item = self.items.pop(index)
        self._refresh_promotion()
        return item

    def clear(self) -> None:
        self.items.clear()
        self.remove_promotion()

    def apply_promotion(
        self,
        promo: Optional[Promotion],
        customer_identifier: Optional[str] = None,
        usage: Optional[UsageCounts] = None,
        now: Optional[datetime] = None,
        selected_variant_id: Optional[str] = None,
        selected_addon_id: Optional[str] = None,
    ) -> bool:
        """Validate and apply `promo`, replacing any previous one. Returns success."""
        validation, application = validate_and_apply(
            promo, self.items, self.subtotal_cents, customer_identifier, usage, now,
            selected_variant_id, selected_addon_id,
        )
        if not validation.valid or not application.success:
            self.promo = None
            self.discount_cents = 0
            self.promo_error = validation.error or application.errors[0]
            return False

        self.promo = promo
        self.discount_cents = application.discount_cents
        self.promo_error = None
        self.selected_variant_id = selected_variant_id
        self.selected_addon_id = selected_addon_id
        self.customer_identifier = customer_identifier
        self.usage = usage
        return True

    def remove_promotion(self) -> None:
        self.promo = None
        self.discount_cents = 0
        self.promo_error = None
        self.selected_variant_id = None
        self.selected_addon_id = None
        self.customer_identifier = None
        self.usage = None

    def _refresh_promotion(self) -> None:
        if self.promo is None:
            return
        code = self.promo.code
        if not self.apply_promotion(
            self.promo,
            customer_identifier=self.customer_identifier,
            usage=self.usage,
            selected_variant_id=self.selected_variant_id,
            selected_addon_id=self.selected_addon_id,
        ):
            logger.info(f"Promo {code} dropped after cart change: {self.promo_error}")

    def item_nutrition(
        self,
        index: int,
        ingredients_by_id: Mapping[str, object],
        nutrition_by_id: Mapping[str, object],
    ) -> NutritionResult:
        return aggregate(self.items[index].lines, ingredients_by_id, nutrition_by_id)


def build_cart_item(
    drink,
    size,
    extras: Iterable[LineIngredient],
    ingredients_by_id: Mapping[str, object],
    pricing_by_ingredient: Mapping[str, list],
) -> CartItemIn:
    """
    Snapshot a configured drink as a cart item.

    Base lines come from the size override or the scaled base recipe; extra
    lines are priced individually. Unit price = size price (drink price when
    the size has none) + priced extras.
    """
    base_lines = [
        l.model_copy(update={"role": "base"})
        for l in resolve_lines(drink.base_lines, drink.base_size_ml, size)
    ]

    priced_extras = []
    addons_cents = 0
    for line in extras:
        line = line.model_copy(update={"role": "extra"})
        ing = ingredients_by_id.get(line.ingredient_id)
        price = price_for_line(line, ing, pricing_by_ingredient.get(line.ingredient_id, []))
        addons_cents += price.cents
        priced_extras.append(line.model_copy(update={
            "price_cents": price.cents,
            "name": line.name or getattr(ing, "name", None),
        }))

    base_cents = size.price_cents if size.price_cents is not None else drink.price_cents
    return CartItemIn(
        item_name=drink.name,
        drink_id=drink.id,
        size_ml=size.size_ml,
        unit_price_cents=base_cents + addons_cents,
        base_price_cents=base_cents,
        addons_price_cents=addons_cents,
        lines=[*base_lines, *priced_extras],
    )
