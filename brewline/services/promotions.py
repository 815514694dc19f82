"""
Promotion Engine.

Validates a promotion against a cart snapshot and computes a bounded
discount for one of five promotion shapes (percentage, fixed amount,
bundle, free add-on, buy-X-get-Y). Promotions never stack: when several
are eligible, only the highest-priority one applies (ties go to the most
recently created).

Failures are returned as PromotionError values, never raised, so the
caller can render the precise reason.

Validation order:
1. promotion exists and is active
2. now falls inside [valid_from, valid_until] (open-ended until = no expiry)
3. subtotal and cart contents meet the promotion's constraints
4. usage caps (total and per customer) are not exhausted
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional, assert_never

from ..errors import PromotionError
from ..schemas import (
    BundleParams,
    BuyXGetYParams,
    CartItemIn,
    FixedAmountParams,
    FreeAddonParams,
    PercentageParams,
    Promotion,
)
from .pricing import round_cents

logger = logging.getLogger("brewline.promos")


# --- Result types ---

@dataclass
class UsageCounts:
    total: int = 0
    by_customer: int = 0


@dataclass
class PromoValidation:
    valid: bool
    promo: Optional[Promotion] = None
    error: Optional[PromotionError] = None
    requires_action: Optional[dict] = None


@dataclass
class PromoApplication:
    success: bool
    discount_cents: int
    new_subtotal_cents: int
    errors: list = field(default_factory=list)
    applied_promo: Optional[dict] = None

    @property
    def total_cents(self) -> int:
        return self.new_subtotal_cents


def _fail(promo, kind, message, requires_action=None) -> PromoValidation:
    return PromoValidation(
        valid=False,
        promo=promo,
        error=PromotionError(kind, message),
        requires_action=requires_action,
    )


def _failed_application(subtotal_cents: int, error: PromotionError) -> PromoApplication:
    return PromoApplication(
        success=False,
        discount_cents=0,
        new_subtotal_cents=subtotal_cents,
        errors=[error],
    )


# --- Helpers ---

def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes (e.g. from SQLite) are taken to be UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def cart_subtotal(cart: Iterable[CartItemIn]) -> int:
    return sum(item.unit_price_cents for item in cart)


def total_after_discount(subtotal_cents: int, discount_cents: int) -> int:
    return max(0, subtotal_cents - discount_cents)


def is_currently_active(promo: Promotion, now: Optional[datetime] = None) -> bool:
    """Active flag set and now inside the validity window."""
    now = as_utc(now) or datetime.now(timezone.utc)
    if not promo.is_active:
        return False
    valid_from = as_utc(promo.valid_from)
    valid_until = as_utc(promo.valid_until)
    if valid_from and now < valid_from:
        return False
    return not (valid_until and now > valid_until)


def format_price(cents: int, currency: str = "₱") -> str:
    return f"{currency}{cents / 100:.2f}"


def format_promo_discount(promo: Promotion, currency: str = "₱") -> str:
    """Short display label for a promotion card."""
    p = promo.params
    if isinstance(p, PercentageParams):
        return f"{p.percent:g}% OFF"
    if isinstance(p, FixedAmountParams):
        return f"SAVE {format_price(p.amount_cents, currency)}"
    if isinstance(p, BundleParams):
        if p.bundle_price_cents is not None:
            return f"{format_price(p.bundle_price_cents, currency)} BUNDLE"
        return "BUNDLE DEAL"
    if isinstance(p, FreeAddonParams):
        return "FREE ADD-ON"
    if isinstance(p, BuyXGetYParams):
        return f"BUY {p.buy_quantity} GET {p.get_quantity}"
    assert_never(p)


def _item_matches(item: CartItemIn, drink_ids: Iterable[str], size_mls: Iterable[int]) -> bool:
    drink_ids = list(drink_ids or [])
    size_mls = list(size_mls or [])
    if drink_ids and item.drink_id not in drink_ids:
        return False
    if size_mls and item.size_ml not in size_mls:
        return False
    return True


# --- Type-specific selection ---

def bundle_constituents(params: BundleParams, cart: list[CartItemIn]) -> tuple[Optional[list[CartItemIn]], Optional[str]]:
    """
    Pick the cart items that make up the bundle.

    Size requirements are filled first, then the remaining slots up to
    items_quantity. Higher-priced items are taken first.
    Returns (items, None) or (None, reason).
    """
    pool = [i for i in cart if _item_matches(i, params.drink_ids, [])]
    pool.sort(key=lambda i: i.unit_price_cents, reverse=True)

    chosen: list[CartItemIn] = []
    for size_ml, count in sorted(params.size_requirements.items()):
        if count <= 0:
            continue
        matching = [i for i in pool if i.size_ml == size_ml]
        if len(matching) < count:
            return None, f"This bundle requires {count}x {size_ml}ml drink(s)"
        for item in matching[:count]:
            chosen.append(item)
            pool.remove(item)

    missing = params.items_quantity - len(chosen)
    if missing > 0:
        if len(pool) < missing:
            return None, f"This bundle requires {params.items_quantity} items"
        chosen.extend(pool[:missing])

    return chosen, None


def bundle_price(params: BundleParams, selected_variant_id: Optional[str]) -> Optional[int]:
    if selected_variant_id:
        for v in params.variants:
            if v.id == selected_variant_id and v.is_active:
                return v.price_cents
        return None
    return params.bundle_price_cents


def qualifying_addon_items(params: FreeAddonParams, cart: list[CartItemIn]) -> list[CartItemIn]:
    return [
        i for i in cart
        if (params.qualifying_size_ml is None or i.size_ml == params.qualifying_size_ml)
        and (params.qualifying_drink_id is None or i.drink_id == params.qualifying_drink_id)
    ]


def eligible_addon_lines(
    params: FreeAddonParams,
    cart: list[CartItemIn],
    selected_addon_id: Optional[str] = None,
) -> list:
    """Extra lines in qualifying items that the promotion may make free, cheapest first."""
    if params.free_addon_id:
        allowed = {params.free_addon_id}
    else:
        allowed = set(params.eligible_addon_ids)
    if selected_addon_id:
        if allowed and selected_addon_id not in allowed:
            return []
        allowed = {selected_addon_id}

    lines = [
        line
        for item in qualifying_addon_items(params, cart)
        for line in item.lines
        if line.is_extra and (not allowed or line.ingredient_id in allowed)
    ]
    lines.sort(key=lambda l: l.price_cents or 0)
    return lines


def buy_x_get_y_free_prices(params: BuyXGetYParams, cart: list[CartItemIn]) -> list[int]:
    """Prices made free: in each group of buy+get qualifying items, the `get` cheapest."""
    prices = sorted(
        (i.unit_price_cents for i in cart
         if _item_matches(i, params.qualifying_drink_ids, params.qualifying_size_mls)),
        reverse=True,
    )
    group = params.buy_quantity + params.get_quantity
    return [p for idx, p in enumerate(prices) if idx % group >= params.buy_quantity and idx < (len(prices) // group) * group]


# --- Validation ---

def check_eligibility(
    promo: Promotion,
    cart: list[CartItemIn],
    subtotal_cents: int,
    selected_variant_id: Optional[str] = None,
    selected_addon_id: Optional[str] = None,
) -> Optional[PromoValidation]:
    """Cart-content constraints. Returns a failed validation, or None when eligible."""
    if promo.min_order_cents and subtotal_cents < promo.min_order_cents:
        return _fail(
            promo, "threshold_not_met",
            f"Minimum order of {format_price(promo.min_order_cents)} required",
        )

    if promo.applicable_drink_ids:
        if not any(i.drink_id in promo.applicable_drink_ids for i in cart):
            return _fail(promo, "ineligible_items", "This promo applies to specific drinks only")

    p = promo.params
    if isinstance(p, (PercentageParams, FixedAmountParams)):
        return None

    if isinstance(p, BundleParams):
        chosen, reason = bundle_constituents(p, cart)
        if chosen is None:
            return _fail(
                promo, "ineligible_items", reason,
                requires_action={"type": "add_items", "options": {"required": p.items_quantity}},
            )
        if selected_variant_id and bundle_price(p, selected_variant_id) is None:
            return _fail(promo, "ineligible_items", "Selected bundle option is not available")
        return None

    if isinstance(p, FreeAddonParams):
        if not qualifying_addon_items(p, cart):
            return _fail(promo, "ineligible_items", "Add a qualifying drink to use this promo")
        if not eligible_addon_lines(p, cart, selected_addon_id):
            return _fail(
                promo, "ineligible_items", "Select an eligible add-on to use this promo",
                requires_action={
                    "type": "select_addon",
                    "options": {
                        "eligible_addon_ids": [p.free_addon_id] if p.free_addon_id else p.eligible_addon_ids,
                        "max_free_quantity": p.max_free_quantity,
                    },
                },
            )
        return None

    if isinstance(p, BuyXGetYParams):
        group = p.buy_quantity + p.get_quantity
        n = sum(1 for i in cart if _item_matches(i, p.qualifying_drink_ids, p.qualifying_size_mls))
        if n < group:
            return _fail(
                promo, "ineligible_items",
                f"Add {group - n} more qualifying drink(s) to use this promo",
                requires_action={"type": "add_items", "options": {"required": group}},
            )
        return None

    assert_never(p)


def validate_promotion(
    promo: Optional[Promotion],
    cart: list[CartItemIn],
    subtotal_cents: int,
    customer_identifier: Optional[str] = None,
    usage: Optional[UsageCounts] = None,
    now: Optional[datetime] = None,
    selected_variant_id: Optional[str] = None,
    selected_addon_id: Optional[str] = None,
) -> PromoValidation:
    """Check a promotion against the cart. Never raises."""
    if promo is None:
        return _fail(None, "not_found", "Invalid promo code")

    if not promo.is_active:
        return _fail(promo, "inactive", "This promo is no longer active")

    now = as_utc(now) or datetime.now(timezone.utc)
    valid_from = as_utc(promo.valid_from)
    valid_until = as_utc(promo.valid_until)
    if valid_from and now < valid_from:
        return _fail(promo, "inactive", "This promo is not yet active")
    if valid_until and now > valid_until:
        return _fail(promo, "expired", "This promo has expired")

    failed = check_eligibility(promo, cart, subtotal_cents, selected_variant_id, selected_addon_id)
    if failed is not None:
        return failed

    usage = usage or UsageCounts()
    if promo.usage_limit_total and usage.total >= promo.usage_limit_total:
        return _fail(promo, "usage_exceeded", "This promo has reached its usage limit")
    if promo.usage_limit_per_customer and customer_identifier and usage.by_customer >= promo.usage_limit_per_customer:
        return _fail(promo, "usage_exceeded", "You've reached the usage limit for this promo")

    requires_action = None
    p = promo.params
    if isinstance(p, BundleParams) and p.variants and not selected_variant_id:
        requires_action = {
            "type": "select_variant",
            "options": {
                "variants": [v.model_dump() for v in p.variants if v.is_active],
            },
        }

    return PromoValidation(valid=True, promo=promo, requires_action=requires_action)


# --- Discount calculation ---

def raw_discount(
    promo: Promotion,
    cart: list[CartItemIn],
    subtotal_cents: int,
    selected_variant_id: Optional[str] = None,
    selected_addon_id: Optional[str] = None,
) -> tuple[int, Optional[PromotionError]]:
    """Unbounded discount for the promotion's shape, or an error explaining why none applies."""
    p = promo.params

    if isinstance(p, PercentageParams):
        return round_cents(subtotal_cents * p.percent / 100), None

    if isinstance(p, FixedAmountParams):
        return p.amount_cents, None

    if isinstance(p, BundleParams):
        chosen, reason = bundle_constituents(p, cart)
        if chosen is None:
            return 0, PromotionError("ineligible_items", reason)
        price = bundle_price(p, selected_variant_id)
        if price is None:
            return 0, PromotionError("ineligible_items", "Select a bundle option to use this promo")
        constituents = sum(i.unit_price_cents for i in chosen)
        return max(0, constituents - price), None

    if isinstance(p, FreeAddonParams):
        lines = eligible_addon_lines(p, cart, selected_addon_id)
        if not lines:
            return 0, PromotionError("ineligible_items", "Select an eligible add-on to use this promo")
        free = lines[:p.max_free_quantity]
        return sum(l.price_cents or 0 for l in free), None

    if isinstance(p, BuyXGetYParams):
        free = buy_x_get_y_free_prices(p, cart)
        if not free:
            return 0, PromotionError("ineligible_items", "Not enough qualifying drinks for this promo")
        return sum(free), None

    assert_never(p)


def bound_discount(promo: Promotion, discount_cents: int, subtotal_cents: int) -> int:
    """0 <= discount <= subtotal, and never above the promotion's cap."""
    d = max(0, int(discount_cents))
    if promo.max_discount_cents is not None:
        d = min(d, promo.max_discount_cents)
    return min(d, max(0, subtotal_cents))


def apply_promotion(
    promo: Promotion,
    cart: list[CartItemIn],
    subtotal_cents: int,
    selected_variant_id: Optional[str] = None,
    selected_addon_id: Optional[str] = None,
) -> PromoApplication:
    """Compute the bounded discount and the new subtotal. Never raises."""
    subtotal_cents = max(0, int(subtotal_cents))
    discount, error = raw_discount(promo, cart, subtotal_cents, selected_variant_id, selected_addon_id)
    if error is not None:
        return _failed_application(subtotal_cents, error)

    discount = bound_discount(promo, discount, subtotal_cents)
    logger.info(f"Promo {promo.code} applied: {discount} off {subtotal_cents}")
    return PromoApplication(
        success=True,
        discount_cents=discount,
        new_subtotal_cents=total_after_discount(subtotal_cents, discount),
        applied_promo={
            "promo_id": promo.id,
            "code": promo.code,
            "description": promo.description or promo.name,
        },
    )


def validate_and_apply(
    promo: Optional[Promotion],
    cart: list[CartItemIn],
    subtotal_cents: int,
    customer_identifier: Optional[str] = None,
    usage: Optional[UsageCounts] = None,
    now: Optional[datetime] = None,
    selected_variant_id: Optional[str] = None,
    selected_addon_id: Optional[str] = None,
) -> tuple[PromoValidation, PromoApplication]:
    validation = validate_promotion(
        promo, cart, subtotal_cents, customer_identifier, usage, now,
        selected_variant_id, selected_addon_id,
    )
    if not validation.valid:
        return validation, _failed_application(subtotal_cents, validation.error)
    return validation, apply_promotion(promo, cart, subtotal_cents, selected_variant_id, selected_addon_id)


# --- Choosing among promotions ---

def _rank(promo: Promotion) -> tuple:
    created = as_utc(promo.created_at)
    return (promo.priority, created.timestamp() if created else float("-inf"))


def list_available_promotions(
    candidates: Iterable[Promotion],
    cart: list[CartItemIn],
    subtotal_cents: int,
    customer_identifier: Optional[str] = None,
    usage_by_promo: Optional[Mapping[str, UsageCounts]] = None,
    now: Optional[datetime] = None,
) -> list[Promotion]:
    """Currently eligible promotions, best first."""
    usage_by_promo = usage_by_promo or {}
    eligible = []
    for promo in candidates:
        v = validate_promotion(
            promo, cart, subtotal_cents, customer_identifier,
            usage_by_promo.get(promo.id), now,
        )
        if v.valid:
            eligible.append(promo)
    eligible.sort(key=_rank, reverse=True)
    return eligible


def select_best_promotion(
    candidates: Iterable[Promotion],
    cart: list[CartItemIn],
    subtotal_cents: int,
    customer_identifier: Optional[str] = None,
    usage_by_promo: Optional[Mapping[str, UsageCounts]] = None,
    now: Optional[datetime] = None,
) -> Optional[Promotion]:
    """The single promotion to apply: highest priority, ties to most recently created."""
    available = list_available_promotions(
        candidates, cart, subtotal_cents, customer_identifier, usage_by_promo, now
    )
    return available[0] if available else None
