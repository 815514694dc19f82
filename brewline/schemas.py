"""Pydantic schemas for Brewline.

Request/response models for:
- Recipe lines, units and nutrition previews
- Ingredient pricing quotes
- Cart snapshots and promotions (tagged union over promotion types)
- Orders, tracking and status updates
"""

from datetime import datetime
from typing import Annotated, Optional, Literal, Union

from pydantic import BaseModel, Field


# --- Lines ---

LineRole = Literal["base", "extra"]


class LineIngredient(BaseModel):
    ingredient_id: str
    amount: float = Field(..., allow_inf_nan=False)
    unit: str
    role: LineRole = "base"
    name: Optional[str] = None
    price_cents: Optional[int] = None  # filled for priced extras

    @property
    def is_extra(self) -> bool:
        return self.role == "extra"

    class Config:
        from_attributes = True


# --- Units ---

class GramsRequest(BaseModel):
    ingredient_id: str
    amount: float = Field(..., allow_inf_nan=False)
    unit: str


class GramsResponse(BaseModel):
    grams: float
    exact: bool
    note: Optional[str] = None


# --- Nutrition ---

class NutritionRequest(BaseModel):
    lines: list[LineIngredient]


class MissingDataOut(BaseModel):
    ingredient_id: str
    what: str
    detail: str


class NutritionTotalsOut(BaseModel):
    energy_kcal: float
    protein_g: float
    fat_g: float
    carbs_g: float
    sugars_g: float
    fiber_g: float
    sodium_mg: float


class NutritionResponse(BaseModel):
    totals: NutritionTotalsOut
    allergens: list[str]
    complete: bool
    estimated: bool
    missing: list[MissingDataOut] = []


class NutritionBreakdownItem(BaseModel):
    ingredient_id: str
    name: Optional[str]
    input: dict
    grams_used: float
    factor: float
    exact: bool
    contrib: NutritionTotalsOut


# --- Pricing ---

PricingModeLiteral = Literal["flat", "per_gram", "per_ml", "per_unit"]


class PriceQuoteRequest(BaseModel):
    ingredient_id: str
    amount: float = Field(..., ge=0, allow_inf_nan=False)
    unit: str
    mode: Optional[PricingModeLiteral] = None  # None = choose like checkout does


class PriceQuoteResponse(BaseModel):
    ingredient_id: str
    cents: int
    mode: Optional[str]
    exact: bool
    priced: bool


class PricingCheckResponse(BaseModel):
    ingredient_id: str
    ok: bool
    problems: list[str]


# --- Recipe sizes ---

class SizeLinesResponse(BaseModel):
    drink_id: str
    size_ml: int
    source: Literal["override", "scaled"]
    lines: list[LineIngredient]
    nutrition: NutritionResponse


# --- Cart ---

class CartItemIn(BaseModel):
    item_name: str = "Item"
    drink_id: Optional[str] = None
    size_ml: Optional[int] = Field(None, gt=0)
    unit_price_cents: int = Field(0, ge=0)
    base_price_cents: Optional[int] = None
    addons_price_cents: Optional[int] = None
    lines: list[LineIngredient] = []


# --- Promotions ---

class PercentageParams(BaseModel):
    type: Literal["percentage"] = "percentage"
    percent: float = Field(..., ge=0, le=100)


class FixedAmountParams(BaseModel):
    type: Literal["fixed_amount"] = "fixed_amount"
    amount_cents: int = Field(..., ge=0)


class BundleVariant(BaseModel):
    id: str
    name: str
    price_cents: int = Field(..., ge=0)
    is_active: bool = True


class BundleParams(BaseModel):
    type: Literal["bundle"] = "bundle"
    bundle_price_cents: Optional[int] = Field(None, ge=0)
    items_quantity: int = Field(2, ge=1)
    # size_ml -> required count, e.g. {355: 1, 473: 1}
    size_requirements: dict[int, int] = {}
    drink_ids: list[str] = []
    variants: list[BundleVariant] = []


class FreeAddonParams(BaseModel):
    type: Literal["free_addon"] = "free_addon"
    free_addon_id: Optional[str] = None
    eligible_addon_ids: list[str] = []
    qualifying_drink_id: Optional[str] = None
    qualifying_size_ml: Optional[int] = None
    max_free_quantity: int = Field(1, ge=1)


class BuyXGetYParams(BaseModel):
    type: Literal["buy_x_get_y"] = "buy_x_get_y"
    buy_quantity: int = Field(..., ge=1)
    get_quantity: int = Field(1, ge=1)
    qualifying_drink_ids: list[str] = []
    qualifying_size_mls: list[int] = []


PromoParams = Annotated[
    Union[PercentageParams, FixedAmountParams, BundleParams, FreeAddonParams, BuyXGetYParams],
    Field(discriminator="type"),
]

PromoType = Literal["percentage", "fixed_amount", "bundle", "free_addon", "buy_x_get_y"]


class Promotion(BaseModel):
    id: str
    code: str
    name: str
    description: Optional[str] = None
    params: PromoParams
    priority: int = 0
    is_active: bool = True
    valid_from: datetime
    valid_until: Optional[datetime] = None
    min_order_cents: Optional[int] = None
    max_discount_cents: Optional[int] = None
    usage_limit_total: Optional[int] = None
    usage_limit_per_customer: Optional[int] = None
    applicable_drink_ids: Optional[list[str]] = None
    created_at: Optional[datetime] = None

    @property
    def promo_type(self) -> str:
        return self.params.type


class PromoOut(BaseModel):
    id: str
    code: str
    name: str
    description: Optional[str]
    promo_type: str
    priority: int
    label: str
    valid_from: datetime
    valid_until: Optional[datetime]


class PromoRequest(BaseModel):
    code: str
    cart: list[CartItemIn] = []
    subtotal_cents: Optional[int] = Field(None, ge=0)  # None = sum of cart items
    customer_identifier: Optional[str] = None
    selected_variant_id: Optional[str] = None
    selected_addon_id: Optional[str] = None


class BestPromoRequest(BaseModel):
    cart: list[CartItemIn] = []
    subtotal_cents: Optional[int] = Field(None, ge=0)
    customer_identifier: Optional[str] = None


class PromoErrorOut(BaseModel):
    kind: str
    message: str


class RequiredAction(BaseModel):
    type: Literal["select_variant", "select_addon", "add_items"]
    options: dict = {}


class PromoValidationOut(BaseModel):
    valid: bool
    promo: Optional[PromoOut] = None
    error: Optional[PromoErrorOut] = None
    requires_action: Optional[RequiredAction] = None


class AppliedPromoOut(BaseModel):
    promo_id: str
    code: str
    description: str


class PromoApplicationOut(BaseModel):
    success: bool
    discount_cents: int
    new_subtotal_cents: int
    errors: list[PromoErrorOut] = []
    applied_promo: Optional[AppliedPromoOut] = None


# --- Orders ---

PaymentMethod = Literal["cash", "gcash", "bank"]
PaymentStatus = Literal["unpaid", "pending_verification", "paid"]
OrderStatusLiteral = Literal["pending", "in_progress", "ready", "picked_up", "cancelled"]


class OrderCreateRequest(BaseModel):
    pickup_time: datetime
    guest_name: str
    guest_phone: str
    payment_method: str
    payment_status: str = "unpaid"
    payment_reference: Optional[str] = None
    payment_proof_url: Optional[str] = None
    cart_items: list[CartItemIn] = []
    promo_code: Optional[str] = None
    selected_variant_id: Optional[str] = None
    selected_addon_id: Optional[str] = None
    customer_identifier: Optional[str] = None


class OrderCreateResponse(BaseModel):
    success: bool
    order_id: Optional[str] = None
    tracking_code: Optional[str] = None
    subtotal_cents: int = 0
    promo_discount_cents: int = 0
    total_cents: int = 0
    errors: list[str] = []
    promo_errors: list[PromoErrorOut] = []  # kind + message for promotion failures


class OrderLineOut(BaseModel):
    ingredient_id: str
    ingredient_name: Optional[str]
    amount: float
    unit: str
    is_extra: bool

    class Config:
        from_attributes = True


class OrderItemOut(BaseModel):
    id: str
    item_name: str
    drink_id: Optional[str]
    size_ml: Optional[int]
    unit_price_cents: int
    line_total_cents: int
    base_lines: list[OrderLineOut] = []
    extra_lines: list[OrderLineOut] = []
    nutrition: Optional[NutritionResponse] = None


class OrderOut(BaseModel):
    id: str
    tracking_code: str
    status: str
    pickup_time: datetime
    guest_name: str
    subtotal_cents: int
    promo_code_applied: Optional[str]
    promo_discount_cents: int
    total_cents: int
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TrackingResponse(BaseModel):
    order: OrderOut
    items: list[OrderItemOut]


class StatusUpdateRequest(BaseModel):
    expected_status: OrderStatusLiteral
    status: OrderStatusLiteral
    actor: Optional[str] = None
    note: Optional[str] = None


class StatusEventOut(BaseModel):
    from_status: Optional[str]
    to_status: str
    actor: Optional[str]
    note: Optional[str]
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BestPromoOut(BaseModel):
    promo: Optional[PromoOut] = None
    application: Optional[PromoApplicationOut] = None
