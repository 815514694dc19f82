"""
Order creation, tracking and status updates.

Creation is one logical unit: the header, items and per-item ingredient
lines are committed together. Promo redemption is a second step; if it
cannot be recorded the order is deleted again (compensation) so staff never
see an order whose discount was not accounted for.

Status changes use compare-and-set on the persisted status, so two staff
members editing the same order cannot silently overwrite each other.
"""

import logging
import re
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Optional, get_args

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from ..errors import ConfigurationError, PersistenceError, StateTransitionError
from ..infra.retry import with_retry
from ..models import Order, OrderItem, OrderItemIngredient
from ..schemas import (
    CartItemIn,
    NutritionResponse,
    OrderCreateRequest,
    OrderCreateResponse,
    OrderItemOut,
    OrderLineOut,
    OrderOut,
    PaymentMethod,
    PaymentStatus,
    TrackingResponse,
)
from ..settings import settings
from .audit import log_status_event
from .catalog import find_size, get_drink, load_line_context
from .order_status import check_transition
from .pricing import price_for_line
from .promo_store import get_promotion_by_code, record_usage, usage_counts
from .promotions import as_utc, normalize_code, total_after_discount, validate_and_apply
from .recipe_scaler import as_line, resolve_lines

logger = logging.getLogger("brewline.orders")

PAYMENT_METHODS = get_args(PaymentMethod)
PAYMENT_STATUSES = get_args(PaymentStatus)
TRACKING_ALPHABET = string.ascii_uppercase + string.digits
NON_DIGITS = re.compile(r"\D")


def _fail(errors: list[str], promo_errors: Optional[list] = None) -> OrderCreateResponse:
    return OrderCreateResponse(
        success=False,
        errors=errors,
        promo_errors=[e.to_dict() for e in promo_errors or []],
    )


def phone_digits(phone: Optional[str]) -> str:
    return NON_DIGITS.sub("", phone or "")


def generate_tracking_code(length: Optional[int] = None) -> str:
    length = length or settings.tracking_code_length
    return "".join(secrets.choice(TRACKING_ALPHABET) for _ in range(length))


def _unique_tracking_code(db: Session, attempts: int = 5) -> str:
    for _ in range(attempts):
        code = generate_tracking_code()
        if db.scalar(select(Order.id).where(Order.tracking_code == code)) is None:
            return code
    raise PersistenceError("Could not allocate a unique tracking code")


# --- Validation ---

def validate_order_request(req: OrderCreateRequest, now: Optional[datetime] = None) -> list[str]:
    """Field-level checks that need no catalog access. Returns error messages."""
    errors = []
    now = as_utc(now) or datetime.now(timezone.utc)

    pickup = as_utc(req.pickup_time)
    earliest = now + timedelta(minutes=settings.min_pickup_lead_minutes)
    if pickup < earliest:
        errors.append(f"Pickup time must be at least {settings.min_pickup_lead_minutes} minutes from now")

    if len((req.guest_name or "").strip()) < 2:
        errors.append("Name must be at least 2 characters")

    digits = phone_digits(req.guest_phone)
    if not 10 <= len(digits) <= 13:
        errors.append("Phone number must have 10 to 13 digits")

    if req.payment_method not in PAYMENT_METHODS:
        errors.append(f"Invalid payment method '{req.payment_method}'")
    if req.payment_status not in PAYMENT_STATUSES:
        errors.append(f"Invalid payment status '{req.payment_status}'")
    if req.payment_method in ("gcash", "bank") and not (req.payment_reference or "").strip():
        errors.append("Payment reference is required for GCash and bank transfers")

    if not req.cart_items:
        errors.append("Cart is empty")

    for i, item in enumerate(req.cart_items, start=1):
        for line in item.lines:
            if line.amount <= 0:
                errors.append(f"Item {i}: amount for ingredient {line.ingredient_id} must be positive")
            if not (line.unit or "").strip():
                errors.append(f"Item {i}: unit for ingredient {line.ingredient_id} is required")

    return errors


def check_line_ingredients(items: list[CartItemIn], ingredients_by_id: dict) -> list[str]:
    errors = []
    for i, item in enumerate(items, start=1):
        for line in item.lines:
            ing = ingredients_by_id.get(line.ingredient_id)
            if ing is None or not ing.is_active:
                errors.append(f"Item {i}: ingredient {line.ingredient_id} is not available")
    return errors


# --- Server-side pricing ---

def price_cart_items(db: Session, items: list[CartItemIn], ctx) -> tuple[list[CartItemIn], list[str]]:
    """
    Re-price the submitted items from the catalog. Client prices are ignored.

    Base lines missing from the submission are filled in from the size
    override or the scaled base recipe.
    """
    priced: list[CartItemIn] = []
    errors: list[str] = []

    for i, item in enumerate(items, start=1):
        if not item.drink_id:
            errors.append(f"Item {i}: no drink selected")
            continue
        drink = get_drink(db, item.drink_id)
        if drink is None:
            errors.append(f"Item {i}: drink {item.drink_id} is not available")
            continue

        size_ml = item.size_ml or drink.base_size_ml
        size = find_size(drink, size_ml) if size_ml else None
        if size is None and drink.sizes:
            errors.append(f"Item {i}: size {size_ml}ml is not available for {drink.name}")
            continue

        base_lines = [l for l in item.lines if not l.is_extra]
        if not base_lines:
            if size is not None:
                try:
                    base_lines = resolve_lines(drink.base_lines, drink.base_size_ml, size)
                except ConfigurationError as e:
                    logger.warning(f"Cannot resolve recipe for drink {drink.id} @ {size_ml}ml: {e}")
                    errors.append(f"Item {i}: {drink.name} cannot be prepared in {size_ml}ml right now")
                    continue
            else:
                base_lines = [as_line(l) for l in drink.base_lines]

        extras = []
        addons_cents = 0
        for line in item.lines:
            if not line.is_extra:
                continue
            price = price_for_line(
                line,
                ctx.ingredients_by_id.get(line.ingredient_id),
                ctx.pricing_by_ingredient.get(line.ingredient_id, []),
            )
            addons_cents += price.cents
            extras.append(line.model_copy(update={"price_cents": price.cents}))

        base_cents = size.price_cents if size is not None and size.price_cents is not None else drink.price_cents
        priced.append(CartItemIn(
            item_name=drink.name,
            drink_id=drink.id,
            size_ml=size.size_ml if size is not None else size_ml,
            unit_price_cents=base_cents + addons_cents,
            base_price_cents=base_cents,
            addons_price_cents=addons_cents,
            lines=[*(l.model_copy(update={"role": "base"}) for l in base_lines), *extras],
        ))

    return priced, errors


# --- Creation ---

def _build_order(req: OrderCreateRequest, items: list[CartItemIn], names: dict, tracking_code: str) -> Order:
    order = Order(
        tracking_code=tracking_code,
        status="pending",
        pickup_time=as_utc(req.pickup_time),
        guest_name=req.guest_name.strip(),
        guest_phone=req.guest_phone.strip(),
        customer_identifier=req.customer_identifier or phone_digits(req.guest_phone),
        payment_method=req.payment_method,
        payment_status=req.payment_status,
        payment_reference=(req.payment_reference or "").strip() or None,
        payment_proof_url=req.payment_proof_url,
    )
    for pos, item in enumerate(items):
        order.items.append(OrderItem(
            drink_id=item.drink_id,
            item_name=item.item_name,
            size_ml=item.size_ml,
            unit_price_cents=item.unit_price_cents,
            line_total_cents=item.unit_price_cents,
            position=pos,
            ingredients=[
                OrderItemIngredient(
                    ingredient_id=l.ingredient_id,
                    ingredient_name=l.name or names.get(l.ingredient_id),
                    amount=l.amount,
                    unit=l.unit,
                    is_extra=l.is_extra,
                )
                for l in item.lines
            ],
        ))
    return order


def delete_order(db: Session, order_id: str) -> None:
    """Compensation for a partially created order."""
    def _delete():
        order = db.get(Order, order_id)
        if order is not None:
            db.delete(order)
        db.commit()

    with_retry(_delete, label=f"delete order {order_id}", on_retry=db.rollback)
    logger.warning(f"Order {order_id} deleted by compensation")


def create_order(db: Session, req: OrderCreateRequest, now: Optional[datetime] = None) -> OrderCreateResponse:
    """
    Validate, price and persist an order.

    Validation problems come back as `errors` on an unsuccessful response.

    Raises:
        ConfigurationError if catalog pricing data is inconsistent
        PersistenceError if the store stays unavailable after retries
    """
    now = as_utc(now) or datetime.now(timezone.utc)

    errors = validate_order_request(req, now)
    if errors:
        return _fail(errors)

    submitted = [l for item in req.cart_items for l in item.lines]
    ctx = load_line_context(db, submitted)
    errors = check_line_ingredients(req.cart_items, ctx.ingredients_by_id)
    if errors:
        return _fail(errors)

    items, errors = price_cart_items(db, req.cart_items, ctx)
    if errors:
        return _fail(errors)

    subtotal = sum(i.unit_price_cents for i in items)
    customer = req.customer_identifier or phone_digits(req.guest_phone)

    promo = None
    discount = 0
    if normalize_code(req.promo_code):
        promo = get_promotion_by_code(db, req.promo_code)
        usage = usage_counts(db, promo.id, customer) if promo else None
        _, application = validate_and_apply(
            promo, items, subtotal, customer, usage, now,
            req.selected_variant_id, req.selected_addon_id,
        )
        if not application.success:
            return _fail([e.message for e in application.errors], application.errors)
        discount = application.discount_cents

    all_lines = [l for item in items for l in item.lines]
    names = {k: v.name for k, v in load_line_context(db, all_lines).ingredients_by_id.items()}

    order = _build_order(req, items, names, _unique_tracking_code(db))
    order.subtotal_cents = subtotal
    order.promo_discount_cents = discount
    order.total_cents = total_after_discount(subtotal, discount)
    if promo is not None:
        order.promo_id = promo.id
        order.promo_code_applied = promo.code

    def _persist():
        db.add(order)
        db.flush()
        log_status_event(db, order_id=order.id, from_status=None, to_status="pending", actor="customer")
        db.commit()

    with_retry(_persist, label="create order", on_retry=db.rollback)
    order_id, tracking_code = order.id, order.tracking_code
    logger.info(f"Order {order_id} created ({tracking_code}), total {order.total_cents}")

    if promo is not None:
        def _redeem():
            record_usage(
                db, promo_id=promo.id, order_id=order_id,
                discount_cents=discount, customer_identifier=customer,
            )
            db.commit()

        try:
            with_retry(_redeem, label="record promo usage", on_retry=db.rollback)
        except PersistenceError as e:
            logger.error(f"Promo redemption failed for order {order_id}, compensating: {e}")
            db.rollback()
            delete_order(db, order_id)
            return _fail(["Could not apply the promo code. Your order was not placed; please try again."])

    return OrderCreateResponse(
        success=True,
        order_id=order_id,
        tracking_code=tracking_code,
        subtotal_cents=subtotal,
        promo_discount_cents=discount,
        total_cents=total_after_discount(subtotal, discount),
    )


# --- Tracking ---

def get_order_by_tracking_code(db: Session, tracking_code: str) -> Optional[Order]:
    return db.scalar(
        select(Order)
        .where(Order.tracking_code == (tracking_code or "").strip().upper())
        .options(selectinload(Order.items).selectinload(OrderItem.ingredients))
    )


def track_order(db: Session, tracking_code: str) -> Optional[TrackingResponse]:
    """Order header, items, base/extra lines and per-item nutrition. None if unknown."""
    order = get_order_by_tracking_code(db, tracking_code)
    if order is None:
        return None

    ctx = load_line_context(db, [l for item in order.items for l in item.ingredients])
    items_out = []
    for item in order.items:
        nutrition = ctx.nutrition_for(item.ingredients)
        items_out.append(OrderItemOut(
            id=item.id,
            item_name=item.item_name,
            drink_id=item.drink_id,
            size_ml=item.size_ml,
            unit_price_cents=item.unit_price_cents,
            line_total_cents=item.line_total_cents,
            base_lines=[OrderLineOut.model_validate(l) for l in item.ingredients if not l.is_extra],
            extra_lines=[OrderLineOut.model_validate(l) for l in item.ingredients if l.is_extra],
            nutrition=NutritionResponse(**nutrition.to_dict()),
        ))
    return TrackingResponse(order=OrderOut.model_validate(order), items=items_out)


# --- Status ---

def update_status(
    db: Session,
    order_id: str,
    expected_status: str,
    target_status: str,
    actor: Optional[str] = None,
    note: Optional[str] = None,
) -> Order:
    """
    Move an order from `expected_status` to `target_status`.

    Raises:
        StateTransitionError(not_found) if the order does not exist
        StateTransitionError(conflict) if the persisted status is no longer `expected_status`
        StateTransitionError(invalid_transition) if the move is not allowed
    """
    def _attempt() -> Order:
        order = db.get(Order, order_id, populate_existing=True)
        if order is None:
            raise StateTransitionError("not_found", f"Order {order_id} not found")
        if order.status != expected_status:
            raise StateTransitionError(
                "conflict",
                f"Order is now {order.status}, not {expected_status}; refresh and try again",
                order.status,
            )
        check_transition(expected_status, target_status)

        result = db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == expected_status)
            .values(status=target_status, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.rollback()
            current = db.scalar(select(Order.status).where(Order.id == order_id))
            raise StateTransitionError(
                "conflict", f"Order changed to {current} while updating; refresh and try again", current
            )

        log_status_event(
            db, order_id=order_id, from_status=expected_status,
            to_status=target_status, actor=actor, note=note,
        )
        db.commit()
        db.refresh(order)
        return order

    order = with_retry(_attempt, label=f"update order {order_id} status", on_retry=db.rollback)
    logger.info(f"Order {order_id}: {expected_status} -> {target_status} by {actor or 'unknown'}")
    return order


def list_orders(db: Session, status: Optional[str] = None, limit: int = 100) -> list[Order]:
    """Staff queue, soonest pickup first."""
    stmt = select(Order).order_by(Order.pickup_time).limit(limit)
    if status:
        stmt = stmt.where(Order.status == status)
    return list(db.scalars(stmt).all())
