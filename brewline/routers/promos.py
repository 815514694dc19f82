"""
Promotion endpoints.

Promotion failures are returned as data (`valid: false` with a typed
error) so the client can show the exact reason; they are never HTTP errors.
Validation is rate limited per IP to slow down code guessing.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from ..deps import get_db
from ..schemas import (
    BestPromoOut,
    BestPromoRequest,
    PromoApplicationOut,
    PromoOut,
    PromoRequest,
    PromoValidationOut,
    Promotion,
)
from ..services import promo_store
from ..services.promotions import (
    PromoApplication,
    apply_promotion,
    cart_subtotal,
    format_promo_discount,
    is_currently_active,
    select_best_promotion,
    validate_and_apply,
    validate_promotion,
)
from ..settings import settings

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)


def promo_out(promo: Promotion) -> PromoOut:
    return PromoOut(
        id=promo.id,
        code=promo.code,
        name=promo.name,
        description=promo.description,
        promo_type=promo.promo_type,
        priority=promo.priority,
        label=format_promo_discount(promo, settings.currency_symbol),
        valid_from=promo.valid_from,
        valid_until=promo.valid_until,
    )


def application_out(app: PromoApplication) -> PromoApplicationOut:
    return PromoApplicationOut(
        success=app.success,
        discount_cents=app.discount_cents,
        new_subtotal_cents=app.new_subtotal_cents,
        errors=[e.to_dict() for e in app.errors],
        applied_promo=app.applied_promo,
    )


def _subtotal(body) -> int:
    return body.subtotal_cents if body.subtotal_cents is not None else cart_subtotal(body.cart)


@router.post("/promos/validate", response_model=PromoValidationOut)
@limiter.limit(settings.promo_rate_limit)
def validate_promo(request: Request, body: PromoRequest, db: Session = Depends(get_db)):
    promo = promo_store.get_promotion_by_code(db, body.code)
    usage = promo_store.usage_counts(db, promo.id, body.customer_identifier) if promo else None
    result = validate_promotion(
        promo, body.cart, _subtotal(body), body.customer_identifier, usage,
        selected_variant_id=body.selected_variant_id,
        selected_addon_id=body.selected_addon_id,
    )
    return PromoValidationOut(
        valid=result.valid,
        promo=promo_out(result.promo) if result.promo else None,
        error=result.error.to_dict() if result.error else None,
        requires_action=result.requires_action,
    )


@router.post("/promos/apply", response_model=PromoApplicationOut)
@limiter.limit(settings.promo_rate_limit)
def apply_promo(request: Request, body: PromoRequest, db: Session = Depends(get_db)):
    promo = promo_store.get_promotion_by_code(db, body.code)
    usage = promo_store.usage_counts(db, promo.id, body.customer_identifier) if promo else None
    _, application = validate_and_apply(
        promo, body.cart, _subtotal(body), body.customer_identifier, usage,
        selected_variant_id=body.selected_variant_id,
        selected_addon_id=body.selected_addon_id,
    )
    return application_out(application)


@router.post("/promos/best", response_model=BestPromoOut)
def best_promo(body: BestPromoRequest, db: Session = Depends(get_db)):
    """The single promotion that would apply to this cart (promotions never stack)."""
    candidates = promo_store.list_active_promotions(db)
    usage = promo_store.usage_by_promo(db, candidates, body.customer_identifier)
    subtotal = _subtotal(body)

    best = select_best_promotion(candidates, body.cart, subtotal, body.customer_identifier, usage)
    if best is None:
        return BestPromoOut()
    return BestPromoOut(
        promo=promo_out(best),
        application=application_out(apply_promotion(best, body.cart, subtotal)),
    )


@router.get("/promos/available", response_model=list[PromoOut])
def available_promos(db: Session = Depends(get_db)):
    """Promotions running right now, highest priority first."""
    now = datetime.now(timezone.utc)
    return [promo_out(p) for p in promo_store.list_active_promotions(db) if is_currently_active(p, now)]
