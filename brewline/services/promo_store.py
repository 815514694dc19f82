"""Promotion persistence: load definitions, count and record redemptions."""

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..models import Promo, PromoUsage
from ..schemas import Promotion
from .promotions import UsageCounts, as_utc, normalize_code

logger = logging.getLogger("brewline.promos")


def promotion_from_row(row: Promo) -> Promotion:
    """ORM row -> engine value. The stored params carry no type tag; it comes from promo_type."""
    return Promotion(
        id=row.id,
        code=row.code,
        name=row.name,
        description=row.description,
        params={**(row.params or {}), "type": row.promo_type},
        priority=row.priority or 0,
        is_active=bool(row.is_active),
        valid_from=as_utc(row.valid_from) or datetime.now(timezone.utc),
        valid_until=as_utc(row.valid_until),
        min_order_cents=row.min_order_cents,
        max_discount_cents=row.max_discount_cents,
        usage_limit_total=row.usage_limit_total,
        usage_limit_per_customer=row.usage_limit_per_customer,
        applicable_drink_ids=row.applicable_drink_ids or None,
        created_at=as_utc(row.created_at),
    )


def get_promotion_by_code(db: Session, code: str) -> Optional[Promotion]:
    code = normalize_code(code)
    if not code:
        return None
    row = db.scalar(select(Promo).where(func.upper(Promo.code) == code))
    return promotion_from_row(row) if row else None


def list_active_promotions(db: Session) -> list[Promotion]:
    rows = db.scalars(
        select(Promo).where(Promo.is_active.is_(True)).order_by(Promo.priority.desc())
    ).all()
    return [promotion_from_row(r) for r in rows]


def usage_counts(db: Session, promo_id: str, customer_identifier: Optional[str] = None) -> UsageCounts:
    total = db.scalar(
        select(func.count()).select_from(PromoUsage).where(PromoUsage.promo_id == promo_id)
    ) or 0
    by_customer = 0
    if customer_identifier:
        by_customer = db.scalar(
            select(func.count()).select_from(PromoUsage).where(
                PromoUsage.promo_id == promo_id,
                PromoUsage.customer_identifier == customer_identifier,
            )
        ) or 0
    return UsageCounts(total=total, by_customer=by_customer)


def usage_by_promo(db: Session, promos: Iterable[Promotion], customer_identifier: Optional[str] = None) -> dict:
    return {p.id: usage_counts(db, p.id, customer_identifier) for p in promos}


def record_usage(
    db: Session,
    *,
    promo_id: str,
    order_id: str,
    discount_cents: int,
    customer_identifier: Optional[str] = None,
) -> PromoUsage:
    """Add a redemption row. Caller commits."""
    usage = PromoUsage(
        promo_id=promo_id,
        order_id=order_id,
        customer_identifier=customer_identifier,
        discount_cents=discount_cents,
    )
    db.add(usage)
    logger.info(f"Recorded promo {promo_id} usage on order {order_id}")
    return usage
