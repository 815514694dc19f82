import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import OrderStatusEvent

logger = logging.getLogger("brewline.audit")

MAX_NOTE_LEN = 500


def log_status_event(
    db: Session,
    *,
    order_id: str,
    from_status: Optional[str],
    to_status: str,
    actor: Optional[str] = None,
    note: Optional[str] = None,
) -> OrderStatusEvent:
    """Add an audit row for a status change. Caller commits with the change itself."""
    if note and len(note) > MAX_NOTE_LEN:
        logger.warning(f"Status note for order {order_id} too long ({len(note)} chars), truncating.")
        note = note[:MAX_NOTE_LEN]

    event = OrderStatusEvent(
        order_id=order_id,
        from_status=from_status,
        to_status=to_status,
        actor=actor,
        note=note,
        created_at=datetime.now(timezone.utc),
    )
    db.add(event)
    return event


def status_history(db: Session, order_id: str) -> list[OrderStatusEvent]:
    return list(db.scalars(
        select(OrderStatusEvent)
        .where(OrderStatusEvent.order_id == order_id)
        .order_by(OrderStatusEvent.created_at)
    ).all())
