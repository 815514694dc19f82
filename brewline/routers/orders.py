import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..deps import get_db, get_staff_actor
from ..errors import ConfigurationError, PersistenceError, StateTransitionError
from ..infra.idempotency import idempotency_clear_key, idempotency_precheck, idempotency_store_result
from ..schemas import (
    OrderCreateRequest,
    OrderOut,
    OrderStatusLiteral,
    StatusEventOut,
    StatusUpdateRequest,
    TrackingResponse,
)
from ..services import orders as order_service
from ..services.audit import status_history

logger = logging.getLogger("brewline.orders")

router = APIRouter()


@router.post("/orders")
async def create_order(
    request: Request,
    payload: OrderCreateRequest,
    db: Session = Depends(get_db),
):
    """
    Place a pickup order. Prices are recomputed server-side.

    201 with the order id and tracking code, or 400 with `errors`.
    An Idempotency-Key header makes retries safe.
    """
    scope = order_service.phone_digits(payload.guest_phone) or "guest"
    pre = await idempotency_precheck(request, scope=scope, route_key="order_create")
    if isinstance(pre, JSONResponse):
        return pre
    redis_key, req_hash = pre if pre else (None, None)

    try:
        result = await run_in_threadpool(order_service.create_order, db, payload)
    except ConfigurationError as e:
        await idempotency_clear_key(redis_key)
        raise HTTPException(status_code=422, detail=str(e))
    except PersistenceError as e:
        await idempotency_clear_key(redis_key)
        raise HTTPException(status_code=503, detail=str(e))
    except Exception:
        await idempotency_clear_key(redis_key)
        raise

    status = 201 if result.success else 400
    body = result.model_dump(mode="json")
    if redis_key:
        await idempotency_store_result(redis_key, req_hash, status=status, body=body)
    return JSONResponse(content=body, status_code=status)


@router.get("/orders/track/{tracking_code}", response_model=TrackingResponse)
def track_order(tracking_code: str, db: Session = Depends(get_db)):
    tracking = order_service.track_order(db, tracking_code)
    if tracking is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return tracking


@router.patch("/orders/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: str,
    body: StatusUpdateRequest,
    db: Session = Depends(get_db),
    header_actor: Optional[str] = Depends(get_staff_actor),
):
    """Compare-and-set status change: `expected_status` must match the stored status."""
    try:
        return order_service.update_status(
            db, order_id, body.expected_status, body.status,
            actor=body.actor or header_actor, note=body.note,
        )
    except StateTransitionError as e:
        if e.kind == "not_found":
            raise HTTPException(status_code=404, detail=e.message)
        raise HTTPException(
            status_code=409,
            detail={"kind": e.kind, "message": e.message, "current_status": e.current_status},
        )
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/orders/{order_id}/events", response_model=list[StatusEventOut])
def get_order_events(order_id: str, db: Session = Depends(get_db)):
    return status_history(db, order_id)


@router.get("/orders", response_model=list[OrderOut])
def list_orders(
    status: Optional[OrderStatusLiteral] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """Staff queue, soonest pickup first."""
    return order_service.list_orders(db, status=status, limit=limit)
