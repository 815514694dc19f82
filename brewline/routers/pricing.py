import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..deps import get_db
from ..errors import ConfigurationError
from ..schemas import PriceQuoteRequest, PriceQuoteResponse, PricingCheckResponse
from ..services import pricing
from ..services.catalog import get_ingredient, get_pricing_rows

logger = logging.getLogger("brewline.pricing")

router = APIRouter()


@router.post("/pricing/quote", response_model=PriceQuoteResponse)
def quote_price(req: PriceQuoteRequest, db: Session = Depends(get_db)):
    """
    Price an amount of an ingredient.

    With `mode` set, that pricing mode is used; otherwise the mode is chosen
    the way checkout chooses it.
    """
    ingredient = get_ingredient(db, req.ingredient_id)
    if ingredient is None:
        raise HTTPException(status_code=404, detail=f"Ingredient {req.ingredient_id} not found")
    rows = get_pricing_rows(db, [ingredient.id])

    try:
        if req.mode:
            price = pricing.quote(ingredient, req.amount, req.unit, req.mode, rows)
        else:
            price = pricing.price_for_line(req, ingredient, rows)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return PriceQuoteResponse(
        ingredient_id=ingredient.id,
        cents=price.cents,
        mode=price.mode,
        exact=price.exact,
        priced=price.missing is None,
    )


@router.get("/pricing/{ingredient_id}/check", response_model=PricingCheckResponse)
def check_pricing(ingredient_id: str, db: Session = Depends(get_db)):
    """Configuration problems in an ingredient's pricing rows."""
    ingredient = get_ingredient(db, ingredient_id)
    if ingredient is None:
        raise HTTPException(status_code=404, detail=f"Ingredient {ingredient_id} not found")

    problems = pricing.check_pricing_rows(ingredient_id, get_pricing_rows(db, [ingredient_id]))
    if problems:
        logger.warning(f"Ingredient {ingredient_id} has {len(problems)} pricing problem(s)")
    return PricingCheckResponse(
        ingredient_id=ingredient_id,
        ok=not problems,
        problems=[str(p) for p in problems],
    )
