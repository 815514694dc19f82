from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..deps import get_db
from ..errors import ConfigurationError
from ..schemas import LineIngredient, NutritionResponse, SizeLinesResponse
from ..services.catalog import load_line_context, size_lines_payload

router = APIRouter()


@router.get("/drinks/{drink_id}/sizes/{size_ml}/lines", response_model=SizeLinesResponse)
def get_size_lines(drink_id: str, size_ml: int, db: Session = Depends(get_db)):
    """Recipe lines for one size (override or scaled base) with their nutrition."""
    try:
        payload = size_lines_payload(db, drink_id, size_ml)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if payload is None:
        raise HTTPException(status_code=404, detail=f"Drink {drink_id} has no {size_ml}ml size")

    lines = [LineIngredient(**l) for l in payload["lines"]]
    ctx = load_line_context(db, lines)
    return SizeLinesResponse(
        drink_id=payload["drink_id"],
        size_ml=payload["size_ml"],
        source=payload["source"],
        lines=lines,
        nutrition=NutritionResponse(**ctx.nutrition_for(lines).to_dict()),
    )
