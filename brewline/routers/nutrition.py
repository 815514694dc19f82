from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..deps import get_db
from ..schemas import NutritionBreakdownItem, NutritionRequest, NutritionResponse
from ..services import nutrition
from ..services.catalog import load_line_context

router = APIRouter()


@router.post("/nutrition/preview", response_model=NutritionResponse)
def preview_nutrition(req: NutritionRequest, db: Session = Depends(get_db)):
    """Live totals for a drink being configured. Missing catalog data degrades, never fails."""
    ctx = load_line_context(db, req.lines)
    return NutritionResponse(**ctx.nutrition_for(req.lines).to_dict())


@router.post("/nutrition/breakdown", response_model=list[NutritionBreakdownItem])
def nutrition_breakdown(req: NutritionRequest, db: Session = Depends(get_db)):
    ctx = load_line_context(db, req.lines)
    return nutrition.breakdown(req.lines, ctx.ingredients_by_id, ctx.nutrition_by_id)
