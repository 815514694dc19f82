"""
Router for unit normalization.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..deps import get_db
from ..schemas import GramsRequest, GramsResponse
from ..services.catalog import get_ingredient
from ..services.unit_conversion import to_grams

router = APIRouter()


@router.post("/grams", response_model=GramsResponse)
def convert_to_grams(req: GramsRequest, db: Session = Depends(get_db)):
    """Gram-equivalent of an amount of an ingredient, flagged when estimated."""
    ingredient = get_ingredient(db, req.ingredient_id)
    if ingredient is None:
        raise HTTPException(status_code=404, detail=f"Ingredient {req.ingredient_id} not found")

    result = to_grams(req.amount, req.unit, ingredient)
    return GramsResponse(grams=result.grams, exact=result.exact, note=result.note)
