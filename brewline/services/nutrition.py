"""
Nutrition Aggregator.

Scales per-100g nutrition rows by normalized grams and sums them across a
set of recipe lines. Aggregation is linear: aggregating two line lists
concatenated equals the sum of aggregating each one, so cart totals can be
recomputed incrementally while a customer edits a drink.
"""

import logging
from dataclasses import dataclass, field, fields
from typing import Iterable, Mapping, Optional

from ..errors import MissingDataError
from .unit_conversion import to_grams

logger = logging.getLogger("brewline.nutrition")

# Macro -> column on IngredientNutrition
NUTRITION_COLUMNS = {
    "energy_kcal": "per_100g_energy_kcal",
    "protein_g": "per_100g_protein_g",
    "fat_g": "per_100g_fat_g",
    "carbs_g": "per_100g_carbs_g",
    "sugars_g": "per_100g_sugars_g",
    "fiber_g": "per_100g_fiber_g",
    "sodium_mg": "per_100g_sodium_mg",
}


@dataclass(frozen=True)
class NutritionTotals:
    energy_kcal: float = 0.0
    protein_g: float = 0.0
    fat_g: float = 0.0
    carbs_g: float = 0.0
    sugars_g: float = 0.0
    fiber_g: float = 0.0
    sodium_mg: float = 0.0

    def __add__(self, other: "NutritionTotals") -> "NutritionTotals":
        if not isinstance(other, NutritionTotals):
            return NotImplemented
        return NutritionTotals(**{
            f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)
        })

    def scaled(self, factor: float) -> "NutritionTotals":
        return NutritionTotals(**{f.name: getattr(self, f.name) * factor for f in fields(self)})

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def rounded(self) -> dict:
        """Display form: one decimal place, sodium as whole milligrams."""
        out = {k: round(v, 1) for k, v in self.to_dict().items()}
        out["sodium_mg"] = int(round(self.sodium_mg))
        return out


@dataclass
class NutritionResult:
    totals: NutritionTotals = field(default_factory=NutritionTotals)
    allergens: frozenset = frozenset()
    complete: bool = True
    estimated: bool = False
    missing: list = field(default_factory=list)

    def __add__(self, other: "NutritionResult") -> "NutritionResult":
        if not isinstance(other, NutritionResult):
            return NotImplemented
        return NutritionResult(
            totals=self.totals + other.totals,
            allergens=self.allergens | other.allergens,
            complete=self.complete and other.complete,
            estimated=self.estimated or other.estimated,
            missing=[*self.missing, *other.missing],
        )

    def to_dict(self, rounded: bool = True) -> dict:
        return {
            "totals": self.totals.rounded() if rounded else self.totals.to_dict(),
            "allergens": sorted(self.allergens),
            "complete": self.complete,
            "estimated": self.estimated,
            "missing": [m.to_dict() for m in self.missing],
        }


def per_100g_values(nutrition) -> tuple[NutritionTotals, list[str]]:
    """Read a nutrition row into totals. Returns (values, unknown_macro_names)."""
    values = {}
    unknown = []
    for macro, column in NUTRITION_COLUMNS.items():
        raw = getattr(nutrition, column, None)
        if raw is None:
            # Unknown is not a verified zero; caller marks the result incomplete
            unknown.append(macro)
            values[macro] = 0.0
        else:
            values[macro] = float(raw)
    return NutritionTotals(**values), unknown


def line_contribution(line, ingredient, nutrition) -> NutritionResult:
    """Nutrition contributed by a single line."""
    ingredient_id = line.ingredient_id

    if ingredient is None:
        logger.debug(f"No ingredient {ingredient_id}; line contributes nothing")
        return NutritionResult(
            complete=False,
            missing=[MissingDataError(ingredient_id, "ingredient")],
        )

    allergens = frozenset(getattr(ingredient, "allergen_tags", None) or [])

    if nutrition is None:
        logger.debug(f"No nutrition row for ingredient {ingredient_id}")
        return NutritionResult(
            allergens=allergens,
            complete=False,
            missing=[MissingDataError(ingredient_id, "nutrition")],
        )

    conv = to_grams(line.amount, line.unit, ingredient)
    per_100g, unknown = per_100g_values(nutrition)
    missing = []
    if unknown:
        missing.append(MissingDataError(
            ingredient_id, "nutrition", f"Unknown {', '.join(unknown)} for ingredient {ingredient_id}"
        ))
    if not conv.exact:
        missing.append(MissingDataError(ingredient_id, "conversion", conv.note))

    return NutritionResult(
        totals=per_100g.scaled(conv.grams / 100),
        allergens=allergens,
        complete=not unknown,
        estimated=not conv.exact,
        missing=missing,
    )


def aggregate(
    lines: Iterable,
    ingredients_by_id: Mapping[str, object],
    nutrition_by_id: Mapping[str, object],
) -> NutritionResult:
    """Sum nutrition across lines. Never raises for missing catalog data."""
    result = NutritionResult()
    for line in lines:
        result = result + line_contribution(
            line,
            ingredients_by_id.get(line.ingredient_id),
            nutrition_by_id.get(line.ingredient_id),
        )
    return result


def breakdown(
    lines: Iterable,
    ingredients_by_id: Mapping[str, object],
    nutrition_by_id: Mapping[str, object],
) -> list[dict]:
    """Per-line contributions for the "explain my math" view.

    Lines without an ingredient or nutrition row are skipped.
    """
    out = []
    for line in lines:
        ing = ingredients_by_id.get(line.ingredient_id)
        nutr = nutrition_by_id.get(line.ingredient_id)
        if ing is None or nutr is None:
            continue

        conv = to_grams(line.amount, line.unit, ing)
        factor = conv.grams / 100
        per_100g, _ = per_100g_values(nutr)
        contrib = per_100g.scaled(factor)

        contrib_dict = {k: round(v, 2) for k, v in contrib.to_dict().items()}
        contrib_dict["sodium_mg"] = int(round(contrib.sodium_mg))

        out.append({
            "ingredient_id": line.ingredient_id,
            "name": getattr(ing, "name", None),
            "input": {"amount": line.amount, "unit": line.unit},
            "grams_used": round(conv.grams, 2),
            "factor": round(factor, 4),
            "exact": conv.exact,
            "contrib": contrib_dict,
        })
    return out


def lookup_maps(ingredients: Iterable, nutrition_rows: Optional[Iterable] = None) -> tuple[dict, dict]:
    """Build the id-keyed dictionaries aggregate() expects."""
    ing_by_id = {i.id: i for i in ingredients}
    nutr_by_id = {n.ingredient_id: n for n in (nutrition_rows or [])}
    return ing_by_id, nutr_by_id
