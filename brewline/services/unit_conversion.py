"""
Unit Normalizer for Brewline.

Converts an (amount, unit) pair into grams (or milliliters) using the
ingredient's own conversion attributes. Missing conversion factors never
raise: the amount is passed through unchanged and the result is flagged
as inexact so aggregate totals can be marked "estimated".
"""

import math
from typing import Optional, Literal

# --- Types ---

CanonicalUnit = Literal["gram", "milliliter", "scoop", "piece"]

class ConversionResult:
    def __init__(
        self,
        qty: float,
        unit: str,
        exact: bool = True,
        note: Optional[str] = None,
    ):
        self.qty = qty
        self.unit = unit
        self.exact = exact
        self.note = note

    @property
    def grams(self) -> float:
        return self.qty

    @property
    def milliliters(self) -> float:
        return self.qty

    def to_dict(self):
        return {
            "qty": self.qty,
            "unit": self.unit,
            "exact": self.exact,
            "note": self.note,
        }

    def __repr__(self):
        return f"ConversionResult(qty={self.qty!r}, unit={self.unit!r}, exact={self.exact!r})"

# --- Data Tables ---

# Raw unit string -> canonical unit
UNIT_ALIASES = {
    "g": "gram",
    "gr": "gram",
    "gram": "gram",
    "grams": "gram",
    "ml": "milliliter",
    "milliliter": "milliliter",
    "milliliters": "milliliter",
    "millilitre": "milliliter",
    "millilitres": "milliliter",
    "scoop": "scoop",
    "scoops": "scoop",
    "piece": "piece",
    "pieces": "piece",
    "pc": "piece",
    "pcs": "piece",
}

COUNT_UNITS = ("scoop", "piece")

# --- Core Functions ---

def normalize_unit(unit: Optional[str]) -> Optional[CanonicalUnit]:
    """Normalize a unit string to its canonical name, or None if unknown."""
    if not unit:
        return None
    u = unit.strip().rstrip(".").lower()
    return UNIT_ALIASES.get(u)  # type: ignore[return-value]


def _factor(value) -> Optional[float]:
    """A usable conversion factor is a positive number."""
    if value is None:
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if f > 0 else None


def _clamp_amount(amount) -> tuple[float, bool]:
    try:
        a = float(amount or 0)
    except (TypeError, ValueError):
        return 0.0, False
    if not math.isfinite(a) or a < 0:
        return 0.0, False
    return a, True


def to_grams(amount: float, unit: str, ingredient) -> ConversionResult:
    """
    Convert an amount to grams.

    - gram: exact passthrough
    - milliliter: amount * density; no density -> amount, inexact
    - scoop/piece: amount * grams_per_unit; no factor -> amount, inexact
    - unknown unit: amount treated as grams, inexact
    """
    qty, ok = _clamp_amount(amount)
    if not ok:
        return ConversionResult(qty, "g", exact=False, note="Negative, non-finite or invalid amount treated as 0")

    norm = normalize_unit(unit)

    if norm == "gram":
        return ConversionResult(qty, "g")

    if norm == "milliliter":
        density = _factor(getattr(ingredient, "density_g_per_ml", None))
        if density is None:
            return ConversionResult(qty, "g", exact=False, note="No density; assumed 1 g/ml")
        return ConversionResult(qty * density, "g")

    if norm in COUNT_UNITS:
        per_unit = _factor(getattr(ingredient, "grams_per_unit", None))
        if per_unit is None:
            return ConversionResult(qty, "g", exact=False, note=f"No grams per {norm}; amount used as grams")
        return ConversionResult(qty * per_unit, "g")

    return ConversionResult(qty, "g", exact=False, note=f"Unknown unit '{unit}'; amount used as grams")


def to_milliliters(amount: float, unit: str, ingredient) -> ConversionResult:
    """
    Convert an amount to its milliliter equivalent (used by per-ml pricing).

    Mass-based amounts go through density; count units go through
    grams_per_unit first. Missing factors fall back to the raw amount.
    """
    qty, ok = _clamp_amount(amount)
    if not ok:
        return ConversionResult(qty, "ml", exact=False, note="Negative, non-finite or invalid amount treated as 0")

    norm = normalize_unit(unit)
    if norm == "milliliter":
        return ConversionResult(qty, "ml")

    grams = to_grams(qty, unit, ingredient)
    density = _factor(getattr(ingredient, "density_g_per_ml", None))
    if density is None:
        return ConversionResult(grams.qty, "ml", exact=False, note="No density; assumed 1 g/ml")
    return ConversionResult(grams.qty / density, "ml", exact=grams.exact, note=grams.note)
