"""
Ingredient Pricing Resolver.

Computes the cost contribution of an ingredient in integer cents, given
the pricing row that matches the requested pricing mode:

- flat: base price, independent of amount
- per_gram: grams(amount, unit) * rate
- per_ml: milliliters(amount, unit) * rate
- per_unit: amount * rate, the line's unit must match the row's unit label

No row for the mode prices at 0 (not sellable that way). A row that cannot
be evaluated is a ConfigurationError for catalog administrators.
"""

import logging
from collections import Counter
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Literal, Mapping, Optional

from ..errors import ConfigurationError, MissingDataError
from .unit_conversion import normalize_unit, to_grams, to_milliliters

logger = logging.getLogger("brewline.pricing")

PricingMode = Literal["flat", "per_gram", "per_ml", "per_unit"]
PRICING_MODES = ("flat", "per_gram", "per_ml", "per_unit")
RATE_MODES = ("per_gram", "per_ml", "per_unit")


def round_cents(value) -> int:
    """Round a (possibly fractional) cent amount half-up to whole cents."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class LinePrice:
    def __init__(
        self,
        cents: int,
        mode: Optional[str] = None,
        exact: bool = True,
        missing: Optional[MissingDataError] = None,
    ):
        self.cents = cents
        self.mode = mode
        self.exact = exact
        self.missing = missing

    def to_dict(self):
        return {
            "cents": self.cents,
            "mode": self.mode,
            "exact": self.exact,
            "missing": self.missing.to_dict() if self.missing else None,
        }


def group_pricing(rows: Iterable) -> dict[str, list]:
    """Index active pricing rows by ingredient id."""
    out: dict[str, list] = {}
    for r in rows:
        if getattr(r, "is_active", True) is False:
            continue
        out.setdefault(r.ingredient_id, []).append(r)
    return out


def find_row(rows: Iterable, mode: str):
    for r in rows or []:
        if r.pricing_mode == mode and getattr(r, "is_active", True) is not False:
            return r
    return None


def _labels_match(line_unit: Optional[str], row_label: Optional[str]) -> bool:
    a = (line_unit or "").strip().lower()
    b = (row_label or "").strip().lower()
    if a == b:
        return True
    # "scoops" vs "scoop", "pc" vs "piece"
    na, nb = normalize_unit(a), normalize_unit(b)
    return na is not None and na == nb


def _require_rate(row, ingredient_id: str) -> float:
    if row.rate_cents is None:
        raise ConfigurationError(
            f"Pricing row '{row.pricing_mode}' for ingredient {ingredient_id} has no rate",
            ingredient_id=ingredient_id,
        )
    return float(row.rate_cents)


def quote(ingredient, amount: float, unit: str, mode: str, rows: Iterable) -> LinePrice:
    """Price one amount in one pricing mode. See price_for()."""
    ingredient_id = ingredient.id
    if mode not in PRICING_MODES:
        raise ConfigurationError(f"Unknown pricing mode '{mode}'", ingredient_id=ingredient_id)

    row = find_row(rows, mode)
    if row is None:
        logger.debug(f"No {mode} pricing for ingredient {ingredient_id}; priced at 0")
        return LinePrice(0, mode, missing=MissingDataError(ingredient_id, "pricing", f"No {mode} pricing row"))

    if mode == "flat":
        if row.base_price_cents is None:
            raise ConfigurationError(
                f"Flat pricing for ingredient {ingredient_id} has no base price",
                ingredient_id=ingredient_id,
            )
        return LinePrice(int(row.base_price_cents), mode)

    rate = _require_rate(row, ingredient_id)

    if mode == "per_gram":
        conv = to_grams(amount, unit, ingredient)
        return LinePrice(round_cents(conv.grams * rate), mode, exact=conv.exact)

    if mode == "per_ml":
        conv = to_milliliters(amount, unit, ingredient)
        return LinePrice(round_cents(conv.milliliters * rate), mode, exact=conv.exact)

    # per_unit
    if not row.unit_label:
        raise ConfigurationError(
            f"Per-unit pricing for ingredient {ingredient_id} has no unit label",
            ingredient_id=ingredient_id,
        )
    if not _labels_match(unit, row.unit_label):
        logger.warning(
            f"Unit label mismatch for ingredient {ingredient_id}: line '{unit}' vs pricing '{row.unit_label}'"
        )
        raise ConfigurationError(
            f"Line unit '{unit}' does not match per-unit pricing label '{row.unit_label}' "
            f"for ingredient {ingredient_id}",
            ingredient_id=ingredient_id,
        )
    qty = max(0.0, float(amount or 0))
    return LinePrice(round_cents(qty * rate), mode)


def price_for(ingredient, amount: float, unit: str, mode: str, rows: Iterable) -> int:
    """Cost in cents of `amount` `unit` of `ingredient` billed in `mode`."""
    return quote(ingredient, amount, unit, mode, rows).cents


def select_mode(unit: str, rows: Iterable) -> Optional[str]:
    """
    Pick the pricing mode checkout uses for a line:
    matching per-unit label, then per-gram for grams, per-ml for milliliters,
    then flat. None if nothing applies.
    """
    rows = list(rows or [])
    norm = normalize_unit(unit)

    per_unit = find_row(rows, "per_unit")
    if per_unit is not None and per_unit.unit_label and _labels_match(unit, per_unit.unit_label):
        return "per_unit"
    if norm == "gram" and find_row(rows, "per_gram") is not None:
        return "per_gram"
    if norm == "milliliter" and find_row(rows, "per_ml") is not None:
        return "per_ml"
    if find_row(rows, "flat") is not None:
        return "flat"
    return None


def price_for_line(line, ingredient, rows: Iterable) -> LinePrice:
    """Price a recipe/cart line, choosing the mode automatically."""
    if ingredient is None:
        return LinePrice(0, missing=MissingDataError(line.ingredient_id, "ingredient"))

    rows = list(rows or [])
    mode = select_mode(line.unit, rows)
    if mode is None:
        return LinePrice(0, missing=MissingDataError(line.ingredient_id, "pricing", "No applicable pricing row"))
    return quote(ingredient, line.amount, line.unit, mode, rows)


class PriceSummary:
    def __init__(self):
        self.cents = 0
        self.exact = True
        self.missing: list[MissingDataError] = []
        self.lines: list[LinePrice] = []

    def add(self, price: LinePrice):
        self.cents += price.cents
        self.exact = self.exact and price.exact
        if price.missing is not None:
            self.missing.append(price.missing)
        self.lines.append(price)

    def to_dict(self):
        return {
            "cents": self.cents,
            "exact": self.exact,
            "missing": [m.to_dict() for m in self.missing],
            "lines": [l.to_dict() for l in self.lines],
        }


def price_extras(
    lines: Iterable,
    ingredients_by_id: Mapping[str, object],
    pricing_by_ingredient: Mapping[str, list],
) -> PriceSummary:
    """Sum the price of the extra (add-on) lines only; base lines are in the drink price."""
    summary = PriceSummary()
    for line in lines:
        if not getattr(line, "is_extra", False):
            continue
        summary.add(price_for_line(
            line,
            ingredients_by_id.get(line.ingredient_id),
            pricing_by_ingredient.get(line.ingredient_id, []),
        ))
    return summary


def check_pricing_rows(ingredient_id: str, rows: Iterable) -> list[ConfigurationError]:
    """List the configuration problems in an ingredient's pricing rows (admin tooling)."""
    rows = [r for r in rows or [] if getattr(r, "is_active", True) is not False]
    problems = []

    counts = Counter(r.pricing_mode for r in rows)
    for mode, n in counts.items():
        if mode not in PRICING_MODES:
            problems.append(ConfigurationError(f"Unknown pricing mode '{mode}'", ingredient_id))
        elif n > 1:
            problems.append(ConfigurationError(f"{n} active '{mode}' pricing rows; expected one", ingredient_id))

    for r in rows:
        if r.pricing_mode == "flat" and r.base_price_cents is None:
            problems.append(ConfigurationError("Flat pricing has no base price", ingredient_id))
        if r.pricing_mode in RATE_MODES and r.rate_cents is None:
            problems.append(ConfigurationError(f"'{r.pricing_mode}' pricing has no rate", ingredient_id))
        if r.pricing_mode == "per_unit" and not r.unit_label:
            problems.append(ConfigurationError("Per-unit pricing has no unit label", ingredient_id))

    return problems
