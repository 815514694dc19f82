"""
Recipe Scaler.

Derives the ingredient lines for a serving size from the drink's base
recipe. A size that carries its own override lines uses them verbatim;
otherwise every base amount is scaled by size_ml / base_size_ml and rounded
to SCALE_PRECISION (one decimal place, half-up).

Scaling always starts from the base recipe. Callers must not feed a scaled
result back in as a new base, or rounding drift compounds.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from ..errors import ConfigurationError
from ..schemas import LineIngredient

SCALE_PRECISION = Decimal("0.1")


def round_amount(value: float) -> float:
    return float(Decimal(str(value)).quantize(SCALE_PRECISION, rounding=ROUND_HALF_UP))


def as_line(line) -> LineIngredient:
    if isinstance(line, LineIngredient):
        return line
    return LineIngredient.model_validate(line, from_attributes=True)


def override_lines(target_size) -> Optional[list]:
    """The size's explicit override list, or None. An empty list is not an override."""
    lines = getattr(target_size, "lines", None)
    if not lines:
        return None
    return list(lines)


def scale_line(line, ratio: Decimal) -> LineIngredient:
    src = as_line(line)
    scaled = Decimal(str(src.amount)) * ratio
    return src.model_copy(update={"amount": round_amount(scaled)})


def resolve_lines(base_lines: Iterable, base_size_ml: Optional[float], target_size) -> list[LineIngredient]:
    """
    Concrete lines for `target_size`.

    Args:
        base_lines: Lines of the base recipe (unscaled)
        base_size_ml: Volume the base recipe is written for
        target_size: Object with `size_ml` and optional override `lines`

    Raises:
        ConfigurationError if scaling is needed but the base size is missing or not positive
    """
    override = override_lines(target_size)
    if override is not None:
        return [as_line(l) for l in override]

    if not base_size_ml or base_size_ml <= 0:
        raise ConfigurationError("Base recipe has no size; cannot scale without a size override")

    target_ml = getattr(target_size, "size_ml", None)
    if not target_ml or target_ml <= 0:
        raise ConfigurationError(f"Invalid target size {target_ml!r}")

    ratio = Decimal(str(target_ml)) / Decimal(str(base_size_ml))
    return [scale_line(l, ratio) for l in base_lines]
