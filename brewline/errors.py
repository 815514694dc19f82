"""Error kinds for the valuation and fulfillment core.

Two families:
- Value errors (MissingDataError, PromotionError) are collected into result
  objects so the caller can render a precise message. The pure services
  never raise them.
- Raised errors (ConfigurationError, StateTransitionError, PersistenceError)
  propagate to the routers, which translate them into HTTP responses.
"""

from typing import Literal, Optional


class BrewlineError(Exception):
    """Base exception for core errors."""
    pass


class MissingDataError(BrewlineError):
    """An ingredient, nutrition row or pricing row is absent.

    Recorded alongside a best-effort estimate, never raised.
    """

    def __init__(self, ingredient_id: str, what: str, detail: Optional[str] = None):
        self.ingredient_id = ingredient_id
        self.what = what  # ingredient | nutrition | pricing | conversion
        self.detail = detail
        super().__init__(detail or f"Missing {what} for ingredient {ingredient_id}")

    def to_dict(self):
        return {
            "ingredient_id": self.ingredient_id,
            "what": self.what,
            "detail": str(self),
        }


class ConfigurationError(BrewlineError):
    """Catalog data is inconsistent (e.g. per-unit label mismatch).

    Surfaced to catalog administrators, never swallowed.
    """

    def __init__(self, message: str, ingredient_id: Optional[str] = None):
        self.ingredient_id = ingredient_id
        super().__init__(message)


PromotionErrorKind = Literal[
    "not_found",
    "expired",
    "inactive",
    "threshold_not_met",
    "usage_exceeded",
    "ineligible_items",
]


class PromotionError(BrewlineError):
    """Why a promotion could not be validated or applied. Returned as data."""

    def __init__(self, kind: PromotionErrorKind, message: str):
        self.kind = kind
        self.message = message
        super().__init__(message)

    def to_dict(self):
        return {"kind": self.kind, "message": self.message}

    def __eq__(self, other):
        if not isinstance(other, PromotionError):
            return NotImplemented
        return self.kind == other.kind and self.message == other.message

    def __hash__(self):
        return hash((self.kind, self.message))


StateTransitionErrorKind = Literal["invalid_transition", "conflict", "not_found"]


class StateTransitionError(BrewlineError):
    """A requested order status change was rejected."""

    def __init__(
        self,
        kind: StateTransitionErrorKind,
        message: str,
        current_status: Optional[str] = None,
    ):
        self.kind = kind
        self.message = message
        self.current_status = current_status
        super().__init__(message)


class PersistenceError(BrewlineError):
    """The data store failed and retries were exhausted."""
    pass
