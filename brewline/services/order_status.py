r"""
Order Fulfillment State Machine.

    pending -> in_progress -> ready -> picked_up
       \            \           \
        +------------+-----------+--> cancelled

Forward skips (pending -> ready) are allowed for staff. Going backwards,
re-entering the current status, or leaving a terminal status is rejected.
"""

from typing import Literal, Optional

from ..errors import StateTransitionError

OrderStatus = Literal["pending", "in_progress", "ready", "picked_up", "cancelled"]

FLOW: tuple[str, ...] = ("pending", "in_progress", "ready", "picked_up")
TERMINAL = frozenset({"picked_up", "cancelled"})
ALL_STATUSES = frozenset(FLOW) | {"cancelled"}


def is_terminal(status: str) -> bool:
    return status in TERMINAL


def allowed_targets(current: str) -> list[str]:
    if current not in ALL_STATUSES or is_terminal(current):
        return []
    idx = FLOW.index(current)
    return [*FLOW[idx + 1:], "cancelled"]


def can_transition(current: str, target: str) -> bool:
    return target in allowed_targets(current)


def check_transition(current: str, target: str) -> None:
    """Raise StateTransitionError(invalid_transition) unless current -> target is allowed."""
    if target not in ALL_STATUSES:
        raise StateTransitionError("invalid_transition", f"Unknown status '{target}'", current)
    if is_terminal(current):
        raise StateTransitionError(
            "invalid_transition", f"Order is already {current}; no further changes allowed", current
        )
    if not can_transition(current, target):
        raise StateTransitionError(
            "invalid_transition", f"Cannot move order from {current} to {target}", current
        )


def next_status(current: str) -> Optional[str]:
    """The next step on the happy path, or None at the end of it."""
    if current not in FLOW or is_terminal(current):
        return None
    return FLOW[FLOW.index(current) + 1]
