"""
Tests for the order fulfillment state machine.
"""

import warnings
from pathlib import Path

import pytest

from brewline.errors import StateTransitionError
from brewline.services import order_status
from brewline.services.order_status import allowed_targets, can_transition, check_transition, next_status


def test_happy_path():
    assert can_transition("pending", "in_progress")
    assert can_transition("in_progress", "ready")
    assert can_transition("ready", "picked_up")


def test_forward_skip_allowed():
    assert can_transition("pending", "ready")
    assert can_transition("pending", "picked_up")


@pytest.mark.parametrize("current", ["pending", "in_progress", "ready"])
def test_cancel_from_open_states(current):
    assert can_transition(current, "cancelled")


@pytest.mark.parametrize("current,target", [
    ("picked_up", "pending"),
    ("cancelled", "pending"),
    ("picked_up", "cancelled"),
    ("ready", "in_progress"),
    ("in_progress", "pending"),
    ("pending", "pending"),
])
def test_rejected_transitions(current, target):
    with pytest.raises(StateTransitionError) as exc:
        check_transition(current, target)
    assert exc.value.kind == "invalid_transition"


def test_unknown_target_rejected():
    with pytest.raises(StateTransitionError):
        check_transition("pending", "shipped")


def test_terminal_states_have_no_targets():
    assert allowed_targets("picked_up") == []
    assert allowed_targets("cancelled") == []


def test_next_status():
    assert next_status("pending") == "in_progress"
    assert next_status("ready") == "picked_up"
    assert next_status("picked_up") is None
    assert next_status("cancelled") is None


def test_module_compiles_without_escape_warnings():
    source = Path(order_status.__file__).read_text()
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        compile(source, order_status.__file__, "exec")
