"""
Unit tests for order status transitions and line status derivation.
"""
import pytest

from orders.errors import InvalidTransitionError
from orders.status import (
    ALL_STATUSES,
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    check_transition,
    derive_item_status,
)


@pytest.mark.unit
class TestDeriveItemStatus:
    """Tests for the line status rule."""

    def test_nothing_received(self):
        """Test a line with nothing received is pending."""
        assert derive_item_status(5, 0) == "pending"

    def test_partially_received(self):
        """Test some but not all received."""
        assert derive_item_status(5, 3) == "partially_received"

    def test_fully_received(self):
        """Test received equals quantity."""
        assert derive_item_status(5, 5) == "received"

    def test_single_unit(self):
        """Test a one-unit line goes straight from pending to received."""
        assert derive_item_status(1, 0) == "pending"
        assert derive_item_status(1, 1) == "received"


@pytest.mark.unit
class TestTransitions:
    """Tests for the order lifecycle table."""

    def test_table_covers_every_status(self):
        """Test every status has an entry."""
        assert set(ALLOWED_TRANSITIONS) == ALL_STATUSES

    def test_happy_path(self):
        """Test the normal forward path is allowed step by step."""
        path = ["draft", "pending", "confirmed", "shipped", "partially_delivered", "delivered"]
        for current, target in zip(path, path[1:]):
            check_transition(current, target)

    def test_shipped_straight_to_delivered(self):
        """Test a full delivery skips partially_delivered."""
        check_transition("shipped", "delivered")

    @pytest.mark.parametrize("current", ["draft", "pending", "confirmed", "shipped", "partially_delivered"])
    def test_cancel_from_non_terminal(self, current):
        """Test every non-terminal status can be cancelled."""
        check_transition(current, "cancelled")

    @pytest.mark.parametrize("current", sorted(TERMINAL_STATUSES))
    def test_terminal_statuses_are_final(self, current):
        """Test nothing leaves delivered or cancelled, not even cancel."""
        for target in ALL_STATUSES:
            with pytest.raises(InvalidTransitionError):
                check_transition(current, target)

    def test_skipping_steps_rejected(self):
        """Test draft cannot jump to shipped."""
        with pytest.raises(InvalidTransitionError):
            check_transition("draft", "shipped")

    def test_backwards_rejected(self):
        """Test confirmed cannot return to draft."""
        with pytest.raises(InvalidTransitionError):
            check_transition("confirmed", "draft")

    def test_unknown_status_rejected(self):
        """Test a status outside the seven is rejected."""
        with pytest.raises(InvalidTransitionError, match="Unknown status"):
            check_transition("draft", "archived")
