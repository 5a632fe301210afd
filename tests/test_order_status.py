import pytest

from ordercore.domain.errors import InvalidStatus, InvalidTransition
from ordercore.domain.order_status import (
    CANCELLABLE,
    TRANSITIONS,
    OrderStatus,
    assert_transition,
    parse_status,
)


class TestParseStatus:
    def test_parses_known_value(self):
        assert parse_status("Shipped") is OrderStatus.SHIPPED

    def test_passes_enum_through(self):
        assert parse_status(OrderStatus.PENDING) is OrderStatus.PENDING

    def test_unknown_value_raises(self):
        with pytest.raises(InvalidStatus):
            parse_status("Lost")


class TestTransitions:
    def test_every_status_has_an_entry(self):
        assert set(TRANSITIONS) == set(OrderStatus)

    def test_refunded_is_terminal(self):
        assert TRANSITIONS[OrderStatus.REFUNDED] == set()

    def test_only_pending_and_confirmed_can_be_cancelled(self):
        assert CANCELLABLE == {OrderStatus.PENDING, OrderStatus.CONFIRMED}
        for status in OrderStatus:
            allowed = OrderStatus.CANCELLED in TRANSITIONS[status]
            assert allowed == (status in CANCELLABLE)

    def test_forward_transition_allowed(self):
        assert_transition(OrderStatus.SHIPPED, OrderStatus.DELIVERED)

    def test_backward_transition_rejected(self):
        with pytest.raises(InvalidTransition) as exc:
            assert_transition(OrderStatus.DELIVERED, OrderStatus.PENDING)

        assert exc.value.current == "Delivered"
        assert exc.value.target == "Pending"
