"""Unit tests for the Order aggregate, OrderItem values and Proposal log.

Covers:
- Order.open defaults and deadline.
- State machine: close / cancel_by_buyer / cancel_by_deadline, no way back
  from a terminal status.
- Closing an order without items fails.
- Deadline extension and is_within_deadline.
- OrderItem derived values and validation.
- Proposals are append-only.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from modules.orders.constants import ActorRole, BuyerAction, OrderStatus
from modules.orders.events import DeadlineExtended, OrderCancelled, OrderClosed
from modules.orders.exceptions import EmptyOrder, InvalidInput, InvalidOrderStatus
from modules.orders.models import Order, OrderItem, Proposal

pytestmark = pytest.mark.unit

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=dt_timezone.utc)


@pytest.fixture()
def order_with_item(order, make_item, order_repository):
    make_item(order)
    return order_repository.get_by_id(str(order.id))


class TestOpen:
    def test_opens_in_negotiation_with_deadline(self):
        order = Order.open(uuid4(), uuid4(), deadline_days=7, now=NOW)

        assert order.status == OrderStatus.IN_NEGOTIATION
        assert order.interaction_deadline == NOW + timedelta(days=7)
        assert order.is_negotiating
        assert not order.is_terminal

    @pytest.mark.parametrize("days", [0, -3])
    def test_non_positive_deadline_days_rejected(self, days):
        with pytest.raises(InvalidInput):
            Order.open(uuid4(), uuid4(), deadline_days=days)


class TestStateMachine:
    def test_close_without_items_fails(self, order):
        with pytest.raises(EmptyOrder):
            order.close()
        assert order.status == OrderStatus.IN_NEGOTIATION

    def test_close_with_items(self, order_with_item):
        order_with_item.close()

        assert order_with_item.status == OrderStatus.CLOSED
        assert isinstance(order_with_item.domain_events[-1], OrderClosed)

    def test_cancel_by_buyer(self, order):
        order.cancel_by_buyer()

        assert order.status == OrderStatus.CANCELLED_BY_BUYER
        event = order.domain_events[-1]
        assert isinstance(event, OrderCancelled)
        assert event.status == OrderStatus.CANCELLED_BY_BUYER

    def test_cancel_by_deadline(self, order):
        order.cancel_by_deadline()
        assert order.status == OrderStatus.CANCELLED_BY_DEADLINE

    def test_closed_order_cannot_be_cancelled(self, order_with_item):
        order_with_item.close()

        with pytest.raises(InvalidOrderStatus, match="already closed"):
            order_with_item.cancel_by_buyer()
        assert order_with_item.status == OrderStatus.CLOSED

    @pytest.mark.parametrize(
        "terminal",
        [OrderStatus.CANCELLED_BY_BUYER, OrderStatus.CANCELLED_BY_DEADLINE],
    )
    def test_cancelled_order_never_returns_to_negotiation(self, order, terminal):
        order.status = terminal

        assert not order.can_transition_to(OrderStatus.IN_NEGOTIATION)
        with pytest.raises(InvalidOrderStatus, match="is cancelled"):
            order.close()

    def test_items_cannot_be_added_after_close(self, order_with_item, product):
        order_with_item.close()

        with pytest.raises(InvalidOrderStatus):
            order_with_item.add_item(
                OrderItem(product=product, quantity=Decimal("1"), unit_price=Decimal("1"))
            )


class TestDeadline:
    def test_extend_deadline_resets_from_now(self, order):
        order.extend_deadline(3, now=NOW)

        assert order.interaction_deadline == NOW + timedelta(days=3)
        assert isinstance(order.domain_events[-1], DeadlineExtended)

    def test_extend_deadline_rejects_non_positive_days(self, order):
        with pytest.raises(InvalidInput):
            order.extend_deadline(0)

    def test_extend_deadline_on_terminal_order_fails(self, order):
        order.cancel_by_buyer()
        with pytest.raises(InvalidOrderStatus):
            order.extend_deadline(2)

    def test_is_within_deadline(self):
        order = Order.open(uuid4(), uuid4(), deadline_days=7, now=NOW)

        assert order.is_within_deadline(NOW + timedelta(days=7))
        assert not order.is_within_deadline(NOW + timedelta(days=7, seconds=1))


class TestOrderItemValues:
    def test_values_derived_on_save(self, order, make_item):
        item = make_item(
            order,
            quantity=Decimal("10"),
            unit_price=Decimal("100.00"),
            discount_percent=Decimal("10"),
        )
        item.refresh_from_db()

        assert item.total_value == Decimal("1000.00")
        assert item.discount_value == Decimal("100.00")
        assert item.final_value == Decimal("900.00")

    @pytest.mark.parametrize(
        "quantity, price, percent",
        [
            ("3", "33.33", "7.5"),
            ("0.125", "1999.99", "0"),
            ("42", "12.10", "100"),
        ],
    )
    def test_final_value_matches_formula(self, quantity, price, percent):
        item = OrderItem(
            quantity=Decimal(quantity),
            unit_price=Decimal(price),
            discount_percent=Decimal(percent),
        )
        item.calculate_values()

        expected = Decimal(quantity) * Decimal(price) * (1 - Decimal(percent) / 100)
        assert abs(item.final_value - expected) <= Decimal("0.01")

    @pytest.mark.parametrize(
        "field, value",
        [
            ("quantity", Decimal("0")),
            ("unit_price", Decimal("-1")),
            ("discount_percent", Decimal("100.01")),
            ("discount_percent", Decimal("-1")),
        ],
    )
    def test_invalid_values_rejected(self, field, value):
        item = OrderItem(
            quantity=Decimal("1"), unit_price=Decimal("1"), discount_percent=Decimal("0")
        )
        setattr(item, field, value)
        with pytest.raises(InvalidInput):
            item.calculate_values()


class TestProposalLog:
    def _proposal(self, order) -> Proposal:
        return Proposal.objects.create(
            order=order,
            action=BuyerAction.STARTED,
            role=ActorRole.BUYER,
            note="Started negotiation",
        )

    def test_cannot_update(self, order):
        proposal = self._proposal(order)
        proposal.note = "rewritten"

        with pytest.raises(InvalidOrderStatus, match="append-only"):
            proposal.save()

    def test_cannot_delete(self, order):
        proposal = self._proposal(order)

        with pytest.raises(InvalidOrderStatus, match="append-only"):
            proposal.delete()
        assert Proposal.objects.filter(id=proposal.id).exists()
