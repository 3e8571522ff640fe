"""Unit tests for NegotiationProtocol.

Covers:
- First buyer action is always recorded as STARTED.
- Buyer ACCEPTED closes, CANCELLED cancels; missing/unmapped actions fail.
- Supplier notes: required, only while negotiating, no status change.
- Duplicate actions are not logged twice but still transition.
- Terminal orders reject every step with a status-specific message.
- Notifier receives each recorded proposal.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from modules.orders.constants import (
    STARTED_NEGOTIATION_NOTE,
    ActorRole,
    BuyerAction,
    OrderStatus,
)
from modules.orders.exceptions import EmptyOrder, InvalidInput, InvalidOrderStatus
from modules.orders.models import Proposal
from modules.orders.negotiation import NegotiationProtocol

pytestmark = pytest.mark.unit


@pytest.fixture()
def notifier():
    return MagicMock()


@pytest.fixture()
def protocol(proposal_repository, notifier):
    return NegotiationProtocol(proposal_repository, notifier)


@pytest.fixture()
def started_order(order, protocol):
    protocol.record_action(order, 1, ActorRole.BUYER, BuyerAction.STARTED)
    return order


@pytest.fixture()
def started_order_with_item(started_order, make_item, order_repository):
    make_item(started_order)
    return order_repository.get_by_id(str(started_order.id))


class TestBuyerFirstAction:
    @pytest.mark.parametrize(
        "requested", [None, BuyerAction.CANCELLED, BuyerAction.ACCEPTED]
    )
    def test_first_action_is_recorded_as_started(self, order, protocol, requested):
        proposal = protocol.record_action(order, 1, ActorRole.BUYER, requested)

        assert proposal.action == BuyerAction.STARTED
        assert proposal.note == STARTED_NEGOTIATION_NOTE
        assert order.status == OrderStatus.IN_NEGOTIATION


class TestBuyerTransitions:
    def test_accept_closes_order(self, started_order_with_item, protocol):
        proposal = protocol.record_action(
            started_order_with_item, 1, ActorRole.BUYER, BuyerAction.ACCEPTED
        )

        assert proposal.action == BuyerAction.ACCEPTED
        assert started_order_with_item.status == OrderStatus.CLOSED

    def test_accept_on_empty_order_fails(self, started_order, protocol):
        with pytest.raises(EmptyOrder):
            protocol.record_action(started_order, 1, ActorRole.BUYER, BuyerAction.ACCEPTED)
        assert Proposal.objects.filter(order=started_order).count() == 1

    def test_cancel_by_buyer(self, started_order, protocol):
        protocol.record_action(started_order, 1, ActorRole.BUYER, BuyerAction.CANCELLED)
        assert started_order.status == OrderStatus.CANCELLED_BY_BUYER

    def test_missing_action_after_start_fails(self, started_order, protocol):
        with pytest.raises(InvalidInput, match="An action is required."):
            protocol.record_action(started_order, 1, ActorRole.BUYER, None)

    @pytest.mark.parametrize("action", [BuyerAction.CART_CHANGED, BuyerAction.STARTED, "BOGUS"])
    def test_unmapped_action_fails(self, started_order, protocol, action):
        with pytest.raises(InvalidInput):
            protocol.record_action(started_order, 1, ActorRole.BUYER, action)


class TestSupplier:
    def test_note_recorded_without_transition(self, started_order, protocol):
        proposal = protocol.record_action(
            started_order, 2, ActorRole.SUPPLIER, note="  Price valid until Friday  "
        )

        assert proposal.role == ActorRole.SUPPLIER
        assert proposal.action is None
        assert proposal.note == "Price valid until Friday"
        assert started_order.status == OrderStatus.IN_NEGOTIATION

    @pytest.mark.parametrize("note", [None, "", "   "])
    def test_note_required(self, started_order, protocol, note):
        with pytest.raises(InvalidInput, match="note"):
            protocol.record_action(started_order, 2, ActorRole.SUPPLIER, note=note)

    def test_unknown_role_rejected(self, started_order, protocol):
        with pytest.raises(InvalidInput):
            protocol.record_action(started_order, 2, "ADMIN", note="hello")


class TestDeduplication:
    def test_different_consecutive_actions_are_both_logged(self, order, protocol):
        protocol.record_action(order, 1, ActorRole.BUYER)
        second = protocol.record_action(order, 1, ActorRole.SUPPLIER, note="counter offer")
        assert second is not None

        assert Proposal.objects.filter(order=order).count() == 2

    def test_suppressed_row_still_applies_transition(self, started_order, protocol):
        # Last entry is STARTED; force a stale CANCELLED entry to be the latest.
        Proposal.objects.create(
            order=started_order, action=BuyerAction.CANCELLED, role=ActorRole.BUYER
        )

        result = protocol.record_action(started_order, 1, ActorRole.BUYER, BuyerAction.CANCELLED)

        assert result is None
        assert started_order.status == OrderStatus.CANCELLED_BY_BUYER
        assert Proposal.objects.filter(order=started_order).count() == 2


class TestTerminalOrders:
    def test_cancelled_order_rejects_buyer(self, started_order, protocol):
        started_order.status = OrderStatus.CANCELLED_BY_DEADLINE

        with pytest.raises(InvalidOrderStatus, match="is cancelled"):
            protocol.record_action(started_order, 1, ActorRole.BUYER, BuyerAction.ACCEPTED)

    def test_closed_order_rejects_supplier(self, started_order, protocol):
        started_order.status = OrderStatus.CLOSED

        with pytest.raises(InvalidOrderStatus, match="already closed"):
            protocol.record_action(started_order, 2, ActorRole.SUPPLIER, note="late")


def test_notifier_receives_recorded_proposal(order, protocol, notifier):
    protocol.record_action(order, 1, ActorRole.BUYER)

    notifier.notify.assert_called_once()
    kind = notifier.notify.call_args.args[0]
    assert kind == "negotiation.proposal_recorded"
    assert notifier.notify.call_args.kwargs["order_id"] == str(order.id)
