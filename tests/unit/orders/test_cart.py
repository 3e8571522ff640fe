"""Unit tests for CartPricingEngine.

Covers:
- add_item prices from the catalog and discounts via the resolver.
- Missing price / inactive product / resolver failure abort before any line.
- Quantity change re-resolves the discount on the new line total.
- remove_item emits a cart change with actor attribution.
- Cart-change proposals are de-duplicated against the previous entry.
- calculate_totals is a pure fold.
"""

from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from modules.discounts.dtos import DiscountResult
from modules.orders.cart import calculate_totals
from modules.orders.constants import ActorRole, BuyerAction
from modules.orders.events import CartChanged
from modules.orders.exceptions import (
    ExternalDependencyFailure,
    InvalidInput,
    InvalidOrderStatus,
    OrderItemNotFound,
    PriceNotFound,
)
from modules.orders.models import OrderItem, Proposal
from modules.products.models import ProductStatus

pytestmark = pytest.mark.unit


def _line(quantity, price, percent):
    return SimpleNamespace(
        quantity=Decimal(quantity),
        unit_price=Decimal(price),
        discount_percent=Decimal(percent),
    )


class TestAddItem:
    def test_prices_and_discounts_line(
        self, cart_engine, order, product, catalog_id, catalog_price, discount_resolver
    ):
        item = cart_engine.add_item(order, product.id, Decimal("10"), catalog_id, actor_user_id=7)

        assert item.order == order
        assert item.unit_price == Decimal("100.00")
        assert item.discount_percent == Decimal("10")
        assert item.final_value == Decimal("900.00")
        assert item.aux_data["applied_segment"] == "large-area"
        assert item.aux_data["catalog_id"] == str(catalog_id)
        assert item._state.adding

        query = discount_resolver.resolve.call_args.args[0]
        assert query.producer_id == order.producer_id
        assert query.supplier_id == order.supplier_id
        assert query.category_id == product.category_id
        assert query.planting_area == Decimal("150.00")
        assert query.line_total == Decimal("1000.00")

    def test_records_cart_change_proposal_and_event(
        self, cart_engine, order, product, catalog_id, catalog_price
    ):
        cart_engine.add_item(order, product.id, Decimal("10"), catalog_id, actor_user_id=7)

        proposal = Proposal.objects.get(order=order)
        assert proposal.action == BuyerAction.CART_CHANGED
        assert proposal.role == ActorRole.BUYER
        assert proposal.actor_user_id == 7
        assert product.name in proposal.note
        assert any(isinstance(e, CartChanged) for e in order.domain_events)

    def test_missing_price_fails(self, cart_engine, order, product):
        with pytest.raises(PriceNotFound):
            cart_engine.add_item(order, product.id, Decimal("1"), uuid4())
        assert not OrderItem.objects.exists()
        assert not Proposal.objects.exists()

    def test_inactive_product_rejected(
        self, cart_engine, order, product, catalog_id, catalog_price
    ):
        product.status = ProductStatus.INACTIVE
        product.save()

        with pytest.raises(InvalidInput, match="inactive"):
            cart_engine.add_item(order, product.id, Decimal("1"), catalog_id)

    @pytest.mark.parametrize("quantity", ["0", "-2"])
    def test_non_positive_quantity_rejected(self, cart_engine, order, product, catalog_id, quantity):
        with pytest.raises(InvalidInput):
            cart_engine.add_item(order, product.id, Decimal(quantity), catalog_id)

    def test_resolver_failure_propagates_without_fallback(
        self, cart_engine, order, product, catalog_id, catalog_price, discount_resolver
    ):
        discount_resolver.resolve.side_effect = ExternalDependencyFailure("down")

        with pytest.raises(ExternalDependencyFailure):
            cart_engine.add_item(order, product.id, Decimal("1"), catalog_id)
        assert not Proposal.objects.exists()

    def test_closed_order_rejects_new_lines(
        self, cart_engine, order, product, catalog_id, catalog_price
    ):
        order.status = "CLOSED"
        with pytest.raises(InvalidOrderStatus):
            cart_engine.add_item(order, product.id, Decimal("1"), catalog_id)


class TestUpdateAndRemove:
    def test_quantity_change_re_resolves_discount(
        self, cart_engine, order, make_item, discount_resolver
    ):
        item = make_item(order, quantity=Decimal("10"), discount_percent=Decimal("10"))
        discount_resolver.resolve.return_value = DiscountResult(percentage=Decimal("15"))

        cart_engine.update_item_quantity(item, Decimal("50"), order, actor_user_id=3)

        assert item.quantity == Decimal("50")
        assert item.discount_percent == Decimal("15")
        assert item.final_value == Decimal("4250.00")
        assert discount_resolver.resolve.call_args.args[0].line_total == Decimal("5000.00")
        proposal = Proposal.objects.get(order=order)
        assert "from 10 to 50" in proposal.note

    def test_remove_item_attributes_actor(self, cart_engine, order, make_item, order_repository):
        item = make_item(order)
        order = order_repository.get_by_id(str(order.id))

        removed = cart_engine.remove_item(order, item.id, actor_user_id=11)

        assert removed.id == item.id
        proposal = Proposal.objects.get(order=order)
        assert proposal.actor_user_id == 11
        assert proposal.note.startswith("Removed product")

    def test_remove_unknown_item(self, cart_engine, order):
        with pytest.raises(OrderItemNotFound):
            cart_engine.remove_item(order, uuid4())

    def test_consecutive_cart_changes_log_once(
        self, cart_engine, order, product, catalog_id, catalog_price
    ):
        cart_engine.add_item(order, product.id, Decimal("1"), catalog_id)
        cart_engine.add_item(order, product.id, Decimal("2"), catalog_id)

        assert Proposal.objects.filter(order=order).count() == 1
        cart_changes = [e for e in order.domain_events if isinstance(e, CartChanged)]
        assert len(cart_changes) == 2


class TestTotals:
    def test_fold_over_lines(self):
        totals = calculate_totals(
            [_line("10", "100.00", "10"), _line("5", "20.00", "0")]
        )

        assert totals.gross_value == Decimal("1100.00")
        assert totals.discount_value == Decimal("100.00")
        assert totals.net_value == Decimal("1000.00")
        assert totals.item_count == 2
        assert totals.avg_discount_pct == Decimal("9.09")

    def test_empty_cart_has_zero_average(self):
        totals = calculate_totals([])

        assert totals.gross_value == Decimal("0.00")
        assert totals.avg_discount_pct == Decimal("0.00")
        assert totals.item_count == 0

    def test_is_pure(self, cart_engine, order, make_item, order_repository):
        make_item(order)
        make_item(order, quantity=Decimal("3"), unit_price=Decimal("9.99"))
        order = order_repository.get_by_id(str(order.id))

        assert cart_engine.calculate_totals(order) == cart_engine.calculate_totals(order)

    def test_refresh_totals_stores_snapshot(self, cart_engine, order, make_item, order_repository):
        make_item(order)
        order = order_repository.get_by_id(str(order.id))

        totals = cart_engine.refresh_totals(order)

        assert order.totals["net_value"] == str(totals.net_value)
        assert "calculated_at" in order.totals
