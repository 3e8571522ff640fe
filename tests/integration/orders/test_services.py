"""Integration tests for the order, negotiation and transport services.

Each test drives a service method end to end against the test database
and checks the ``ServiceResult`` contract: failure codes, rollback of
partial writes, version bumps and outbox rows.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from django.utils import timezone

from modules.core.models import OutboxEvent
from modules.orders.constants import ActorRole, BuyerAction, OrderStatus
from modules.orders.dtos import (
    AddItemDTO,
    CreateOrderDTO,
    FreightLineDTO,
    RecordActionDTO,
    ScheduleTransportDTO,
)
from modules.orders.exceptions import ExternalDependencyFailure
from modules.orders.freight import FreightCalculator
from modules.orders.models import Order, OrderItem, Proposal, Transport
from modules.orders.negotiation import NegotiationProtocol
from modules.orders.services import NegotiationService, OrderService, TransportService
from modules.orders.transport import TransportScheduler
from modules.producers.repositories.django_repository import ProducerDjangoRepository
from modules.products.repositories.django_repository import ProductDjangoRepository

pytestmark = pytest.mark.integration


@pytest.fixture()
def order_service(order_repository, cart_engine, transport_repository):
    return OrderService(
        order_repository, ProducerDjangoRepository(), cart_engine, transport_repository
    )


@pytest.fixture()
def negotiation_service(order_repository, proposal_repository):
    return NegotiationService(
        order_repository,
        proposal_repository,
        NegotiationProtocol(proposal_repository, MagicMock()),
    )


@pytest.fixture()
def transport_service(transport_repository, order_repository):
    calculator = FreightCalculator(Decimal("0.05"), Decimal("50.00"))
    return TransportService(
        transport_repository,
        order_repository,
        ProductDjangoRepository(),
        TransportScheduler(calculator),
        calculator,
    )


@pytest.fixture()
def add_item_dto(product, catalog_id, catalog_price):
    return AddItemDTO(product_id=product.id, quantity=Decimal("10"), catalog_id=catalog_id)


def _schedule_dto(item, quantity, days=3, **extra) -> ScheduleTransportDTO:
    return ScheduleTransportDTO(
        order_item_id=item.id,
        quantity=Decimal(quantity),
        scheduled_date=timezone.now() + timedelta(days=days),
        **extra,
    )


# ---------------------------------------------------------------------------
# OrderService
# ---------------------------------------------------------------------------


class TestCreateOrder:
    def test_creates_negotiating_order(self, order_service, producer, supplier_id, settings):
        settings.ORDER_DEADLINE_DAYS = 5
        before = timezone.now()

        result = order_service.create_order(
            CreateOrderDTO(producer_id=producer.id, supplier_id=supplier_id)
        )

        assert result.ok
        summary = result.value
        assert summary.status == OrderStatus.IN_NEGOTIATION
        assert summary.items == []
        assert summary.totals["item_count"] == 0
        assert summary.totals["net_value"] == "0.00"
        assert before + timedelta(days=5) <= summary.interaction_deadline
        assert OutboxEvent.objects.filter(
            aggregate_id=str(summary.id), event_type="OrderCreated"
        ).exists()

    def test_unknown_producer(self, order_service, supplier_id):
        result = order_service.create_order(
            CreateOrderDTO(producer_id=uuid4(), supplier_id=supplier_id)
        )

        assert not result.ok
        assert result.code == "not_found"
        assert not Order.objects.exists()

    def test_inactive_producer(self, order_service, producer, supplier_id):
        producer.is_active = False
        producer.save()

        result = order_service.create_order(
            CreateOrderDTO(producer_id=producer.id, supplier_id=supplier_id)
        )

        assert result.code == "invalid_input"


class TestCart:
    def test_add_item_updates_totals_and_version(self, order_service, order, add_item_dto):
        result = order_service.add_item(order.id, add_item_dto, expected_version=order.version)

        assert result.ok
        assert result.value.final_value == Decimal("900.00")
        stored = Order.objects.get(id=order.id)
        assert stored.version == order.version + 1
        assert stored.totals["net_value"] == "900.00"
        assert stored.totals["gross_value"] == "1000.00"

    def test_stale_version_rejected_without_writes(self, order_service, order, add_item_dto):
        result = order_service.add_item(order.id, add_item_dto, expected_version=order.version + 1)

        assert result.code == "concurrency_conflict"
        assert not OrderItem.objects.exists()
        assert not Proposal.objects.exists()

    def test_discount_failure_rolls_back(
        self, order_service, order, add_item_dto, discount_resolver
    ):
        discount_resolver.resolve.side_effect = ExternalDependencyFailure(
            "Discount service unavailable."
        )

        result = order_service.add_item(order.id, add_item_dto)

        assert result.code == "external_dependency"
        assert not OrderItem.objects.exists()
        assert Order.objects.get(id=order.id).version == order.version

    def test_missing_price(self, order_service, order, product):
        dto = AddItemDTO(product_id=product.id, quantity=Decimal("1"), catalog_id=uuid4())

        assert order_service.add_item(order.id, dto).code == "not_found"

    def test_past_deadline_rejects_mutation(self, order_service, make_order, add_item_dto):
        expired = make_order(deadline_days=1, now=timezone.now() - timedelta(days=2))

        result = order_service.add_item(expired.id, add_item_dto)

        assert result.code == "invalid_state"
        assert "has passed" in result.message

    def test_unknown_order(self, order_service, add_item_dto):
        assert order_service.add_item(uuid4(), add_item_dto).code == "not_found"

    def test_update_quantity_then_remove(self, order_service, order, add_item_dto):
        item_id = order_service.add_item(order.id, add_item_dto).value.id

        updated = order_service.update_item_quantity(order.id, item_id, Decimal("20"))
        assert updated.ok
        assert updated.value.final_value == Decimal("1800.00")

        removed = order_service.remove_item(order.id, item_id)
        assert removed.ok
        assert removed.value.items == []
        assert removed.value.totals["item_count"] == 0

    def test_update_quantity_below_scheduled_transports_rejected(
        self, order_service, transport_service, order, add_item_dto
    ):
        item_id = order_service.add_item(order.id, add_item_dto).value.id
        item = OrderItem.objects.get(id=item_id)
        assert transport_service.schedule_transport(_schedule_dto(item, "6")).ok

        shrunk = order_service.update_item_quantity(order.id, item_id, Decimal("4"))

        assert shrunk.code == "invalid_input"
        item.refresh_from_db()
        assert item.quantity == Decimal("10")
        assert order_service.update_item_quantity(order.id, item_id, Decimal("6")).ok

    def test_remove_unknown_item(self, order_service, order):
        assert order_service.remove_item(order.id, uuid4()).code == "not_found"

    def test_recalculate_totals(self, order_service, order, make_item):
        make_item(order, quantity=Decimal("2"), unit_price=Decimal("50.00"), discount_percent=Decimal("0"))

        result = order_service.recalculate_totals(order.id)

        assert result.value.net_value == Decimal("100.00")
        assert Order.objects.get(id=order.id).totals["net_value"] == "100.00"


class TestDeadlineQueries:
    def test_extend_deadline(self, order_service, order):
        before = timezone.now()

        result = order_service.extend_deadline(order.id, 10)

        assert result.ok
        assert result.value.interaction_deadline >= before + timedelta(days=10)
        assert result.value.version == order.version + 1

    def test_extend_deadline_on_closed_order(self, order_service, order):
        Order.objects.filter(id=order.id).update(status=OrderStatus.CLOSED)

        assert order_service.extend_deadline(order.id, 2).code == "invalid_state"

    def test_near_deadline_and_expired(self, order_service, make_order):
        now = timezone.now()
        soon = make_order(deadline_days=1, now=now - timedelta(hours=1))
        late = make_order(deadline_days=1, now=now - timedelta(days=3))

        assert [o.id for o in order_service.orders_near_deadline(1, now).value] == [soon.id]
        assert [o.id for o in order_service.expired_orders(now).value] == [late.id]


# ---------------------------------------------------------------------------
# NegotiationService
# ---------------------------------------------------------------------------


class TestNegotiation:
    def _act(self, service, order, role, action=None, note=None):
        return service.record_action(
            RecordActionDTO(order_id=order.id, role=role, action=action, note=note)
        )

    def test_full_negotiation_closes_order(self, negotiation_service, order, make_item):
        started = self._act(negotiation_service, order, ActorRole.BUYER)
        assert started.value.proposal.action == BuyerAction.STARTED

        supplier = self._act(negotiation_service, order, ActorRole.SUPPLIER, note="Price holds")
        assert supplier.value.proposal.role == ActorRole.SUPPLIER

        make_item(order)
        closed = self._act(negotiation_service, order, ActorRole.BUYER, BuyerAction.ACCEPTED)

        assert closed.ok
        assert closed.value.status == OrderStatus.CLOSED
        assert Order.objects.get(id=order.id).status == OrderStatus.CLOSED
        assert OutboxEvent.objects.filter(
            aggregate_id=str(order.id), event_type="OrderClosed"
        ).exists()
        assert negotiation_service.last_proposal(order.id).value.action == BuyerAction.ACCEPTED
        assert len(negotiation_service.list_proposals(order.id).value) == 3

    def test_accept_empty_order_rolls_back(self, negotiation_service, order):
        self._act(negotiation_service, order, ActorRole.BUYER)

        result = self._act(negotiation_service, order, ActorRole.BUYER, BuyerAction.ACCEPTED)

        assert result.code == "empty_order"
        assert Proposal.objects.filter(order_id=order.id).count() == 1

    def test_terminal_order_rejects_actions(self, negotiation_service, order):
        self._act(negotiation_service, order, ActorRole.BUYER)
        self._act(negotiation_service, order, ActorRole.BUYER, BuyerAction.CANCELLED)

        result = self._act(negotiation_service, order, ActorRole.SUPPLIER, note="too late")

        assert result.code == "invalid_state"

    def test_suppressed_entry_reports_no_proposal(self, negotiation_service, order):
        self._act(negotiation_service, order, ActorRole.BUYER)
        Proposal.objects.create(
            order=order, action=BuyerAction.CANCELLED, role=ActorRole.BUYER
        )

        result = self._act(negotiation_service, order, ActorRole.BUYER, BuyerAction.CANCELLED)

        assert result.ok
        assert result.value.proposal is None
        assert result.value.status == OrderStatus.CANCELLED_BY_BUYER

    def test_stale_version(self, negotiation_service, order):
        result = negotiation_service.record_action(
            RecordActionDTO(order_id=order.id, role=ActorRole.BUYER),
            expected_version=order.version + 3,
        )
        assert result.code == "concurrency_conflict"

    def test_last_proposal_empty(self, negotiation_service, order):
        result = negotiation_service.last_proposal(order.id)
        assert result.ok
        assert result.value is None


# ---------------------------------------------------------------------------
# TransportService
# ---------------------------------------------------------------------------


class TestTransportService:
    def test_schedule_then_over_allocate(self, transport_service, order, make_item):
        item = make_item(order, quantity=Decimal("100"))

        first = transport_service.schedule_transport(
            _schedule_dto(item, "60", distance_km=Decimal("100"))
        )
        assert first.ok
        assert first.value.freight_value == Decimal("7500.00")

        second = transport_service.schedule_transport(_schedule_dto(item, "50"))
        assert second.code == "over_allocation"
        assert "(40" in second.message
        assert Transport.objects.count() == 1

    def test_cancel_releases_quantity(self, transport_service, order, make_item):
        item = make_item(order, quantity=Decimal("100"))
        transport_id = transport_service.schedule_transport(_schedule_dto(item, "60")).value.id

        cancelled = transport_service.cancel_transport(transport_id, "Truck broke down")

        assert cancelled.ok
        assert cancelled.value is True
        assert transport_service.schedule_transport(_schedule_dto(item, "100")).ok

    def test_cancel_unknown_transport(self, transport_service):
        assert transport_service.cancel_transport(uuid4()).code == "not_found"

    def test_schedule_unknown_item(self, transport_service):
        dto = ScheduleTransportDTO(
            order_item_id=uuid4(),
            quantity=Decimal("1"),
            scheduled_date=timezone.now() + timedelta(days=1),
        )
        assert transport_service.schedule_transport(dto).code == "not_found"

    def test_schedule_in_the_past(self, transport_service, order, make_item):
        item = make_item(order)
        assert transport_service.schedule_transport(_schedule_dto(item, "1", days=-1)).code == (
            "invalid_input"
        )

    def test_reschedule_and_freight_value(self, transport_service, order, make_item):
        item = make_item(order)
        transport_id = transport_service.schedule_transport(_schedule_dto(item, "5")).value.id
        new_date = timezone.now() + timedelta(days=9)

        rescheduled = transport_service.reschedule(transport_id, new_date, "Harvest delay")
        repriced = transport_service.update_freight_value(transport_id, Decimal("75"), "Deal")

        assert rescheduled.value.scheduled_date == new_date
        assert "Harvest delay" in rescheduled.value.observations
        assert repriced.value.freight_value == Decimal("75")
        stored = Transport.objects.get(id=transport_id)
        assert "Freight value changed from 0.00 to 75.00 - Reason: Deal" in stored.observations
        assert len(stored.audit_info["reschedule_history"]) == 1

    def test_validate_batch_reports_missing_items(self, transport_service, order, make_item):
        item = make_item(order, quantity=Decimal("10"))
        missing = uuid4()

        result = transport_service.validate_batch(
            [_schedule_dto(item, "20"), _schedule_dto(item, "5")]
            + [
                ScheduleTransportDTO(
                    order_item_id=missing,
                    quantity=Decimal("1"),
                    scheduled_date=timezone.now() + timedelta(days=1),
                )
            ]
        )

        assert result.ok
        assert not result.value.is_valid
        assert result.value.errors[0] == f"Item {missing}: not found."
        assert len(result.value.errors) == 2

    def test_freight_quotes(self, transport_service, product):
        single = transport_service.calculate_freight(product.id, Decimal("2"), Decimal("100"))
        consolidated = transport_service.calculate_consolidated_freight(
            [FreightLineDTO(product_id=product.id, quantity=Decimal("1"))], Decimal("10")
        )

        assert single.value.freight_value == Decimal("250.00")
        assert consolidated.value.freight_value == Decimal("50.00")

    def test_freight_quote_unknown_product(self, transport_service):
        result = transport_service.calculate_freight(uuid4(), Decimal("1"), Decimal("1"))
        assert result.code == "not_found"

    def test_order_transports_and_summary(self, transport_service, order, make_item):
        item = make_item(order)
        transport_service.schedule_transport(_schedule_dto(item, "10"))

        listed = transport_service.list_transports(order.id)
        summary = transport_service.order_transport_summary(order.id)

        assert len(listed.value) == 1
        assert summary.value.total_transports == 1
        assert summary.value.items_with_transport == 1
