"""Order service layer (Use Cases).

Each public method is one unit of work: ``transaction.atomic`` makes the
state change, proposal insert and outbox rows all-or-nothing, and
``service_result`` (applied outside it) turns domain errors into a failed
``ServiceResult`` after the rollback.  Unexpected exceptions are logged and
surfaced as a generic ``internal_error``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from modules.orders.cart import calculate_totals
from modules.orders.dtos import (
    AddItemDTO,
    BatchValidationResult,
    ConsolidatedFreightResult,
    CreateOrderDTO,
    FreightCalculationResult,
    FreightLineDTO,
    NegotiationOutcome,
    OrderItemDetail,
    OrderSummary,
    OrderTotals,
    OrderTransportSummary,
    ProposalRecord,
    RecordActionDTO,
    ScheduleTransportDTO,
    TransportRecord,
)
from modules.orders.exceptions import (
    ConcurrencyConflict,
    InvalidInput,
    InvalidOrderStatus,
    OrderItemNotFound,
    OrderNotFound,
    ProducerNotFound,
    ProductNotFound,
    TransportNotFound,
)
from modules.orders.models import Order
from modules.orders.transport import ScheduleRequest
from shared.application.result import service_result

if TYPE_CHECKING:
    from modules.orders.cart import CartPricingEngine
    from modules.orders.freight import FreightCalculator
    from modules.orders.models import OrderItem, Transport
    from modules.orders.negotiation import NegotiationProtocol
    from modules.orders.repositories.interfaces import (
        IOrderRepository,
        IProposalRepository,
        ITransportRepository,
    )
    from modules.orders.transport import TransportScheduler
    from modules.producers.repositories.interfaces import IProducerRepository
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


def _load_order(
    repository: IOrderRepository, order_id: Any, expected_version: Optional[int] = None
) -> Order:
    order = repository.get_by_id(str(order_id))
    if not order:
        raise OrderNotFound(f"Order {order_id} not found.")
    if expected_version is not None and order.version != expected_version:
        raise ConcurrencyConflict(
            f"Order {order_id} was modified by someone else. Reload and retry."
        )
    return order


class OrderService:
    """Order lifecycle and cart use-cases.

    Receives repositories and the cart engine via constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        producer_repository: IProducerRepository,
        cart_engine: CartPricingEngine,
        transport_repository: ITransportRepository,
    ) -> None:
        self._order_repo = order_repository
        self._producer_repo = producer_repository
        self._cart = cart_engine
        self._transport_repo = transport_repository

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @service_result
    @transaction.atomic
    def create_order(self, dto: CreateOrderDTO) -> OrderSummary:
        log = logger.bind(producer_id=str(dto.producer_id), supplier_id=str(dto.supplier_id))
        producer = self._producer_repo.get_by_id(str(dto.producer_id))
        if not producer:
            raise ProducerNotFound(f"Producer {dto.producer_id} not found.")
        if not producer.is_active:
            raise InvalidInput(f"Producer {dto.producer_id} is inactive.")

        order = Order.open(
            producer_id=producer.id,
            supplier_id=dto.supplier_id,
            deadline_days=dto.deadline_days or settings.ORDER_DEADLINE_DAYS,
            allow_contact=dto.allow_contact,
            negotiable=dto.negotiable,
        )
        order.update_totals(calculate_totals([]).to_snapshot(timezone.now()))
        self._order_repo.save(order)
        log.info("order.created", order_id=str(order.id))
        return OrderSummary.from_entity(_load_order(self._order_repo, order.id))

    @service_result
    @transaction.atomic
    def add_item(
        self, order_id: UUID, dto: AddItemDTO, expected_version: Optional[int] = None
    ) -> OrderItemDetail:
        order = self._mutable_order(order_id, expected_version)
        item = self._cart.add_item(
            order,
            product_id=dto.product_id,
            quantity=dto.quantity,
            catalog_id=dto.catalog_id,
            notes=dto.notes,
            region=dto.region if dto.region is not None else settings.CATALOG_DEFAULT_REGION,
            actor_user_id=dto.actor_user_id,
        )
        self._order_repo.add_item(order, item)
        self._cart.refresh_totals(order)
        self._order_repo.save(order)
        logger.info("order.item_added", order_id=str(order.id), item_id=str(item.id))
        return OrderItemDetail.from_entity(item)

    @service_result
    @transaction.atomic
    def update_item_quantity(
        self,
        order_id: UUID,
        item_id: UUID,
        quantity: Decimal,
        actor_user_id: Optional[int] = None,
        expected_version: Optional[int] = None,
    ) -> OrderItemDetail:
        order = self._mutable_order(order_id, expected_version)
        item = self._item_of(order, item_id)
        self._ensure_covers_allocation(item, Decimal(quantity))
        self._cart.update_item_quantity(item, quantity, order, actor_user_id)
        self._order_repo.save_item(item)
        self._cart.refresh_totals(order)
        self._order_repo.save(order)
        logger.info("order.item_updated", order_id=str(order.id), item_id=str(item.id))
        return OrderItemDetail.from_entity(item)

    @service_result
    @transaction.atomic
    def remove_item(
        self,
        order_id: UUID,
        item_id: UUID,
        actor_user_id: Optional[int] = None,
        expected_version: Optional[int] = None,
    ) -> OrderSummary:
        order = self._mutable_order(order_id, expected_version)
        item = self._cart.remove_item(order, item_id, actor_user_id)
        self._order_repo.remove_item(order, item)
        self._cart.refresh_totals(order)
        self._order_repo.save(order)
        logger.info("order.item_removed", order_id=str(order.id), item_id=str(item_id))
        return OrderSummary.from_entity(_load_order(self._order_repo, order.id))

    @service_result
    @transaction.atomic
    def recalculate_totals(self, order_id: UUID) -> OrderTotals:
        order = _load_order(self._order_repo, order_id)
        totals = self._cart.refresh_totals(order)
        self._order_repo.save(order)
        logger.info("order.totals_recalculated", order_id=str(order.id))
        return totals

    @service_result
    @transaction.atomic
    def extend_deadline(
        self, order_id: UUID, days: int, expected_version: Optional[int] = None
    ) -> OrderSummary:
        order = _load_order(self._order_repo, order_id, expected_version)
        order.extend_deadline(days)
        self._order_repo.save(order)
        logger.info(
            "order.deadline_extended",
            order_id=str(order.id),
            interaction_deadline=order.interaction_deadline.isoformat(),
        )
        return OrderSummary.from_entity(order)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @service_result
    def get_order(self, order_id: UUID) -> OrderSummary:
        return OrderSummary.from_entity(
            _load_order(self._order_repo, order_id), include_proposals=True
        )

    @service_result
    def list_orders(self, filters: Optional[Dict[str, Any]] = None) -> List[OrderSummary]:
        return [OrderSummary.from_entity(o) for o in self._order_repo.list(filters)]

    @service_result
    def orders_near_deadline(
        self, days: Optional[int] = None, now: Optional[datetime] = None
    ) -> List[OrderSummary]:
        orders = self._order_repo.find_near_deadline(
            now or timezone.now(), days or settings.ORDER_DEADLINE_WARNING_DAYS
        )
        return [OrderSummary.from_entity(o) for o in orders]

    @service_result
    def expired_orders(self, now: Optional[datetime] = None) -> List[OrderSummary]:
        orders = self._order_repo.find_expired(now or timezone.now())
        return [OrderSummary.from_entity(o) for o in orders]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _mutable_order(self, order_id: UUID, expected_version: Optional[int]) -> Order:
        order = _load_order(self._order_repo, order_id, expected_version)
        order.ensure_open()
        if not order.is_within_deadline():
            raise InvalidOrderStatus(f"The negotiation deadline of order {order_id} has passed.")
        return order

    def _ensure_covers_allocation(self, item: OrderItem, quantity: Decimal) -> None:
        # Row lock serialises with transport scheduling on the same item.
        self._transport_repo.get_item_for_update(str(item.id))
        allocated = self._transport_repo.allocated_quantity(item.id)
        if quantity < allocated:
            raise InvalidInput(
                f"Quantity {quantity} is below the {allocated} already scheduled "
                f"for transport on item {item.id}."
            )

    @staticmethod
    def _item_of(order: Order, item_id: UUID) -> OrderItem:
        for item in order.items.all():
            if str(item.id) == str(item_id):
                return item
        raise OrderItemNotFound(f"Item {item_id} not found in order {order.id}.")


class NegotiationService:
    def __init__(
        self,
        order_repository: IOrderRepository,
        proposal_repository: IProposalRepository,
        protocol: NegotiationProtocol,
    ) -> None:
        self._order_repo = order_repository
        self._proposal_repo = proposal_repository
        self._protocol = protocol

    @service_result
    @transaction.atomic
    def record_action(
        self, dto: RecordActionDTO, expected_version: Optional[int] = None
    ) -> NegotiationOutcome:
        order = _load_order(self._order_repo, dto.order_id, expected_version)
        proposal = self._protocol.record_action(
            order,
            actor_user_id=dto.actor_user_id,
            role=dto.role,
            requested_action=dto.action,
            note=dto.note,
        )
        self._order_repo.save(order)
        return NegotiationOutcome(
            order_id=order.id,
            status=order.status,
            proposal=ProposalRecord.from_entity(proposal) if proposal else None,
        )

    @service_result
    def list_proposals(self, order_id: UUID) -> List[ProposalRecord]:
        _load_order(self._order_repo, order_id)
        return [
            ProposalRecord.from_entity(p)
            for p in self._proposal_repo.list_for_order(order_id)
        ]

    @service_result
    def last_proposal(self, order_id: UUID) -> Optional[ProposalRecord]:
        _load_order(self._order_repo, order_id)
        proposal = self._proposal_repo.last_for_order(order_id)
        return ProposalRecord.from_entity(proposal) if proposal else None


class TransportService:
    """Freight quotes and shipment scheduling use-cases."""

    def __init__(
        self,
        transport_repository: ITransportRepository,
        order_repository: IOrderRepository,
        product_repository: IProductRepository,
        scheduler: TransportScheduler,
        freight_calculator: FreightCalculator,
    ) -> None:
        self._transport_repo = transport_repository
        self._order_repo = order_repository
        self._product_repo = product_repository
        self._scheduler = scheduler
        self._freight = freight_calculator

    # ------------------------------------------------------------------
    # Freight quotes
    # ------------------------------------------------------------------

    @service_result
    def calculate_freight(
        self,
        product_id: UUID,
        quantity: Decimal,
        distance_km: Decimal,
        rate_per_kg_km: Optional[Decimal] = None,
        minimum_freight: Optional[Decimal] = None,
    ) -> FreightCalculationResult:
        product = self._product(product_id)
        return self._freight.calculate_freight(
            product, quantity, distance_km, rate_per_kg_km, minimum_freight
        )

    @service_result
    def calculate_consolidated_freight(
        self,
        lines: List[FreightLineDTO],
        distance_km: Decimal,
        rate_per_kg_km: Optional[Decimal] = None,
        minimum_freight: Optional[Decimal] = None,
    ) -> ConsolidatedFreightResult:
        resolved = [(self._product(line.product_id), line.quantity) for line in lines]
        return self._freight.calculate_consolidated_freight(
            resolved, distance_km, rate_per_kg_km, minimum_freight
        )

    # ------------------------------------------------------------------
    # Scheduling commands
    # ------------------------------------------------------------------

    @service_result
    @transaction.atomic
    def schedule_transport(self, dto: ScheduleTransportDTO) -> TransportRecord:
        """Allocate part of an item to a new shipment.

        The item row is locked and the allocated total re-read inside the
        transaction, so two concurrent requests cannot both pass the
        availability check.
        """
        log = logger.bind(order_item_id=str(dto.order_item_id))
        item = self._transport_repo.get_item_for_update(str(dto.order_item_id))
        if not item:
            raise OrderItemNotFound(f"Order item {dto.order_item_id} not found.")

        allocated = self._transport_repo.allocated_quantity(item.id)
        transport = self._scheduler.create_schedule(
            item,
            quantity=dto.quantity,
            scheduled_date=dto.scheduled_date,
            origin=dto.origin,
            destination=dto.destination,
            distance_km=dto.distance_km,
            notes=dto.notes,
            allocated=allocated,
        )
        self._transport_repo.save(transport)
        log.info(
            "transport.scheduled",
            transport_id=str(transport.id),
            quantity=str(transport.quantity),
            freight_value=str(transport.freight_value),
        )
        return TransportRecord.from_entity(transport)

    @service_result
    @transaction.atomic
    def reschedule(
        self, transport_id: UUID, new_date: datetime, notes: str = ""
    ) -> TransportRecord:
        transport = self._transport(transport_id)
        self._scheduler.reschedule(transport, new_date, notes)
        self._transport_repo.save(transport)
        logger.info(
            "transport.rescheduled",
            transport_id=str(transport.id),
            scheduled_date=new_date.isoformat(),
        )
        return TransportRecord.from_entity(transport)

    @service_result
    @transaction.atomic
    def update_freight_value(
        self, transport_id: UUID, new_value: Decimal, reason: str = ""
    ) -> TransportRecord:
        transport = self._transport(transport_id)
        self._scheduler.update_freight_value(transport, new_value, reason)
        self._transport_repo.save(transport)
        logger.info(
            "transport.freight_value_updated",
            transport_id=str(transport.id),
            freight_value=str(transport.freight_value),
        )
        return TransportRecord.from_entity(transport)

    @service_result
    @transaction.atomic
    def cancel_transport(self, transport_id: UUID, reason: str = "") -> bool:
        transport = self._transport(transport_id)
        self._scheduler.cancel_transport(transport, reason)
        logger.info(
            "transport.cancelled",
            transport_id=str(transport.id),
            order_item_id=str(transport.order_item_id),
            released_quantity=str(transport.quantity),
            observations=transport.observations,
        )
        return self._transport_repo.delete(str(transport.id))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @service_result
    def validate_batch(self, requests: List[ScheduleTransportDTO]) -> BatchValidationResult:
        errors: List[str] = []
        resolved: List[ScheduleRequest] = []
        for request in requests:
            item = self._order_repo.get_item(str(request.order_item_id))
            if item is None:
                errors.append(f"Item {request.order_item_id}: not found.")
                continue
            resolved.append(
                ScheduleRequest(
                    item=item,
                    quantity=request.quantity,
                    scheduled_date=request.scheduled_date,
                )
            )
        result = self._scheduler.validate_batch(resolved)
        all_errors = errors + result.errors
        return BatchValidationResult(is_valid=not all_errors, errors=all_errors)

    @service_result
    def get_transport(self, transport_id: UUID) -> TransportRecord:
        return TransportRecord.from_entity(self._transport(transport_id))

    @service_result
    def list_transports(self, order_id: UUID) -> List[TransportRecord]:
        _load_order(self._order_repo, order_id)
        return [
            TransportRecord.from_entity(t)
            for t in self._transport_repo.list_for_order(order_id)
        ]

    @service_result
    def order_transport_summary(self, order_id: UUID) -> OrderTransportSummary:
        order = _load_order(self._order_repo, order_id)
        return self._scheduler.compute_order_transport_summary(order)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _product(self, product_id: UUID):
        product = self._product_repo.get_by_id(str(product_id))
        if not product:
            raise ProductNotFound(f"Product {product_id} not found.")
        return product

    def _transport(self, transport_id: UUID) -> Transport:
        transport = self._transport_repo.get_by_id(str(transport_id))
        if not transport:
            raise TransportNotFound(f"Transport {transport_id} not found.")
        return transport
