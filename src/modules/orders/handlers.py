"""Event handlers for Orders domain events."""

from __future__ import annotations

import structlog

from modules.orders.events import (
    CartChanged,
    DeadlineExtended,
    OrderCancelled,
    OrderClosed,
    OrderCreated,
)
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class OrderCreatedHandler(IEventHandler[OrderCreated]):
    def handle(self, event: OrderCreated) -> None:
        logger.info(
            "order.event.created",
            order_id=str(event.aggregate_id),
            producer_id=event.producer_id,
            supplier_id=event.supplier_id,
        )


class OrderClosedHandler(IEventHandler[OrderClosed]):
    def handle(self, event: OrderClosed) -> None:
        logger.info("order.event.closed", order_id=str(event.aggregate_id))


class OrderCancelledHandler(IEventHandler[OrderCancelled]):
    def handle(self, event: OrderCancelled) -> None:
        logger.info(
            "order.event.cancelled",
            order_id=str(event.aggregate_id),
            status=event.status,
        )


class CartChangedHandler(IEventHandler[CartChanged]):
    def handle(self, event: CartChanged) -> None:
        logger.info(
            "order.event.cart_changed",
            order_id=str(event.aggregate_id),
            description=event.description,
        )


class DeadlineExtendedHandler(IEventHandler[DeadlineExtended]):
    def handle(self, event: DeadlineExtended) -> None:
        logger.info(
            "order.event.deadline_extended",
            order_id=str(event.aggregate_id),
            new_deadline=event.new_deadline,
        )


order_created_handler = OrderCreatedHandler()
order_closed_handler = OrderClosedHandler()
order_cancelled_handler = OrderCancelledHandler()
cart_changed_handler = CartChangedHandler()
deadline_extended_handler = DeadlineExtendedHandler()
