"""Django ORM implementations of the order repositories.

``OrderDjangoRepository.save`` is the optimistic-concurrency gate: an
update only lands when the stored ``version`` still matches the one that
was read.  Domain events collected on the aggregate are written to the
transactional outbox in the same transaction.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from modules.core.models import OutboxEvent
from modules.orders.constants import OUTBOX_TOPIC, OrderStatus
from modules.orders.exceptions import ConcurrencyConflict
from modules.orders.models import Order, OrderItem, Proposal, Transport
from modules.orders.repositories.interfaces import (
    IOrderRepository,
    IProposalRepository,
    ITransportRepository,
)

logger = structlog.get_logger(__name__)

_ORDER_PREFETCH = ("items__transports",)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Returns ``None`` for non-existent or invalid IDs."""
        try:
            return (
                Order.objects.select_related("producer")
                .prefetch_related(*_ORDER_PREFETCH)
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """Supported filter keys: any ``Order`` look-up, e.g. ``status``,
        ``producer_id``, ``supplier_id``."""
        queryset = Order.objects.select_related("producer").prefetch_related(
            *_ORDER_PREFETCH
        )
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def find_expired(self, now: datetime) -> List[Order]:
        return list(
            Order.objects.filter(
                status=OrderStatus.IN_NEGOTIATION,
                interaction_deadline__lt=now,
            ).order_by("interaction_deadline")
        )

    def find_near_deadline(self, now: datetime, days: int) -> List[Order]:
        return list(
            Order.objects.filter(
                status=OrderStatus.IN_NEGOTIATION,
                interaction_deadline__gt=now,
                interaction_deadline__lte=now + timedelta(days=days),
            ).order_by("interaction_deadline")
        )

    # ------------------------------------------------------------------
    # Save / Delete (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        if entity._state.adding:
            entity.save()
        else:
            self._conditional_update(entity)

        events = entity.domain_events
        for event in events:
            OutboxEvent.from_domain_event(event, topic=OUTBOX_TOPIC).save()
        entity.clear_domain_events()

        logger.info(
            "order.saved",
            order_id=str(entity.id),
            version=entity.version,
            event_count=len(events),
        )
        return entity

    def _conditional_update(self, entity: Order) -> None:
        expected = entity.version
        entity.updated_at = timezone.now()
        values = {
            field.attname: getattr(entity, field.attname)
            for field in Order._meta.concrete_fields
            if not field.primary_key and field.attname not in ("created_at", "version")
        }
        updated = Order.objects.filter(id=entity.id, version=expected).update(
            version=expected + 1, **values
        )
        if updated == 0:
            logger.warning(
                "order.concurrency_conflict",
                order_id=str(entity.id),
                expected_version=expected,
            )
            raise ConcurrencyConflict(
                f"Order {entity.id} was modified by someone else. Reload and retry."
            )
        entity.version = expected + 1

    @transaction.atomic
    def delete(self, id: str) -> bool:
        order = self.get_by_id(id)
        if not order:
            return False
        order.delete()
        logger.info("order.deleted", order_id=str(id))
        return True

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def get_item(self, item_id: str) -> Optional[OrderItem]:
        try:
            return (
                OrderItem.objects.select_related("order", "product")
                .prefetch_related("transports")
                .filter(id=item_id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def add_item(self, order: Order, item: OrderItem) -> OrderItem:
        item.order = order
        item.save()
        _forget_prefetched_items(order)
        logger.info("order.item_saved", order_id=str(order.id), item_id=str(item.id))
        return item

    def save_item(self, item: OrderItem) -> OrderItem:
        item.save()
        _forget_prefetched_items(item.order)
        return item

    def remove_item(self, order: Order, item: OrderItem) -> None:
        item_id = item.id
        item.delete()
        _forget_prefetched_items(order)
        logger.info("order.item_deleted", order_id=str(order.id), item_id=str(item_id))


class ProposalDjangoRepository(IProposalRepository):
    def add(self, proposal: Proposal) -> Proposal:
        proposal.save()
        return proposal

    def last_for_order(self, order_id: UUID) -> Optional[Proposal]:
        return Proposal.objects.filter(order_id=order_id).order_by("-created_at", "-id").first()

    def list_for_order(self, order_id: UUID) -> List[Proposal]:
        return list(Proposal.objects.filter(order_id=order_id).order_by("-created_at", "-id"))


class TransportDjangoRepository(ITransportRepository):
    def get_by_id(self, id: str) -> Optional[Transport]:
        try:
            return (
                Transport.objects.select_related("order_item", "order_item__product")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Transport]:
        queryset = Transport.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def list_for_order(self, order_id: UUID) -> List[Transport]:
        return list(Transport.objects.filter(order_item__order_id=order_id))

    @transaction.atomic
    def save(self, entity: Transport) -> Transport:
        entity.save()
        logger.info("transport.saved", transport_id=str(entity.id))
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        deleted, _ = Transport.objects.filter(id=id).delete()
        return deleted > 0

    def get_item_for_update(self, item_id: str) -> Optional[OrderItem]:
        try:
            return (
                OrderItem.objects.select_for_update()
                .select_related("order", "product")
                .filter(id=item_id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def allocated_quantity(self, item_id: UUID) -> Decimal:
        total = Transport.objects.filter(order_item_id=item_id).aggregate(
            total=Sum("quantity")
        )["total"]
        return total or Decimal("0")


def _forget_prefetched_items(order: Order) -> None:
    cache = getattr(order, "_prefetched_objects_cache", None)
    if cache:
        cache.pop("items", None)
