"""Order, OrderItem, Proposal and Transport models.

Business rules implemented:
- Orders open IN_NEGOTIATION with a deadline N days ahead and only move to
  one terminal state (closed, cancelled by buyer, cancelled by deadline).
- Items can only be added/removed while the order is negotiating.
- An order without items cannot be closed.
- Item values are derived: total = quantity * unit_price,
  discount = total * discount_percent / 100, final = total - discount.
- Proposals are an append-only log: rows are never updated nor deleted.
- ``version`` is the optimistic concurrency token checked by the
  repository on every save.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

import structlog
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.orders.constants import (
    CANCELLED_STATES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    ActorRole,
    BuyerAction,
    OrderStatus,
)
from modules.orders.events import (
    DeadlineExtended,
    OrderCancelled,
    OrderClosed,
    OrderCreated,
)
from modules.orders.exceptions import EmptyOrder, InvalidInput, InvalidOrderStatus
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class Order(DomainEventMixin, BaseModel):
    """Order (cart) aggregate root negotiated between a producer and a supplier."""

    producer = models.ForeignKey(
        "producers.Producer",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    supplier_id = models.UUIDField(db_index=True)
    allow_contact = models.BooleanField(default=True)
    negotiable = models.BooleanField(default=True)
    status = models.CharField(
        max_length=30,
        choices=OrderStatus.choices,
        default=OrderStatus.IN_NEGOTIATION,
    )
    interaction_deadline = models.DateTimeField()
    totals = models.JSONField(default=dict, blank=True)
    version = models.PositiveIntegerField(default=1)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(
                fields=["status", "interaction_deadline"],
                name="orders_status_deadline_idx",
            ),
        ]

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def open(
        cls,
        producer_id: Any,
        supplier_id: Any,
        deadline_days: int,
        allow_contact: bool = True,
        negotiable: bool = True,
        now: Optional[datetime] = None,
    ) -> Order:
        """Build an unsaved order in negotiation, deadline ``now + deadline_days``."""
        if deadline_days <= 0:
            raise InvalidInput("Deadline days must be greater than zero.")
        now = now or timezone.now()
        order = cls(
            producer_id=producer_id,
            supplier_id=supplier_id,
            allow_contact=allow_contact,
            negotiable=negotiable,
            status=OrderStatus.IN_NEGOTIATION,
            interaction_deadline=now + timedelta(days=deadline_days),
        )
        order.add_domain_event(
            OrderCreated(
                aggregate_id=order.id,
                producer_id=str(producer_id),
                supplier_id=str(supplier_id),
            )
        )
        return order

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    @property
    def is_negotiating(self) -> bool:
        return self.status == OrderStatus.IN_NEGOTIATION

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def ensure_open(self) -> None:
        """Raise ``InvalidOrderStatus`` when the order is already terminal."""
        if self.status in CANCELLED_STATES:
            raise InvalidOrderStatus(f"Order {self.id} is cancelled.")
        if self.status == OrderStatus.CLOSED:
            raise InvalidOrderStatus(f"Order {self.id} is already closed.")

    def _transition(self, new_status: str) -> None:
        if not self.can_transition_to(new_status):
            self.ensure_open()
            raise InvalidOrderStatus(
                f"Cannot transition from {self.status} to {new_status}."
            )
        logger.info(
            "order.status_changed",
            order_id=str(self.id),
            old_status=self.status,
            new_status=new_status,
        )
        self.status = new_status

    # ------------------------------------------------------------------
    # Cart mutations
    # ------------------------------------------------------------------

    def add_item(self, item: OrderItem) -> OrderItem:
        if not self.is_negotiating:
            raise InvalidOrderStatus(
                f"Items can only be added while negotiating (status {self.status})."
            )
        item.order = self
        return item

    def remove_item(self, item: OrderItem) -> None:
        if not self.is_negotiating:
            raise InvalidOrderStatus(
                f"Items can only be removed while negotiating (status {self.status})."
            )
        if item.order_id != self.id:
            raise InvalidInput(f"Item {item.id} does not belong to order {self.id}.")

    # ------------------------------------------------------------------
    # Lifecycle commands
    # ------------------------------------------------------------------

    def close(self) -> None:
        if self.is_negotiating and not self.items.all().exists():
            raise EmptyOrder(f"Order {self.id} has no items and cannot be closed.")
        self._transition(OrderStatus.CLOSED)
        self.add_domain_event(OrderClosed(aggregate_id=self.id))

    def cancel_by_buyer(self) -> None:
        self._transition(OrderStatus.CANCELLED_BY_BUYER)
        self.add_domain_event(OrderCancelled(aggregate_id=self.id, status=self.status))

    def cancel_by_deadline(self) -> None:
        """System-only transition used by the deadline sweep."""
        self._transition(OrderStatus.CANCELLED_BY_DEADLINE)
        self.add_domain_event(OrderCancelled(aggregate_id=self.id, status=self.status))

    def extend_deadline(self, days: int, now: Optional[datetime] = None) -> None:
        if days <= 0:
            raise InvalidInput("Days must be greater than zero.")
        self.ensure_open()
        self.interaction_deadline = (now or timezone.now()) + timedelta(days=days)
        self.add_domain_event(
            DeadlineExtended(
                aggregate_id=self.id,
                new_deadline=self.interaction_deadline.isoformat(),
            )
        )

    def is_within_deadline(self, now: Optional[datetime] = None) -> bool:
        return (now or timezone.now()) <= self.interaction_deadline

    def update_totals(self, snapshot: dict[str, Any]) -> None:
        """Replace the stored totals document wholesale."""
        self.totals = snapshot

    def __str__(self) -> str:
        return f"Order {self.id} ({self.status})"


class OrderItem(BaseModel):
    """Cart line.  Monetary values are recomputed on every save."""

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    quantity = models.DecimalField(max_digits=14, decimal_places=3)
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
    )
    discount_percent = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0")
    )
    total_value = models.DecimalField(
        max_digits=16, decimal_places=2, default=Decimal("0"), editable=False
    )
    discount_value = models.DecimalField(
        max_digits=16, decimal_places=2, default=Decimal("0"), editable=False
    )
    final_value = models.DecimalField(
        max_digits=16, decimal_places=2, default=Decimal("0"), editable=False
    )
    aux_data = models.JSONField(default=dict, blank=True)
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name="order_items_quantity_positive",
            ),
        ]

    def calculate_values(self) -> None:
        if self.quantity is None or Decimal(self.quantity) <= 0:
            raise InvalidInput("Quantity must be greater than zero.")
        if self.unit_price is None or Decimal(self.unit_price) < 0:
            raise InvalidInput("Unit price cannot be negative.")
        percent = Decimal(self.discount_percent or 0)
        if not Decimal("0") <= percent <= HUNDRED:
            raise InvalidInput("Discount percent must be between 0 and 100.")

        total = Decimal(self.quantity) * Decimal(self.unit_price)
        discount = total * percent / HUNDRED
        self.total_value = to_money(total)
        self.discount_value = to_money(discount)
        self.final_value = to_money(total - discount)

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.calculate_values()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.product_id} x{self.quantity} ({self.final_value})"


class Proposal(BaseModel):
    """Immutable negotiation log entry.

    Buyer entries carry an ``action``; supplier entries are free-text notes
    with ``action`` left empty.  ``actor_user_id`` is the authenticated
    user's id and is ``None`` for system-generated entries.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="proposals",
    )
    action = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=BuyerAction.choices,
        null=True,
        blank=True,
    )
    role = models.CharField(max_length=10, choices=ActorRole.choices)
    actor_user_id = models.BigIntegerField(null=True, blank=True)
    note = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_proposals"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(
                fields=["order", "-created_at"],
                name="proposal_order_created_idx",
            ),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self._state.adding:
            raise InvalidOrderStatus("Proposals are append-only and cannot be changed.")
        super().save(*args, **kwargs)

    def delete(self, using=None, keep_parents=False):
        raise InvalidOrderStatus("Proposals are append-only and cannot be deleted.")

    def __str__(self) -> str:
        return f"{self.order_id}: {self.role} {self.action or 'note'}"


class Transport(BaseModel):
    """A shipment allocating part of an order item's quantity."""

    order_item = models.ForeignKey(
        "orders.OrderItem",
        on_delete=models.CASCADE,
        related_name="transports",
    )
    quantity = models.DecimalField(max_digits=14, decimal_places=3)
    freight_value = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
    )
    scheduled_date = models.DateTimeField(null=True, blank=True)
    origin = models.TextField(blank=True, default="")
    destination = models.TextField(blank=True, default="")
    total_weight = models.DecimalField(
        max_digits=16, decimal_places=3, null=True, blank=True
    )
    total_volume = models.DecimalField(
        max_digits=16, decimal_places=6, null=True, blank=True
    )
    observations = models.TextField(blank=True, default="")
    audit_info = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "order_item_transports"
        ordering = ["scheduled_date", "created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name="transports_quantity_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(freight_value__gte=0),
                name="transports_freight_non_negative",
            ),
        ]

    def append_observation(self, line: str) -> None:
        self.observations = f"{self.observations}\n{line}" if self.observations else line

    def __str__(self) -> str:
        return f"Transport {self.id} ({self.quantity} of {self.order_item_id})"
