"""Transport scheduling against order items.

The scheduler builds and mutates ``Transport`` instances; persistence and
row locking belong to the caller (``TransportService``), which passes the
freshly read allocated total in ``allocated`` so the availability check
runs against the locked row rather than a stale prefetch.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, List, Optional

import structlog
from django.conf import settings
from django.utils import timezone

from modules.orders.dtos import BatchValidationResult, OrderTransportSummary
from modules.orders.exceptions import InvalidInput, OverAllocation
from modules.orders.freight import FreightCalculator
from modules.orders.models import Transport

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderItem

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")
DISPLAY_FORMAT = "%d/%m/%Y %H:%M"


@dataclass(frozen=True)
class ScheduleRequest:
    item: OrderItem
    quantity: Decimal
    scheduled_date: datetime


class TransportScheduler:
    def __init__(
        self,
        freight_calculator: FreightCalculator,
        max_schedule_days: int = 90,
    ) -> None:
        self._freight = freight_calculator
        self.max_schedule_days = max_schedule_days

    @classmethod
    def from_settings(cls) -> TransportScheduler:
        return cls(
            FreightCalculator.from_settings(),
            max_schedule_days=settings.TRANSPORT_MAX_SCHEDULE_DAYS,
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_schedule_date(
        self, scheduled_date: datetime, now: Optional[datetime] = None
    ) -> None:
        now = now or timezone.now()
        if scheduled_date <= now:
            raise InvalidInput("Scheduled date must be in the future.")
        if scheduled_date > now + timedelta(days=self.max_schedule_days):
            raise InvalidInput(
                f"Scheduled date cannot be more than {self.max_schedule_days} days ahead."
            )

    def ensure_available(
        self,
        item: OrderItem,
        quantity: Decimal,
        allocated: Optional[Decimal] = None,
    ) -> None:
        quantity = Decimal(quantity)
        if quantity <= 0:
            raise InvalidInput("Quantity must be greater than zero.")
        if not self._freight.validate_available_quantity(item, quantity, allocated):
            raise OverAllocation(quantity, self._freight.available_quantity(item, allocated))

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_schedule(
        self,
        item: OrderItem,
        quantity: Decimal,
        scheduled_date: datetime,
        origin: str = "",
        destination: str = "",
        distance_km: Decimal = ZERO,
        notes: str = "",
        allocated: Optional[Decimal] = None,
        now: Optional[datetime] = None,
    ) -> Transport:
        """Build an unsaved transport for *item*."""
        now = now or timezone.now()
        quantity = Decimal(quantity)
        distance_km = Decimal(distance_km or 0)
        self.ensure_available(item, quantity, allocated)
        self.validate_schedule_date(scheduled_date, now)

        # Weight/volume are descriptive only; without a distance they are
        # still computed, over 1 km.
        calculation = self._freight.calculate_freight(
            item.product, quantity, distance_km if distance_km > 0 else Decimal("1")
        )
        freight_value = calculation.freight_value if distance_km > 0 else ZERO

        transport = Transport(
            order_item=item,
            quantity=quantity,
            freight_value=freight_value,
            scheduled_date=scheduled_date,
            origin=origin or "",
            destination=destination or "",
            total_weight=calculation.total_weight,
            total_volume=calculation.total_volume,
            observations=notes or "",
            audit_info={
                "freight_calculation": {
                    "total_weight": str(calculation.total_weight),
                    "total_volume": str(calculation.total_volume),
                    "total_cubic_weight": (
                        str(calculation.total_cubic_weight)
                        if calculation.total_cubic_weight is not None
                        else None
                    ),
                    "billed_weight": str(calculation.billed_weight),
                    "distance_km": str(distance_km),
                    "weight_calculation": calculation.weight_calculation,
                },
                "scheduling": {
                    "created_at": now.isoformat(),
                    "scheduled_date": scheduled_date.isoformat(),
                    "origin": origin or "",
                    "destination": destination or "",
                },
            },
        )
        logger.info(
            "transport.schedule_built",
            order_item_id=str(item.id),
            quantity=str(quantity),
            freight_value=str(freight_value),
        )
        return transport

    def reschedule(
        self,
        transport: Transport,
        new_date: datetime,
        notes: str = "",
        now: Optional[datetime] = None,
    ) -> Transport:
        now = now or timezone.now()
        self.validate_schedule_date(new_date, now)

        line = f"Rescheduled to {new_date.strftime(DISPLAY_FORMAT)}"
        if notes:
            line += f" - {notes}"
        transport.append_observation(line)

        audit = dict(transport.audit_info or {})
        history = list(audit.get("reschedule_history", []))
        history.append(
            {
                "rescheduled_at": now.isoformat(),
                "new_scheduled_date": new_date.isoformat(),
                "previous_scheduled_date": (
                    transport.scheduled_date.isoformat() if transport.scheduled_date else None
                ),
                "notes": notes or "",
            }
        )
        audit["reschedule_history"] = history
        transport.audit_info = audit
        transport.scheduled_date = new_date
        return transport

    def update_freight_value(
        self, transport: Transport, new_value: Decimal, reason: str = ""
    ) -> Transport:
        new_value = Decimal(new_value)
        if new_value < 0:
            raise InvalidInput("Freight value cannot be negative.")
        old_value = Decimal(transport.freight_value)

        line = f"Freight value changed from {old_value:.2f} to {new_value:.2f}"
        if reason:
            line += f" - Reason: {reason}"
        transport.append_observation(line)
        transport.freight_value = new_value
        return transport

    def cancel_transport(
        self,
        transport: Transport,
        reason: str = "",
        now: Optional[datetime] = None,
    ) -> Transport:
        """Stamp the cancellation note; the caller deletes the row afterwards."""
        now = now or timezone.now()
        line = f"Transport cancelled on {now.strftime(DISPLAY_FORMAT)}"
        if reason:
            line += f" - Reason: {reason}"
        transport.append_observation(line)
        return transport

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def validate_batch(
        self,
        requests: Iterable[ScheduleRequest],
        now: Optional[datetime] = None,
    ) -> BatchValidationResult:
        """Validate every request and collect all errors instead of stopping."""
        errors: List[str] = []
        for request in requests:
            try:
                self.validate_schedule_date(request.scheduled_date, now)
            except InvalidInput as exc:
                errors.append(f"Item {request.item.id}: {exc}")
            try:
                self.ensure_available(request.item, request.quantity)
            except (InvalidInput, OverAllocation) as exc:
                errors.append(f"Item {request.item.id}: {exc}")
        return BatchValidationResult(is_valid=not errors, errors=errors)

    def compute_order_transport_summary(
        self, order: Order, now: Optional[datetime] = None
    ) -> OrderTransportSummary:
        now = now or timezone.now()
        items = list(order.items.all())
        transports = [t for item in items for t in item.transports.all()]
        scheduled = [t for t in transports if t.scheduled_date is not None]
        upcoming = sorted(t.scheduled_date for t in scheduled if t.scheduled_date > now)

        return OrderTransportSummary(
            total_items=len(items),
            items_with_transport=sum(1 for item in items if item.transports.all()),
            total_transports=len(transports),
            scheduled_transports=len(scheduled),
            total_weight=sum((t.total_weight or ZERO for t in transports), ZERO),
            total_volume=sum((t.total_volume or ZERO for t in transports), ZERO),
            total_freight_value=sum((t.freight_value for t in transports), ZERO),
            next_scheduled_date=upcoming[0] if upcoming else None,
        )
