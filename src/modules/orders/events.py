"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    """Raised when an order is opened for negotiation."""

    producer_id: Optional[str] = None
    supplier_id: Optional[str] = None


@dataclass(frozen=True)
class OrderClosed(DomainEvent):
    """Raised when the buyer accepts and the order is closed."""


@dataclass(frozen=True)
class OrderCancelled(DomainEvent):
    """Raised on cancellation by the buyer or by the deadline sweep."""

    status: str = ""


@dataclass(frozen=True)
class CartChanged(DomainEvent):
    description: str = ""
    actor_user_id: Optional[int] = None


@dataclass(frozen=True)
class DeadlineExtended(DomainEvent):
    new_deadline: Optional[str] = None
