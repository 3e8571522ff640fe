"""Order repository interfaces.

The Service Layer and the engine depend exclusively on these contracts;
Django ORM implementations live in ``django_repository``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderItem, Proposal, Transport


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate (order + items)."""

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with items and their transports prefetched."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders with optional filters."""

    @abstractmethod
    def save(self, entity: Order) -> Order:
        """Persist the order and its pending domain events.

        Updates are conditional on ``version``.

        Raises:
            ConcurrencyConflict: the stored version moved on.
        """

    @abstractmethod
    def get_item(self, item_id: str) -> Optional[OrderItem]:
        """Retrieve a single order item."""

    @abstractmethod
    def add_item(self, order: Order, item: OrderItem) -> OrderItem:
        """Insert a new line into *order*."""

    @abstractmethod
    def save_item(self, item: OrderItem) -> OrderItem:
        """Persist changes to an existing line."""

    @abstractmethod
    def remove_item(self, order: Order, item: OrderItem) -> None:
        """Delete a line (and its transports) from *order*."""

    @abstractmethod
    def find_expired(self, now: datetime) -> List[Order]:
        """Negotiating orders whose deadline is before *now*."""

    @abstractmethod
    def find_near_deadline(self, now: datetime, days: int) -> List[Order]:
        """Negotiating orders whose deadline falls in ``(now, now + days]``."""


class IProposalRepository(ABC):
    """Append-only store for the negotiation log."""

    @abstractmethod
    def add(self, proposal: Proposal) -> Proposal:
        """Insert a proposal row."""

    @abstractmethod
    def last_for_order(self, order_id: UUID) -> Optional[Proposal]:
        """Most recent proposal of the order, or ``None``."""

    @abstractmethod
    def list_for_order(self, order_id: UUID) -> List[Proposal]:
        """All proposals of the order, newest first."""


class ITransportRepository(IRepository["Transport"]):
    """Repository contract for shipments."""

    @abstractmethod
    def get_item_for_update(self, item_id: str) -> Optional[OrderItem]:
        """Retrieve an order item with a row-level lock (SELECT FOR UPDATE)."""

    @abstractmethod
    def allocated_quantity(self, item_id: UUID) -> Decimal:
        """Sum of transport quantities currently allocated to the item."""

    @abstractmethod
    def list_for_order(self, order_id: UUID) -> List[Transport]:
        """All transports of every item of the order."""
