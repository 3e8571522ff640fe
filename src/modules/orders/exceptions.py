"""Order domain exceptions.

Raised by the engine and the Service Layer when business rules are
violated.  Every exception carries a stable ``code``; the service boundary
turns them into failed ``ServiceResult`` objects and the API layer maps the
code to an HTTP status.
"""

from __future__ import annotations

from decimal import Decimal

from shared.domain.exceptions import DomainError


def _plain(value: Decimal) -> str:
    return f"{Decimal(value).normalize():f}"


class OrderDomainError(DomainError):
    code = "order_error"


class InvalidInput(OrderDomainError):
    """Bad input: non-positive quantity, past schedule date, missing note..."""

    code = "invalid_input"


class NotFound(OrderDomainError):
    code = "not_found"


class OrderNotFound(NotFound):
    """The requested order does not exist."""


class OrderItemNotFound(NotFound):
    pass


class ProductNotFound(NotFound):
    pass


class ProducerNotFound(NotFound):
    pass


class TransportNotFound(NotFound):
    pass


class PriceNotFound(NotFound):
    """No catalog price is valid for the product on the requested date."""


class InvalidOrderStatus(OrderDomainError):
    """The operation is illegal for the current order status."""

    code = "invalid_state"


class EmptyOrder(InvalidOrderStatus):
    """An order without items cannot be closed."""

    code = "empty_order"


class OverAllocation(OrderDomainError):
    """Requested transport quantity exceeds the item's unallocated quantity."""

    code = "over_allocation"

    def __init__(self, requested: Decimal, available: Decimal) -> None:
        self.requested = requested
        self.available = available
        super().__init__(
            f"Requested quantity ({_plain(requested)}) "
            f"exceeds available quantity ({_plain(available)})."
        )


class ExternalDependencyFailure(OrderDomainError):
    """Catalog or discount collaborator failed."""

    code = "external_dependency"


class ConcurrencyConflict(OrderDomainError):
    """The order was modified concurrently; reload and retry."""

    code = "concurrency_conflict"
