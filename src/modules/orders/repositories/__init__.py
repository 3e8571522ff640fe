"""Order repositories package."""

from modules.orders.repositories.django_repository import (
    OrderDjangoRepository,
    ProposalDjangoRepository,
    TransportDjangoRepository,
)
from modules.orders.repositories.interfaces import (
    IOrderRepository,
    IProposalRepository,
    ITransportRepository,
)

__all__ = [
    "IOrderRepository",
    "IProposalRepository",
    "ITransportRepository",
    "OrderDjangoRepository",
    "ProposalDjangoRepository",
    "TransportDjangoRepository",
]
