"""Producer repository interface."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.producers.models import Producer


class IProducerRepository(IRepository["Producer"]):
    """Repository contract for producers."""

    @abstractmethod
    def get_by_document(self, document: str) -> Optional[Producer]:
        """Retrieve a producer by CPF/CNPJ (any formatting)."""
