"""Repository base contract shared by every module.

Services receive implementations of these interfaces through their
constructors; only the ``django_repository`` modules touch the ORM.
Lookups return ``None`` for a missing row instead of raising, so the
calling service decides which ``NotFound`` subclass to raise.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, Iterable, Optional, TypeVar

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    """Base generic repository contract.

    ``T`` is the aggregate or entity the repository persists
    (``Order``, ``Product``, ``Producer``, ``Transport``).
    """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        """Return the entity or ``None`` (also for malformed ids)."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> Iterable[T]:
        """Entities matching ``filters`` (field lookups, ANDed)."""

    @abstractmethod
    def save(self, entity: T) -> T:
        """Insert or update ``entity`` and return it."""

    @abstractmethod
    def delete(self, id: str) -> bool:
        """Remove the entity; ``False`` when nothing matched."""
