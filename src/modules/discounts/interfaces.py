"""Segmented discount resolver contract."""

from __future__ import annotations

from abc import ABC, abstractmethod

from modules.discounts.dtos import DiscountQuery, DiscountResult


class IDiscountResolver(ABC):
    @abstractmethod
    def resolve(self, query: DiscountQuery) -> DiscountResult:
        """Return the discount for a line.

        Raises:
            ExternalDependencyFailure: the collaborator could not answer.
        """
