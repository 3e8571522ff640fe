"""Catalog price lookup contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID


class ICatalogRepository(ABC):
    @abstractmethod
    def get_price(
        self,
        catalog_id: UUID,
        product_id: UUID,
        on_date: date,
        region: str = "",
    ) -> Optional[Decimal]:
        """Unit price valid on *on_date*, or ``None`` when the catalog has none."""
