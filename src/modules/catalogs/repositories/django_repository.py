"""Django ORM implementation of the catalog price lookup."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog
from django.db.models import Q

from modules.catalogs.models import CatalogPrice
from modules.catalogs.repositories.interfaces import ICatalogRepository

logger = structlog.get_logger(__name__)


class CatalogDjangoRepository(ICatalogRepository):
    def get_price(
        self,
        catalog_id: UUID,
        product_id: UUID,
        on_date: date,
        region: str = "",
    ) -> Optional[Decimal]:
        """Pick the row valid on *on_date*, preferring an exact region match.

        Among rows of the same region the most recent ``valid_from`` wins.
        """
        rows = (
            CatalogPrice.objects.filter(
                catalog_id=catalog_id,
                product_id=product_id,
                valid_from__lte=on_date,
            )
            .filter(Q(valid_until__isnull=True) | Q(valid_until__gte=on_date))
            .filter(Q(region=region) | Q(region=""))
            .order_by("-valid_from")
        )
        exact = next((row for row in rows if region and row.region == region), None)
        chosen = exact or next((row for row in rows if row.region == ""), None)
        if chosen is None:
            logger.info(
                "catalog.price_not_found",
                catalog_id=str(catalog_id),
                product_id=str(product_id),
                region=region,
                on_date=on_date.isoformat(),
            )
            return None
        return chosen.price
