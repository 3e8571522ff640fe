"""Supplier catalog price rows.

A catalog holds one price per (product, region) for a validity window.
Rows with an empty ``region`` apply to every region that has no row of its
own.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel


class CatalogPrice(BaseModel):
    catalog_id = models.UUIDField(db_index=True)
    product = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="catalog_prices",
    )
    region = models.CharField(max_length=64, blank=True, default="")
    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
    )
    valid_from = models.DateField()
    valid_until = models.DateField(null=True, blank=True, default=None)

    class Meta:
        db_table = "catalog_prices"
        ordering = ["-valid_from"]
        indexes = [
            models.Index(
                fields=["catalog_id", "product", "region"],
                name="catalog_price_lookup_idx",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        if self.valid_until and self.valid_until < self.valid_from:
            raise ValidationError(
                {"valid_until": "End of validity cannot precede its start."}
            )

    def __str__(self) -> str:
        region = self.region or "*"
        return f"{self.catalog_id}/{self.product_id}@{region}: {self.price}"
