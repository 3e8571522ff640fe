"""Product master data consumed by the order engine.

Rules kept here:
- SKU is unique and normalised to uppercase.
- Inactive products cannot be added to a cart (enforced by the cart engine).
- Dimensions are stored in centimetres; ``volume`` is reported in m³.
- ``density`` (kg/m³) is optional; without it no cubic weight exists and
  freight falls back to the nominal weight.
- Soft delete via ``deleted_at`` (orders keep pointing at old products).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

import structlog

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import SoftDeleteModel

logger = structlog.get_logger(__name__)

CUBIC_CM_PER_CUBIC_M = Decimal("1000000")


class ProductStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class WeightCalculation(models.TextChoices):
    """Which weight the freight formula bills on."""

    NOMINAL = "NOMINAL", "Nominal weight"
    CUBIC = "CUBIC", "Cubic weight"


class Product(SoftDeleteModel):
    """Product aggregate root (read-only from the order engine's point of view)."""

    sku = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    category_id = models.UUIDField(null=True, blank=True, default=None)
    status = models.CharField(
        max_length=20,
        choices=ProductStatus.choices,
        default=ProductStatus.ACTIVE,
    )
    nominal_weight = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
    )
    height = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0"))
    width = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0"))
    length = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0"))
    density = models.DecimalField(
        max_digits=12, decimal_places=3, null=True, blank=True, default=None
    )
    weight_calculation = models.CharField(
        max_length=10,
        choices=WeightCalculation.choices,
        default=WeightCalculation.NOMINAL,
    )

    class Meta:
        db_table = "products"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["status"], name="products_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(nominal_weight__gte=0),
                name="products_weight_non_negative",
            ),
        ]

    # ------------------------------------------------------------------
    # Derived measures
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE and not self.is_deleted

    @property
    def volume(self) -> Decimal:
        """Unit volume in m³ (dimensions are in cm)."""
        return (
            Decimal(self.height) * Decimal(self.width) * Decimal(self.length)
        ) / CUBIC_CM_PER_CUBIC_M

    @property
    def unit_cubic_weight(self) -> Optional[Decimal]:
        if self.density is None:
            return None
        return self.volume * Decimal(self.density)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def clean(self) -> None:
        super().clean()
        if self.sku:
            self.sku = self.sku.strip().upper()
        for field in ("height", "width", "length"):
            value = getattr(self, field)
            if value is not None and value < 0:
                raise ValidationError({field: "Dimension cannot be negative."})
        if self.density is not None and self.density <= 0:
            raise ValidationError({"density": "Density must be greater than zero."})

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args, **kwargs) -> None:
        is_new = self._state.adding
        if self.sku:
            self.sku = self.sku.strip().upper()
        super().save(*args, **kwargs)
        if is_new:
            logger.info(
                "product_created",
                product_id=str(self.id),
                sku=self.sku,
                name=self.name,
            )

    def __str__(self) -> str:
        return f"{self.sku} - {self.name}"
