"""Freight, weight and volume computation.

Pure and stateless: nothing here touches the database except
``available_quantity`` which, when no allocated total is given, reads the
item's (possibly prefetched) transports.

Formula per line::

    total_weight = nominal_weight * quantity
    total_volume = unit_volume * quantity
    cubic_weight = total_volume * density          (absent without density)
    billed       = total_weight | cubic_weight     (per product mode)
    freight      = max(billed * distance_km * rate, minimum)
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Callable, Dict, Iterable, Optional, Tuple

from django.conf import settings

from modules.orders.dtos import ConsolidatedFreightResult, FreightCalculationResult
from modules.orders.exceptions import InvalidInput
from modules.orders.models import to_money
from modules.products.models import WeightCalculation

if TYPE_CHECKING:
    from modules.orders.models import OrderItem
    from modules.products.models import Product

ZERO = Decimal("0")


def _nominal_basis(total_weight: Decimal, cubic_weight: Optional[Decimal]) -> Tuple[Decimal, str]:
    return total_weight, WeightCalculation.NOMINAL


def _cubic_basis(total_weight: Decimal, cubic_weight: Optional[Decimal]) -> Tuple[Decimal, str]:
    if cubic_weight is None:
        return total_weight, WeightCalculation.NOMINAL
    return cubic_weight, WeightCalculation.CUBIC


WEIGHT_BASIS: Dict[str, Callable[[Decimal, Optional[Decimal]], Tuple[Decimal, str]]] = {
    WeightCalculation.NOMINAL: _nominal_basis,
    WeightCalculation.CUBIC: _cubic_basis,
}


class FreightCalculator:
    def __init__(
        self,
        rate_per_kg_km: Decimal = Decimal("0.05"),
        minimum_freight: Decimal = Decimal("50.00"),
    ) -> None:
        self.rate_per_kg_km = Decimal(rate_per_kg_km)
        self.minimum_freight = Decimal(minimum_freight)

    @classmethod
    def from_settings(cls) -> FreightCalculator:
        return cls(
            rate_per_kg_km=Decimal(str(settings.FREIGHT_RATE_PER_KG_KM)),
            minimum_freight=Decimal(str(settings.FREIGHT_MINIMUM_VALUE)),
        )

    # ------------------------------------------------------------------
    # Single line
    # ------------------------------------------------------------------

    def calculate_freight(
        self,
        product: Product,
        quantity: Decimal,
        distance_km: Decimal,
        rate_per_kg_km: Optional[Decimal] = None,
        minimum_freight: Optional[Decimal] = None,
    ) -> FreightCalculationResult:
        result, _ = self._price_line(
            product, quantity, distance_km, rate_per_kg_km, minimum_freight
        )
        return result

    def _price_line(
        self,
        product: Product,
        quantity: Decimal,
        distance_km: Decimal,
        rate_per_kg_km: Optional[Decimal],
        minimum_freight: Optional[Decimal],
    ) -> Tuple[FreightCalculationResult, Decimal]:
        """Return the rounded line result and its unrounded computed value."""
        quantity = Decimal(quantity)
        distance_km = Decimal(distance_km)
        if quantity <= 0:
            raise InvalidInput("Quantity must be greater than zero.")
        if distance_km <= 0:
            raise InvalidInput("Distance must be greater than zero.")

        rate = self.rate_per_kg_km if rate_per_kg_km is None else Decimal(rate_per_kg_km)
        minimum = self.minimum_freight if minimum_freight is None else Decimal(minimum_freight)

        total_weight = Decimal(product.nominal_weight) * quantity
        total_volume = product.volume * quantity
        cubic_weight = (
            total_volume * Decimal(product.density) if product.density is not None else None
        )
        basis = WEIGHT_BASIS.get(product.weight_calculation, _nominal_basis)
        billed_weight, mode = basis(total_weight, cubic_weight)

        computed = billed_weight * distance_km * rate
        result = FreightCalculationResult(
            product_id=product.id,
            quantity=quantity,
            distance_km=distance_km,
            total_weight=total_weight,
            total_volume=total_volume,
            total_cubic_weight=cubic_weight,
            billed_weight=billed_weight,
            weight_calculation=str(mode),
            freight_value=to_money(max(computed, minimum)),
        )
        return result, computed

    # ------------------------------------------------------------------
    # Several lines, one shipment
    # ------------------------------------------------------------------

    def calculate_consolidated_freight(
        self,
        lines: Iterable[Tuple[Product, Decimal]],
        distance_km: Decimal,
        rate_per_kg_km: Optional[Decimal] = None,
        minimum_freight: Optional[Decimal] = None,
    ) -> ConsolidatedFreightResult:
        """Lines are priced without floor; the minimum applies once to the sum."""
        minimum = self.minimum_freight if minimum_freight is None else Decimal(minimum_freight)
        priced = [
            self._price_line(product, quantity, distance_km, rate_per_kg_km, ZERO)
            for product, quantity in lines
        ]
        if not priced:
            raise InvalidInput("At least one product is required.")

        results = [result for result, _ in priced]
        summed = sum((computed for _, computed in priced), ZERO)
        return ConsolidatedFreightResult(
            lines=results,
            distance_km=Decimal(distance_km),
            total_weight=sum((r.total_weight for r in results), ZERO),
            total_volume=sum((r.total_volume for r in results), ZERO),
            total_cubic_weight=sum((r.total_cubic_weight or ZERO for r in results), ZERO),
            freight_value=to_money(max(summed, minimum)),
        )

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    @staticmethod
    def available_quantity(item: OrderItem, allocated: Optional[Decimal] = None) -> Decimal:
        if allocated is None:
            allocated = sum((t.quantity for t in item.transports.all()), ZERO)
        return max(ZERO, Decimal(item.quantity) - Decimal(allocated))

    def validate_available_quantity(
        self,
        item: OrderItem,
        requested: Decimal,
        allocated: Optional[Decimal] = None,
    ) -> bool:
        return Decimal(requested) <= self.available_quantity(item, allocated)
