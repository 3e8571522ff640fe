"""Cart pricing engine.

Prices and discounts cart lines and folds them into order totals.

Callers must check ``order.is_within_deadline()`` before invoking any of
the mutators below; the engine does not re-check it.  A missing product,
producer or price aborts before any item is built, and a discount service
failure propagates as ``ExternalDependencyFailure``.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Optional, Protocol

import structlog
from django.utils import timezone

from modules.discounts.dtos import DiscountQuery, DiscountResult
from modules.orders.constants import ActorRole, BuyerAction
from modules.orders.dtos import OrderTotals
from modules.orders.events import CartChanged
from modules.orders.exceptions import (
    InvalidInput,
    InvalidOrderStatus,
    OrderItemNotFound,
    PriceNotFound,
    ProducerNotFound,
    ProductNotFound,
)
from modules.orders.models import HUNDRED, OrderItem, Proposal, to_money

if TYPE_CHECKING:
    from uuid import UUID

    from modules.catalogs.repositories.interfaces import ICatalogRepository
    from modules.discounts.interfaces import IDiscountResolver
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IProposalRepository
    from modules.producers.models import Producer
    from modules.producers.repositories.interfaces import IProducerRepository
    from modules.products.models import Product
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")


class PricedLine(Protocol):
    quantity: Decimal
    unit_price: Decimal
    discount_percent: Decimal


def calculate_totals(lines: Iterable[PricedLine]) -> OrderTotals:
    """Fold lines into totals.  Pure: same lines, same result."""
    gross = ZERO
    discount = ZERO
    count = 0
    for line in lines:
        line_total = Decimal(line.quantity) * Decimal(line.unit_price)
        gross += line_total
        discount += line_total * Decimal(line.discount_percent or 0) / HUNDRED
        count += 1
    avg = (discount / gross * HUNDRED) if gross > 0 else ZERO
    return OrderTotals(
        gross_value=to_money(gross),
        discount_value=to_money(discount),
        net_value=to_money(gross - discount),
        item_count=count,
        avg_discount_pct=to_money(avg),
    )


class CartPricingEngine:
    def __init__(
        self,
        product_repository: IProductRepository,
        producer_repository: IProducerRepository,
        catalog_repository: ICatalogRepository,
        discount_resolver: IDiscountResolver,
        proposal_repository: IProposalRepository,
    ) -> None:
        self._product_repo = product_repository
        self._producer_repo = producer_repository
        self._catalog_repo = catalog_repository
        self._discounts = discount_resolver
        self._proposal_repo = proposal_repository

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def add_item(
        self,
        order: Order,
        product_id: UUID,
        quantity: Decimal,
        catalog_id: UUID,
        notes: str = "",
        region: str = "",
        actor_user_id: Optional[int] = None,
        on_date: Optional[date] = None,
    ) -> OrderItem:
        """Build a priced, discounted (unsaved) line attached to *order*."""
        quantity = _positive_quantity(quantity)
        product = self._active_product(product_id)
        on_date = on_date or timezone.localdate()

        unit_price = self._catalog_repo.get_price(catalog_id, product.id, on_date, region)
        if unit_price is None:
            raise PriceNotFound(
                f"No price for product {product.id} in catalog {catalog_id}."
            )
        producer = self._producer(order.producer_id)
        discount = self._resolve_discount(order, product, producer, unit_price * quantity)

        item = order.add_item(
            OrderItem(
                product=product,
                quantity=quantity,
                unit_price=unit_price,
                discount_percent=discount.percentage,
                notes=notes or "",
                aux_data=_discount_aux_data(discount, producer, product, catalog_id),
            )
        )
        item.calculate_values()

        logger.info(
            "cart.item_priced",
            order_id=str(order.id),
            product_id=str(product.id),
            unit_price=str(unit_price),
            discount_percent=str(discount.percentage),
        )
        if order.is_negotiating:
            self._record_cart_change(
                order,
                f"Added product ({product.id}) - {product.name} to the order.",
                actor_user_id,
            )
        return item

    def update_item_quantity(
        self,
        item: OrderItem,
        new_quantity: Decimal,
        order: Order,
        actor_user_id: Optional[int] = None,
    ) -> OrderItem:
        """Re-price the discount against the new line total."""
        if not order.is_negotiating:
            raise InvalidOrderStatus(
                f"Items can only be changed while negotiating (status {order.status})."
            )
        new_quantity = _positive_quantity(new_quantity)
        product = self._product(item.product_id)
        producer = self._producer(order.producer_id)
        discount = self._resolve_discount(
            order, product, producer, Decimal(item.unit_price) * new_quantity
        )

        old_quantity = item.quantity
        item.quantity = new_quantity
        item.discount_percent = discount.percentage
        item.aux_data = {
            **(item.aux_data or {}),
            **_discount_aux_data(discount, producer, product),
        }
        item.calculate_values()

        logger.info(
            "cart.item_quantity_changed",
            order_id=str(order.id),
            item_id=str(item.id),
            old_quantity=str(old_quantity),
            new_quantity=str(new_quantity),
        )
        self._record_cart_change(
            order,
            f"Changed quantity of product ({product.id}) - {product.name} "
            f"from {old_quantity} to {new_quantity}.",
            actor_user_id,
        )
        return item

    def remove_item(
        self,
        order: Order,
        item_id: UUID,
        actor_user_id: Optional[int] = None,
    ) -> OrderItem:
        """Validate and return the line to delete; the caller persists removal."""
        item = next((i for i in order.items.all() if str(i.id) == str(item_id)), None)
        if item is None:
            raise OrderItemNotFound(f"Item {item_id} not found in order {order.id}.")
        order.remove_item(item)

        product = self._product_repo.get_by_id(str(item.product_id))
        name = product.name if product else "unknown product"
        self._record_cart_change(
            order,
            f"Removed product ({item.product_id}) - {name} from the order.",
            actor_user_id,
        )
        return item

    # ------------------------------------------------------------------
    # Totals
    # ------------------------------------------------------------------

    def calculate_totals(self, order: Order) -> OrderTotals:
        return calculate_totals(order.items.all())

    def refresh_totals(self, order: Order) -> OrderTotals:
        """Recompute and store the totals snapshot on *order* (unsaved)."""
        totals = self.calculate_totals(order)
        order.update_totals(totals.to_snapshot(timezone.now()))
        return totals

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _active_product(self, product_id: UUID) -> Product:
        product = self._product(product_id)
        if not product.is_active:
            raise InvalidInput(f"Product {product_id} is inactive.")
        return product

    def _product(self, product_id: UUID) -> Product:
        product = self._product_repo.get_by_id(str(product_id))
        if not product:
            raise ProductNotFound(f"Product {product_id} not found.")
        return product

    def _producer(self, producer_id: UUID) -> Producer:
        producer = self._producer_repo.get_by_id(str(producer_id))
        if not producer:
            raise ProducerNotFound(f"Producer {producer_id} not found.")
        return producer

    def _resolve_discount(
        self,
        order: Order,
        product: Product,
        producer: Producer,
        line_total: Decimal,
    ) -> DiscountResult:
        return self._discounts.resolve(
            DiscountQuery(
                producer_id=order.producer_id,
                supplier_id=order.supplier_id,
                category_id=product.category_id,
                planting_area=producer.planting_area,
                line_total=line_total,
            )
        )

    def _record_cart_change(
        self, order: Order, description: str, actor_user_id: Optional[int]
    ) -> None:
        """Append a CART_CHANGED entry unless the previous entry already is one."""
        order.add_domain_event(
            CartChanged(
                aggregate_id=order.id,
                description=description,
                actor_user_id=actor_user_id,
            )
        )
        last = self._proposal_repo.last_for_order(order.id)
        if last is not None and last.action == BuyerAction.CART_CHANGED:
            logger.info("cart.change_proposal_suppressed", order_id=str(order.id))
            return
        self._proposal_repo.add(
            Proposal(
                order=order,
                action=BuyerAction.CART_CHANGED,
                role=ActorRole.BUYER,
                actor_user_id=actor_user_id,
                note=description,
            )
        )


def _positive_quantity(quantity: Decimal) -> Decimal:
    quantity = Decimal(quantity)
    if quantity <= 0:
        raise InvalidInput("Quantity must be greater than zero.")
    return quantity


def _discount_aux_data(
    discount: DiscountResult,
    producer: Producer,
    product: Product,
    catalog_id: Optional[UUID] = None,
) -> dict:
    data = {
        "applied_segment": discount.applied_segment,
        "applied_group": discount.applied_group,
        "discount_notes": discount.notes,
        "producer_planting_area": str(producer.planting_area),
        "category_id": str(product.category_id) if product.category_id else None,
    }
    if catalog_id is not None:
        data["catalog_id"] = str(catalog_id)
    return data
