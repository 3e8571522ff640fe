from __future__ import annotations

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from django.contrib.auth import get_user_model

from rest_framework.test import APIClient

from modules.catalogs.models import CatalogPrice
from modules.catalogs.repositories.django_repository import CatalogDjangoRepository
from modules.discounts.dtos import DiscountResult
from modules.discounts.interfaces import IDiscountResolver
from modules.orders.cart import CartPricingEngine
from modules.orders.models import Order, OrderItem
from modules.orders.repositories import (
    OrderDjangoRepository,
    ProposalDjangoRepository,
    TransportDjangoRepository,
)
from modules.producers.models import DocumentType, Producer
from modules.producers.repositories.django_repository import ProducerDjangoRepository
from modules.products.models import Product, ProductStatus, WeightCalculation
from modules.products.repositories.django_repository import ProductDjangoRepository

VALID_CPF = "59860184275"
VALID_CNPJ = "11222333000181"


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def user():
    return get_user_model().objects.create_user(username="buyer", password="testpass123")


@pytest.fixture()
def auth_client(user):
    """APIClient with a force-authenticated Django user."""
    client = APIClient()
    client.force_authenticate(user=user)
    return client


# ---------------------------------------------------------------------------
# Master data
# ---------------------------------------------------------------------------


@pytest.fixture()
def producer():
    return Producer.objects.create(
        name="Fazenda Boa Vista",
        document=VALID_CPF,
        document_type=DocumentType.CPF,
        planting_area=Decimal("150.00"),
    )


@pytest.fixture()
def supplier_id():
    return uuid4()


@pytest.fixture()
def product():
    """25 kg sack, 10 x 40 x 60 cm (0.024 m3), billed on nominal weight."""
    return Product.objects.create(
        sku="soy-seed-25",
        name="Soybean seed 25kg",
        category_id=uuid4(),
        status=ProductStatus.ACTIVE,
        nominal_weight=Decimal("25.000"),
        height=Decimal("10"),
        width=Decimal("40"),
        length=Decimal("60"),
        weight_calculation=WeightCalculation.NOMINAL,
    )


@pytest.fixture()
def catalog_id():
    return uuid4()


@pytest.fixture()
def catalog_price(catalog_id, product):
    return CatalogPrice.objects.create(
        catalog_id=catalog_id,
        product=product,
        price=Decimal("100.00"),
        valid_from=date(2020, 1, 1),
    )


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.fixture()
def order_repository():
    return OrderDjangoRepository()


@pytest.fixture()
def proposal_repository():
    return ProposalDjangoRepository()


@pytest.fixture()
def transport_repository():
    return TransportDjangoRepository()


@pytest.fixture()
def make_order(producer, supplier_id, order_repository):
    """Persist a negotiating order and return it reloaded from the repository."""

    def _make(deadline_days: int = 7, now=None) -> Order:
        order = Order.open(producer.id, supplier_id, deadline_days, now=now)
        order_repository.save(order)
        return order_repository.get_by_id(str(order.id))

    return _make


@pytest.fixture()
def order(make_order):
    return make_order()


@pytest.fixture()
def make_item(product):
    def _make(
        order: Order,
        quantity: Decimal = Decimal("100"),
        unit_price: Decimal = Decimal("100.00"),
        discount_percent: Decimal = Decimal("10"),
    ) -> OrderItem:
        return OrderItem.objects.create(
            order=order,
            product=product,
            quantity=quantity,
            unit_price=unit_price,
            discount_percent=discount_percent,
        )

    return _make


@pytest.fixture()
def discount_resolver():
    resolver = MagicMock(spec=IDiscountResolver)
    resolver.resolve.return_value = DiscountResult(
        percentage=Decimal("10"),
        applied_segment="large-area",
        applied_group="grains",
        notes="150 ha tier",
    )
    return resolver


@pytest.fixture()
def cart_engine(discount_resolver, proposal_repository):
    return CartPricingEngine(
        product_repository=ProductDjangoRepository(),
        producer_repository=ProducerDjangoRepository(),
        catalog_repository=CatalogDjangoRepository(),
        discount_resolver=discount_resolver,
        proposal_repository=proposal_repository,
    )
