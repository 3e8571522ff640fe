from __future__ import annotations

import random
import uuid
from datetime import date
from decimal import Decimal
from typing import Iterable

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from modules.catalogs.models import CatalogPrice
from modules.orders.cart import calculate_totals
from modules.orders.models import Order, OrderItem
from modules.orders.repositories import OrderDjangoRepository
from modules.producers.models import DocumentType, Producer
from modules.products.models import Product, ProductStatus, WeightCalculation

SEED_CATALOG_ID = uuid.UUID("01900000-0000-7000-8000-000000000001")
SEED_SUPPLIER_ID = uuid.UUID("01900000-0000-7000-8000-000000000002")
GRAINS = uuid.UUID("01900000-0000-7000-8000-0000000000a1")
FERTILIZERS = uuid.UUID("01900000-0000-7000-8000-0000000000a2")


class Command(BaseCommand):
    help = "Seed database with realistic development data."

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        users_created = self._seed_users()
        producers = self._seed_producers()
        products = self._seed_products()
        prices = self._seed_catalog(products)
        orders_created = self._seed_orders(producers, products)

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={users_created}, "
                f"producers={len(producers)}, "
                f"products={len(products)}, "
                f"catalog_prices={prices}, "
                f"orders={orders_created}"
            )
        )

    def _seed_users(self) -> int:
        User = get_user_model()
        created = 0
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")
            created += 1
        if not User.objects.filter(username="buyer").exists():
            User.objects.create_user("buyer", password="buyer123")
            created += 1
        if not User.objects.filter(username="supplier").exists():
            User.objects.create_user("supplier", password="supplier123", is_staff=True)
            created += 1
        return created

    def _seed_producers(self) -> list[Producer]:
        self.stdout.write("Creating producers...")
        producers: list[Producer] = []
        seed_producers = [
            ("Fazenda Boa Vista", "59860184275", DocumentType.CPF, Decimal("150.00")),
            ("Sítio Três Irmãos", "39053344705", DocumentType.CPF, Decimal("42.50")),
            ("Agropecuária Cerrado", "11222333000181", DocumentType.CNPJ, Decimal("2300.00")),
            ("Fazenda Santa Luzia", "52998224725", DocumentType.CPF, Decimal("610.00")),
            ("Grupo Vale Verde", "11444777000161", DocumentType.CNPJ, Decimal("5400.00")),
        ]
        for name, document, doc_type, area in seed_producers:
            producer, _ = Producer.objects.get_or_create(
                document=document,
                defaults={
                    "name": name,
                    "document_type": doc_type,
                    "planting_area": area,
                    "is_active": True,
                },
            )
            producers.append(producer)
        self.stdout.write(self.style.SUCCESS("Creating producers... Done!"))
        return producers

    def _seed_products(self) -> list[Product]:
        self.stdout.write("Creating products...")
        products: list[Product] = []
        # sku, name, category, kg, (h, w, l) cm, density kg/m3, billing
        catalog = [
            ("SOJ-025", "Semente de soja 25kg", GRAINS, "25", ("10", "40", "60"), None, WeightCalculation.NOMINAL),
            ("MIL-020", "Semente de milho 20kg", GRAINS, "20", ("10", "35", "55"), None, WeightCalculation.NOMINAL),
            ("TRI-040", "Semente de trigo 40kg", GRAINS, "40", ("15", "45", "70"), None, WeightCalculation.NOMINAL),
            ("NPK-050", "Fertilizante NPK 04-14-08 50kg", FERTILIZERS, "50", ("15", "50", "80"), "1100", WeightCalculation.CUBIC),
            ("URE-050", "Ureia 45% 50kg", FERTILIZERS, "50", ("15", "50", "80"), "750", WeightCalculation.CUBIC),
            ("CAL-1000", "Calcário dolomítico big bag", FERTILIZERS, "1000", ("100", "90", "90"), "1500", WeightCalculation.CUBIC),
        ]
        for sku, name, category, weight, (height, width, length), density, billing in catalog:
            product, _ = Product.objects.get_or_create(
                sku=sku,
                defaults={
                    "name": name,
                    "category_id": category,
                    "status": ProductStatus.ACTIVE,
                    "nominal_weight": Decimal(weight),
                    "height": Decimal(height),
                    "width": Decimal(width),
                    "length": Decimal(length),
                    "density": Decimal(density) if density else None,
                    "weight_calculation": billing,
                },
            )
            products.append(product)
        self.stdout.write(self.style.SUCCESS("Creating products... Done!"))
        return products

    def _seed_catalog(self, products: Iterable[Product]) -> int:
        self.stdout.write("Creating catalog prices...")
        created = 0
        for product in products:
            base = Decimal(random.randint(80, 400))
            for region, factor in (("", Decimal("1.00")), ("MT", Decimal("0.95"))):
                _, was_created = CatalogPrice.objects.get_or_create(
                    catalog_id=SEED_CATALOG_ID,
                    product=product,
                    region=region,
                    defaults={
                        "price": (base * factor).quantize(Decimal("0.01")),
                        "valid_from": date(2025, 1, 1),
                    },
                )
                created += int(was_created)
        self.stdout.write(self.style.SUCCESS("Creating catalog prices... Done!"))
        return created

    def _seed_orders(self, producers: list[Producer], products: list[Product]) -> int:
        self.stdout.write("Creating orders...")
        if Order.objects.filter(supplier_id=SEED_SUPPLIER_ID).exists():
            self.stdout.write(self.style.WARNING("Skipping orders (already seeded)."))
            return 0
        if not producers or not products:
            self.stdout.write(self.style.WARNING("Skipping orders (no producers/products)."))
            return 0

        repository = OrderDjangoRepository()
        orders_created = 0
        for _ in range(20):
            with transaction.atomic():
                order = Order.open(
                    producer_id=random.choice(producers).id,
                    supplier_id=SEED_SUPPLIER_ID,
                    deadline_days=random.randint(1, 14),
                )
                repository.save(order)

                items = []
                for product in random.sample(products, k=random.randint(1, 3)):
                    price = CatalogPrice.objects.filter(
                        catalog_id=SEED_CATALOG_ID, product=product, region=""
                    ).first()
                    items.append(
                        OrderItem.objects.create(
                            order=order,
                            product=product,
                            quantity=Decimal(random.randint(10, 500)),
                            unit_price=price.price if price else Decimal("100.00"),
                            discount_percent=Decimal(random.choice([0, 2, 5, 8, 10])),
                        )
                    )

                order.update_totals(calculate_totals(items).to_snapshot(order.created_at))
                repository.save(order)
            orders_created += 1

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return orders_created
