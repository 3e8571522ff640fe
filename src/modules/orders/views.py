"""Order API views.

Expose the order, negotiation and transport services via DRF ViewSets.
Services return ``ServiceResult`` objects; ``result_response`` maps their
failure codes to HTTP statuses, so views never catch domain exceptions.
"""

from __future__ import annotations

from typing import Optional

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet, ViewSet

from modules.catalogs.repositories.django_repository import CatalogDjangoRepository
from modules.core.pagination import StandardResultsSetPagination
from modules.core.responses import result_response
from modules.discounts.client import SegmentedDiscountClient
from modules.orders.cart import CartPricingEngine
from modules.orders.dtos import (
    AddItemDTO,
    CreateOrderDTO,
    FreightLineDTO,
    RecordActionDTO,
    ScheduleTransportDTO,
)
from modules.orders.filters import OrderFilter
from modules.orders.freight import FreightCalculator
from modules.orders.models import Order
from modules.orders.negotiation import NegotiationProtocol
from modules.orders.notifications import CeleryNotificationDispatcher
from modules.orders.repositories import (
    OrderDjangoRepository,
    ProposalDjangoRepository,
    TransportDjangoRepository,
)
from modules.orders.serializers import (
    AddItemSerializer,
    BatchValidationSerializer,
    ConsolidatedFreightSerializer,
    CreateOrderSerializer,
    ExtendDeadlineSerializer,
    FreightQuoteSerializer,
    FreightValueSerializer,
    OrderListSerializer,
    RecordActionSerializer,
    RescheduleSerializer,
    ScheduleTransportSerializer,
    UpdateItemSerializer,
)
from modules.orders.services import NegotiationService, OrderService, TransportService
from modules.orders.transport import TransportScheduler
from modules.producers.repositories.django_repository import ProducerDjangoRepository
from modules.products.repositories.django_repository import ProductDjangoRepository


def build_order_service() -> OrderService:
    proposal_repository = ProposalDjangoRepository()
    return OrderService(
        order_repository=OrderDjangoRepository(),
        producer_repository=ProducerDjangoRepository(),
        cart_engine=CartPricingEngine(
            product_repository=ProductDjangoRepository(),
            producer_repository=ProducerDjangoRepository(),
            catalog_repository=CatalogDjangoRepository(),
            discount_resolver=SegmentedDiscountClient(),
            proposal_repository=proposal_repository,
        ),
        transport_repository=TransportDjangoRepository(),
    )


def build_negotiation_service() -> NegotiationService:
    proposal_repository = ProposalDjangoRepository()
    return NegotiationService(
        order_repository=OrderDjangoRepository(),
        proposal_repository=proposal_repository,
        protocol=NegotiationProtocol(proposal_repository, CeleryNotificationDispatcher()),
    )


def build_transport_service() -> TransportService:
    freight_calculator = FreightCalculator.from_settings()
    return TransportService(
        transport_repository=TransportDjangoRepository(),
        order_repository=OrderDjangoRepository(),
        product_repository=ProductDjangoRepository(),
        scheduler=TransportScheduler.from_settings(),
        freight_calculator=freight_calculator,
    )


def _user_id(request: Request) -> Optional[int]:
    user = getattr(request, "user", None)
    return user.pk if user is not None and user.is_authenticated else None


class OrderViewSet(GenericViewSet):
    """Order lifecycle, cart and negotiation endpoints.

    Does **not** extend ``ModelViewSet``: all writes go through the
    service layer.
    """

    queryset = Order.objects.all()
    filterset_class = OrderFilter
    ordering_fields = ["created_at", "interaction_deadline", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_order_service()
        self._negotiation = build_negotiation_service()
        self._transports = build_transport_service()

    def get_throttles(self) -> list[BaseThrottle]:
        """Throttling scopes per action."""
        if self.action == "create":
            self.throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve"}:
            self.throttle_scope = "order_listing"
        else:
            self.throttle_scope = None
        return super().get_throttles()

    # ------------------------------------------------------------------
    # Create / List / Retrieve
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/"""
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self._service.create_order(CreateOrderDTO(**serializer.validated_data))
        return result_response(result, status.HTTP_201_CREATED)

    def get_queryset(self):
        return Order.objects.select_related("producer")

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/ (filter by status, producer, supplier, deadline)."""
        queryset = self.filter_queryset(self.get_queryset())
        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        return result_response(self._service.get_order(pk))

    @action(detail=False, methods=["get"], url_path="near-deadline")
    def near_deadline(self, request: Request) -> Response:
        days = request.query_params.get("days")
        return result_response(
            self._service.orders_near_deadline(days=int(days) if days and days.isdigit() else None)
        )

    @action(detail=False, methods=["get"])
    def expired(self, request: Request) -> Response:
        return result_response(self._service.expired_orders())

    # ------------------------------------------------------------------
    # Cart
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def items(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/items/"""
        serializer = AddItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        version = data.pop("version", None)
        dto = AddItemDTO(**data, actor_user_id=_user_id(request))
        result = self._service.add_item(pk, dto, expected_version=version)
        return result_response(result, status.HTTP_201_CREATED)

    @action(
        detail=True,
        methods=["patch", "delete"],
        url_path=r"items/(?P<item_id>[^/.]+)",
    )
    def item_detail(self, request: Request, pk: str | None = None, item_id: str | None = None) -> Response:
        """PATCH/DELETE /api/v1/orders/{pk}/items/{item_id}/"""
        if request.method == "DELETE":
            version = request.query_params.get("version")
            result = self._service.remove_item(
                pk,
                item_id,
                actor_user_id=_user_id(request),
                expected_version=int(version) if version and version.isdigit() else None,
            )
            return result_response(result)

        serializer = UpdateItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self._service.update_item_quantity(
            pk,
            item_id,
            serializer.validated_data["quantity"],
            actor_user_id=_user_id(request),
            expected_version=serializer.validated_data.get("version"),
        )
        return result_response(result)

    @action(detail=True, methods=["post"], url_path="recalculate-totals")
    def recalculate_totals(self, request: Request, pk: str | None = None) -> Response:
        return result_response(self._service.recalculate_totals(pk))

    @action(detail=True, methods=["post"], url_path="extend-deadline")
    def extend_deadline(self, request: Request, pk: str | None = None) -> Response:
        serializer = ExtendDeadlineSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self._service.extend_deadline(
            pk,
            serializer.validated_data["days"],
            expected_version=serializer.validated_data.get("version"),
        )
        return result_response(result)

    # ------------------------------------------------------------------
    # Negotiation
    # ------------------------------------------------------------------

    @action(detail=True, methods=["get", "post"])
    def proposals(self, request: Request, pk: str | None = None) -> Response:
        """GET lists the log (newest first); POST records one step."""
        if request.method == "GET":
            return result_response(self._negotiation.list_proposals(pk))

        serializer = RecordActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        dto = RecordActionDTO(
            order_id=pk,
            actor_user_id=_user_id(request),
            role=data["role"],
            action=data.get("action"),
            note=data.get("note"),
        )
        result = self._negotiation.record_action(dto, expected_version=data.get("version"))
        return result_response(result, status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"], url_path="proposals/last")
    def last_proposal(self, request: Request, pk: str | None = None) -> Response:
        return result_response(self._negotiation.last_proposal(pk))

    # ------------------------------------------------------------------
    # Transports of the order
    # ------------------------------------------------------------------

    @action(detail=True, methods=["get"])
    def transports(self, request: Request, pk: str | None = None) -> Response:
        return result_response(self._transports.list_transports(pk))

    @action(detail=True, methods=["get"], url_path="transport-summary")
    def transport_summary(self, request: Request, pk: str | None = None) -> Response:
        return result_response(self._transports.order_transport_summary(pk))


class TransportViewSet(ViewSet):
    """Shipment scheduling against order items."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_transport_service()

    def create(self, request: Request) -> Response:
        """POST /api/v1/transports/"""
        serializer = ScheduleTransportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self._service.schedule_transport(
            ScheduleTransportDTO(**serializer.validated_data)
        )
        return result_response(result, status.HTTP_201_CREATED)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        return result_response(self._service.get_transport(pk))

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/transports/{pk}/?reason=..."""
        result = self._service.cancel_transport(pk, request.query_params.get("reason", ""))
        if result.ok:
            return Response(status=status.HTTP_204_NO_CONTENT)
        return result_response(result)

    @action(detail=True, methods=["post"])
    def reschedule(self, request: Request, pk: str | None = None) -> Response:
        serializer = RescheduleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        return result_response(
            self._service.reschedule(pk, data["scheduled_date"], data["notes"])
        )

    @action(detail=True, methods=["post"], url_path="freight-value")
    def freight_value(self, request: Request, pk: str | None = None) -> Response:
        serializer = FreightValueSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        return result_response(
            self._service.update_freight_value(pk, data["freight_value"], data["reason"])
        )

    @action(detail=False, methods=["post"], url_path="validate-batch")
    def validate_batch(self, request: Request) -> Response:
        serializer = BatchValidationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        requests = [
            ScheduleTransportDTO(**item) for item in serializer.validated_data["requests"]
        ]
        return result_response(self._service.validate_batch(requests))


class FreightViewSet(ViewSet):
    """Freight quotes that do not create any shipment."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_transport_service()

    @action(detail=False, methods=["post"])
    def calculate(self, request: Request) -> Response:
        serializer = FreightQuoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        return result_response(
            self._service.calculate_freight(
                data["product_id"],
                data["quantity"],
                data["distance_km"],
                data.get("rate_per_kg_km"),
                data.get("minimum_freight"),
            )
        )

    @action(detail=False, methods=["post"])
    def consolidated(self, request: Request) -> Response:
        serializer = ConsolidatedFreightSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        return result_response(
            self._service.calculate_consolidated_freight(
                [FreightLineDTO(**line) for line in data["lines"]],
                data["distance_km"],
                data.get("rate_per_kg_km"),
                data.get("minimum_freight"),
            )
        )
