"""Order DRF serializers for API input and list output.

Input serializers validate the request shape; business rules live in the
Service Layer, which receives Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from modules.orders.constants import ActorRole, BuyerAction
from modules.orders.models import Order

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class VersionedSerializer(serializers.Serializer):
    """Optional optimistic-concurrency token sent back by the client."""

    version = serializers.IntegerField(required=False, min_value=1)


class CreateOrderSerializer(serializers.Serializer):
    producer_id = serializers.UUIDField()
    supplier_id = serializers.UUIDField()
    allow_contact = serializers.BooleanField(required=False, default=True)
    negotiable = serializers.BooleanField(required=False, default=True)
    deadline_days = serializers.IntegerField(required=False, min_value=1)


class AddItemSerializer(VersionedSerializer):
    product_id = serializers.UUIDField()
    quantity = serializers.DecimalField(
        max_digits=14, decimal_places=3, min_value=Decimal("0.001")
    )
    catalog_id = serializers.UUIDField()
    region = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class UpdateItemSerializer(VersionedSerializer):
    quantity = serializers.DecimalField(
        max_digits=14, decimal_places=3, min_value=Decimal("0.001")
    )


class RecordActionSerializer(VersionedSerializer):
    role = serializers.ChoiceField(choices=ActorRole.choices)
    action = serializers.ChoiceField(
        choices=BuyerAction.choices, required=False, allow_null=True
    )
    note = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ExtendDeadlineSerializer(VersionedSerializer):
    days = serializers.IntegerField(min_value=1)


class ScheduleTransportSerializer(serializers.Serializer):
    order_item_id = serializers.UUIDField()
    quantity = serializers.DecimalField(
        max_digits=14, decimal_places=3, min_value=Decimal("0.001")
    )
    scheduled_date = serializers.DateTimeField()
    origin = serializers.CharField(required=False, default="", allow_blank=True)
    destination = serializers.CharField(required=False, default="", allow_blank=True)
    distance_km = serializers.DecimalField(
        max_digits=10, decimal_places=2, required=False, default=Decimal("0"),
        min_value=Decimal("0"),
    )
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class BatchValidationSerializer(serializers.Serializer):
    requests = ScheduleTransportSerializer(many=True, allow_empty=True)


class RescheduleSerializer(serializers.Serializer):
    scheduled_date = serializers.DateTimeField()
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class FreightValueSerializer(serializers.Serializer):
    freight_value = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0")
    )
    reason = serializers.CharField(required=False, default="", allow_blank=True)


class FreightQuoteSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.DecimalField(max_digits=14, decimal_places=3)
    distance_km = serializers.DecimalField(max_digits=10, decimal_places=2)
    rate_per_kg_km = serializers.DecimalField(
        max_digits=10, decimal_places=4, required=False
    )
    minimum_freight = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False
    )


class FreightLineSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.DecimalField(max_digits=14, decimal_places=3)


class ConsolidatedFreightSerializer(serializers.Serializer):
    lines = FreightLineSerializer(many=True, allow_empty=False)
    distance_km = serializers.DecimalField(max_digits=10, decimal_places=2)
    rate_per_kg_km = serializers.DecimalField(
        max_digits=10, decimal_places=4, required=False
    )
    minimum_freight = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False
    )


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested relations)."""

    class Meta:
        model = Order
        fields = [
            "id",
            "producer_id",
            "supplier_id",
            "status",
            "interaction_deadline",
            "totals",
            "version",
            "created_at",
        ]
        read_only_fields = fields
