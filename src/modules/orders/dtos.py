"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from modules.orders.constants import ActorRole, BuyerAction

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderItem, Proposal, Transport


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    producer_id: UUID
    supplier_id: UUID
    allow_contact: bool = True
    negotiable: bool = True
    deadline_days: Optional[int] = None


class AddItemDTO(BaseModel):
    """Cart line request.  ``unit_price`` is resolved from the catalog."""

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: Decimal
    catalog_id: UUID
    region: Optional[str] = None
    notes: str = ""
    actor_user_id: Optional[int] = None

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("Quantity must be greater than zero.")
        return v


class RecordActionDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: UUID
    actor_user_id: Optional[int] = None
    role: ActorRole
    action: Optional[BuyerAction] = None
    note: Optional[str] = None


class ScheduleTransportDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_item_id: UUID
    quantity: Decimal
    scheduled_date: datetime
    origin: str = ""
    destination: str = ""
    distance_km: Decimal = Decimal("0")
    notes: str = ""


class FreightLineDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: Decimal


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class OrderTotals(BaseModel):
    """Result of folding an order's lines.  Stored as ``Order.totals``."""

    model_config = ConfigDict(frozen=True)

    gross_value: Decimal
    discount_value: Decimal
    net_value: Decimal
    item_count: int
    avg_discount_pct: Decimal

    def to_snapshot(self, calculated_at: datetime) -> Dict[str, Any]:
        data = self.model_dump(mode="json")
        data["calculated_at"] = calculated_at.isoformat()
        return data


class TransportRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    order_item_id: UUID
    quantity: Decimal
    freight_value: Decimal
    scheduled_date: Optional[datetime]
    origin: str
    destination: str
    total_weight: Optional[Decimal]
    total_volume: Optional[Decimal]
    observations: str
    audit_info: Dict[str, Any]

    @classmethod
    def from_entity(cls, transport: Transport) -> TransportRecord:
        return cls(
            id=transport.id,
            order_item_id=transport.order_item_id,
            quantity=transport.quantity,
            freight_value=transport.freight_value,
            scheduled_date=transport.scheduled_date,
            origin=transport.origin,
            destination=transport.destination,
            total_weight=transport.total_weight,
            total_volume=transport.total_volume,
            observations=transport.observations,
            audit_info=transport.audit_info or {},
        )


class OrderItemDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    product_id: UUID
    quantity: Decimal
    unit_price: Decimal
    discount_percent: Decimal
    total_value: Decimal
    discount_value: Decimal
    final_value: Decimal
    notes: str
    aux_data: Dict[str, Any]
    transports: List[TransportRecord] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, item: OrderItem) -> OrderItemDetail:
        return cls(
            id=item.id,
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            discount_percent=item.discount_percent,
            total_value=item.total_value,
            discount_value=item.discount_value,
            final_value=item.final_value,
            notes=item.notes,
            aux_data=item.aux_data or {},
            transports=[TransportRecord.from_entity(t) for t in item.transports.all()],
        )


class ProposalRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    order_id: UUID
    action: Optional[str]
    role: str
    actor_user_id: Optional[int]
    note: str
    created_at: datetime

    @classmethod
    def from_entity(cls, proposal: Proposal) -> ProposalRecord:
        return cls(
            id=proposal.id,
            order_id=proposal.order_id,
            action=proposal.action,
            role=proposal.role,
            actor_user_id=proposal.actor_user_id,
            note=proposal.note,
            created_at=proposal.created_at,
        )


class OrderSummary(BaseModel):
    """Order with its items (and their transports)."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    producer_id: UUID
    supplier_id: UUID
    status: str
    allow_contact: bool
    negotiable: bool
    interaction_deadline: datetime
    totals: Dict[str, Any]
    version: int
    created_at: datetime
    items: List[OrderItemDetail] = Field(default_factory=list)
    proposals: List[ProposalRecord] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, order: Order, include_proposals: bool = False) -> OrderSummary:
        """Assumes ``items`` and ``items__transports`` are prefetched.

        The proposal log (newest first) is only loaded on request.
        """
        return cls(
            id=order.id,
            producer_id=order.producer_id,
            supplier_id=order.supplier_id,
            status=order.status,
            allow_contact=order.allow_contact,
            negotiable=order.negotiable,
            interaction_deadline=order.interaction_deadline,
            totals=order.totals or {},
            version=order.version,
            created_at=order.created_at,
            items=[OrderItemDetail.from_entity(item) for item in order.items.all()],
            proposals=(
                [ProposalRecord.from_entity(p) for p in order.proposals.all()]
                if include_proposals
                else []
            ),
        )


class FreightCalculationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: Optional[UUID] = None
    quantity: Decimal
    distance_km: Decimal
    total_weight: Decimal
    total_volume: Decimal
    total_cubic_weight: Optional[Decimal] = None
    billed_weight: Decimal
    weight_calculation: str
    freight_value: Decimal


class ConsolidatedFreightResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    lines: List[FreightCalculationResult]
    distance_km: Decimal
    total_weight: Decimal
    total_volume: Decimal
    total_cubic_weight: Decimal
    freight_value: Decimal


class BatchValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_valid: bool
    errors: List[str] = Field(default_factory=list)


class OrderTransportSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_items: int
    items_with_transport: int
    total_transports: int
    scheduled_transports: int
    total_weight: Decimal
    total_volume: Decimal
    total_freight_value: Decimal
    next_scheduled_date: Optional[datetime] = None


class NegotiationOutcome(BaseModel):
    """Result of one negotiation step.

    ``proposal`` is ``None`` when the log entry was suppressed because it
    repeated the previous action; the status change still applies.
    """

    model_config = ConfigDict(frozen=True)

    order_id: UUID
    status: str
    proposal: Optional[ProposalRecord] = None
