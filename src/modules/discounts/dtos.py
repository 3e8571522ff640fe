"""Segmented discount contracts (Pydantic v2, immutable)."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class DiscountQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    producer_id: UUID
    supplier_id: UUID
    category_id: Optional[UUID] = None
    planting_area: Decimal
    line_total: Decimal


class DiscountResult(BaseModel):
    """Resolved discount tier for one cart line."""

    model_config = ConfigDict(frozen=True)

    percentage: Decimal = Field(ge=0, le=100)
    applied_segment: Optional[str] = None
    applied_group: Optional[str] = None
    notes: str = ""
