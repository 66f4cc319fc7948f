"""Catalog schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from academy.core.enums import OfferingKindEnum, ScheduleStatusEnum


class ScheduleRead(BaseModel):
    """Course schedule response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    offering_id: UUID
    start_at: datetime
    end_at: datetime
    location: str | None
    capacity: int
    status: ScheduleStatusEnum


class OfferingRead(BaseModel):
    """Offering summary response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    kind: OfferingKindEnum
    title: str
    description: str | None
    unit_price: Decimal
    deposit_amount: Decimal | None
    sale_price: Decimal | None
    sale_starts_at: datetime | None
    sale_ends_at: datetime | None
    capacity: int
    currency: str
    tax_jurisdiction: str | None


class OfferingDetailRead(OfferingRead):
    """Offering with its schedules and the price that applies right now."""

    current_price: Decimal
    schedules: list[ScheduleRead]
