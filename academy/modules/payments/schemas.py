"""Payments schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from academy.core.enums import PaymentStatusEnum


class GatewayEventObject(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str


class GatewayEventData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    object: GatewayEventObject


class GatewayNotification(BaseModel):
    """Processor webhook envelope. Only the intent id is read from it."""

    model_config = ConfigDict(extra="ignore")

    type: str | None = None
    data: GatewayEventData


class GatewayNotificationAck(BaseModel):
    received: bool = True
    reservation_id: UUID | None = None


class PaymentRead(BaseModel):
    """Payment response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    reservation_id: UUID
    amount: Decimal
    currency: str
    status: PaymentStatusEnum
    external_reference: str
    paid_at: datetime
