"""Notifications schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from academy.core.enums import NotificationStatusEnum


class NotificationRead(BaseModel):
    """Notification response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID | None
    recipient_email: str
    event_type: str
    channel: str
    title: str
    body: str
    status: NotificationStatusEnum
    sent_at: datetime | None
    created_at: datetime


class NotificationDeliveryMetricsRead(BaseModel):
    """Snapshot of the outbox -> notification pipeline."""

    notifications: dict[str, int]
    outbox: dict[str, int]
    outbox_retryable_failed: int
    outbox_dead_letter: int
    dead_letter_by_event_type: dict[str, int]
    undelivered_confirmations: int
    max_retries: int
