"""Waitlist schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from academy.core.enums import WaitlistStatusEnum


class WaitlistJoinRequest(BaseModel):
    """Join the waitlist of a sold-out offering."""

    offering_id: UUID
    schedule_id: UUID | None = None
    first_name: str | None = Field(default=None, max_length=128)
    last_name: str | None = Field(default=None, max_length=128)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=32)
    notes: str | None = Field(default=None, max_length=2000)


class WaitlistEntryRead(BaseModel):
    """Waitlist entry response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    offering_id: UUID
    schedule_id: UUID | None
    reservation_id: UUID | None
    first_name: str
    last_name: str
    email: str
    phone: str | None
    notes: str | None
    position: int
    status: WaitlistStatusEnum
    created_at: datetime
