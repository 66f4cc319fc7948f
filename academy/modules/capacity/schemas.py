"""Capacity schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class ScheduleAvailabilityRead(BaseModel):
    """Spots left on one schedule (or on a schedule-less offering)."""

    schedule_id: UUID | None
    start_at: datetime | None
    capacity: int
    available_spots: int


class AvailabilityRead(BaseModel):
    """Advisory availability view; enforcement happens on reserve."""

    offering_id: UUID
    sold_out: bool
    items: list[ScheduleAvailabilityRead]
    computed_at: datetime
