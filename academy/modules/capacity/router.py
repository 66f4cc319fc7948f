"""Capacity API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from academy.modules.capacity.schemas import AvailabilityRead
from academy.modules.capacity.service import CapacityService, get_capacity_service

router = APIRouter(prefix="/capacity", tags=["capacity"])


@router.get("/offerings/{offering_id}/availability", response_model=AvailabilityRead)
async def get_availability(
    offering_id: UUID,
    service: CapacityService = Depends(get_capacity_service),
) -> AvailabilityRead:
    """Spots left per schedule. Advisory only; reserving re-checks atomically."""
    return await service.get_availability(offering_id)
