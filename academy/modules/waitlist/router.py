"""Waitlist API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status

from academy.modules.identity.service import get_current_user, get_optional_user
from academy.modules.waitlist.schemas import WaitlistEntryRead, WaitlistJoinRequest
from academy.modules.waitlist.service import WaitlistService, get_waitlist_service
from academy.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/waitlist", tags=["waitlist"])


@router.post("", response_model=WaitlistEntryRead, status_code=status.HTTP_201_CREATED)
async def join_waitlist(
    payload: WaitlistJoinRequest,
    service: WaitlistService = Depends(get_waitlist_service),
    current_user=Depends(get_optional_user),
) -> WaitlistEntryRead:
    """Join the waitlist of a sold-out offering."""
    entry = await service.join_waitlist(payload, current_user)
    return WaitlistEntryRead.model_validate(entry)


@router.get("/offerings/{offering_id}", response_model=Page[WaitlistEntryRead])
async def list_waitlist(
    offering_id: UUID,
    pagination=Depends(get_pagination_params),
    service: WaitlistService = Depends(get_waitlist_service),
    current_user=Depends(get_current_user),
) -> Page[WaitlistEntryRead]:
    """Waitlist in queue order."""
    items, total = await service.list_for_offering(offering_id, current_user, pagination.limit, pagination.offset)
    serialized = [WaitlistEntryRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)
