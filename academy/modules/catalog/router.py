"""Catalog API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from academy.core.enums import OfferingKindEnum
from academy.modules.catalog.schemas import OfferingDetailRead, OfferingRead
from academy.modules.catalog.service import CatalogService, get_catalog_service
from academy.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/offerings", response_model=Page[OfferingRead])
async def list_offerings(
    kind: OfferingKindEnum | None = None,
    pagination=Depends(get_pagination_params),
    service: CatalogService = Depends(get_catalog_service),
) -> Page[OfferingRead]:
    """List published offerings."""
    items, total = await service.list_offerings(kind, pagination.limit, pagination.offset)
    serialized = [OfferingRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/offerings/{offering_id}", response_model=OfferingDetailRead)
async def get_offering(
    offering_id: UUID,
    service: CatalogService = Depends(get_catalog_service),
) -> OfferingDetailRead:
    """Offering detail with active schedules."""
    return await service.get_offering_detail(offering_id)
