"""Catalog business logic layer."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.database import get_db_session
from academy.core.enums import OfferingKindEnum
from academy.modules.catalog.adapters import OfferingTerms, effective_unit_price, get_offering_adapter
from academy.modules.catalog.models import Offering, OfferingSchedule
from academy.modules.catalog.repository import CatalogRepository
from academy.modules.catalog.schemas import OfferingDetailRead, OfferingRead, ScheduleRead
from academy.shared.exceptions import NotFoundException
from academy.shared.utils import utc_now


class CatalogService:
    """Read side of the offering store."""

    def __init__(self, repository: CatalogRepository) -> None:
        self.repository = repository

    async def get_published_offering(self, offering_id: UUID) -> Offering:
        offering = await self.repository.get_offering_by_id(offering_id)
        if offering is None or not offering.is_published:
            raise NotFoundException("Offering not found")
        return offering

    async def load_terms(
        self,
        offering_id: UUID,
        schedule_id: UUID | None,
    ) -> tuple[Offering, OfferingSchedule | None, OfferingTerms]:
        """Load offering and schedule and resolve them through the kind adapter."""
        offering = await self.get_published_offering(offering_id)
        schedule = None
        if schedule_id is not None:
            schedule = await self.repository.get_schedule_by_id(schedule_id)
            if schedule is None:
                raise NotFoundException("Schedule not found")
        terms = get_offering_adapter(offering.kind).resolve_terms(offering, schedule, utc_now())
        return offering, schedule, terms

    async def list_offerings(
        self,
        kind: OfferingKindEnum | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Offering], int]:
        return await self.repository.list_offerings(kind, limit, offset)

    async def get_offering_detail(self, offering_id: UUID) -> OfferingDetailRead:
        offering = await self.get_published_offering(offering_id)
        schedules = await self.repository.list_active_schedules(offering.id)
        summary = OfferingRead.model_validate(offering)
        return OfferingDetailRead(
            **summary.model_dump(),
            current_price=effective_unit_price(offering, utc_now()),
            schedules=[ScheduleRead.model_validate(item) for item in schedules],
        )


async def get_catalog_service(session: AsyncSession = Depends(get_db_session)) -> CatalogService:
    """Dependency provider for catalog service."""
    return CatalogService(CatalogRepository(session))
