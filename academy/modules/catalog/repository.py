"""Catalog repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from academy.core.enums import OfferingKindEnum, ScheduleStatusEnum
from academy.modules.catalog.models import Offering, OfferingSchedule


class CatalogRepository:
    """DB operations for offerings and their schedules."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_offering_by_id(self, offering_id: UUID) -> Offering | None:
        stmt = select(Offering).options(selectinload(Offering.schedules)).where(Offering.id == offering_id)
        return await self.session.scalar(stmt)

    async def get_offerings_by_ids(self, offering_ids: list[UUID]) -> dict[UUID, Offering]:
        if not offering_ids:
            return {}
        stmt = select(Offering).where(Offering.id.in_(offering_ids))
        items = (await self.session.scalars(stmt)).all()
        return {item.id: item for item in items}

    async def get_schedule_by_id(self, schedule_id: UUID) -> OfferingSchedule | None:
        stmt = select(OfferingSchedule).where(OfferingSchedule.id == schedule_id)
        return await self.session.scalar(stmt)

    async def list_active_schedules(self, offering_id: UUID) -> list[OfferingSchedule]:
        stmt = (
            select(OfferingSchedule)
            .where(
                OfferingSchedule.offering_id == offering_id,
                OfferingSchedule.status != ScheduleStatusEnum.CANCELLED,
            )
            .order_by(OfferingSchedule.start_at.asc())
        )
        return (await self.session.scalars(stmt)).all()

    async def list_offerings(
        self,
        kind: OfferingKindEnum | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Offering], int]:
        base_stmt: Select[tuple[Offering]] = select(Offering).where(Offering.is_published.is_(True))
        if kind is not None:
            base_stmt = base_stmt.where(Offering.kind == kind)

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Offering.title.asc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total
