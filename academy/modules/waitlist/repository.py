"""Waitlist repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.enums import WaitlistStatusEnum
from academy.modules.catalog.models import Offering
from academy.modules.waitlist.models import WaitlistEntry


class WaitlistRepository:
    """DB operations for waitlist entries."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def next_position(self, offering_id: UUID) -> int:
        """Next queue position for an offering.

        The offering row stays locked until the transaction ends, so two
        joins for the same offering are numbered one after the other.
        """
        await self.session.execute(select(Offering.id).where(Offering.id == offering_id).with_for_update())
        stmt = select(func.coalesce(func.max(WaitlistEntry.position), 0)).where(WaitlistEntry.offering_id == offering_id)
        return int((await self.session.scalar(stmt)) or 0) + 1

    async def create_entry(
        self,
        *,
        offering_id: UUID,
        schedule_id: UUID | None,
        reservation_id: UUID | None,
        first_name: str,
        last_name: str,
        email: str,
        phone: str | None,
        notes: str | None,
        position: int,
    ) -> WaitlistEntry:
        entry = WaitlistEntry(
            offering_id=offering_id,
            schedule_id=schedule_id,
            reservation_id=reservation_id,
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
            notes=notes,
            position=position,
            status=WaitlistStatusEnum.WAITING,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def get_by_reservation_id(self, reservation_id: UUID) -> WaitlistEntry | None:
        stmt = select(WaitlistEntry).where(WaitlistEntry.reservation_id == reservation_id)
        return await self.session.scalar(stmt)

    async def list_for_offering(
        self,
        offering_id: UUID,
        limit: int,
        offset: int,
    ) -> tuple[list[WaitlistEntry], int]:
        base_stmt: Select[tuple[WaitlistEntry]] = select(WaitlistEntry).where(
            WaitlistEntry.offering_id == offering_id,
        )
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(WaitlistEntry.position.asc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total
