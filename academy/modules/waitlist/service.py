"""Waitlist fallback for sold-out offerings."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.database import get_db_session
from academy.core.enums import RoleEnum
from academy.modules.audit.repository import AuditRepository
from academy.modules.capacity.service import CapacityService, build_capacity_service
from academy.modules.catalog.models import Offering
from academy.modules.catalog.repository import CatalogRepository
from academy.modules.identity.models import User
from academy.modules.identity.validation import validate_purchaser
from academy.modules.reservations.models import Reservation
from academy.modules.waitlist.models import WaitlistEntry
from academy.modules.waitlist.repository import WaitlistRepository
from academy.modules.waitlist.schemas import WaitlistJoinRequest
from academy.shared.exceptions import BusinessRuleException, NotFoundException, UnauthorizedException


class WaitlistService:
    """Waitlist domain service."""

    def __init__(
        self,
        repository: WaitlistRepository,
        catalog_repository: CatalogRepository,
        capacity_service: CapacityService,
        audit_repository: AuditRepository,
    ) -> None:
        self.repository = repository
        self.catalog_repository = catalog_repository
        self.capacity_service = capacity_service
        self.audit_repository = audit_repository

    async def _next_position(self, offering_id: UUID) -> int:
        return await self.repository.next_position(offering_id)

    async def join_waitlist(self, payload: WaitlistJoinRequest, actor: User | None) -> WaitlistEntry:
        """Add purchaser to the waitlist; only allowed once the offering is sold out."""
        details = validate_purchaser(
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            phone=payload.phone,
            require_phone=False,
        )

        offering = await self.catalog_repository.get_offering_by_id(payload.offering_id)
        if offering is None or not offering.is_published:
            raise NotFoundException("Offering not found")
        if payload.schedule_id is not None:
            schedule = await self.catalog_repository.get_schedule_by_id(payload.schedule_id)
            if schedule is None or schedule.offering_id != offering.id:
                raise NotFoundException("Schedule not found")

        if not await self.capacity_service.is_sold_out(offering):
            raise BusinessRuleException("Spots are still available; reserve one instead of joining the waitlist")

        entry = await self.repository.create_entry(
            offering_id=offering.id,
            schedule_id=payload.schedule_id,
            reservation_id=None,
            first_name=details.first_name,
            last_name=details.last_name,
            email=details.email,
            phone=details.phone,
            notes=payload.notes,
            position=await self._next_position(offering.id),
        )
        await self.audit_repository.create_outbox_event(
            aggregate_type="waitlist",
            aggregate_id=str(entry.id),
            event_type="waitlist.joined",
            payload={
                "entry_id": str(entry.id),
                "offering_id": str(offering.id),
                "offering_title": offering.title,
                "email": entry.email,
                "first_name": entry.first_name,
                "position": entry.position,
                "user_id": str(actor.id) if actor else None,
            },
        )
        return entry

    async def add_for_reservation(self, reservation: Reservation, offering: Offering) -> WaitlistEntry:
        """Waitlist entry for a reservation that hit a sold-out offering."""
        existing = await self.repository.get_by_reservation_id(reservation.id)
        if existing is not None:
            return existing
        return await self.repository.create_entry(
            offering_id=offering.id,
            schedule_id=reservation.schedule_id,
            reservation_id=reservation.id,
            first_name=reservation.first_name,
            last_name=reservation.last_name,
            email=reservation.email,
            phone=reservation.phone,
            notes=None,
            position=await self._next_position(offering.id),
        )

    async def list_for_offering(
        self,
        offering_id: UUID,
        actor: User,
        limit: int,
        offset: int,
    ) -> tuple[list[WaitlistEntry], int]:
        """List waitlist in queue order (admin and instructor)."""
        if actor.role.name not in (RoleEnum.ADMIN, RoleEnum.INSTRUCTOR):
            raise UnauthorizedException("Only staff can view waitlists")
        return await self.repository.list_for_offering(offering_id, limit, offset)


def build_waitlist_service(session: AsyncSession, capacity_service: CapacityService | None = None) -> WaitlistService:
    return WaitlistService(
        repository=WaitlistRepository(session),
        catalog_repository=CatalogRepository(session),
        capacity_service=capacity_service or build_capacity_service(session),
        audit_repository=AuditRepository(session),
    )


async def get_waitlist_service(session: AsyncSession = Depends(get_db_session)) -> WaitlistService:
    """Dependency provider for waitlist service."""
    return build_waitlist_service(session)
