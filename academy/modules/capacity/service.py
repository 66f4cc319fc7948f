"""Capacity ledger: the single seat-counting formula and atomic reservation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.cache import CacheBackend, get_cache_backend
from academy.core.config import get_settings
from academy.core.database import get_db_session
from academy.core.enums import OfferingKindEnum, ReserveOutcomeEnum
from academy.modules.capacity.repository import CapacityClaim, CapacityRepository, CapacityShortfall
from academy.modules.capacity.schemas import AvailabilityRead, ScheduleAvailabilityRead
from academy.modules.catalog.adapters import OfferingTerms
from academy.modules.catalog.models import Offering
from academy.modules.catalog.repository import CatalogRepository
from academy.modules.reservations.models import Reservation
from academy.shared.exceptions import NotFoundException
from academy.shared.utils import utc_now

settings = get_settings()
logger = logging.getLogger(__name__)


def compute_available_spots(capacity: int, occupied: int) -> int:
    """Spots left, clamped to [0, capacity]."""
    capacity = max(0, capacity)
    return max(0, min(capacity, capacity - occupied))


@dataclass(frozen=True, slots=True)
class ReserveResult:
    outcome: ReserveOutcomeEnum
    offering_id: UUID
    schedule_id: UUID | None
    shortfalls: tuple[CapacityShortfall, ...] = ()

    @property
    def reserved(self) -> bool:
        return self.outcome == ReserveOutcomeEnum.RESERVED


class CapacityService:
    """Capacity ledger service."""

    def __init__(
        self,
        repository: CapacityRepository,
        catalog_repository: CatalogRepository,
        cache: CacheBackend | None = None,
    ) -> None:
        self.repository = repository
        self.catalog_repository = catalog_repository
        self.cache = cache

    @staticmethod
    def _cache_key(offering_id: UUID) -> str:
        return f"offering:{offering_id}"

    async def try_reserve(self, reservation: Reservation, terms: OfferingTerms) -> ReserveResult:
        """Move a draft to pending_payment if its quantity still fits, atomically."""
        return await self.try_reserve_lines(reservation, [(terms, reservation.quantity)])

    async def try_reserve_lines(
        self,
        reservation: Reservation,
        lines: list[tuple[OfferingTerms, int]],
    ) -> ReserveResult:
        """Claim every line of a reservation at once, or none of them."""
        claims = [
            CapacityClaim(
                offering_id=terms.offering_id,
                schedule_id=terms.schedule_id,
                capacity=terms.capacity,
                quantity=quantity,
            )
            for terms, quantity in lines
        ]
        shortfalls = await self.repository.reserve_if_available(reservation, claims)
        first = claims[0]
        if not shortfalls:
            for claim in claims:
                await self.invalidate(claim.offering_id)
            return ReserveResult(
                outcome=ReserveOutcomeEnum.RESERVED,
                offering_id=first.offering_id,
                schedule_id=first.schedule_id,
            )

        for shortfall in shortfalls:
            logger.info(
                "Not enough capacity: offering=%s schedule=%s requested=%s available=%s reservation=%s",
                shortfall.offering_id,
                shortfall.schedule_id,
                shortfall.requested,
                shortfall.available,
                reservation.id,
            )
        return ReserveResult(
            outcome=ReserveOutcomeEnum.SOLD_OUT,
            offering_id=first.offering_id,
            schedule_id=first.schedule_id,
            shortfalls=tuple(shortfalls),
        )

    async def release(self, reservation: Reservation) -> None:
        """Refresh availability after a reservation stopped occupying capacity."""
        await self.invalidate_lines(reservation)

    async def invalidate_lines(self, reservation: Reservation) -> None:
        for line in reservation.lines:
            await self.invalidate(line.offering_id)

    async def available_spots(self, offering_id: UUID, schedule_id: UUID | None, capacity: int) -> int:
        """Authoritative spots left for one schedule or schedule-less offering."""
        occupied = await self.repository.count_occupied(offering_id, schedule_id)
        return compute_available_spots(capacity, occupied)

    async def build_availability(self, offering: Offering) -> AvailabilityRead:
        """Compute spots left for every active schedule of an offering."""
        occupied = await self.repository.count_occupied_by_schedule(offering.id)
        items: list[ScheduleAvailabilityRead] = []
        if offering.kind == OfferingKindEnum.COURSE:
            for schedule in await self.catalog_repository.list_active_schedules(offering.id):
                items.append(
                    ScheduleAvailabilityRead(
                        schedule_id=schedule.id,
                        start_at=schedule.start_at,
                        capacity=schedule.capacity,
                        available_spots=compute_available_spots(
                            schedule.capacity,
                            occupied.get(schedule.id, 0),
                        ),
                    ),
                )
        else:
            items.append(
                ScheduleAvailabilityRead(
                    schedule_id=None,
                    start_at=None,
                    capacity=offering.capacity,
                    available_spots=compute_available_spots(offering.capacity, sum(occupied.values())),
                ),
            )
        return AvailabilityRead(
            offering_id=offering.id,
            sold_out=all(item.available_spots == 0 for item in items),
            items=items,
            computed_at=utc_now(),
        )

    async def is_sold_out(self, offering: Offering) -> bool:
        """True when every non-cancelled schedule (or the offering itself) has no spots."""
        availability = await self.build_availability(offering)
        return availability.sold_out

    async def get_availability(self, offering_id: UUID) -> AvailabilityRead:
        """Cached availability view for display."""
        key = self._cache_key(offering_id)
        if self.cache is not None:
            cached = await self.cache.get(key)
            if cached is not None:
                return AvailabilityRead.model_validate_json(cached)

        offering = await self.catalog_repository.get_offering_by_id(offering_id)
        if offering is None or not offering.is_published:
            raise NotFoundException("Offering not found")

        availability = await self.build_availability(offering)
        if self.cache is not None:
            await self.cache.set(
                key,
                availability.model_dump_json(),
                ttl_seconds=settings.availability_cache_ttl_seconds,
            )
        return availability

    async def invalidate(self, offering_id: UUID) -> None:
        if self.cache is not None:
            await self.cache.delete(self._cache_key(offering_id))


def build_capacity_service(session: AsyncSession) -> CapacityService:
    return CapacityService(
        repository=CapacityRepository(session),
        catalog_repository=CatalogRepository(session),
        cache=get_cache_backend(),
    )


async def get_capacity_service(session: AsyncSession = Depends(get_db_session)) -> CapacityService:
    """Dependency provider for capacity service."""
    return build_capacity_service(session)
