"""Capacity ledger repository layer."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.enums import OCCUPYING_STATUSES, ReservationStatusEnum
from academy.modules.catalog.models import Offering, OfferingSchedule
from academy.modules.reservations.models import Reservation, ReservationLine


@dataclass(frozen=True, slots=True)
class CapacityClaim:
    """Units one reservation line wants from one capacity row."""

    offering_id: UUID
    schedule_id: UUID | None
    capacity: int
    quantity: int

    @property
    def lock_key(self) -> UUID:
        return self.schedule_id or self.offering_id


@dataclass(frozen=True, slots=True)
class CapacityShortfall:
    offering_id: UUID
    schedule_id: UUID | None
    requested: int
    available: int


class CapacityRepository:
    """Seat accounting against reservation lines."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def _occupied_base() -> Select:
        return (
            select(func.coalesce(func.sum(ReservationLine.quantity), 0))
            .join(Reservation, ReservationLine.reservation_id == Reservation.id)
            .where(Reservation.status.in_(OCCUPYING_STATUSES))
        )

    async def count_occupied(self, offering_id: UUID, schedule_id: UUID | None) -> int:
        stmt = self._occupied_base().where(ReservationLine.offering_id == offering_id)
        if schedule_id is not None:
            stmt = stmt.where(Reservation.schedule_id == schedule_id)
        return int((await self.session.scalar(stmt)) or 0)

    async def count_occupied_by_schedule(self, offering_id: UUID) -> dict[UUID | None, int]:
        stmt = (
            select(Reservation.schedule_id, func.coalesce(func.sum(ReservationLine.quantity), 0))
            .join(Reservation, ReservationLine.reservation_id == Reservation.id)
            .where(
                ReservationLine.offering_id == offering_id,
                Reservation.status.in_(OCCUPYING_STATUSES),
            )
            .group_by(Reservation.schedule_id)
        )
        rows = (await self.session.execute(stmt)).all()
        return {schedule_id: int(total) for schedule_id, total in rows}

    async def _lock(self, claim: CapacityClaim) -> None:
        if claim.schedule_id is not None:
            stmt = select(OfferingSchedule.id).where(OfferingSchedule.id == claim.schedule_id).with_for_update()
        else:
            stmt = select(Offering.id).where(Offering.id == claim.offering_id).with_for_update()
        await self.session.execute(stmt)

    async def reserve_if_available(
        self,
        reservation: Reservation,
        claims: list[CapacityClaim],
    ) -> list[CapacityShortfall]:
        """Lock every capacity row, count occupied units and claim them in one transaction.

        Rows are locked in ascending key order so two multi-line orders
        touching the same products cannot deadlock. The locks are held until
        the surrounding transaction ends, so a concurrent call waits here and
        then counts this reservation as occupied. Nothing is claimed unless
        every line fits; the shortfalls are returned instead.
        """
        for claim in sorted(claims, key=lambda item: item.lock_key):
            await self._lock(claim)

        shortfalls: list[CapacityShortfall] = []
        for claim in claims:
            occupied = await self.count_occupied(claim.offering_id, claim.schedule_id)
            available = max(0, claim.capacity - occupied)
            if claim.quantity > available:
                shortfalls.append(
                    CapacityShortfall(
                        offering_id=claim.offering_id,
                        schedule_id=claim.schedule_id,
                        requested=claim.quantity,
                        available=available,
                    ),
                )
        if shortfalls:
            return shortfalls

        reservation.status = ReservationStatusEnum.PENDING_PAYMENT
        await self.session.flush()
        return []
