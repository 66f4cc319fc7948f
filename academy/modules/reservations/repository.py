"""Reservation repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from academy.core.enums import ReservationStatusEnum
from academy.modules.reservations.models import Reservation, ReservationLine


class ReservationRepository:
    """DB operations for reservations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_reservation(
        self,
        lines: list[tuple[UUID, int]] | None = None,
        **fields,
    ) -> Reservation:
        """Insert a reservation with its lines; without explicit lines the offering and quantity form one."""
        reservation = Reservation(**fields)
        for position, (offering_id, quantity) in enumerate(
            lines or [(reservation.offering_id, reservation.quantity)],
        ):
            reservation.lines.append(
                ReservationLine(offering_id=offering_id, quantity=quantity, position=position),
            )
        self.session.add(reservation)
        await self.session.flush()
        await self.session.refresh(reservation, attribute_names=["offering", "lines"])
        return reservation

    async def get_reservation_by_id(self, reservation_id: UUID) -> Reservation | None:
        stmt = select(Reservation).options(selectinload(Reservation.offering)).where(Reservation.id == reservation_id)
        return await self.session.scalar(stmt)

    async def get_reservation_for_update(self, reservation_id: UUID) -> Reservation | None:
        """Load and row-lock a reservation until the transaction ends."""
        stmt = (
            select(Reservation)
            .options(selectinload(Reservation.offering))
            .where(Reservation.id == reservation_id)
            .with_for_update()
        )
        return await self.session.scalar(stmt)

    async def get_by_payment_intent_id(self, intent_id: str) -> Reservation | None:
        stmt = (
            select(Reservation)
            .options(selectinload(Reservation.offering))
            .where(Reservation.payment_intent_id == intent_id)
            .with_for_update()
        )
        return await self.session.scalar(stmt)

    async def list_for_purchaser(
        self,
        purchaser_id: UUID,
        limit: int,
        offset: int,
    ) -> tuple[list[Reservation], int]:
        base_stmt: Select[tuple[Reservation]] = select(Reservation).where(Reservation.purchaser_id == purchaser_id)
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Reservation.created_at.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def find_abandoned(self, cutoff: datetime, limit: int) -> list[Reservation]:
        stmt = (
            select(Reservation)
            .options(selectinload(Reservation.offering))
            .where(
                Reservation.status.in_(
                    (ReservationStatusEnum.DRAFT, ReservationStatusEnum.PENDING_PAYMENT),
                ),
                Reservation.created_at <= cutoff,
            )
            .order_by(Reservation.created_at.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return (await self.session.scalars(stmt)).all()

    async def save(self, reservation: Reservation) -> Reservation:
        await self.session.flush()
        return reservation
