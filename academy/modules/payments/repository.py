"""Payments repository layer."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.enums import PaymentStatusEnum
from academy.modules.payments.models import Payment


class PaymentsRepository:
    """DB operations for settled payments."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_payment(
        self,
        reservation_id: UUID,
        amount: Decimal,
        currency: str,
        external_reference: str,
        paid_at: datetime,
    ) -> Payment:
        payment = Payment(
            reservation_id=reservation_id,
            amount=amount,
            currency=currency,
            status=PaymentStatusEnum.SUCCEEDED,
            external_reference=external_reference,
            paid_at=paid_at,
        )
        self.session.add(payment)
        await self.session.flush()
        return payment

    async def get_by_external_reference(self, external_reference: str) -> Payment | None:
        stmt = select(Payment).where(Payment.external_reference == external_reference)
        return await self.session.scalar(stmt)

    async def list_for_reservation(self, reservation_id: UUID) -> list[Payment]:
        stmt = select(Payment).where(Payment.reservation_id == reservation_id).order_by(Payment.paid_at.asc())
        return (await self.session.scalars(stmt)).all()
