"""Promotions repository layer."""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from academy.modules.promotions.models import PromoCode


class PromotionsRepository:
    """DB operations for promo codes."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_code(self, code: str) -> PromoCode | None:
        stmt = select(PromoCode).where(PromoCode.code == code)
        return await self.session.scalar(stmt)

    async def increment_use_count(self, code: str) -> None:
        stmt = update(PromoCode).where(PromoCode.code == code).values(use_count=PromoCode.use_count + 1)
        await self.session.execute(stmt)
        await self.session.flush()
