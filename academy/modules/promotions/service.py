"""Promotions business logic layer."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.database import get_db_session
from academy.core.enums import DiscountTypeEnum, PromoRejectionEnum
from academy.modules.promotions.models import PromoCode
from academy.modules.promotions.repository import PromotionsRepository
from academy.shared.money import ZERO, quantize_money
from academy.shared.utils import ensure_utc, normalize_code, utc_now


@dataclass(frozen=True, slots=True)
class PromoValidation:
    code: str
    discount_amount: Decimal
    rejection: PromoRejectionEnum | None = None

    @property
    def is_valid(self) -> bool:
        return self.rejection is None


def compute_discount(promo: PromoCode, subtotal: Decimal) -> Decimal:
    """Discount for subtotal, never more than the subtotal itself."""
    subtotal = quantize_money(subtotal)
    if promo.discount_type == DiscountTypeEnum.PERCENT:
        discount = quantize_money(subtotal * Decimal(promo.value) / Decimal(100))
    else:
        discount = quantize_money(promo.value)
    return max(ZERO, min(discount, subtotal))


class PromotionsService:
    """Discount/promo code validation."""

    def __init__(self, repository: PromotionsRepository) -> None:
        self.repository = repository

    def _rejection(
        self,
        promo: PromoCode | None,
        offering_ids: Sequence[UUID],
        subtotal: Decimal,
    ) -> PromoRejectionEnum | None:
        now = utc_now()
        if promo is None or not promo.is_active:
            return PromoRejectionEnum.NOT_FOUND
        if promo.starts_at is not None and ensure_utc(promo.starts_at) > now:
            return PromoRejectionEnum.NOT_YET_ACTIVE
        if promo.ends_at is not None and ensure_utc(promo.ends_at) <= now:
            return PromoRejectionEnum.EXPIRED
        if promo.offering_ids:
            allowed = {str(item) for item in promo.offering_ids}
            if any(str(offering_id) not in allowed for offering_id in offering_ids):
                return PromoRejectionEnum.NOT_APPLICABLE_TO_OFFERING
        if promo.max_total_uses is not None and promo.use_count >= promo.max_total_uses:
            return PromoRejectionEnum.USAGE_LIMIT_REACHED
        if promo.min_subtotal is not None and subtotal < promo.min_subtotal:
            return PromoRejectionEnum.MIN_SUBTOTAL_NOT_MET
        return None

    async def validate_for_offerings(
        self,
        code: str,
        offering_ids: Sequence[UUID],
        subtotal: Decimal,
    ) -> PromoValidation:
        """Validate one code against every offering of a cart."""
        normalized = normalize_code(code)
        promo = await self.repository.get_by_code(normalized)
        rejection = self._rejection(promo, offering_ids, subtotal)
        if rejection is not None:
            return PromoValidation(code=normalized, discount_amount=ZERO, rejection=rejection)
        return PromoValidation(code=normalized, discount_amount=compute_discount(promo, subtotal))

    async def validate_code(self, code: str, offering_id: UUID, subtotal: Decimal) -> PromoValidation:
        """Return the discount for subtotal or the reason the code does not apply."""
        return await self.validate_for_offerings(code, [offering_id], subtotal)

    async def record_redemption(self, code: str) -> None:
        """Count one confirmed use of a code."""
        await self.repository.increment_use_count(normalize_code(code))


def build_promotions_service(session: AsyncSession) -> PromotionsService:
    return PromotionsService(PromotionsRepository(session))


async def get_promotions_service(session: AsyncSession = Depends(get_db_session)) -> PromotionsService:
    """Dependency provider for promotions service."""
    return build_promotions_service(session)
