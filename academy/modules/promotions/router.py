"""Promotions API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from academy.modules.promotions.schemas import PromoValidateRequest, PromoValidationRead
from academy.modules.promotions.service import PromotionsService, get_promotions_service

router = APIRouter(prefix="/promotions", tags=["promotions"])


@router.post("/validate", response_model=PromoValidationRead)
async def validate_code(
    payload: PromoValidateRequest,
    service: PromotionsService = Depends(get_promotions_service),
) -> PromoValidationRead:
    """Preview the discount a code gives for an offering."""
    result = await service.validate_code(payload.code, payload.offering_id, payload.subtotal)
    return PromoValidationRead(
        code=result.code,
        valid=result.is_valid,
        discount_amount=result.discount_amount,
        rejection=result.rejection,
    )
