"""Pricing API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from academy.modules.pricing.schemas import CartQuoteRead, CartQuoteRequest, QuoteRead, QuoteRequest
from academy.modules.pricing.service import CartLine, PriceQuoter, get_price_quoter

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.post("/quote", response_model=QuoteRead)
async def quote(
    payload: QuoteRequest,
    quoter: PriceQuoter = Depends(get_price_quoter),
) -> QuoteRead:
    """Price one offering without reserving anything."""
    result = await quoter.quote_offering(
        payload.offering_id,
        payload.schedule_id,
        payload.payment_option,
        payload.quantity,
        payload.promo_code,
    )
    return QuoteRead.model_validate(result)


@router.post("/quote-cart", response_model=CartQuoteRead)
async def quote_cart(
    payload: CartQuoteRequest,
    quoter: PriceQuoter = Depends(get_price_quoter),
) -> CartQuoteRead:
    """Price a store cart at current server-side prices."""
    lines = [CartLine(offering_id=item.offering_id, quantity=item.quantity) for item in payload.lines]
    result = await quoter.quote_cart(lines, payload.promo_code)
    return CartQuoteRead.model_validate(result)
