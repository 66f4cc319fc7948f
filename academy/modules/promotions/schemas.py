"""Promotions schemas."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from academy.core.enums import PromoRejectionEnum


class PromoValidateRequest(BaseModel):
    """Check a code against an offering and subtotal."""

    code: str = Field(min_length=1, max_length=64)
    offering_id: UUID
    subtotal: Decimal = Field(ge=0)


class PromoValidationRead(BaseModel):
    """Discount the code yields, or why it was rejected."""

    code: str
    valid: bool
    discount_amount: Decimal
    rejection: PromoRejectionEnum | None = None
