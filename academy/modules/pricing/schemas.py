"""Pricing schemas."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from academy.core.enums import PaymentOptionEnum


class QuoteRequest(BaseModel):
    """Price preview for one offering."""

    offering_id: UUID
    schedule_id: UUID | None = None
    payment_option: PaymentOptionEnum = PaymentOptionEnum.FULL
    quantity: int = Field(default=1, ge=1)
    promo_code: str | None = Field(default=None, max_length=64)


class QuoteRead(BaseModel):
    """Quote response schema."""

    model_config = ConfigDict(from_attributes=True)

    subtotal: Decimal
    discount_amount: Decimal
    tax: Decimal
    total: Decimal
    tax_included: bool
    free_settlement: bool
    currency: str
    payment_option: PaymentOptionEnum
    promo_code: str | None


class CartLineRequest(BaseModel):
    offering_id: UUID
    quantity: int = Field(default=1, ge=1)


class CartQuoteRequest(BaseModel):
    """Store cart to price."""

    lines: list[CartLineRequest] = Field(min_length=1)
    promo_code: str | None = Field(default=None, max_length=64)


class CartLineQuoteRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    offering_id: UUID
    title: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    tax: Decimal
    total: Decimal


class CartQuoteRead(BaseModel):
    """Cart quote response schema."""

    model_config = ConfigDict(from_attributes=True)

    lines: list[CartLineQuoteRead]
    subtotal: Decimal
    discount_amount: Decimal
    tax: Decimal
    total: Decimal
    tax_included: bool
    currency: str
    promo_code: str | None
