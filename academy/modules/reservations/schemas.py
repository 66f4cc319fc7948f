"""Reservation schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from academy.core.enums import PaymentOptionEnum, ReservationStatusEnum
from academy.modules.pricing.schemas import CartLineRequest, QuoteRead
from academy.modules.waitlist.schemas import WaitlistEntryRead


class PurchaserInfo(BaseModel):
    """Contact details; completeness is checked field by field in the service."""

    first_name: str | None = Field(default=None, max_length=128)
    last_name: str | None = Field(default=None, max_length=128)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=32)
    accepted_terms: bool = False
    password: str | None = Field(default=None, max_length=128)
    password_confirmation: str | None = Field(default=None, max_length=128)


class ReservationCreate(BaseModel):
    """Start a reservation in draft."""

    offering_id: UUID
    schedule_id: UUID | None = None
    quantity: int = 1
    payment_option: PaymentOptionEnum = PaymentOptionEnum.FULL
    promo_code: str | None = Field(default=None, max_length=64)
    create_account: bool = False
    purchaser: PurchaserInfo


class CartOrderCreate(BaseModel):
    """Start a multi-product store order in draft."""

    lines: list[CartLineRequest] = Field(min_length=1)
    promo_code: str | None = Field(default=None, max_length=64)
    create_account: bool = False
    purchaser: PurchaserInfo


class PaymentOptionChange(BaseModel):
    payment_option: PaymentOptionEnum


class PromoApply(BaseModel):
    code: str = Field(min_length=1, max_length=64)


class ScheduleChange(BaseModel):
    schedule_id: UUID


class ConfirmRequest(BaseModel):
    """Gateway intent the purchaser says they paid."""

    payment_reference: str = Field(min_length=1, max_length=128)
    purchaser: PurchaserInfo | None = None


class ConfirmFreeRequest(BaseModel):
    purchaser: PurchaserInfo | None = None


class ReservationCancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=512)


class ReservationLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    offering_id: UUID
    quantity: int
    unit_price: Decimal | None
    subtotal_amount: Decimal | None
    discount_amount: Decimal | None
    tax_amount: Decimal | None
    total_amount: Decimal | None


class ReservationRead(BaseModel):
    """Reservation response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    offering_id: UUID
    schedule_id: UUID | None
    purchaser_id: UUID | None
    first_name: str
    last_name: str
    email: str
    phone: str | None
    quantity: int
    status: ReservationStatusEnum
    payment_option: PaymentOptionEnum
    currency: str
    amount_due: Decimal | None
    subtotal_amount: Decimal | None
    discount_amount: Decimal | None
    tax_amount: Decimal | None
    tax_included: bool
    promo_code: str | None
    payment_intent_id: str | None
    confirmed_at: datetime | None
    cancelled_at: datetime | None
    cancellation_reason: str | None
    created_at: datetime
    updated_at: datetime
    lines: list[ReservationLineRead] = Field(default_factory=list)


class ReservationDraftRead(ReservationRead):
    """Draft response; carries a bearer token when checkout created the account."""

    access_token: str | None = None


class CheckoutRead(BaseModel):
    """Result of reserving or re-quoting: what to pay and how."""

    reservation: ReservationRead
    quote: QuoteRead | None = None
    client_secret: str | None = None
    free_settlement: bool = False
    waitlist_entry: WaitlistEntryRead | None = None


class ExpireResultRead(BaseModel):
    expired: int
    confirmed: int
    skipped: int
