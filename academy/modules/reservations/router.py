"""Reservations API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status

from academy.core.security import create_access_token
from academy.modules.identity.models import User
from academy.modules.identity.service import get_current_user, get_optional_user
from academy.modules.pricing.schemas import QuoteRead
from academy.modules.reservations.models import Reservation
from academy.modules.reservations.schemas import (
    CartOrderCreate,
    CheckoutRead,
    ConfirmFreeRequest,
    ConfirmRequest,
    ExpireResultRead,
    PaymentOptionChange,
    PromoApply,
    ReservationCancelRequest,
    ReservationCreate,
    ReservationDraftRead,
    ReservationRead,
    ScheduleChange,
)
from academy.modules.reservations.service import CheckoutResult, ReservationService, get_reservation_service
from academy.modules.waitlist.schemas import WaitlistEntryRead
from academy.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/reservations", tags=["reservations"])


def _checkout_read(result: CheckoutResult) -> CheckoutRead:
    return CheckoutRead(
        reservation=ReservationRead.model_validate(result.reservation),
        quote=QuoteRead.model_validate(result.quote) if result.quote is not None else None,
        client_secret=result.client_secret,
        free_settlement=result.free_settlement,
        waitlist_entry=(
            WaitlistEntryRead.model_validate(result.waitlist_entry) if result.waitlist_entry is not None else None
        ),
    )


def _draft_read(reservation: Reservation, current_user: User | None) -> ReservationDraftRead:
    read = ReservationDraftRead.model_validate(reservation)
    if current_user is None and reservation.purchaser_id is not None:
        # Checkout just created this account.
        read.access_token = create_access_token(str(reservation.purchaser_id))
    return read


@router.post("", response_model=ReservationDraftRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    service: ReservationService = Depends(get_reservation_service),
    current_user=Depends(get_optional_user),
) -> ReservationDraftRead:
    """Create reservation in DRAFT state."""
    reservation = await service.create_draft(payload, current_user)
    return _draft_read(reservation, current_user)


@router.post("/store-orders", response_model=ReservationDraftRead, status_code=status.HTTP_201_CREATED)
async def create_store_order(
    payload: CartOrderCreate,
    service: ReservationService = Depends(get_reservation_service),
    current_user=Depends(get_optional_user),
) -> ReservationDraftRead:
    """Create a multi-product store order in DRAFT state."""
    reservation = await service.create_store_order(payload, current_user)
    return _draft_read(reservation, current_user)


@router.get("/my", response_model=Page[ReservationRead])
async def list_my_reservations(
    pagination=Depends(get_pagination_params),
    service: ReservationService = Depends(get_reservation_service),
    current_user=Depends(get_current_user),
) -> Page[ReservationRead]:
    """List reservations for current user."""
    items, total = await service.list_my_reservations(current_user, pagination.limit, pagination.offset)
    serialized = [ReservationRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.post("/expire", response_model=ExpireResultRead)
async def expire_abandoned_reservations(
    service: ReservationService = Depends(get_reservation_service),
    current_user=Depends(get_current_user),
) -> ExpireResultRead:
    """Expire abandoned drafts and unpaid reservations (admin task endpoint)."""
    result = await service.expire_abandoned(current_user)
    return ExpireResultRead(expired=result.expired, confirmed=result.confirmed, skipped=result.skipped)


@router.get("/{reservation_id}", response_model=ReservationRead)
async def get_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    current_user=Depends(get_optional_user),
) -> ReservationRead:
    reservation = await service.get_reservation(reservation_id, current_user)
    return ReservationRead.model_validate(reservation)


@router.post("/{reservation_id}/reserve", response_model=CheckoutRead)
async def reserve(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    current_user=Depends(get_optional_user),
) -> CheckoutRead:
    """Hold capacity and open payment, or fall back to the waitlist."""
    result = await service.quote_and_reserve(reservation_id, current_user)
    return _checkout_read(result)


@router.post("/{reservation_id}/payment-option", response_model=CheckoutRead)
async def change_payment_option(
    reservation_id: UUID,
    payload: PaymentOptionChange,
    service: ReservationService = Depends(get_reservation_service),
    current_user=Depends(get_optional_user),
) -> CheckoutRead:
    result = await service.change_payment_option(reservation_id, payload.payment_option, current_user)
    return _checkout_read(result)


@router.post("/{reservation_id}/promo", response_model=CheckoutRead)
async def apply_promo(
    reservation_id: UUID,
    payload: PromoApply,
    service: ReservationService = Depends(get_reservation_service),
    current_user=Depends(get_optional_user),
) -> CheckoutRead:
    result = await service.apply_promo(reservation_id, payload.code, current_user)
    return _checkout_read(result)


@router.delete("/{reservation_id}/promo", response_model=CheckoutRead)
async def remove_promo(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    current_user=Depends(get_optional_user),
) -> CheckoutRead:
    result = await service.remove_promo(reservation_id, current_user)
    return _checkout_read(result)


@router.post("/{reservation_id}/schedule", response_model=CheckoutRead)
async def change_schedule(
    reservation_id: UUID,
    payload: ScheduleChange,
    service: ReservationService = Depends(get_reservation_service),
    current_user=Depends(get_optional_user),
) -> CheckoutRead:
    """Move a draft to another course date."""
    result = await service.change_schedule(reservation_id, payload.schedule_id, current_user)
    return _checkout_read(result)


@router.post("/{reservation_id}/confirm", response_model=ReservationRead)
async def confirm_reservation(
    reservation_id: UUID,
    payload: ConfirmRequest,
    service: ReservationService = Depends(get_reservation_service),
    current_user=Depends(get_optional_user),
) -> ReservationRead:
    """Confirm from PENDING_PAYMENT after the gateway reports success."""
    reservation = await service.confirm(reservation_id, payload.payment_reference, payload.purchaser, current_user)
    return ReservationRead.model_validate(reservation)


@router.post("/{reservation_id}/confirm-free", response_model=ReservationRead)
async def confirm_free_reservation(
    reservation_id: UUID,
    payload: ConfirmFreeRequest,
    service: ReservationService = Depends(get_reservation_service),
    current_user=Depends(get_optional_user),
) -> ReservationRead:
    """Confirm a zero-total reservation without payment."""
    reservation = await service.confirm_free(reservation_id, payload.purchaser, current_user)
    return ReservationRead.model_validate(reservation)


@router.post("/{reservation_id}/cancel", response_model=ReservationRead)
async def cancel_reservation(
    reservation_id: UUID,
    payload: ReservationCancelRequest,
    service: ReservationService = Depends(get_reservation_service),
    current_user=Depends(get_optional_user),
) -> ReservationRead:
    reservation = await service.cancel(reservation_id, payload.reason, current_user)
    return ReservationRead.model_validate(reservation)
