"""Payments API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from academy.modules.payments.schemas import GatewayNotification, GatewayNotificationAck
from academy.modules.reservations.service import ReservationService, get_reservation_service

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/notifications", response_model=GatewayNotificationAck)
async def receive_gateway_notification(
    payload: GatewayNotification,
    service: ReservationService = Depends(get_reservation_service),
) -> GatewayNotificationAck:
    """Gateway webhook. The intent is re-read from the gateway before anything is settled."""
    reservation = await service.handle_gateway_notification(payload.data.object.id)
    return GatewayNotificationAck(reservation_id=reservation.id if reservation is not None else None)
