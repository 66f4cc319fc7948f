"""Notifications API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from academy.modules.identity.service import get_current_user
from academy.modules.notifications.schemas import NotificationDeliveryMetricsRead, NotificationRead
from academy.modules.notifications.service import NotificationsService, get_notifications_service
from academy.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/my", response_model=Page[NotificationRead])
async def list_my_notifications(
    pagination=Depends(get_pagination_params),
    service: NotificationsService = Depends(get_notifications_service),
    current_user=Depends(get_current_user),
) -> Page[NotificationRead]:
    """List notifications for current user."""
    items, total = await service.list_my_notifications(current_user, pagination.limit, pagination.offset)
    serialized = [NotificationRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/delivery/metrics", response_model=NotificationDeliveryMetricsRead)
async def get_delivery_metrics(
    service: NotificationsService = Depends(get_notifications_service),
    current_user=Depends(get_current_user),
) -> NotificationDeliveryMetricsRead:
    """Return delivery observability metrics."""
    return await service.get_delivery_metrics(current_user)
