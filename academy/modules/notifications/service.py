"""Notifications business logic layer."""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.config import get_settings
from academy.core.database import get_db_session
from academy.core.enums import NotificationStatusEnum, OutboxStatusEnum, RoleEnum
from academy.modules.audit.repository import AuditRepository
from academy.modules.identity.models import User
from academy.modules.notifications.models import Notification
from academy.modules.notifications.repository import NotificationsRepository
from academy.modules.notifications.schemas import NotificationDeliveryMetricsRead
from academy.shared.exceptions import UnauthorizedException

CONFIRMATION_EVENT = "reservation.confirmed"


class NotificationsService:
    """Notifications domain service."""

    def __init__(
        self,
        repository: NotificationsRepository,
        audit_repository: AuditRepository,
    ) -> None:
        self.repository = repository
        self.audit_repository = audit_repository

    async def list_my_notifications(self, actor: User, limit: int, offset: int) -> tuple[list[Notification], int]:
        """List notifications sent to the current user or their email."""
        return await self.repository.list_for_recipient(actor.id, actor.email, limit, offset)

    async def get_delivery_metrics(self, actor: User) -> NotificationDeliveryMetricsRead:
        """Pipeline counts with dead letters split by event type (admin only).

        A dead-lettered ``reservation.confirmed`` event is a paid purchaser who
        never got a confirmation, so it is reported on its own.
        """
        if actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException("Only admin can view delivery metrics")

        max_retries = get_settings().outbox_max_retries
        notification_counts = await self.repository.count_by_status()
        outbox_counts = await self.audit_repository.count_outbox_by_status()
        dead_letter = await self.audit_repository.count_dead_letter_by_event_type(max_retries)

        return NotificationDeliveryMetricsRead(
            notifications={str(status): notification_counts.get(status, 0) for status in NotificationStatusEnum},
            outbox={str(status): outbox_counts.get(status, 0) for status in OutboxStatusEnum},
            outbox_retryable_failed=await self.audit_repository.count_retryable_failed_outbox(max_retries),
            outbox_dead_letter=sum(dead_letter.values()),
            dead_letter_by_event_type=dead_letter,
            undelivered_confirmations=dead_letter.get(CONFIRMATION_EVENT, 0),
            max_retries=max_retries,
        )


async def get_notifications_service(session: AsyncSession = Depends(get_db_session)) -> NotificationsService:
    """Dependency provider for notifications service."""
    return NotificationsService(
        repository=NotificationsRepository(session),
        audit_repository=AuditRepository(session),
    )
