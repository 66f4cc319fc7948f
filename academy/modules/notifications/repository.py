"""Notifications repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.enums import NotificationStatusEnum
from academy.modules.notifications.models import Notification


class NotificationsRepository:
    """DB operations for notifications domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_notification(
        self,
        *,
        user_id: UUID | None,
        recipient_email: str,
        event_type: str,
        channel: str,
        title: str,
        body: str,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            recipient_email=recipient_email,
            event_type=event_type,
            channel=channel,
            title=title,
            body=body,
        )
        self.session.add(notification)
        await self.session.flush()
        return notification

    async def list_for_recipient(
        self,
        user_id: UUID,
        email: str,
        limit: int,
        offset: int,
    ) -> tuple[list[Notification], int]:
        # Guest purchases made before the account existed are matched by email.
        base_stmt: Select[tuple[Notification]] = select(Notification).where(
            or_(Notification.user_id == user_id, Notification.recipient_email == email),
        )
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Notification.created_at.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def set_status(
        self,
        notification: Notification,
        status: NotificationStatusEnum,
        sent_at: datetime | None,
    ) -> Notification:
        notification.status = status
        notification.sent_at = sent_at
        await self.session.flush()
        return notification

    async def count_by_status(self) -> dict[NotificationStatusEnum, int]:
        stmt = select(Notification.status, func.count()).group_by(Notification.status)
        rows = (await self.session.execute(stmt)).all()
        return {status: int(count) for status, count in rows}
