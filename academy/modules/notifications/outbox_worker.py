"""Outbox consumer that materializes reservation events into purchaser notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from academy.core.enums import NotificationStatusEnum
from academy.modules.audit.models import OutboxEvent
from academy.modules.audit.repository import AuditRepository
from academy.modules.notifications.repository import NotificationsRepository
from academy.shared.utils import utc_now

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class NotificationMessage:
    recipient_email: str
    user_id: UUID | None
    title: str
    body: str
    channel: str = "email"


class NotificationsOutboxWorker:
    """Process outbox events and create purchaser notifications."""

    def __init__(
        self,
        audit_repository: AuditRepository,
        notifications_repository: NotificationsRepository,
        *,
        batch_size: int = 100,
        max_retries: int = 5,
        base_backoff_seconds: int = 30,
        max_backoff_seconds: int = 300,
        now_provider=utc_now,
    ) -> None:
        self.audit_repository = audit_repository
        self.notifications_repository = notifications_repository
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.base_backoff_seconds = base_backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.now_provider = now_provider

    async def run_once(self) -> dict[str, int]:
        """Run one processing cycle."""
        stats = {"requeued": 0, "processed": 0, "failed": 0, "dispatched": 0}
        stats["requeued"] = await self._requeue_retryable_failed_events()

        events = await self.audit_repository.list_pending_outbox(limit=self.batch_size, lock=True)
        for event in events:
            try:
                for message in self._build_messages(event):
                    notification = await self.notifications_repository.create_notification(
                        user_id=message.user_id,
                        recipient_email=message.recipient_email,
                        event_type=event.event_type,
                        channel=message.channel,
                        title=message.title,
                        body=message.body,
                    )
                    await self.notifications_repository.set_status(
                        notification,
                        NotificationStatusEnum.SENT,
                        self.now_provider(),
                    )
                    stats["dispatched"] += 1

                await self.audit_repository.mark_outbox_processed(event, self.now_provider())
                stats["processed"] += 1
            except Exception as exc:
                logger.warning("Outbox event %s (%s) failed: %s", event.id, event.event_type, exc)
                await self.audit_repository.mark_outbox_failed(event, str(exc))
                stats["failed"] += 1
        return stats

    async def _requeue_retryable_failed_events(self) -> int:
        now = self.now_provider()
        failed_events = await self.audit_repository.list_failed_outbox(
            limit=self.batch_size,
            max_retries=self.max_retries,
        )
        requeued = 0
        for event in failed_events:
            if self._is_backoff_elapsed(event, now):
                await self.audit_repository.mark_outbox_pending(event)
                requeued += 1
        return requeued

    def _is_backoff_elapsed(self, event: OutboxEvent, now: datetime) -> bool:
        retries = max(event.retries, 1)
        backoff_seconds = min(
            self.max_backoff_seconds,
            self.base_backoff_seconds * (2 ** (retries - 1)),
        )
        last_attempt_at = event.updated_at or event.occurred_at
        return now >= last_attempt_at + timedelta(seconds=backoff_seconds)

    def _build_messages(self, event: OutboxEvent) -> list[NotificationMessage]:
        payload = event.payload or {}
        event_type = event.event_type
        title = payload.get("offering_title") or "your order"
        greeting = f"Hi {payload.get('first_name') or 'there'},"

        if event_type == "reservation.confirmed":
            amount_paid = payload.get("amount_paid", "0.00")
            currency = payload.get("currency", "")
            if payload.get("payment_option") == "deposit":
                paid_line = f"We received your deposit of {amount_paid} {currency}."
            elif amount_paid in ("0", "0.00"):
                paid_line = "No payment was required."
            else:
                paid_line = f"We received your payment of {amount_paid} {currency}."
            return [
                self._message(
                    payload,
                    title=f"Confirmed: {title}",
                    body=f"{greeting}\n\nYour registration for {title} is confirmed. {paid_line}",
                ),
            ]

        if event_type == "reservation.waitlisted":
            position = payload.get("position", "?")
            return [
                self._message(
                    payload,
                    title=f"Waitlisted: {title}",
                    body=(
                        f"{greeting}\n\n{title} is sold out. You are number {position} on the waitlist "
                        "and have not been charged."
                    ),
                ),
            ]

        if event_type == "waitlist.joined":
            position = payload.get("position", "?")
            return [
                self._message(
                    payload,
                    title=f"Waitlist: {title}",
                    body=f"{greeting}\n\nYou joined the waitlist for {title} at position {position}.",
                ),
            ]

        if event_type in ("reservation.cancelled", "reservation.expired"):
            headline = "cancelled" if event_type == "reservation.cancelled" else "expired before payment"
            return [
                self._message(
                    payload,
                    title=f"Reservation {headline.split()[0]}: {title}",
                    body=f"{greeting}\n\nYour reservation for {title} was {headline}.",
                ),
            ]

        return []

    def _message(self, payload: dict, *, title: str, body: str) -> NotificationMessage:
        return NotificationMessage(
            recipient_email=self._required_str(payload, "email"),
            user_id=self._optional_uuid(payload, "user_id"),
            title=title,
            body=body,
        )

    @staticmethod
    def _required_str(payload: dict, key: str) -> str:
        value = payload.get(key)
        if not value:
            raise ValueError(f"Missing required key: {key}")
        return str(value)

    @staticmethod
    def _optional_uuid(payload: dict, key: str) -> UUID | None:
        value = payload.get(key)
        if value is None:
            return None
        return UUID(str(value))
