from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest

from academy.core.enums import NotificationStatusEnum, OutboxStatusEnum
from academy.modules.notifications.outbox_worker import NotificationsOutboxWorker


@dataclass
class FakeOutboxEvent:
    id: UUID
    event_type: str
    payload: dict
    status: OutboxStatusEnum = OutboxStatusEnum.PENDING
    retries: int = 0
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    processed_at: datetime | None = None
    error_message: str | None = None


@dataclass
class FakeNotification:
    id: UUID
    user_id: UUID | None
    recipient_email: str
    event_type: str
    channel: str
    title: str
    body: str
    status: NotificationStatusEnum = NotificationStatusEnum.PENDING
    sent_at: datetime | None = None


class FakeAuditRepository:
    def __init__(self, events: list[FakeOutboxEvent]) -> None:
        self.events = events

    async def list_pending_outbox(self, limit: int, lock: bool = False) -> list[FakeOutboxEvent]:
        return [event for event in self.events if event.status == OutboxStatusEnum.PENDING][:limit]

    async def list_failed_outbox(self, limit: int, max_retries: int) -> list[FakeOutboxEvent]:
        return [
            event
            for event in self.events
            if event.status == OutboxStatusEnum.FAILED and event.retries < max_retries
        ][:limit]

    async def mark_outbox_pending(self, event: FakeOutboxEvent) -> FakeOutboxEvent:
        event.status = OutboxStatusEnum.PENDING
        event.error_message = None
        event.updated_at = datetime.now(UTC)
        return event

    async def mark_outbox_processed(
        self,
        event: FakeOutboxEvent,
        processed_at: datetime,
    ) -> FakeOutboxEvent:
        event.status = OutboxStatusEnum.PROCESSED
        event.processed_at = processed_at
        event.error_message = None
        event.updated_at = processed_at
        return event

    async def mark_outbox_failed(
        self,
        event: FakeOutboxEvent,
        error_message: str,
    ) -> FakeOutboxEvent:
        event.status = OutboxStatusEnum.FAILED
        event.retries += 1
        event.error_message = error_message
        event.updated_at = datetime.now(UTC)
        return event


class FakeNotificationsRepository:
    def __init__(self) -> None:
        self.notifications: list[FakeNotification] = []

    async def create_notification(
        self,
        *,
        user_id: UUID | None,
        recipient_email: str,
        event_type: str,
        channel: str,
        title: str,
        body: str,
    ) -> FakeNotification:
        notification = FakeNotification(
            id=uuid4(),
            user_id=user_id,
            recipient_email=recipient_email,
            event_type=event_type,
            channel=channel,
            title=title,
            body=body,
        )
        self.notifications.append(notification)
        return notification

    async def set_status(
        self,
        notification: FakeNotification,
        status: NotificationStatusEnum,
        sent_at: datetime | None,
    ) -> FakeNotification:
        notification.status = status
        notification.sent_at = sent_at
        return notification


def make_worker(
    events: list[FakeOutboxEvent],
    *,
    now: datetime | None = None,
    base_backoff_seconds: int = 30,
) -> tuple[NotificationsOutboxWorker, FakeAuditRepository, FakeNotificationsRepository]:
    now_point = now or datetime.now(UTC)
    audit_repo = FakeAuditRepository(events)
    notifications_repo = FakeNotificationsRepository()
    worker = NotificationsOutboxWorker(
        audit_repository=audit_repo,  # type: ignore[arg-type]
        notifications_repository=notifications_repo,  # type: ignore[arg-type]
        now_provider=lambda: now_point,
        base_backoff_seconds=base_backoff_seconds,
    )
    return worker, audit_repo, notifications_repo


def confirmed_payload(**overrides) -> dict:
    payload = {
        "reservation_id": str(uuid4()),
        "offering_title": "Defensive Pistol Fundamentals",
        "email": "pat@example.com",
        "first_name": "Pat",
        "user_id": None,
        "amount_paid": "249.00",
        "currency": "USD",
        "payment_option": "full",
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_worker_processes_reservation_confirmed_into_notification() -> None:
    event = FakeOutboxEvent(id=uuid4(), event_type="reservation.confirmed", payload=confirmed_payload())
    worker, _, notifications_repo = make_worker(
        [event],
        now=datetime(2026, 10, 17, 12, 0, tzinfo=UTC),
    )

    stats = await worker.run_once()

    assert stats == {"requeued": 0, "processed": 1, "failed": 0, "dispatched": 1}
    assert event.status == OutboxStatusEnum.PROCESSED
    notification = notifications_repo.notifications[0]
    assert notification.recipient_email == "pat@example.com"
    assert notification.user_id is None
    assert notification.event_type == "reservation.confirmed"
    assert notification.status == NotificationStatusEnum.SENT
    assert "Defensive Pistol Fundamentals" in notification.title
    assert "249.00 USD" in notification.body


@pytest.mark.asyncio
async def test_deposit_confirmation_mentions_deposit() -> None:
    user_id = uuid4()
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="reservation.confirmed",
        payload=confirmed_payload(payment_option="deposit", amount_paid="50.00", user_id=str(user_id)),
    )
    worker, _, notifications_repo = make_worker([event])

    await worker.run_once()

    notification = notifications_repo.notifications[0]
    assert notification.user_id == user_id
    assert "deposit of 50.00 USD" in notification.body


@pytest.mark.asyncio
async def test_worker_dispatches_waitlist_events_with_position() -> None:
    events = [
        FakeOutboxEvent(
            id=uuid4(),
            event_type="reservation.waitlisted",
            payload={"email": "a@example.com", "first_name": "Alex", "offering_title": "CCW", "position": 3},
        ),
        FakeOutboxEvent(
            id=uuid4(),
            event_type="waitlist.joined",
            payload={"email": "b@example.com", "first_name": "Blair", "offering_title": "CCW", "position": 4},
        ),
    ]
    worker, _, notifications_repo = make_worker(events)

    stats = await worker.run_once()

    assert stats["dispatched"] == 2
    assert "number 3 on the waitlist" in notifications_repo.notifications[0].body
    assert "position 4" in notifications_repo.notifications[1].body


@pytest.mark.asyncio
async def test_worker_dispatches_expired_reservation_notice() -> None:
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="reservation.expired",
        payload={"email": "pat@example.com", "offering_title": "Range Bag"},
    )
    worker, _, notifications_repo = make_worker([event])

    await worker.run_once()

    assert notifications_repo.notifications[0].title == "Reservation expired: Range Bag"


@pytest.mark.asyncio
async def test_worker_processes_unknown_event_without_dispatch() -> None:
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="unknown.event",
        payload={},
    )
    worker, _, notifications_repo = make_worker(
        [event],
        now=datetime(2026, 10, 17, 12, 0, tzinfo=UTC),
    )

    stats = await worker.run_once()

    assert stats == {"requeued": 0, "processed": 1, "failed": 0, "dispatched": 0}
    assert event.status == OutboxStatusEnum.PROCESSED
    assert notifications_repo.notifications == []


@pytest.mark.asyncio
async def test_worker_requeues_failed_event_after_backoff() -> None:
    now_point = datetime(2026, 10, 17, 12, 0, tzinfo=UTC)
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="reservation.cancelled",
        payload={"email": "pat@example.com", "offering_title": "CCW"},
        status=OutboxStatusEnum.FAILED,
        retries=1,
        occurred_at=now_point - timedelta(minutes=10),
        updated_at=now_point - timedelta(minutes=2),
    )
    worker, _, notifications_repo = make_worker(
        [event],
        now=now_point,
        base_backoff_seconds=30,
    )

    stats = await worker.run_once()

    assert stats["requeued"] == 1
    assert stats["processed"] == 1
    assert event.status == OutboxStatusEnum.PROCESSED
    assert len(notifications_repo.notifications) == 1


@pytest.mark.asyncio
async def test_worker_keeps_failed_event_until_backoff_elapses() -> None:
    now_point = datetime(2026, 10, 17, 12, 0, tzinfo=UTC)
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="reservation.cancelled",
        payload={"email": "pat@example.com"},
        status=OutboxStatusEnum.FAILED,
        retries=3,
        updated_at=now_point - timedelta(seconds=90),
    )
    worker, _, notifications_repo = make_worker([event], now=now_point, base_backoff_seconds=30)

    stats = await worker.run_once()

    # Third retry waits 120 seconds.
    assert stats["requeued"] == 0
    assert event.status == OutboxStatusEnum.FAILED
    assert notifications_repo.notifications == []


@pytest.mark.asyncio
async def test_worker_marks_event_failed_when_recipient_missing() -> None:
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="reservation.confirmed",
        payload={"offering_title": "CCW"},
    )
    worker, _, notifications_repo = make_worker(
        [event],
        now=datetime(2026, 10, 17, 12, 0, tzinfo=UTC),
    )

    stats = await worker.run_once()

    assert stats["processed"] == 0
    assert stats["failed"] == 1
    assert event.status == OutboxStatusEnum.FAILED
    assert event.retries == 1
    assert event.error_message == "Missing required key: email"
    assert notifications_repo.notifications == []
