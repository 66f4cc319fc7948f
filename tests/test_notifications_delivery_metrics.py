from __future__ import annotations

from dataclasses import dataclass, field
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest

from academy.core.config import get_settings
from academy.core.enums import NotificationStatusEnum, OutboxStatusEnum, RoleEnum
from academy.modules.notifications.service import NotificationsService
from academy.shared.exceptions import UnauthorizedException


@dataclass
class FakeNotificationsRepository:
    notification_counts: dict[NotificationStatusEnum, int] = field(default_factory=dict)
    recipient_calls: list[tuple[UUID, str]] = field(default_factory=list)

    async def count_by_status(self) -> dict[NotificationStatusEnum, int]:
        return self.notification_counts

    async def list_for_recipient(self, user_id: UUID, email: str, limit: int, offset: int):
        self.recipient_calls.append((user_id, email))
        return [], 0


@dataclass
class FakeAuditRepository:
    outbox_counts: dict[OutboxStatusEnum, int] = field(default_factory=dict)
    retryable_failed: int = 0
    dead_letter: dict[str, int] = field(default_factory=dict)
    max_retries_seen: list[int] = field(default_factory=list)

    async def count_outbox_by_status(self) -> dict[OutboxStatusEnum, int]:
        return self.outbox_counts

    async def count_retryable_failed_outbox(self, max_retries: int) -> int:
        self.max_retries_seen.append(max_retries)
        return self.retryable_failed

    async def count_dead_letter_by_event_type(self, max_retries: int) -> dict[str, int]:
        self.max_retries_seen.append(max_retries)
        return self.dead_letter


def make_actor(role: RoleEnum, email: str = "staff@example.com") -> SimpleNamespace:
    return SimpleNamespace(id=uuid4(), email=email, role=SimpleNamespace(name=role))


@pytest.mark.asyncio
async def test_delivery_metrics_splits_dead_letters_by_event_type(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(get_settings(), "outbox_max_retries", 3)
    audit = FakeAuditRepository(
        outbox_counts={OutboxStatusEnum.PENDING: 2, OutboxStatusEnum.FAILED: 4},
        retryable_failed=1,
        dead_letter={"reservation.confirmed": 2, "waitlist.joined": 1},
    )
    service = NotificationsService(
        repository=FakeNotificationsRepository(
            notification_counts={NotificationStatusEnum.SENT: 9, NotificationStatusEnum.FAILED: 1},
        ),  # type: ignore[arg-type]
        audit_repository=audit,  # type: ignore[arg-type]
    )

    metrics = await service.get_delivery_metrics(make_actor(RoleEnum.ADMIN))

    assert metrics.notifications == {"pending": 0, "sent": 9, "failed": 1}
    assert metrics.outbox == {"pending": 2, "processed": 0, "failed": 4}
    assert metrics.outbox_retryable_failed == 1
    assert metrics.outbox_dead_letter == 3
    assert metrics.undelivered_confirmations == 2
    assert metrics.dead_letter_by_event_type["waitlist.joined"] == 1
    assert metrics.max_retries == 3
    assert audit.max_retries_seen == [3, 3]


@pytest.mark.asyncio
async def test_delivery_metrics_requires_admin() -> None:
    service = NotificationsService(
        repository=FakeNotificationsRepository(),  # type: ignore[arg-type]
        audit_repository=FakeAuditRepository(),  # type: ignore[arg-type]
    )

    with pytest.raises(UnauthorizedException):
        await service.get_delivery_metrics(make_actor(RoleEnum.INSTRUCTOR))


@pytest.mark.asyncio
async def test_my_notifications_include_guest_purchases_by_email() -> None:
    repository = FakeNotificationsRepository()
    service = NotificationsService(
        repository=repository,  # type: ignore[arg-type]
        audit_repository=FakeAuditRepository(),  # type: ignore[arg-type]
    )
    actor = make_actor(RoleEnum.PURCHASER, email="pat@example.com")

    await service.list_my_notifications(actor, limit=20, offset=0)

    assert repository.recipient_calls == [(actor.id, "pat@example.com")]
