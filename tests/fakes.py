"""In-memory stand-ins for the SQLAlchemy repositories used by service tests."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace
from uuid import UUID, uuid4

from academy.core.enums import (
    OCCUPYING_STATUSES,
    DiscountTypeEnum,
    OfferingKindEnum,
    PaymentOptionEnum,
    PaymentStatusEnum,
    ReservationStatusEnum,
    RoleEnum,
    ScheduleStatusEnum,
    WaitlistStatusEnum,
)
from academy.core.cache import InMemoryCacheBackend
from academy.modules.capacity.repository import CapacityClaim, CapacityShortfall
from academy.modules.capacity.service import CapacityService
from academy.modules.catalog.service import CatalogService
from academy.modules.payments.gateway import FakePaymentGateway
from academy.modules.pricing.service import PriceQuoter
from academy.modules.pricing.tax import FlatRateTaxService
from academy.modules.promotions.service import PromotionsService
from academy.modules.reservations.service import ReservationService
from academy.modules.waitlist.service import WaitlistService


@dataclass
class FakeSchedule:
    id: UUID
    offering_id: UUID
    start_at: datetime
    end_at: datetime
    capacity: int
    status: ScheduleStatusEnum = ScheduleStatusEnum.ACTIVE
    location: str | None = None


@dataclass
class FakeOffering:
    id: UUID
    kind: OfferingKindEnum
    title: str
    unit_price: Decimal
    capacity: int = 0
    deposit_amount: Decimal | None = None
    sale_price: Decimal | None = None
    sale_starts_at: datetime | None = None
    sale_ends_at: datetime | None = None
    currency: str = "USD"
    tax_jurisdiction: str | None = None
    is_published: bool = True
    description: str | None = None
    schedules: list[FakeSchedule] = field(default_factory=list)


@dataclass
class FakeReservationLine:
    offering_id: UUID
    quantity: int
    position: int = 0
    unit_price: Decimal | None = None
    subtotal_amount: Decimal | None = None
    discount_amount: Decimal | None = None
    tax_amount: Decimal | None = None
    total_amount: Decimal | None = None


@dataclass
class FakeReservation:
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
    promo_code: str | None = None
    amount_due: Decimal | None = None
    subtotal_amount: Decimal | None = None
    discount_amount: Decimal | None = None
    tax_amount: Decimal | None = None
    tax_included: bool = False
    payment_intent_id: str | None = None
    confirmed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    offering: FakeOffering | None = None
    lines: list[FakeReservationLine] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class FakePayment:
    id: UUID
    reservation_id: UUID
    amount: Decimal
    currency: str
    external_reference: str
    paid_at: datetime
    status: PaymentStatusEnum = PaymentStatusEnum.SUCCEEDED


@dataclass
class FakeWaitlistEntry:
    id: UUID
    offering_id: UUID
    schedule_id: UUID | None
    reservation_id: UUID | None
    first_name: str
    last_name: str
    email: str
    phone: str | None
    notes: str | None
    position: int
    status: WaitlistStatusEnum = WaitlistStatusEnum.WAITING


@dataclass
class FakePromoCode:
    code: str
    discount_type: DiscountTypeEnum
    value: Decimal
    is_active: bool = True
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    max_total_uses: int | None = None
    use_count: int = 0
    min_subtotal: Decimal | None = None
    offering_ids: list[str] = field(default_factory=list)


class FakeCatalogRepository:
    def __init__(self, offerings: list[FakeOffering] | None = None) -> None:
        self.offerings: dict[UUID, FakeOffering] = {item.id: item for item in offerings or []}

    def add(self, offering: FakeOffering) -> FakeOffering:
        self.offerings[offering.id] = offering
        return offering

    async def get_offering_by_id(self, offering_id: UUID) -> FakeOffering | None:
        return self.offerings.get(offering_id)

    async def get_offerings_by_ids(self, offering_ids: list[UUID]) -> dict[UUID, FakeOffering]:
        return {key: self.offerings[key] for key in offering_ids if key in self.offerings}

    async def get_schedule_by_id(self, schedule_id: UUID) -> FakeSchedule | None:
        for offering in self.offerings.values():
            for schedule in offering.schedules:
                if schedule.id == schedule_id:
                    return schedule
        return None

    async def list_active_schedules(self, offering_id: UUID) -> list[FakeSchedule]:
        offering = self.offerings.get(offering_id)
        if offering is None:
            return []
        return [item for item in offering.schedules if item.status == ScheduleStatusEnum.ACTIVE]


class FakeReservationRepository:
    def __init__(self, catalog: FakeCatalogRepository) -> None:
        self.catalog = catalog
        self.reservations: dict[UUID, FakeReservation] = {}
        self.save_calls = 0

    async def create_reservation(self, lines: list[tuple[UUID, int]] | None = None, **fields) -> FakeReservation:
        reservation = FakeReservation(id=uuid4(), **fields)
        for position, (offering_id, quantity) in enumerate(lines or [(reservation.offering_id, reservation.quantity)]):
            reservation.lines.append(FakeReservationLine(offering_id=offering_id, quantity=quantity, position=position))
        reservation.offering = self.catalog.offerings.get(reservation.offering_id)
        self.reservations[reservation.id] = reservation
        return reservation

    async def get_reservation_by_id(self, reservation_id: UUID) -> FakeReservation | None:
        return self.reservations.get(reservation_id)

    async def get_reservation_for_update(self, reservation_id: UUID) -> FakeReservation | None:
        return self.reservations.get(reservation_id)

    async def get_by_payment_intent_id(self, intent_id: str) -> FakeReservation | None:
        for reservation in self.reservations.values():
            if reservation.payment_intent_id == intent_id:
                return reservation
        return None

    async def list_for_purchaser(self, purchaser_id: UUID, limit: int, offset: int):
        items = [item for item in self.reservations.values() if item.purchaser_id == purchaser_id]
        return items[offset : offset + limit], len(items)

    async def find_abandoned(self, cutoff: datetime, limit: int) -> list[FakeReservation]:
        return [
            item
            for item in self.reservations.values()
            if item.status in (ReservationStatusEnum.DRAFT, ReservationStatusEnum.PENDING_PAYMENT)
            and item.created_at <= cutoff
        ][:limit]

    async def save(self, reservation: FakeReservation) -> FakeReservation:
        self.save_calls += 1
        self.reservations[reservation.id] = reservation
        return reservation


class FakeCapacityRepository:
    """Counts units from reservation lines; per-row locks mirror SELECT ... FOR UPDATE."""

    def __init__(self, reservations: FakeReservationRepository) -> None:
        self.reservations = reservations
        self._locks: defaultdict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _occupying(self, offering_id: UUID):
        return [
            (item, line)
            for item in self.reservations.reservations.values()
            if item.status in OCCUPYING_STATUSES
            for line in item.lines
            if line.offering_id == offering_id
        ]

    async def count_occupied(self, offering_id: UUID, schedule_id: UUID | None) -> int:
        return sum(
            line.quantity
            for item, line in self._occupying(offering_id)
            if schedule_id is None or item.schedule_id == schedule_id
        )

    async def count_occupied_by_schedule(self, offering_id: UUID) -> dict[UUID | None, int]:
        totals: dict[UUID | None, int] = defaultdict(int)
        for item, line in self._occupying(offering_id):
            totals[item.schedule_id] += line.quantity
        return dict(totals)

    async def reserve_if_available(
        self,
        reservation: FakeReservation,
        claims: list[CapacityClaim],
    ) -> list[CapacityShortfall]:
        async with AsyncExitStack() as stack:
            for key in sorted({claim.lock_key for claim in claims}):
                await stack.enter_async_context(self._locks[key])
            shortfalls: list[CapacityShortfall] = []
            for claim in claims:
                occupied = await self.count_occupied(claim.offering_id, claim.schedule_id)
                # Yield so concurrent callers interleave between the read and the write.
                await asyncio.sleep(0)
                available = max(0, claim.capacity - occupied)
                if claim.quantity > available:
                    shortfalls.append(
                        CapacityShortfall(
                            offering_id=claim.offering_id,
                            schedule_id=claim.schedule_id,
                            requested=claim.quantity,
                            available=available,
                        ),
                    )
            if shortfalls:
                return shortfalls
            reservation.status = ReservationStatusEnum.PENDING_PAYMENT
            return []


class FakePaymentsRepository:
    def __init__(self) -> None:
        self.payments: list[FakePayment] = []

    async def create_payment(
        self,
        reservation_id: UUID,
        amount: Decimal,
        currency: str,
        external_reference: str,
        paid_at: datetime,
    ) -> FakePayment:
        payment = FakePayment(
            id=uuid4(),
            reservation_id=reservation_id,
            amount=amount,
            currency=currency,
            external_reference=external_reference,
            paid_at=paid_at,
        )
        self.payments.append(payment)
        return payment

    async def get_by_external_reference(self, external_reference: str) -> FakePayment | None:
        for payment in self.payments:
            if payment.external_reference == external_reference:
                return payment
        return None


class FakeWaitlistRepository:
    def __init__(self) -> None:
        self.entries: list[FakeWaitlistEntry] = []
        self._locks: defaultdict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._issued: defaultdict[UUID, int] = defaultdict(int)

    async def next_position(self, offering_id: UUID) -> int:
        async with self._locks[offering_id]:
            taken = [item.position for item in self.entries if item.offering_id == offering_id]
            await asyncio.sleep(0)
            # Positions handed out but not yet inserted stay taken, like a row lock held to commit.
            position = max([*taken, self._issued[offering_id]], default=0) + 1
            self._issued[offering_id] = position
            return position

    async def create_entry(self, **fields) -> FakeWaitlistEntry:
        entry = FakeWaitlistEntry(id=uuid4(), **fields)
        self.entries.append(entry)
        return entry

    async def get_by_reservation_id(self, reservation_id: UUID) -> FakeWaitlistEntry | None:
        for entry in self.entries:
            if entry.reservation_id == reservation_id:
                return entry
        return None

    async def list_for_offering(self, offering_id: UUID, limit: int, offset: int):
        items = sorted(
            (item for item in self.entries if item.offering_id == offering_id),
            key=lambda item: item.position,
        )
        return items[offset : offset + limit], len(items)


class FakePromotionsRepository:
    def __init__(self, promos: list[FakePromoCode] | None = None) -> None:
        self.promos: dict[str, FakePromoCode] = {item.code: item for item in promos or []}

    async def get_by_code(self, code: str) -> FakePromoCode | None:
        return self.promos.get(code)

    async def increment_use_count(self, code: str) -> None:
        self.promos[code].use_count += 1


class FakeIdentityService:
    def __init__(self) -> None:
        self.accounts: list[SimpleNamespace] = []

    async def create_inline_account(self, *, email, password, first_name, last_name, phone) -> SimpleNamespace:
        account = SimpleNamespace(id=uuid4(), email=email, first_name=first_name, password=password)
        self.accounts.append(account)
        return account


class FakeAuditRepository:
    def __init__(self) -> None:
        self.events: list[dict] = []
        self.logs: list[dict] = []

    async def create_outbox_event(
        self,
        aggregate_type: str,
        aggregate_id: str,
        event_type: str,
        payload: dict,
    ) -> None:
        self.events.append(
            {
                "aggregate_type": aggregate_type,
                "aggregate_id": aggregate_id,
                "event_type": event_type,
                "payload": payload,
            },
        )

    async def create_audit_log(
        self,
        actor_id: UUID | None,
        action: str,
        entity_type: str,
        entity_id: str | None,
        payload: dict,
    ) -> None:
        self.logs.append({"actor_id": actor_id, "action": action, "entity_id": entity_id, "payload": payload})

    def event_types(self) -> list[str]:
        return [event["event_type"] for event in self.events]


def make_actor(user_id: UUID | None = None, role: RoleEnum = RoleEnum.PURCHASER) -> SimpleNamespace:
    return SimpleNamespace(id=user_id or uuid4(), email="actor@example.com", role=SimpleNamespace(name=role))


def make_course(*, seats: tuple[int, ...] = (10,), price: str = "249.00", deposit: str | None = "50.00") -> FakeOffering:
    offering = FakeOffering(
        id=uuid4(),
        kind=OfferingKindEnum.COURSE,
        title="Defensive Pistol Fundamentals",
        unit_price=Decimal(price),
        deposit_amount=Decimal(deposit) if deposit is not None else None,
    )
    start = datetime(2026, 11, 7, 9, 0, tzinfo=UTC)
    for index, capacity in enumerate(seats):
        start_at = start + timedelta(days=7 * index)
        offering.schedules.append(
            FakeSchedule(
                id=uuid4(),
                offering_id=offering.id,
                start_at=start_at,
                end_at=start_at + timedelta(hours=8),
                capacity=capacity,
            ),
        )
    return offering


def make_product(*, stock: int = 5, price: str = "64.99", jurisdiction: str | None = None) -> FakeOffering:
    return FakeOffering(
        id=uuid4(),
        kind=OfferingKindEnum.MERCHANDISE,
        title="Academy Range Bag",
        unit_price=Decimal(price),
        capacity=stock,
        tax_jurisdiction=jurisdiction,
    )


@dataclass
class Harness:
    """Real services wired over in-memory repositories."""

    service: ReservationService
    catalog: FakeCatalogRepository
    reservations: FakeReservationRepository
    capacity_repository: FakeCapacityRepository
    capacity: CapacityService
    payments: FakePaymentsRepository
    waitlist: FakeWaitlistRepository
    waitlist_service: WaitlistService
    promotions: FakePromotionsRepository
    identity: FakeIdentityService
    audit: FakeAuditRepository
    gateway: FakePaymentGateway
    quoter: PriceQuoter


def make_harness(
    offerings: list[FakeOffering],
    *,
    promos: list[FakePromoCode] | None = None,
    tax_rates: dict[str, Decimal] | None = None,
    auto_succeed: bool = True,
) -> Harness:
    catalog = FakeCatalogRepository(offerings)
    reservations = FakeReservationRepository(catalog)
    capacity_repository = FakeCapacityRepository(reservations)
    audit = FakeAuditRepository()
    capacity = CapacityService(
        repository=capacity_repository,  # type: ignore[arg-type]
        catalog_repository=catalog,  # type: ignore[arg-type]
        cache=InMemoryCacheBackend(),
    )
    catalog_service = CatalogService(catalog)  # type: ignore[arg-type]
    promotions = FakePromotionsRepository(promos)
    promotions_service = PromotionsService(promotions)  # type: ignore[arg-type]
    quoter = PriceQuoter(
        promotions_service=promotions_service,
        tax_service=FlatRateTaxService(tax_rates or {}),
        catalog_service=catalog_service,
    )
    waitlist = FakeWaitlistRepository()
    waitlist_service = WaitlistService(
        repository=waitlist,  # type: ignore[arg-type]
        catalog_repository=catalog,  # type: ignore[arg-type]
        capacity_service=capacity,
        audit_repository=audit,  # type: ignore[arg-type]
    )
    payments = FakePaymentsRepository()
    identity = FakeIdentityService()
    gateway = FakePaymentGateway(auto_succeed=auto_succeed)
    service = ReservationService(
        reservation_repository=reservations,  # type: ignore[arg-type]
        catalog_service=catalog_service,
        capacity_service=capacity,
        price_quoter=quoter,
        promotions_service=promotions_service,
        payments_repository=payments,  # type: ignore[arg-type]
        waitlist_service=waitlist_service,
        identity_service=identity,  # type: ignore[arg-type]
        audit_repository=audit,  # type: ignore[arg-type]
        gateway=gateway,
    )
    return Harness(
        service=service,
        catalog=catalog,
        reservations=reservations,
        capacity_repository=capacity_repository,
        capacity=capacity,
        payments=payments,
        waitlist=waitlist,
        waitlist_service=waitlist_service,
        promotions=promotions,
        identity=identity,
        audit=audit,
        gateway=gateway,
        quoter=quoter,
    )
