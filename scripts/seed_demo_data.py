"""Seed idempotent demo data for local/non-production environments."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

import academy.modules  # noqa: F401
from academy.core.config import get_settings
from academy.core.database import SessionLocal, close_engine
from academy.core.enums import DiscountTypeEnum, OfferingKindEnum, RoleEnum, ScheduleStatusEnum
from academy.core.security import hash_password, verify_password
from academy.modules.catalog.models import Offering, OfferingSchedule
from academy.modules.identity.models import Role, User
from academy.modules.promotions.models import PromoCode

DEMO_PASSWORD = "DemoPass123!"

DEMO_ADMIN_EMAIL = "demo-admin@rangeacademy.dev"
DEMO_INSTRUCTOR_EMAIL = "demo-instructor@rangeacademy.dev"

DEMO_SCHEDULE_DAY_OFFSETS = (7, 14, 21)
DEMO_SCHEDULE_START_HOUR = 9
DEMO_SCHEDULE_DURATION_HOURS = 8
DEMO_SCHEDULE_CAPACITY = 12


@dataclass(frozen=True, slots=True)
class DemoOffering:
    kind: OfferingKindEnum
    title: str
    description: str
    unit_price: Decimal
    deposit_amount: Decimal | None = None
    capacity: int = 0
    tax_jurisdiction: str | None = None


DEMO_OFFERINGS = (
    DemoOffering(
        kind=OfferingKindEnum.COURSE,
        title="Defensive Pistol Fundamentals",
        description="One-day range course: safe handling, stance, grip and drawing from the holster.",
        unit_price=Decimal("249.00"),
        deposit_amount=Decimal("50.00"),
    ),
    DemoOffering(
        kind=OfferingKindEnum.COURSE,
        title="Concealed Carry Permit Class",
        description="State permit classroom and live-fire qualification.",
        unit_price=Decimal("129.00"),
    ),
    DemoOffering(
        kind=OfferingKindEnum.ONLINE_COURSE,
        title="Firearm Law Essentials (online)",
        description="Self-paced video course on carry and self-defense law.",
        unit_price=Decimal("59.00"),
        capacity=10000,
    ),
    DemoOffering(
        kind=OfferingKindEnum.MERCHANDISE,
        title="Academy Range Bag",
        description="Padded range bag with magazine pouches.",
        unit_price=Decimal("64.99"),
        capacity=40,
        tax_jurisdiction="US-TX",
    ),
)


@dataclass(frozen=True, slots=True)
class DemoPromo:
    code: str
    description: str
    discount_type: DiscountTypeEnum
    value: Decimal
    max_total_uses: int | None = None


DEMO_PROMOS = (
    DemoPromo(
        code="SAVE10",
        description="10% off any offering",
        discount_type=DiscountTypeEnum.PERCENT,
        value=Decimal("10"),
    ),
    DemoPromo(
        code="FREE100",
        description="Complimentary seat for instructors-in-training",
        discount_type=DiscountTypeEnum.PERCENT,
        value=Decimal("100"),
        max_total_uses=5,
    ),
)


@dataclass(slots=True)
class SeedStats:
    roles_created: int = 0
    users_created: int = 0
    users_updated: int = 0
    offerings_created: int = 0
    schedules_created: int = 0
    promos_created: int = 0


async def _ensure_roles(session: AsyncSession) -> int:
    created = 0
    for role_name in (RoleEnum.PURCHASER, RoleEnum.INSTRUCTOR, RoleEnum.ADMIN):
        existing = await session.scalar(select(Role).where(Role.name == role_name))
        if existing is None:
            session.add(Role(name=role_name))
            created += 1
    await session.flush()
    return created


async def _ensure_user(
    session: AsyncSession,
    *,
    email: str,
    role_name: RoleEnum,
    first_name: str,
) -> tuple[User, bool]:
    role = await session.scalar(select(Role).where(Role.name == role_name))
    if role is None:
        raise RuntimeError(f"Role {role_name} was not found after ensure_roles")

    user = await session.scalar(select(User).where(User.email == email))
    created = False
    if user is None:
        user = User(
            email=email,
            password_hash=hash_password(DEMO_PASSWORD),
            first_name=first_name,
            last_name="Demo",
            is_active=True,
            role_id=role.id,
        )
        session.add(user)
        created = True
    else:
        if not verify_password(DEMO_PASSWORD, user.password_hash):
            user.password_hash = hash_password(DEMO_PASSWORD)
        if user.role_id != role.id:
            user.role_id = role.id
        if not user.is_active:
            user.is_active = True

    await session.flush()
    return user, created


def _build_schedule_ranges(now: datetime) -> list[tuple[datetime, datetime]]:
    ranges: list[tuple[datetime, datetime]] = []
    for day_offset in DEMO_SCHEDULE_DAY_OFFSETS:
        target_date = (now + timedelta(days=day_offset)).date()
        start_at = datetime.combine(target_date, time(hour=DEMO_SCHEDULE_START_HOUR, tzinfo=UTC))
        ranges.append((start_at, start_at + timedelta(hours=DEMO_SCHEDULE_DURATION_HOURS)))
    return ranges


async def _ensure_offerings(session: AsyncSession, stats: SeedStats) -> None:
    settings = get_settings()
    now = datetime.now(UTC)

    for demo in DEMO_OFFERINGS:
        offering = await session.scalar(select(Offering).where(Offering.title == demo.title))
        if offering is None:
            offering = Offering(
                kind=demo.kind,
                title=demo.title,
                description=demo.description,
                unit_price=demo.unit_price,
                deposit_amount=demo.deposit_amount,
                capacity=demo.capacity,
                currency=settings.default_currency,
                tax_jurisdiction=demo.tax_jurisdiction,
                is_published=True,
            )
            session.add(offering)
            await session.flush()
            stats.offerings_created += 1

        if demo.kind != OfferingKindEnum.COURSE:
            continue

        for start_at, end_at in _build_schedule_ranges(now):
            existing = await session.scalar(
                select(OfferingSchedule).where(
                    OfferingSchedule.offering_id == offering.id,
                    OfferingSchedule.start_at == start_at,
                ),
            )
            if existing is not None:
                continue
            session.add(
                OfferingSchedule(
                    offering_id=offering.id,
                    start_at=start_at,
                    end_at=end_at,
                    location="Range 2, North Bay",
                    capacity=DEMO_SCHEDULE_CAPACITY,
                    status=ScheduleStatusEnum.ACTIVE,
                ),
            )
            stats.schedules_created += 1

    await session.flush()


async def _ensure_promos(session: AsyncSession) -> int:
    created = 0
    for demo in DEMO_PROMOS:
        existing = await session.scalar(select(PromoCode).where(PromoCode.code == demo.code))
        if existing is not None:
            continue
        session.add(
            PromoCode(
                code=demo.code,
                description=demo.description,
                discount_type=demo.discount_type,
                value=demo.value,
                is_active=True,
                max_total_uses=demo.max_total_uses,
                use_count=0,
                offering_ids=[],
            ),
        )
        created += 1
    await session.flush()
    return created


async def _run_seed(*, allow_production: bool) -> SeedStats:
    settings = get_settings()
    app_env = settings.app_env.strip().lower()
    if app_env in {"production", "prod"} and not allow_production:
        raise RuntimeError(
            "Refusing to seed demo data in production. "
            "Re-run with --allow-production only if you are absolutely sure.",
        )

    stats = SeedStats()

    async with SessionLocal() as session:
        try:
            stats.roles_created = await _ensure_roles(session)

            _, admin_created = await _ensure_user(
                session,
                email=DEMO_ADMIN_EMAIL,
                role_name=RoleEnum.ADMIN,
                first_name="Admin",
            )
            _, instructor_created = await _ensure_user(
                session,
                email=DEMO_INSTRUCTOR_EMAIL,
                role_name=RoleEnum.INSTRUCTOR,
                first_name="Instructor",
            )
            stats.users_created = sum([admin_created, instructor_created])
            stats.users_updated = 2 - stats.users_created

            await _ensure_offerings(session, stats)
            stats.promos_created = await _ensure_promos(session)

            await session.commit()
        except Exception:
            await session.rollback()
            raise

    return stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Seed idempotent demo data for RangeAcademy (staff users, courses with dates, "
            "an online course, store merchandise and promo codes)."
        ),
    )
    parser.add_argument(
        "--allow-production",
        action="store_true",
        help="Allow seeding even when APP_ENV is production/prod.",
    )
    return parser


def _print_summary(stats: SeedStats) -> None:
    print("Demo seed completed.")
    print(f"- Roles created: {stats.roles_created}")
    print(f"- Users created: {stats.users_created}")
    print(f"- Users updated: {stats.users_updated}")
    print(f"- Offerings created: {stats.offerings_created}")
    print(f"- Course dates created: {stats.schedules_created}")
    print(f"- Promo codes created: {stats.promos_created}")
    print("")
    print("Demo credentials (non-production only):")
    print(f"- admin:      {DEMO_ADMIN_EMAIL} / {DEMO_PASSWORD}")
    print(f"- instructor: {DEMO_INSTRUCTOR_EMAIL} / {DEMO_PASSWORD}")
    print(f"- promo codes: {', '.join(promo.code for promo in DEMO_PROMOS)}")


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    try:
        stats = asyncio.run(_run_seed(allow_production=args.allow_production))
    except Exception as exc:
        print(f"Demo seed failed: {exc}")
        return 1
    finally:
        asyncio.run(close_engine())

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
