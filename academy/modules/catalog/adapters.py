"""Per-kind offering adapters feeding the shared reservation lifecycle.

Courses, online courses and store products go through the same
draft -> quote -> pay -> confirm flow. What differs between them is
where capacity lives, whether a schedule must be chosen, how many units
one reservation may take and whether tax is already part of the price.
Each adapter resolves those differences into a flat ``OfferingTerms``
value so the rest of the flow never branches on the offering kind.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from academy.core.enums import OfferingKindEnum, ScheduleStatusEnum
from academy.modules.catalog.models import Offering, OfferingSchedule
from academy.shared.exceptions import BusinessRuleException, ValidationException
from academy.shared.money import quantize_money
from academy.shared.utils import ensure_utc


@dataclass(frozen=True, slots=True)
class OfferingTerms:
    """Capacity and price inputs of one offering (and schedule) at a point in time."""

    offering_id: UUID
    schedule_id: UUID | None
    kind: OfferingKindEnum
    title: str
    capacity: int
    unit_price: Decimal
    deposit_amount: Decimal | None
    currency: str
    tax_jurisdiction: str | None
    tax_included: bool


def effective_unit_price(offering: Offering, now: datetime) -> Decimal:
    """Return sale price while the sale window is open, list price otherwise."""
    if offering.sale_price is None:
        return quantize_money(offering.unit_price)
    if offering.sale_starts_at is not None and ensure_utc(offering.sale_starts_at) > now:
        return quantize_money(offering.unit_price)
    if offering.sale_ends_at is not None and ensure_utc(offering.sale_ends_at) <= now:
        return quantize_money(offering.unit_price)
    return quantize_money(offering.sale_price)


class OfferingAdapter(Protocol):
    """Kind-specific rules for turning an offering into reservation terms."""

    kind: OfferingKindEnum
    requires_schedule: bool
    tax_included: bool

    def resolve_terms(
        self,
        offering: Offering,
        schedule: OfferingSchedule | None,
        now: datetime,
    ) -> OfferingTerms:
        """Build terms or raise when the schedule choice is invalid."""

    def validate_quantity(self, quantity: int) -> None:
        """Raise ValidationException when quantity is not allowed."""


class _BaseOfferingAdapter:
    kind: OfferingKindEnum
    requires_schedule = False
    tax_included = False
    max_quantity: int | None = 1

    def resolve_terms(
        self,
        offering: Offering,
        schedule: OfferingSchedule | None,
        now: datetime,
    ) -> OfferingTerms:
        capacity = self._capacity(offering, schedule)
        return OfferingTerms(
            offering_id=offering.id,
            schedule_id=schedule.id if schedule is not None else None,
            kind=offering.kind,
            title=offering.title,
            capacity=capacity,
            unit_price=effective_unit_price(offering, now),
            deposit_amount=(
                quantize_money(offering.deposit_amount) if offering.deposit_amount is not None else None
            ),
            currency=offering.currency.upper(),
            tax_jurisdiction=offering.tax_jurisdiction,
            tax_included=self.tax_included,
        )

    def _capacity(self, offering: Offering, schedule: OfferingSchedule | None) -> int:
        if schedule is not None:
            raise ValidationException({"schedule_id": "This offering is not sold by date"})
        return offering.capacity

    def validate_quantity(self, quantity: int) -> None:
        if quantity < 1:
            raise ValidationException({"quantity": "Quantity must be at least 1"})
        if self.max_quantity is not None and quantity > self.max_quantity:
            raise ValidationException({"quantity": f"Quantity cannot exceed {self.max_quantity}"})


class CourseScheduleAdapter(_BaseOfferingAdapter):
    """In-person course: one seat on a chosen, active schedule."""

    kind = OfferingKindEnum.COURSE
    requires_schedule = True

    def _capacity(self, offering: Offering, schedule: OfferingSchedule | None) -> int:
        if schedule is None:
            raise ValidationException({"schedule_id": "Choose a class date"})
        if schedule.offering_id != offering.id:
            raise ValidationException({"schedule_id": "Schedule does not belong to this course"})
        if schedule.status != ScheduleStatusEnum.ACTIVE:
            raise BusinessRuleException("This class date has been cancelled")
        return schedule.capacity


class OnlineCourseAdapter(_BaseOfferingAdapter):
    """Online course: one enrollment against the course-wide seat count."""

    kind = OfferingKindEnum.ONLINE_COURSE


class MerchandiseAdapter(_BaseOfferingAdapter):
    """Store product: several units per order, stock as capacity, tax-inclusive prices."""

    kind = OfferingKindEnum.MERCHANDISE
    tax_included = True
    max_quantity = None


_ADAPTERS: dict[OfferingKindEnum, OfferingAdapter] = {
    OfferingKindEnum.COURSE: CourseScheduleAdapter(),
    OfferingKindEnum.ONLINE_COURSE: OnlineCourseAdapter(),
    OfferingKindEnum.MERCHANDISE: MerchandiseAdapter(),
}


def get_offering_adapter(kind: OfferingKindEnum) -> OfferingAdapter:
    """Return adapter for offering kind."""
    return _ADAPTERS[OfferingKindEnum(kind)]
