"""Reservation ORM models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from academy.core.database import Base, BaseModelMixin
from academy.core.enums import PaymentOptionEnum, ReservationStatusEnum

if TYPE_CHECKING:
    from academy.modules.catalog.models import Offering, OfferingSchedule


class Reservation(BaseModelMixin, Base):
    """A purchaser's claim on an offering: enrollment or store order.

    ``offering_id`` and ``quantity`` describe the first line. Store orders
    with several products carry the rest in ``lines``; capacity is always
    counted from the lines.
    """

    __tablename__ = "reservations"

    offering_id: Mapped[UUID] = mapped_column(
        ForeignKey("offerings.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    schedule_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("offering_schedules.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    purchaser_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    first_name: Mapped[str] = mapped_column(String(128), nullable=False)
    last_name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    status: Mapped[ReservationStatusEnum] = mapped_column(
        SAEnum(ReservationStatusEnum, name="reservation_status_enum", native_enum=False),
        default=ReservationStatusEnum.DRAFT,
        nullable=False,
        index=True,
    )
    payment_option: Mapped[PaymentOptionEnum] = mapped_column(
        SAEnum(PaymentOptionEnum, name="payment_option_enum", native_enum=False),
        default=PaymentOptionEnum.FULL,
        nullable=False,
    )
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)

    # Snapshot of the last quote; amount_due is what the current intent charges.
    amount_due: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    subtotal_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    discount_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    tax_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    tax_included: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    promo_code: Mapped[str | None] = mapped_column(String(64), nullable=True)

    payment_intent_id: Mapped[str | None] = mapped_column(String(128), nullable=True, unique=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(512), nullable=True)

    offering: Mapped["Offering"] = relationship()
    schedule: Mapped["OfferingSchedule | None"] = relationship()
    lines: Mapped[list["ReservationLine"]] = relationship(
        back_populates="reservation",
        cascade="all, delete-orphan",
        order_by="ReservationLine.position",
        lazy="selectin",
    )


class ReservationLine(BaseModelMixin, Base):
    """One offering and quantity inside a reservation, with its last priced amounts."""

    __tablename__ = "reservation_lines"
    __table_args__ = (
        UniqueConstraint("reservation_id", "offering_id", name="uq_reservation_lines_reservation_offering"),
        CheckConstraint("quantity > 0", name="ck_reservation_lines_quantity_positive"),
    )

    reservation_id: Mapped[UUID] = mapped_column(
        ForeignKey("reservations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    offering_id: Mapped[UUID] = mapped_column(
        ForeignKey("offerings.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    unit_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    subtotal_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    discount_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    tax_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    total_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    reservation: Mapped[Reservation] = relationship(back_populates="lines")
    offering: Mapped["Offering"] = relationship()
