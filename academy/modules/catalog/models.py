"""Catalog ORM models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from academy.core.database import Base, BaseModelMixin
from academy.core.enums import OfferingKindEnum, ScheduleStatusEnum


class Offering(BaseModelMixin, Base):
    """Purchasable unit: in-person course, online course or store product."""

    __tablename__ = "offerings"

    kind: Mapped[OfferingKindEnum] = mapped_column(
        SAEnum(OfferingKindEnum, name="offering_kind_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    deposit_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    sale_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    sale_starts_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sale_ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Seat count or stock for offerings sold without schedules.
    capacity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    tax_jurisdiction: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_published: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    schedules: Mapped[list["OfferingSchedule"]] = relationship(
        back_populates="offering",
        order_by="OfferingSchedule.start_at",
    )


class OfferingSchedule(BaseModelMixin, Base):
    """Dated session of an in-person course with its own seat count."""

    __tablename__ = "offering_schedules"

    offering_id: Mapped[UUID] = mapped_column(
        ForeignKey("offerings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[ScheduleStatusEnum] = mapped_column(
        SAEnum(ScheduleStatusEnum, name="schedule_status_enum", native_enum=False),
        default=ScheduleStatusEnum.ACTIVE,
        nullable=False,
        index=True,
    )

    offering: Mapped[Offering] = relationship(back_populates="schedules")
