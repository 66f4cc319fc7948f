"""Waitlist ORM models."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from academy.core.database import Base, BaseModelMixin
from academy.core.enums import WaitlistStatusEnum


class WaitlistEntry(BaseModelMixin, Base):
    """No-payment holding record for a sold-out offering."""

    __tablename__ = "waitlist_entries"
    __table_args__ = (UniqueConstraint("offering_id", "position", name="uq_waitlist_entries_offering_position"),)

    offering_id: Mapped[UUID] = mapped_column(
        ForeignKey("offerings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    schedule_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("offering_schedules.id", ondelete="SET NULL"),
        nullable=True,
    )
    reservation_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("reservations.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )
    first_name: Mapped[str] = mapped_column(String(128), nullable=False)
    last_name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[WaitlistStatusEnum] = mapped_column(
        SAEnum(WaitlistStatusEnum, name="waitlist_status_enum", native_enum=False),
        default=WaitlistStatusEnum.WAITING,
        nullable=False,
        index=True,
    )
