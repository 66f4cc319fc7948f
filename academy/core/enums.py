"""Core enums used across modules."""

from enum import StrEnum


class RoleEnum(StrEnum):
    """System roles."""

    PURCHASER = "purchaser"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


class OfferingKindEnum(StrEnum):
    """Purchasable unit types sharing the reservation lifecycle."""

    COURSE = "course"
    ONLINE_COURSE = "online_course"
    MERCHANDISE = "merchandise"


class ScheduleStatusEnum(StrEnum):
    """Course schedule status."""

    ACTIVE = "active"
    CANCELLED = "cancelled"


class ReservationStatusEnum(StrEnum):
    """Reservation lifecycle status."""

    DRAFT = "draft"
    PENDING_PAYMENT = "pending_payment"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    WAITLISTED = "waitlisted"


OCCUPYING_STATUSES = frozenset(
    {ReservationStatusEnum.PENDING_PAYMENT, ReservationStatusEnum.CONFIRMED},
)
TERMINAL_STATUSES = frozenset(
    {
        ReservationStatusEnum.CONFIRMED,
        ReservationStatusEnum.CANCELLED,
        ReservationStatusEnum.WAITLISTED,
    },
)


class PaymentOptionEnum(StrEnum):
    """How much of the price is collected now."""

    FULL = "full"
    DEPOSIT = "deposit"


class DiscountTypeEnum(StrEnum):
    """Promo code discount rule."""

    PERCENT = "percent"
    FIXED_AMOUNT = "fixed_amount"


class PromoRejectionEnum(StrEnum):
    """Reasons a promo code is not applied."""

    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    NOT_YET_ACTIVE = "not_yet_active"
    NOT_APPLICABLE_TO_OFFERING = "not_applicable_to_offering"
    USAGE_LIMIT_REACHED = "usage_limit_reached"
    MIN_SUBTOTAL_NOT_MET = "min_subtotal_not_met"


class GatewayIntentStatusEnum(StrEnum):
    """Terminal-or-not status reported by the payment gateway."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REQUIRES_ACTION = "requires_action"


class PaymentStatusEnum(StrEnum):
    """Settled payment status."""

    SUCCEEDED = "succeeded"
    REFUNDED = "refunded"


class WaitlistStatusEnum(StrEnum):
    """Waitlist entry status."""

    WAITING = "waiting"
    OFFERED = "offered"
    ENROLLED = "enrolled"
    EXPIRED = "expired"


class NotificationStatusEnum(StrEnum):
    """Notification delivery status."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class OutboxStatusEnum(StrEnum):
    """Outbox event status for integration publishing."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


class ReserveOutcomeEnum(StrEnum):
    """Capacity ledger answer to a reservation attempt."""

    RESERVED = "reserved"
    SOLD_OUT = "sold_out"
