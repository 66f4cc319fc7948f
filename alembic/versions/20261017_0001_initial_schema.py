"""Initial schema

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 09:30:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261017_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


role_enum = sa.Enum("purchaser", "instructor", "admin", name="role_enum", native_enum=False)
offering_kind_enum = sa.Enum("course", "online_course", "merchandise", name="offering_kind_enum", native_enum=False)
schedule_status_enum = sa.Enum("active", "cancelled", name="schedule_status_enum", native_enum=False)
reservation_status_enum = sa.Enum(
    "draft",
    "pending_payment",
    "confirmed",
    "cancelled",
    "waitlisted",
    name="reservation_status_enum",
    native_enum=False,
)
payment_option_enum = sa.Enum("full", "deposit", name="payment_option_enum", native_enum=False)
discount_type_enum = sa.Enum("percent", "fixed_amount", name="discount_type_enum", native_enum=False)
payment_status_enum = sa.Enum("succeeded", "refunded", name="payment_status_enum", native_enum=False)
waitlist_status_enum = sa.Enum("waiting", "offered", "enrolled", "expired", name="waitlist_status_enum", native_enum=False)
notification_status_enum = sa.Enum("pending", "sent", "failed", name="notification_status_enum", native_enum=False)
outbox_status_enum = sa.Enum("pending", "processed", "failed", name="outbox_status_enum", native_enum=False)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def _money_col(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.Numeric(10, 2), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "roles",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("name", role_enum, nullable=False),
        sa.UniqueConstraint("name", name="uq_roles_name"),
    )

    op.create_table(
        "users",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=128), nullable=False),
        sa.Column("last_name", sa.String(length=128), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("role_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], name="fk_users_role_id_roles", ondelete="RESTRICT"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=False)

    op.create_table(
        "offerings",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("kind", offering_kind_enum, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _money_col("unit_price", nullable=False),
        _money_col("deposit_amount"),
        _money_col("sale_price"),
        sa.Column("sale_starts_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sale_ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("tax_jurisdiction", sa.String(length=32), nullable=True),
        sa.Column("is_published", sa.Boolean(), nullable=False),
        sa.CheckConstraint("capacity >= 0", name="ck_offerings_capacity_non_negative"),
    )
    op.create_index("ix_offerings_kind", "offerings", ["kind"], unique=False)
    op.create_index("ix_offerings_is_published", "offerings", ["is_published"], unique=False)

    op.create_table(
        "offering_schedules",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("offering_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("status", schedule_status_enum, nullable=False),
        sa.ForeignKeyConstraint(
            ["offering_id"],
            ["offerings.id"],
            name="fk_offering_schedules_offering_id_offerings",
            ondelete="CASCADE",
        ),
        sa.CheckConstraint("capacity >= 0", name="ck_offering_schedules_capacity_non_negative"),
    )
    op.create_index("ix_offering_schedules_offering_id", "offering_schedules", ["offering_id"], unique=False)
    op.create_index("ix_offering_schedules_start_at", "offering_schedules", ["start_at"], unique=False)
    op.create_index("ix_offering_schedules_status", "offering_schedules", ["status"], unique=False)

    op.create_table(
        "promo_codes",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("discount_type", discount_type_enum, nullable=False),
        _money_col("value", nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("max_total_uses", sa.Integer(), nullable=True),
        sa.Column("use_count", sa.Integer(), nullable=False),
        _money_col("min_subtotal"),
        sa.Column("offering_ids", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.UniqueConstraint("code", name="uq_promo_codes_code"),
    )
    op.create_index("ix_promo_codes_code", "promo_codes", ["code"], unique=False)

    op.create_table(
        "reservations",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("offering_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("schedule_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("purchaser_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("first_name", sa.String(length=128), nullable=False),
        sa.Column("last_name", sa.String(length=128), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("status", reservation_status_enum, nullable=False),
        sa.Column("payment_option", payment_option_enum, nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        _money_col("amount_due"),
        _money_col("subtotal_amount"),
        _money_col("discount_amount"),
        _money_col("tax_amount"),
        sa.Column("tax_included", sa.Boolean(), nullable=False),
        sa.Column("promo_code", sa.String(length=64), nullable=True),
        sa.Column("payment_intent_id", sa.String(length=128), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=512), nullable=True),
        sa.ForeignKeyConstraint(
            ["offering_id"],
            ["offerings.id"],
            name="fk_reservations_offering_id_offerings",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["schedule_id"],
            ["offering_schedules.id"],
            name="fk_reservations_schedule_id_offering_schedules",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["purchaser_id"],
            ["users.id"],
            name="fk_reservations_purchaser_id_users",
            ondelete="SET NULL",
        ),
        sa.UniqueConstraint("payment_intent_id", name="uq_reservations_payment_intent_id"),
        sa.CheckConstraint("quantity > 0", name="ck_reservations_quantity_positive"),
    )
    op.create_index("ix_reservations_offering_id", "reservations", ["offering_id"], unique=False)
    op.create_index("ix_reservations_schedule_id", "reservations", ["schedule_id"], unique=False)
    op.create_index("ix_reservations_purchaser_id", "reservations", ["purchaser_id"], unique=False)
    op.create_index("ix_reservations_email", "reservations", ["email"], unique=False)
    op.create_index("ix_reservations_status", "reservations", ["status"], unique=False)

    op.create_table(
        "reservation_lines",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("reservation_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("offering_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        _money_col("unit_price"),
        _money_col("subtotal_amount"),
        _money_col("discount_amount"),
        _money_col("tax_amount"),
        _money_col("total_amount"),
        sa.ForeignKeyConstraint(
            ["reservation_id"],
            ["reservations.id"],
            name="fk_reservation_lines_reservation_id_reservations",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["offering_id"],
            ["offerings.id"],
            name="fk_reservation_lines_offering_id_offerings",
            ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("reservation_id", "offering_id", name="uq_reservation_lines_reservation_offering"),
        sa.CheckConstraint("quantity > 0", name="ck_reservation_lines_quantity_positive"),
    )
    op.create_index("ix_reservation_lines_reservation_id", "reservation_lines", ["reservation_id"], unique=False)
    op.create_index("ix_reservation_lines_offering_id", "reservation_lines", ["offering_id"], unique=False)

    op.create_table(
        "payments",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("reservation_id", postgresql.UUID(as_uuid=True), nullable=False),
        _money_col("amount", nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("status", payment_status_enum, nullable=False),
        sa.Column("external_reference", sa.String(length=128), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["reservation_id"],
            ["reservations.id"],
            name="fk_payments_reservation_id_reservations",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("external_reference", name="uq_payments_external_reference"),
    )
    op.create_index("ix_payments_reservation_id", "payments", ["reservation_id"], unique=False)

    op.create_table(
        "waitlist_entries",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("offering_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("schedule_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("reservation_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("first_name", sa.String(length=128), nullable=False),
        sa.Column("last_name", sa.String(length=128), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("status", waitlist_status_enum, nullable=False),
        sa.ForeignKeyConstraint(
            ["offering_id"],
            ["offerings.id"],
            name="fk_waitlist_entries_offering_id_offerings",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["schedule_id"],
            ["offering_schedules.id"],
            name="fk_waitlist_entries_schedule_id_offering_schedules",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["reservation_id"],
            ["reservations.id"],
            name="fk_waitlist_entries_reservation_id_reservations",
            ondelete="SET NULL",
        ),
        sa.UniqueConstraint("reservation_id", name="uq_waitlist_entries_reservation_id"),
        sa.UniqueConstraint("offering_id", "position", name="uq_waitlist_entries_offering_position"),
    )
    op.create_index("ix_waitlist_entries_offering_id", "waitlist_entries", ["offering_id"], unique=False)
    op.create_index("ix_waitlist_entries_email", "waitlist_entries", ["email"], unique=False)
    op.create_index("ix_waitlist_entries_status", "waitlist_entries", ["status"], unique=False)

    op.create_table(
        "notifications",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("recipient_email", sa.String(length=255), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("status", notification_status_enum, nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_notifications_user_id_users", ondelete="SET NULL"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)
    op.create_index("ix_notifications_recipient_email", "notifications", ["recipient_email"], unique=False)
    op.create_index("ix_notifications_status", "notifications", ["status"], unique=False)

    op.create_table(
        "audit_logs",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("entity_type", sa.String(length=128), nullable=False),
        sa.Column("entity_id", sa.String(length=128), nullable=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.ForeignKeyConstraint(["actor_id"], ["users.id"], name="fk_audit_logs_actor_id_users", ondelete="SET NULL"),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)

    op.create_table(
        "outbox_events",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("aggregate_type", sa.String(length=128), nullable=False),
        sa.Column("aggregate_id", sa.String(length=128), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", outbox_status_enum, nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retries", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
    )
    op.create_index("ix_outbox_events_aggregate_type", "outbox_events", ["aggregate_type"], unique=False)
    op.create_index("ix_outbox_events_aggregate_id", "outbox_events", ["aggregate_id"], unique=False)
    op.create_index("ix_outbox_events_event_type", "outbox_events", ["event_type"], unique=False)
    op.create_index("ix_outbox_events_status", "outbox_events", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_outbox_events_status", table_name="outbox_events")
    op.drop_index("ix_outbox_events_event_type", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_id", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_type", table_name="outbox_events")
    op.drop_table("outbox_events")

    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_notifications_status", table_name="notifications")
    op.drop_index("ix_notifications_recipient_email", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_waitlist_entries_status", table_name="waitlist_entries")
    op.drop_index("ix_waitlist_entries_email", table_name="waitlist_entries")
    op.drop_index("ix_waitlist_entries_offering_id", table_name="waitlist_entries")
    op.drop_table("waitlist_entries")

    op.drop_index("ix_payments_reservation_id", table_name="payments")
    op.drop_table("payments")

    op.drop_index("ix_reservation_lines_offering_id", table_name="reservation_lines")
    op.drop_index("ix_reservation_lines_reservation_id", table_name="reservation_lines")
    op.drop_table("reservation_lines")

    op.drop_index("ix_reservations_status", table_name="reservations")
    op.drop_index("ix_reservations_email", table_name="reservations")
    op.drop_index("ix_reservations_purchaser_id", table_name="reservations")
    op.drop_index("ix_reservations_schedule_id", table_name="reservations")
    op.drop_index("ix_reservations_offering_id", table_name="reservations")
    op.drop_table("reservations")

    op.drop_index("ix_promo_codes_code", table_name="promo_codes")
    op.drop_table("promo_codes")

    op.drop_index("ix_offering_schedules_status", table_name="offering_schedules")
    op.drop_index("ix_offering_schedules_start_at", table_name="offering_schedules")
    op.drop_index("ix_offering_schedules_offering_id", table_name="offering_schedules")
    op.drop_table("offering_schedules")

    op.drop_index("ix_offerings_is_published", table_name="offerings")
    op.drop_index("ix_offerings_kind", table_name="offerings")
    op.drop_table("offerings")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    op.drop_table("roles")
