"""Create booking engine tables

Revision ID: 3f9a1c2d7b10
Revises:
Create Date: 2026-10-18 09:12:31.204518

"""

import sqlalchemy as sa

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "3f9a1c2d7b10"
down_revision = None
branch_labels = None
depends_on = None

SCHEMA = "booking"


def _timestamps(updated: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        )
    ]
    if updated:
        columns.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=False,
            )
        )
    return columns


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "villas",
        sa.Column("villa_uid", sa.String(64), primary_key=True),
        sa.Column("host_uid", sa.String(64), nullable=False, index=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column("guest_count", sa.Integer(), nullable=False),
        sa.Column("min_stay_nights", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("max_stay_nights", sa.Integer(), nullable=False),
        sa.Column("instant_book", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("nightly_rate", sa.Numeric(12, 2), nullable=False),
        sa.Column("cleaning_fee", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(16), nullable=False, server_default="USD"),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        schema=SCHEMA,
    )

    op.create_table(
        "villa_calendar",
        sa.Column("villa_calendar_uid", sa.String(64), primary_key=True),
        sa.Column(
            "villa_uid",
            sa.String(64),
            sa.ForeignKey(f"{SCHEMA}.villas.villa_uid", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False),
        sa.Column("source", sa.String(32), nullable=False),
        sa.Column("booking_uid", sa.String(64), nullable=True, index=True),
        sa.Column("held_from_source", sa.String(32), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("villa_uid", "date", name="uq_villa_calendar_villa_date"),
        schema=SCHEMA,
    )

    op.create_table(
        "villa_pricing_rules",
        sa.Column("rule_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "villa_uid",
            sa.String(64),
            sa.ForeignKey(f"{SCHEMA}.villas.villa_uid", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("nightly_rate", sa.Numeric(12, 2), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(updated=False),
        schema=SCHEMA,
    )

    op.create_table(
        "bookings",
        sa.Column("booking_uid", sa.String(64), primary_key=True),
        sa.Column(
            "villa_uid",
            sa.String(64),
            sa.ForeignKey(f"{SCHEMA}.villas.villa_uid", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column("guest_uid", sa.String(64), nullable=False, index=True),
        sa.Column("host_uid", sa.String(64), nullable=False, index=True),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("guest_count", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, index=True),
        sa.Column("instant_book", sa.Boolean(), nullable=False),
        sa.Column("price_nightly", sa.Numeric(12, 2), nullable=False),
        sa.Column("accommodation_total", sa.Numeric(12, 2), nullable=False),
        sa.Column("cleaning_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("service_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("tax_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("payout_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(16), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column(
            "review_prompted", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        *_timestamps(),
        schema=SCHEMA,
    )

    op.create_table(
        "booking_payments",
        sa.Column("payment_uid", sa.String(64), primary_key=True),
        sa.Column(
            "booking_uid",
            sa.String(64),
            sa.ForeignKey(f"{SCHEMA}.bookings.booking_uid", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column("method", sa.String(32), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(16), nullable=False),
        sa.Column("transaction_id", sa.String(128), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        schema=SCHEMA,
    )

    op.create_table(
        "payouts",
        sa.Column("payout_uid", sa.String(64), primary_key=True),
        sa.Column(
            "booking_uid",
            sa.String(64),
            sa.ForeignKey(f"{SCHEMA}.bookings.booking_uid", ondelete="RESTRICT"),
            nullable=False,
            unique=True,
        ),
        sa.Column("host_uid", sa.String(64), nullable=False, index=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("transfer_method", sa.String(32), nullable=False),
        sa.Column("transfer_reference", sa.String(128), nullable=True),
        *_timestamps(),
        schema=SCHEMA,
    )

    op.create_table(
        "reviews",
        sa.Column("review_uid", sa.String(64), primary_key=True),
        sa.Column(
            "booking_uid",
            sa.String(64),
            sa.ForeignKey(f"{SCHEMA}.bookings.booking_uid", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column("villa_uid", sa.String(64), nullable=False, index=True),
        sa.Column("direction", sa.String(32), nullable=False),
        sa.Column("author_uid", sa.String(64), nullable=False),
        sa.Column("subject_uid", sa.String(64), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("text", sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint("booking_uid", "direction", name="uq_reviews_booking_direction"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
        schema=SCHEMA,
    )

    # At most one paid and one in-flight payment per booking
    op.create_index(
        "uq_booking_payments_one_paid",
        "booking_payments",
        ["booking_uid"],
        unique=True,
        schema=SCHEMA,
        postgresql_where=sa.text("status = 'paid'"),
        sqlite_where=sa.text("status = 'paid'"),
    )
    op.create_index(
        "uq_booking_payments_one_pending",
        "booking_payments",
        ["booking_uid"],
        unique=True,
        schema=SCHEMA,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("uq_booking_payments_one_pending", "booking_payments", schema=SCHEMA)
    op.drop_index("uq_booking_payments_one_paid", "booking_payments", schema=SCHEMA)
    for table in (
        "reviews",
        "payouts",
        "booking_payments",
        "bookings",
        "villa_pricing_rules",
        "villa_calendar",
        "villas",
    ):
        op.drop_table(table, schema=SCHEMA)
