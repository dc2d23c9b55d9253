"""Add booking guest roster

Revision ID: 8c41d7e02a55
Revises: 3f9a1c2d7b10
Create Date: 2026-10-18 14:03:12.887104

"""

import sqlalchemy as sa

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "8c41d7e02a55"
down_revision = "3f9a1c2d7b10"
branch_labels = None
depends_on = None

SCHEMA = "booking"


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "booking_guests",
        sa.Column("booking_guest_uid", sa.String(64), primary_key=True),
        sa.Column(
            "booking_uid",
            sa.String(64),
            sa.ForeignKey(f"{SCHEMA}.bookings.booking_uid", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("user_uid", sa.String(64), nullable=False, index=True),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.UniqueConstraint("booking_uid", "user_uid", name="uq_booking_guests_booking_user"),
        schema=SCHEMA,
    )
    op.create_index(
        "uq_booking_guests_one_primary",
        "booking_guests",
        ["booking_uid"],
        unique=True,
        schema=SCHEMA,
        postgresql_where=sa.text("is_primary"),
    )

    # Existing bookings get their guest as the primary roster entry
    op.execute(
        f"""
        INSERT INTO {SCHEMA}.booking_guests (booking_guest_uid, booking_uid, user_uid, is_primary)
        SELECT md5(booking_uid || '-primary'), booking_uid, guest_uid, true
        FROM {SCHEMA}.bookings
        """
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("uq_booking_guests_one_primary", "booking_guests", schema=SCHEMA)
    op.drop_table("booking_guests", schema=SCHEMA)
