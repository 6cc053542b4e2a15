"""create bookings

Revision ID: 20261018_02
Revises: 20261018_01
Create Date: 2026-10-18 09:10:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261018_02"
down_revision: Union[str, None] = "20261018_01"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "bookings",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("slot_key", sa.String(length=32), nullable=False),
        sa.Column("user_name", sa.String(length=100), nullable=False),
        sa.Column("address", sa.String(length=500), nullable=False),
        sa.Column("phone_number", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("pending_since", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_override", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("last_modified_by", sa.String(length=255), nullable=True),
        sa.Column("last_modified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("owner_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["owner_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'expired')",
            name="ck_bookings_status",
        ),
    )
    op.create_index("ix_bookings_booking_date", "bookings", ["booking_date"], unique=False)
    op.create_index("ix_bookings_owner_user_id", "bookings", ["owner_user_id"], unique=False)
    op.create_index("ix_bookings_status_pending_since", "bookings", ["status", "pending_since"], unique=False)
    op.create_index(
        "uq_bookings_live_slot",
        "bookings",
        ["booking_date", "slot_key"],
        unique=True,
        postgresql_where=sa.text("status <> 'expired'"),
    )


def downgrade() -> None:
    op.drop_index("uq_bookings_live_slot", table_name="bookings")
    op.drop_index("ix_bookings_status_pending_since", table_name="bookings")
    op.drop_index("ix_bookings_owner_user_id", table_name="bookings")
    op.drop_index("ix_bookings_booking_date", table_name="bookings")
    op.drop_table("bookings")
