"""create admin settings

Revision ID: 20261018_03
Revises: 20261018_02
Create Date: 2026-10-18 09:20:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261018_03"
down_revision: Union[str, None] = "20261018_02"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    admin_settings = op.create_table(
        "admin_settings",
        sa.Column("setting_key", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("setting_value", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.bulk_insert(
        admin_settings,
        [
            {
                "setting_key": "booking_system_enabled",
                "setting_value": "true",
                "description": "Accept new booking requests",
            },
            {
                "setting_key": "maintenance_mode",
                "setting_value": "false",
                "description": "Show maintenance banner and block bookings",
            },
        ],
    )


def downgrade() -> None:
    op.drop_table("admin_settings")
