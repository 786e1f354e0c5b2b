"""add business birthday settings table

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 15:30:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261019_0002"
down_revision: Union[str, None] = "20261019_0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "business_birthday_settings",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("business_id", sa.String(length=36), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("days_before_reminder", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("custom_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("business_id", name="uq_business_birthday_settings_business_id"),
    )
    op.create_index(
        "ix_business_birthday_settings_enabled",
        "business_birthday_settings",
        ["enabled"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_business_birthday_settings_enabled", table_name="business_birthday_settings")
    op.drop_table("business_birthday_settings")
