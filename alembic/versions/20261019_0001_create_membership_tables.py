"""create membership, redemption, notification and outbox tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())


def _user_fk(column: str = "user_id", *, ondelete: str = "CASCADE") -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint([column], ["users.id"], ondelete=ondelete)


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not _table_exists(inspector, "users"):
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("last_sign_in_at", sa.DateTime(timezone=True), nullable=True),
            _created_at(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
        )
        op.create_index("ix_users_email", "users", ["email"], unique=False)
        op.create_index("ux_users_email_lower", "users", [sa.text("lower(email)")], unique=True)

    if not _table_exists(inspector, "profiles"):
        op.create_table(
            "profiles",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=True),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("full_name", sa.String(length=100), nullable=True),
            sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
            _created_at(),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            _user_fk(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("user_id"),
        )
        op.create_index("ix_profiles_user_id", "profiles", ["user_id"], unique=False)

    if not _table_exists(inspector, "user_roles"):
        op.create_table(
            "user_roles",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False),
            _user_fk(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_user_roles_user_id", "user_roles", ["user_id"], unique=False)
        op.create_index("ux_user_roles_user_role", "user_roles", ["user_id", "role"], unique=True)

    if not _table_exists(inspector, "businesses"):
        op.create_table(
            "businesses",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("owner_user_id", sa.String(length=36), nullable=False),
            sa.Column("business_name", sa.String(length=255), nullable=False),
            sa.Column("verification_status", sa.String(length=20), nullable=False, server_default="pending"),
            _created_at(),
            _user_fk("owner_user_id"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_businesses_owner_user_id", "businesses", ["owner_user_id"], unique=False)

    if not _table_exists(inspector, "memberships"):
        op.create_table(
            "memberships",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("member_number", sa.String(length=50), nullable=False),
            sa.Column("plan_type", sa.String(length=30), nullable=False, server_default="free"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("pet_name", sa.String(length=100), nullable=True),
            _created_at(),
            _user_fk(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_memberships_user_id", "memberships", ["user_id"], unique=False)
        op.create_index("ix_memberships_member_number", "memberships", ["member_number"], unique=True)
        op.create_index("ix_memberships_active_expires_at", "memberships", ["is_active", "expires_at"], unique=False)

    if not _table_exists(inspector, "pets"):
        op.create_table(
            "pets",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("membership_id", sa.String(length=36), nullable=False),
            sa.Column("owner_user_id", sa.String(length=36), nullable=False),
            sa.Column("pet_name", sa.String(length=100), nullable=False),
            sa.Column("pet_type", sa.String(length=20), nullable=False, server_default="dog"),
            sa.Column("pet_breed", sa.String(length=100), nullable=True),
            sa.Column("birthday", sa.Date(), nullable=True),
            sa.Column("photo_url", sa.String(length=500), nullable=True),
            _created_at(),
            sa.ForeignKeyConstraint(["membership_id"], ["memberships.id"], ondelete="CASCADE"),
            _user_fk("owner_user_id"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_pets_membership_id", "pets", ["membership_id"], unique=False)
        op.create_index("ix_pets_owner_user_id", "pets", ["owner_user_id"], unique=False)

    if not _table_exists(inspector, "membership_expiry_notifications"):
        op.create_table(
            "membership_expiry_notifications",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("membership_id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("notification_type", sa.String(length=30), nullable=False),
            sa.Column("days_until_expiry", sa.Integer(), nullable=False),
            sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["membership_id"], ["memberships.id"], ondelete="CASCADE"),
            _user_fk(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_membership_expiry_notifications_membership_id",
            "membership_expiry_notifications",
            ["membership_id"],
            unique=False,
        )
        op.create_index(
            "ix_membership_expiry_notifications_user_id",
            "membership_expiry_notifications",
            ["user_id"],
            unique=False,
        )
        op.create_index(
            "ux_membership_expiry_notifications_membership_type",
            "membership_expiry_notifications",
            ["membership_id", "notification_type"],
            unique=True,
        )

    if not _table_exists(inspector, "offers"):
        op.create_table(
            "offers",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("business_id", sa.String(length=36), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("discount_value", sa.Numeric(10, 2), nullable=True),
            sa.Column("discount_type", sa.String(length=20), nullable=False, server_default="percentage"),
            sa.Column("pet_type", sa.String(length=20), nullable=True),
            sa.Column("max_redemptions", sa.Integer(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            _created_at(),
            sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_offers_business_id", "offers", ["business_id"], unique=False)

    if not _table_exists(inspector, "offer_redemptions"):
        op.create_table(
            "offer_redemptions",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("membership_id", sa.String(length=36), nullable=False),
            sa.Column("offer_id", sa.String(length=36), nullable=False),
            sa.Column("business_id", sa.String(length=36), nullable=False),
            sa.Column("redeemed_by_user_id", sa.String(length=36), nullable=False),
            sa.Column("pet_id", sa.String(length=36), nullable=True),
            sa.Column("member_name", sa.String(length=100), nullable=True),
            sa.Column("member_number", sa.String(length=50), nullable=True),
            sa.Column("pet_names", sa.String(length=500), nullable=True),
            sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["membership_id"], ["memberships.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["offer_id"], ["offers.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["pet_id"], ["pets.id"], ondelete="SET NULL"),
            _user_fk("redeemed_by_user_id"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("membership_id", "offer_id", name="uq_offer_redemptions_membership_offer"),
        )
        op.create_index("ix_offer_redemptions_membership_id", "offer_redemptions", ["membership_id"], unique=False)
        op.create_index("ix_offer_redemptions_offer_id", "offer_redemptions", ["offer_id"], unique=False)
        op.create_index("ix_offer_redemptions_business_id", "offer_redemptions", ["business_id"], unique=False)
        op.create_index(
            "ix_offer_redemptions_redeemed_by_user_id",
            "offer_redemptions",
            ["redeemed_by_user_id"],
            unique=False,
        )

    if not _table_exists(inspector, "rating_prompts"):
        op.create_table(
            "rating_prompts",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("business_id", sa.String(length=36), nullable=False),
            sa.Column("redemption_id", sa.String(length=36), nullable=False),
            sa.Column("prompt_after", sa.DateTime(timezone=True), nullable=False),
            sa.Column("dismissed", sa.Boolean(), nullable=False, server_default=sa.false()),
            _created_at(),
            _user_fk(),
            sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["redemption_id"], ["offer_redemptions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_rating_prompts_user_id", "rating_prompts", ["user_id"], unique=False)

    if not _table_exists(inspector, "sent_birthday_offers"):
        op.create_table(
            "sent_birthday_offers",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("business_id", sa.String(length=36), nullable=False),
            sa.Column("owner_user_id", sa.String(length=36), nullable=False),
            sa.Column("pet_id", sa.String(length=36), nullable=True),
            sa.Column("pet_name", sa.String(length=100), nullable=False),
            sa.Column("owner_name", sa.String(length=100), nullable=True),
            sa.Column("discount_value", sa.Numeric(10, 2), nullable=False),
            sa.Column("discount_type", sa.String(length=20), nullable=False, server_default="percentage"),
            sa.Column("message", sa.String(length=1000), nullable=False, server_default=""),
            sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("redeemed_by_business_id", sa.String(length=36), nullable=True),
            sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["redeemed_by_business_id"], ["businesses.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["pet_id"], ["pets.id"], ondelete="SET NULL"),
            _user_fk("owner_user_id"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_sent_birthday_offers_business_id", "sent_birthday_offers", ["business_id"], unique=False)
        op.create_index(
            "ix_sent_birthday_offers_owner_user_id",
            "sent_birthday_offers",
            ["owner_user_id"],
            unique=False,
        )
        op.create_index(
            "ix_sent_birthday_offers_owner_sent_at",
            "sent_birthday_offers",
            ["owner_user_id", "sent_at"],
            unique=False,
        )

    if not _table_exists(inspector, "notifications"):
        op.create_table(
            "notifications",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("type", sa.String(length=50), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("message", sa.String(length=1000), nullable=False),
            sa.Column("data", sa.JSON(), nullable=True),
            sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
            _created_at(),
            _user_fk(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)
        op.create_index(
            "ix_notifications_user_type_created_at",
            "notifications",
            ["user_id", "type", "created_at"],
            unique=False,
        )

    if not _table_exists(inspector, "analytics_events"):
        op.create_table(
            "analytics_events",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=True),
            sa.Column("event_type", sa.String(length=60), nullable=False),
            sa.Column("entity_type", sa.String(length=60), nullable=True),
            sa.Column("entity_id", sa.String(length=36), nullable=True),
            sa.Column("entity_name", sa.String(length=255), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
            _created_at(),
            _user_fk(ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_analytics_events_user_id", "analytics_events", ["user_id"], unique=False)
        op.create_index("ix_analytics_events_event_type", "analytics_events", ["event_type"], unique=False)

    if not _table_exists(inspector, "email_verification_tokens"):
        op.create_table(
            "email_verification_tokens",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("token_hash", sa.String(length=128), nullable=False),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
            _created_at(),
            _user_fk(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_email_verification_tokens_user_id",
            "email_verification_tokens",
            ["user_id"],
            unique=False,
        )
        op.create_index(
            "ix_email_verification_tokens_token_hash",
            "email_verification_tokens",
            ["token_hash"],
            unique=True,
        )

    if not _table_exists(inspector, "verification_attempts"):
        op.create_table(
            "verification_attempts",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("business_id", sa.String(length=36), nullable=False),
            sa.Column("attempted_member_id", sa.String(length=50), nullable=False),
            sa.Column("success", sa.Boolean(), nullable=False),
            sa.Column("ip_address", sa.String(length=64), nullable=True),
            _created_at(),
            sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_verification_attempts_business_success_created_at",
            "verification_attempts",
            ["business_id", "success", "created_at"],
            unique=False,
        )

    if not _table_exists(inspector, "audit_logs"):
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("actor_user_id", sa.String(length=36), nullable=False),
            sa.Column("actor_email", sa.String(length=255), nullable=True),
            sa.Column("action", sa.String(length=100), nullable=False),
            sa.Column("target_type", sa.String(length=100), nullable=False),
            sa.Column("target_id", sa.String(length=36), nullable=True),
            sa.Column("metadata_json", sa.JSON(), nullable=True),
            _created_at(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_audit_logs_actor_user_id", "audit_logs", ["actor_user_id"], unique=False)
        op.create_index("ix_audit_logs_target_id", "audit_logs", ["target_id"], unique=False)
        op.create_index("ix_audit_logs_action_created_at", "audit_logs", ["action", "created_at"], unique=False)
        op.create_index("ix_audit_logs_actor_created_at", "audit_logs", ["actor_user_id", "created_at"], unique=False)

    if not _table_exists(inspector, "side_effect_tasks"):
        op.create_table(
            "side_effect_tasks",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("operation", sa.String(length=60), nullable=False),
            sa.Column("kind", sa.String(length=60), nullable=False),
            sa.Column("payload_json", sa.JSON(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("attempt_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("max_attempts", sa.Integer(), nullable=False, server_default="5"),
            sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column("last_error", sa.String(length=500), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            _created_at(),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_side_effect_tasks_operation", "side_effect_tasks", ["operation"], unique=False)
        op.create_index("ix_side_effect_tasks_kind", "side_effect_tasks", ["kind"], unique=False)
        op.create_index(
            "ix_side_effect_tasks_status_next_attempt",
            "side_effect_tasks",
            ["status", "next_attempt_at"],
            unique=False,
        )


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    for table_name in (
        "side_effect_tasks",
        "audit_logs",
        "verification_attempts",
        "email_verification_tokens",
        "analytics_events",
        "notifications",
        "sent_birthday_offers",
        "rating_prompts",
        "offer_redemptions",
        "offers",
        "membership_expiry_notifications",
        "pets",
        "memberships",
        "businesses",
        "user_roles",
        "profiles",
        "users",
    ):
        if _table_exists(inspector, table_name):
            op.drop_table(table_name)
