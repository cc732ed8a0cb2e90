"""discount_engine_core_schema

Revision ID: 5c1e8a2f7d40
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "5c1e8a2f7d40"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "subscription_plans",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("price_currency", sa.String(3), nullable=False, server_default=sa.text("'USD'")),
        sa.Column("billing_cycle", sa.String(16), nullable=False),
        sa.Column("provider_plan_id", sa.String(64), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("billing_cycle IN ('monthly','annual')", name="ck_subscription_plans_billing_cycle"),
        sa.CheckConstraint("price_amount > 0", name="ck_subscription_plans_price_positive"),
        sa.UniqueConstraint("provider_plan_id", name="uq_subscription_plans_provider_plan_id"),
    )
    op.create_index(
        "uq_subscription_plans_default",
        "subscription_plans",
        ["is_default"],
        unique=True,
        postgresql_where=sa.text("is_default"),
    )
    op.create_index("idx_subscription_plans_active", "subscription_plans", ["is_active", "sort_order"])

    op.create_table(
        "discount_codes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("plan_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("discount_type", sa.String(16), nullable=False),
        sa.Column("discount_value", sa.Numeric(10, 2), nullable=True),
        sa.Column("discount_duration_months", sa.SmallInteger(), nullable=False, server_default=sa.text("1")),
        sa.Column("max_uses", sa.Integer(), nullable=True),
        sa.Column("current_uses", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("reserved_uses", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("max_uses_per_customer", sa.Integer(), nullable=True, server_default=sa.text("1")),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=True),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("grace_period_minutes", sa.Integer(), nullable=False, server_default=sa.text("30")),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            "discount_type IN ('percentage','fixed_amount','free_trial')",
            name="ck_discount_codes_type",
        ),
        sa.CheckConstraint(
            "current_uses >= 0 AND reserved_uses >= 0",
            name="ck_discount_codes_uses_non_negative",
        ),
        sa.CheckConstraint(
            "max_uses IS NULL OR (current_uses + reserved_uses) <= max_uses",
            name="ck_discount_codes_uses_within_max",
        ),
        sa.CheckConstraint("max_uses IS NULL OR max_uses > 0", name="ck_discount_codes_max_uses_positive"),
        sa.CheckConstraint(
            "valid_from IS NULL OR valid_until IS NULL OR valid_from < valid_until",
            name="ck_discount_codes_valid_range",
        ),
        sa.CheckConstraint(
            "discount_value IS NULL OR discount_value > 0",
            name="ck_discount_codes_value_positive",
        ),
        sa.CheckConstraint(
            "discount_type != 'percentage' OR discount_value <= 100",
            name="ck_discount_codes_percentage_max_100",
        ),
        sa.CheckConstraint("discount_duration_months > 0", name="ck_discount_codes_duration_positive"),
        sa.CheckConstraint(
            "max_uses_per_customer IS NULL OR max_uses_per_customer > 0",
            name="ck_discount_codes_per_customer_positive",
        ),
        sa.CheckConstraint("grace_period_minutes >= 0", name="ck_discount_codes_grace_non_negative"),
        sa.CheckConstraint("code ~ '^[A-Z0-9]+$'", name="ck_discount_codes_code_format"),
        sa.ForeignKeyConstraint(["plan_id"], ["subscription_plans.id"]),
        sa.UniqueConstraint("code", name="uq_discount_codes_code"),
    )
    op.create_index("idx_discount_codes_active", "discount_codes", ["is_active", "valid_from", "valid_until"])
    op.create_index("idx_discount_codes_plan", "discount_codes", ["plan_id"])

    op.create_table(
        "discount_code_reservations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("discount_code_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("holder_identity", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "redeemed_at IS NULL OR released_at IS NULL",
            name="ck_discount_code_reservations_single_terminal_state",
        ),
        sa.CheckConstraint(
            "expires_at > created_at",
            name="ck_discount_code_reservations_expiry_after_creation",
        ),
        sa.ForeignKeyConstraint(["discount_code_id"], ["discount_codes.id"]),
    )
    op.create_index(
        "idx_discount_code_reservations_pending_expiry",
        "discount_code_reservations",
        ["expires_at"],
        postgresql_where=sa.text("redeemed_at IS NULL AND released_at IS NULL"),
    )
    op.create_index(
        "idx_discount_code_reservations_holder",
        "discount_code_reservations",
        ["discount_code_id", "holder_identity"],
    )

    op.create_table(
        "discount_code_redemptions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("discount_code_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("holder_identity", sa.String(255), nullable=False),
        sa.Column("reservation_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("idempotency_key", sa.String(128), nullable=False),
        sa.Column("single_use", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["discount_code_id"], ["discount_codes.id"]),
        sa.ForeignKeyConstraint(["reservation_id"], ["discount_code_reservations.id"]),
        sa.UniqueConstraint("idempotency_key", name="uq_discount_code_redemptions_idempotency_key"),
        sa.UniqueConstraint("reservation_id", name="uq_discount_code_redemptions_reservation_id"),
    )
    op.create_index(
        "uq_discount_code_redemptions_single_use_customer",
        "discount_code_redemptions",
        ["discount_code_id", "customer_id"],
        unique=True,
        postgresql_where=sa.text("single_use"),
    )
    op.create_index(
        "idx_discount_code_redemptions_holder",
        "discount_code_redemptions",
        ["discount_code_id", "holder_identity"],
    )
    op.create_index(
        "idx_discount_code_redemptions_code_time",
        "discount_code_redemptions",
        ["discount_code_id", "redeemed_at"],
    )

    op.create_table(
        "discount_code_audit",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("discount_code_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("action", sa.String(16), nullable=False),
        sa.Column("changed_by", sa.String(64), nullable=True),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("old_values", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column(
            "new_values",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.CheckConstraint(
            "action IN ('created','updated','activated','deactivated','exhausted')",
            name="ck_discount_code_audit_action",
        ),
        sa.ForeignKeyConstraint(["discount_code_id"], ["discount_codes.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_discount_code_audit_code", "discount_code_audit", ["discount_code_id", "changed_at"])
    op.create_index("idx_discount_code_audit_action", "discount_code_audit", ["action", "changed_at"])


def downgrade() -> None:
    op.drop_index("idx_discount_code_audit_action", table_name="discount_code_audit")
    op.drop_index("idx_discount_code_audit_code", table_name="discount_code_audit")
    op.drop_table("discount_code_audit")

    op.drop_index("idx_discount_code_redemptions_code_time", table_name="discount_code_redemptions")
    op.drop_index("idx_discount_code_redemptions_holder", table_name="discount_code_redemptions")
    op.drop_index("uq_discount_code_redemptions_single_use_customer", table_name="discount_code_redemptions")
    op.drop_table("discount_code_redemptions")

    op.drop_index("idx_discount_code_reservations_holder", table_name="discount_code_reservations")
    op.drop_index("idx_discount_code_reservations_pending_expiry", table_name="discount_code_reservations")
    op.drop_table("discount_code_reservations")

    op.drop_index("idx_discount_codes_plan", table_name="discount_codes")
    op.drop_index("idx_discount_codes_active", table_name="discount_codes")
    op.drop_table("discount_codes")

    op.drop_index("idx_subscription_plans_active", table_name="subscription_plans")
    op.drop_index("uq_subscription_plans_default", table_name="subscription_plans")
    op.drop_table("subscription_plans")
