from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BOOLEAN,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    SmallInteger,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from discount_engine.db.models.base import Base


class DiscountCode(Base):
    __tablename__ = "discount_codes"
    __table_args__ = (
        CheckConstraint(
            "discount_type IN ('percentage','fixed_amount','free_trial')",
            name="ck_discount_codes_type",
        ),
        CheckConstraint(
            "current_uses >= 0 AND reserved_uses >= 0",
            name="ck_discount_codes_uses_non_negative",
        ),
        CheckConstraint(
            "max_uses IS NULL OR (current_uses + reserved_uses) <= max_uses",
            name="ck_discount_codes_uses_within_max",
        ),
        CheckConstraint("max_uses IS NULL OR max_uses > 0", name="ck_discount_codes_max_uses_positive"),
        CheckConstraint(
            "valid_from IS NULL OR valid_until IS NULL OR valid_from < valid_until",
            name="ck_discount_codes_valid_range",
        ),
        CheckConstraint(
            "discount_value IS NULL OR discount_value > 0",
            name="ck_discount_codes_value_positive",
        ),
        CheckConstraint(
            "discount_type != 'percentage' OR discount_value <= 100",
            name="ck_discount_codes_percentage_max_100",
        ),
        CheckConstraint(
            "discount_duration_months > 0",
            name="ck_discount_codes_duration_positive",
        ),
        CheckConstraint(
            "max_uses_per_customer IS NULL OR max_uses_per_customer > 0",
            name="ck_discount_codes_per_customer_positive",
        ),
        CheckConstraint("grace_period_minutes >= 0", name="ck_discount_codes_grace_non_negative"),
        CheckConstraint("code ~ '^[A-Z0-9]+$'", name="ck_discount_codes_code_format"),
        Index("idx_discount_codes_active", "is_active", "valid_from", "valid_until"),
        Index("idx_discount_codes_plan", "plan_id"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    plan_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("subscription_plans.id"), nullable=False
    )
    discount_type: Mapped[str] = mapped_column(String(16), nullable=False)
    discount_value: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    discount_duration_months: Mapped[int] = mapped_column(
        SmallInteger, nullable=False, server_default=text("1")
    )
    max_uses: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_uses: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    reserved_uses: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    max_uses_per_customer: Mapped[int | None] = mapped_column(
        Integer, nullable=True, server_default=text("1")
    )
    valid_from: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    valid_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, server_default=text("true"))
    deactivated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    grace_period_minutes: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("30")
    )
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
