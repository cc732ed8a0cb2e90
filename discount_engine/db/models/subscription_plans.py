from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BOOLEAN,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from discount_engine.db.models.base import Base


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"
    __table_args__ = (
        CheckConstraint(
            "billing_cycle IN ('monthly','annual')",
            name="ck_subscription_plans_billing_cycle",
        ),
        CheckConstraint("price_amount > 0", name="ck_subscription_plans_price_positive"),
        Index(
            "uq_subscription_plans_default",
            "is_default",
            unique=True,
            postgresql_where=text("is_default"),
        ),
        Index("idx_subscription_plans_active", "is_active", "sort_order"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    price_currency: Mapped[str] = mapped_column(
        String(3), nullable=False, server_default=text("'USD'")
    )
    billing_cycle: Mapped[str] = mapped_column(String(16), nullable=False)
    provider_plan_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    is_default: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, server_default=text("false"))
    is_active: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, server_default=text("true"))
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
