from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import BOOLEAN, DateTime, ForeignKey, Index, String, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from discount_engine.db.models.base import Base


class DiscountRedemption(Base):
    __tablename__ = "discount_code_redemptions"
    __table_args__ = (
        Index(
            "uq_discount_code_redemptions_single_use_customer",
            "discount_code_id",
            "customer_id",
            unique=True,
            postgresql_where=text("single_use"),
        ),
        Index(
            "idx_discount_code_redemptions_holder",
            "discount_code_id",
            "holder_identity",
        ),
        Index("idx_discount_code_redemptions_code_time", "discount_code_id", "redeemed_at"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    discount_code_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("discount_codes.id"), nullable=False
    )
    customer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    holder_identity: Mapped[str] = mapped_column(String(255), nullable=False)
    reservation_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("discount_code_reservations.id"),
        unique=True,
        nullable=False,
    )
    idempotency_key: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    single_use: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, server_default=text("false"))
    redeemed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
