from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from discount_engine.db.models.base import Base


class DiscountReservation(Base):
    __tablename__ = "discount_code_reservations"
    __table_args__ = (
        CheckConstraint(
            "redeemed_at IS NULL OR released_at IS NULL",
            name="ck_discount_code_reservations_single_terminal_state",
        ),
        CheckConstraint(
            "expires_at > created_at",
            name="ck_discount_code_reservations_expiry_after_creation",
        ),
        Index(
            "idx_discount_code_reservations_pending_expiry",
            "expires_at",
            postgresql_where=text("redeemed_at IS NULL AND released_at IS NULL"),
        ),
        Index(
            "idx_discount_code_reservations_holder",
            "discount_code_id",
            "holder_identity",
        ),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    discount_code_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("discount_codes.id"), nullable=False
    )
    holder_identity: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    redeemed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
