from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from discount_engine.db.models.discount_redemptions import DiscountRedemption


class DiscountRedemptionsRepo:
    @staticmethod
    async def create(
        session: AsyncSession, *, redemption: DiscountRedemption
    ) -> DiscountRedemption:
        session.add(redemption)
        await session.flush()
        return redemption

    @staticmethod
    async def get_by_idempotency_key(
        session: AsyncSession, idempotency_key: str
    ) -> DiscountRedemption | None:
        stmt = select(DiscountRedemption).where(
            DiscountRedemption.idempotency_key == idempotency_key
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_reservation_id(
        session: AsyncSession, reservation_id: UUID
    ) -> DiscountRedemption | None:
        stmt = select(DiscountRedemption).where(DiscountRedemption.reservation_id == reservation_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_single_use_by_code_and_customer(
        session: AsyncSession,
        *,
        discount_code_id: UUID,
        customer_id: str,
    ) -> DiscountRedemption | None:
        stmt = select(DiscountRedemption).where(
            DiscountRedemption.discount_code_id == discount_code_id,
            DiscountRedemption.customer_id == customer_id,
            DiscountRedemption.single_use.is_(True),
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def count_for_holder(
        session: AsyncSession,
        *,
        discount_code_id: UUID,
        holder_identity: str,
    ) -> int:
        stmt = select(func.count(DiscountRedemption.id)).where(
            DiscountRedemption.discount_code_id == discount_code_id,
            DiscountRedemption.holder_identity == holder_identity,
        )
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)

    @staticmethod
    async def count_for_code(session: AsyncSession, *, discount_code_id: UUID) -> int:
        stmt = select(func.count(DiscountRedemption.id)).where(
            DiscountRedemption.discount_code_id == discount_code_id
        )
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)
