from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from discount_engine.db.models.discount_codes import DiscountCode
from discount_engine.db.models.subscription_plans import SubscriptionPlan


class DiscountCodesRepo:
    @staticmethod
    async def create(session: AsyncSession, *, discount_code: DiscountCode) -> DiscountCode:
        session.add(discount_code)
        await session.flush()
        return discount_code

    @staticmethod
    async def get_by_id(session: AsyncSession, discount_code_id: UUID) -> DiscountCode | None:
        return await session.get(DiscountCode, discount_code_id)

    @staticmethod
    async def get_by_id_for_update(
        session: AsyncSession, discount_code_id: UUID
    ) -> DiscountCode | None:
        stmt = select(DiscountCode).where(DiscountCode.id == discount_code_id).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_code(session: AsyncSession, code: str) -> DiscountCode | None:
        stmt = select(DiscountCode).where(DiscountCode.code == code)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_code_for_update_nowait(
        session: AsyncSession, code: str
    ) -> DiscountCode | None:
        stmt = select(DiscountCode).where(DiscountCode.code == code).with_for_update(nowait=True)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_active_code_strings(session: AsyncSession) -> list[str]:
        stmt = select(DiscountCode.code).where(DiscountCode.is_active.is_(True))
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_codes_with_plans(
        session: AsyncSession,
        *,
        plan_id: UUID | None = None,
        is_active: bool | None = None,
        limit: int = 100,
    ) -> list[tuple[DiscountCode, SubscriptionPlan | None]]:
        resolved_limit = max(1, int(limit))
        stmt = (
            select(DiscountCode, SubscriptionPlan)
            .outerjoin(SubscriptionPlan, SubscriptionPlan.id == DiscountCode.plan_id)
            .order_by(DiscountCode.created_at.desc(), DiscountCode.code.asc())
            .limit(resolved_limit)
        )
        if plan_id is not None:
            stmt = stmt.where(DiscountCode.plan_id == plan_id)
        if is_active is not None:
            stmt = stmt.where(DiscountCode.is_active.is_(is_active))
        result = await session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    @staticmethod
    async def delete(session: AsyncSession, *, discount_code: DiscountCode) -> None:
        await session.delete(discount_code)
        await session.flush()
