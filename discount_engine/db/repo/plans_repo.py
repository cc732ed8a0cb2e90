from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from discount_engine.db.models.subscription_plans import SubscriptionPlan


class PlansRepo:
    @staticmethod
    async def create(session: AsyncSession, *, plan: SubscriptionPlan) -> SubscriptionPlan:
        session.add(plan)
        await session.flush()
        return plan

    @staticmethod
    async def get_by_id(session: AsyncSession, plan_id: UUID) -> SubscriptionPlan | None:
        return await session.get(SubscriptionPlan, plan_id)

    @staticmethod
    async def get_by_id_for_update(
        session: AsyncSession, plan_id: UUID
    ) -> SubscriptionPlan | None:
        stmt = select(SubscriptionPlan).where(SubscriptionPlan.id == plan_id).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_plans(
        session: AsyncSession,
        *,
        include_inactive: bool = False,
    ) -> list[SubscriptionPlan]:
        stmt = select(SubscriptionPlan).order_by(
            SubscriptionPlan.sort_order.asc(),
            SubscriptionPlan.created_at.asc(),
        )
        if not include_inactive:
            stmt = stmt.where(SubscriptionPlan.is_active.is_(True))
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def clear_default(
        session: AsyncSession,
        *,
        now_utc: datetime,
        except_plan_id: UUID | None = None,
    ) -> int:
        stmt = (
            update(SubscriptionPlan)
            .where(SubscriptionPlan.is_default.is_(True))
            .values(is_default=False, updated_at=now_utc)
        )
        if except_plan_id is not None:
            stmt = stmt.where(SubscriptionPlan.id != except_plan_id)
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0)

    @staticmethod
    async def get_active_default(session: AsyncSession) -> SubscriptionPlan | None:
        stmt = select(SubscriptionPlan).where(
            SubscriptionPlan.is_default.is_(True),
            SubscriptionPlan.is_active.is_(True),
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()
