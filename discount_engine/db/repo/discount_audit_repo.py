from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from discount_engine.db.models.discount_code_audit import DiscountCodeAuditEntry


class DiscountAuditRepo:
    @staticmethod
    async def create(
        session: AsyncSession, *, entry: DiscountCodeAuditEntry
    ) -> DiscountCodeAuditEntry:
        session.add(entry)
        await session.flush()
        return entry

    @staticmethod
    async def list_for_code(
        session: AsyncSession,
        *,
        discount_code_id: UUID,
        limit: int = 100,
    ) -> list[DiscountCodeAuditEntry]:
        resolved_limit = max(1, int(limit))
        stmt = (
            select(DiscountCodeAuditEntry)
            .where(DiscountCodeAuditEntry.discount_code_id == discount_code_id)
            .order_by(DiscountCodeAuditEntry.changed_at.desc(), DiscountCodeAuditEntry.id.desc())
            .limit(resolved_limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())
