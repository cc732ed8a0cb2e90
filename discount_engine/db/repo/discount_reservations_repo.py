from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from discount_engine.db.models.discount_reservations import DiscountReservation


def _pending_clause():
    return (
        DiscountReservation.redeemed_at.is_(None),
        DiscountReservation.released_at.is_(None),
    )


class DiscountReservationsRepo:
    @staticmethod
    async def create(
        session: AsyncSession, *, reservation: DiscountReservation
    ) -> DiscountReservation:
        session.add(reservation)
        await session.flush()
        return reservation

    @staticmethod
    async def get_by_id(
        session: AsyncSession, reservation_id: UUID
    ) -> DiscountReservation | None:
        return await session.get(DiscountReservation, reservation_id)

    @staticmethod
    async def get_by_id_for_update(
        session: AsyncSession, reservation_id: UUID
    ) -> DiscountReservation | None:
        stmt = (
            select(DiscountReservation)
            .where(DiscountReservation.id == reservation_id)
            .with_for_update()
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_active_for_holder(
        session: AsyncSession,
        *,
        discount_code_id: UUID,
        holder_identity: str,
        now_utc: datetime,
    ) -> DiscountReservation | None:
        stmt = (
            select(DiscountReservation)
            .where(
                DiscountReservation.discount_code_id == discount_code_id,
                DiscountReservation.holder_identity == holder_identity,
                DiscountReservation.expires_at > now_utc,
                *_pending_clause(),
            )
            .order_by(DiscountReservation.expires_at.desc())
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_expired_pending(
        session: AsyncSession,
        *,
        cutoff_utc: datetime,
        limit: int,
    ) -> list[tuple[UUID, UUID]]:
        """Return (reservation_id, discount_code_id) pairs, oldest expiry first."""
        resolved_limit = max(1, int(limit))
        stmt = (
            select(DiscountReservation.id, DiscountReservation.discount_code_id)
            .where(DiscountReservation.expires_at <= cutoff_utc, *_pending_clause())
            .order_by(DiscountReservation.expires_at.asc(), DiscountReservation.id.asc())
            .limit(resolved_limit)
        )
        result = await session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    @staticmethod
    async def lock_pending_by_ids_skip_locked(
        session: AsyncSession,
        *,
        reservation_ids: Iterable[UUID],
        cutoff_utc: datetime,
    ) -> list[DiscountReservation]:
        ids = list(reservation_ids)
        if not ids:
            return []
        stmt = (
            select(DiscountReservation)
            .where(
                DiscountReservation.id.in_(ids),
                DiscountReservation.expires_at <= cutoff_utc,
                *_pending_clause(),
            )
            .order_by(DiscountReservation.id.asc())
            .with_for_update(skip_locked=True)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def count_pending_for_code(session: AsyncSession, *, discount_code_id: UUID) -> int:
        stmt = select(func.count(DiscountReservation.id)).where(
            DiscountReservation.discount_code_id == discount_code_id,
            *_pending_clause(),
        )
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)

    @staticmethod
    async def count_pending_by_expiry(
        session: AsyncSession,
        *,
        now_utc: datetime,
    ) -> dict[str, int]:
        expired = (DiscountReservation.expires_at <= now_utc).label("expired")
        stmt = (
            select(expired, func.count(DiscountReservation.id))
            .where(*_pending_clause())
            .group_by(expired)
        )
        result = await session.execute(stmt)
        counts = {"active": 0, "expired": 0}
        for is_expired, count in result.all():
            counts["expired" if is_expired else "active"] = int(count)
        return counts

    @staticmethod
    async def delete_terminal_for_code(session: AsyncSession, *, discount_code_id: UUID) -> int:
        stmt = delete(DiscountReservation).where(
            DiscountReservation.discount_code_id == discount_code_id,
            DiscountReservation.released_at.is_not(None),
        )
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0)
