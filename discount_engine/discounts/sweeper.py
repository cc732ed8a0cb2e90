from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from discount_engine.db.repo.discount_codes_repo import DiscountCodesRepo
from discount_engine.db.repo.discount_reservations_repo import DiscountReservationsRepo

logger = structlog.get_logger(__name__)

DEFAULT_SWEEP_BATCH_SIZE = 500


class ReclamationSweeper:
    @staticmethod
    async def _release_group(
        session: AsyncSession,
        *,
        discount_code_id: UUID,
        reservation_ids: list[UUID],
        cutoff_utc: datetime,
        now_utc: datetime,
    ) -> int:
        reservations = await DiscountReservationsRepo.lock_pending_by_ids_skip_locked(
            session,
            reservation_ids=reservation_ids,
            cutoff_utc=cutoff_utc,
        )
        if not reservations:
            return 0

        discount_code = await DiscountCodesRepo.get_by_id_for_update(session, discount_code_id)
        for reservation in reservations:
            reservation.released_at = now_utc

        released = len(reservations)
        if discount_code is None:
            return released

        if discount_code.reserved_uses < released:
            logger.warning(
                "discount_reserved_uses_drift",
                discount_code_id=str(discount_code_id),
                reserved_uses=discount_code.reserved_uses,
                released=released,
                source="sweep",
            )
        discount_code.reserved_uses = max(0, discount_code.reserved_uses - released)
        discount_code.updated_at = now_utc
        await session.flush()
        return released

    @staticmethod
    async def sweep(
        session_factory: async_sessionmaker[AsyncSession],
        *,
        grace: timedelta = timedelta(0),
        batch_size: int = DEFAULT_SWEEP_BATCH_SIZE,
        now_utc: datetime | None = None,
    ) -> int:
        """Release expired pending reservations and return how many were released.

        Each code is handled in its own transaction so one hot code never holds
        the locks of another. Rows locked by an in-flight finalize are skipped
        and picked up on a later run.
        """
        now_utc = now_utc or datetime.now(timezone.utc)
        cutoff_utc = now_utc - grace

        async with session_factory() as session:
            expired = await DiscountReservationsRepo.list_expired_pending(
                session,
                cutoff_utc=cutoff_utc,
                limit=batch_size,
            )

        groups: dict[UUID, list[UUID]] = defaultdict(list)
        for reservation_id, discount_code_id in expired:
            groups[discount_code_id].append(reservation_id)

        released_total = 0
        for discount_code_id, reservation_ids in groups.items():
            async with session_factory.begin() as session:
                released_total += await ReclamationSweeper._release_group(
                    session,
                    discount_code_id=discount_code_id,
                    reservation_ids=reservation_ids,
                    cutoff_utc=cutoff_utc,
                    now_utc=now_utc,
                )

        logger.info(
            "discount_reservation_sweep_finished",
            candidates=len(expired),
            codes=len(groups),
            released=released_total,
        )
        return released_total
