from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID, uuid4

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from discount_engine.db.models.discount_redemptions import DiscountRedemption
from discount_engine.db.repo.discount_codes_repo import DiscountCodesRepo
from discount_engine.db.repo.discount_redemptions_repo import DiscountRedemptionsRepo
from discount_engine.db.repo.discount_reservations_repo import DiscountReservationsRepo
from discount_engine.discounts.audit import record_code_change, snapshot_code
from discount_engine.discounts.constants import (
    FINALIZE_ALREADY_FINALIZED,
    FINALIZE_FINALIZED,
    FINALIZE_NOT_FOUND,
    FINALIZE_REASON_CODE_INACTIVE,
    FINALIZE_REASON_CONCURRENT_INSERT,
    FINALIZE_REASON_IDEMPOTENT_REPLAY,
    FINALIZE_REASON_RESERVATION_MISSING,
    FINALIZE_REASON_RESERVATION_REDEEMED,
    FINALIZE_REASON_RESERVATION_RELEASED,
)
from discount_engine.discounts.eligibility import is_exhausted, is_finalizable
from discount_engine.discounts.types import FinalizeResult

logger = structlog.get_logger(__name__)


class RedemptionFinalizer:
    @staticmethod
    def _replayed(
        *,
        reservation_id: UUID,
        redemption: DiscountRedemption | None,
        reason: str,
    ) -> FinalizeResult:
        logger.info(
            "discount_finalize_replayed",
            reservation_id=str(reservation_id),
            redemption_id=str(redemption.id) if redemption is not None else None,
            reason=reason,
        )
        return FinalizeResult(
            status=FINALIZE_ALREADY_FINALIZED,
            reservation_id=reservation_id,
            redemption_id=redemption.id if redemption is not None else None,
            discount_code_id=redemption.discount_code_id if redemption is not None else None,
            reason=reason,
        )

    @staticmethod
    def _not_found(
        *,
        reservation_id: UUID,
        reason: str,
        discount_code_id: UUID | None = None,
    ) -> FinalizeResult:
        logger.warning(
            "discount_finalize_not_found",
            reservation_id=str(reservation_id),
            discount_code_id=str(discount_code_id) if discount_code_id is not None else None,
            reason=reason,
        )
        return FinalizeResult(
            status=FINALIZE_NOT_FOUND,
            reservation_id=reservation_id,
            discount_code_id=discount_code_id,
            reason=reason,
        )

    @staticmethod
    async def _apply(
        session: AsyncSession,
        *,
        reservation_id: UUID,
        customer_id: str,
        idempotency_key: str,
        now_utc: datetime,
    ) -> FinalizeResult:
        reservation = await DiscountReservationsRepo.get_by_id_for_update(session, reservation_id)
        if reservation is None:
            return RedemptionFinalizer._not_found(
                reservation_id=reservation_id,
                reason=FINALIZE_REASON_RESERVATION_MISSING,
            )
        if reservation.redeemed_at is not None:
            existing = await DiscountRedemptionsRepo.get_by_reservation_id(session, reservation_id)
            return RedemptionFinalizer._replayed(
                reservation_id=reservation_id,
                redemption=existing,
                reason=FINALIZE_REASON_RESERVATION_REDEEMED,
            )
        if reservation.released_at is not None:
            return RedemptionFinalizer._not_found(
                reservation_id=reservation_id,
                reason=FINALIZE_REASON_RESERVATION_RELEASED,
                discount_code_id=reservation.discount_code_id,
            )

        discount_code = await DiscountCodesRepo.get_by_id_for_update(
            session, reservation.discount_code_id
        )
        if discount_code is None or not is_finalizable(
            discount_code,
            reservation_created_at=reservation.created_at,
            now_utc=now_utc,
        ):
            return RedemptionFinalizer._not_found(
                reservation_id=reservation_id,
                reason=FINALIZE_REASON_CODE_INACTIVE,
                discount_code_id=reservation.discount_code_id,
            )

        old_values = snapshot_code(discount_code)
        was_exhausted = is_exhausted(discount_code)

        reservation.redeemed_at = now_utc
        if discount_code.reserved_uses <= 0:
            logger.warning(
                "discount_reserved_uses_drift",
                discount_code_id=str(discount_code.id),
                reserved_uses=discount_code.reserved_uses,
                source="finalize",
            )
        discount_code.reserved_uses = max(0, discount_code.reserved_uses - 1)
        discount_code.current_uses += 1
        discount_code.updated_at = now_utc

        redemption = await DiscountRedemptionsRepo.create(
            session,
            redemption=DiscountRedemption(
                id=uuid4(),
                discount_code_id=discount_code.id,
                customer_id=customer_id,
                holder_identity=reservation.holder_identity,
                reservation_id=reservation.id,
                idempotency_key=idempotency_key,
                single_use=discount_code.max_uses_per_customer == 1,
                redeemed_at=now_utc,
            ),
        )

        if not was_exhausted and is_exhausted(discount_code):
            await record_code_change(
                session,
                discount_code=discount_code,
                old_values=old_values,
                changed_by=None,
                now_utc=now_utc,
                action="exhausted",
            )

        logger.info(
            "discount_finalized",
            reservation_id=str(reservation.id),
            redemption_id=str(redemption.id),
            discount_code_id=str(discount_code.id),
            current_uses=discount_code.current_uses,
            reserved_uses=discount_code.reserved_uses,
            late=now_utc > reservation.expires_at,
        )
        return FinalizeResult(
            status=FINALIZE_FINALIZED,
            reservation_id=reservation.id,
            redemption_id=redemption.id,
            discount_code_id=discount_code.id,
        )

    @staticmethod
    async def _find_conflicting_redemption(
        session: AsyncSession,
        *,
        reservation_id: UUID,
        customer_id: str,
        idempotency_key: str,
    ) -> DiscountRedemption | None:
        existing = await DiscountRedemptionsRepo.get_by_idempotency_key(session, idempotency_key)
        if existing is not None:
            return existing
        existing = await DiscountRedemptionsRepo.get_by_reservation_id(session, reservation_id)
        if existing is not None:
            return existing

        reservation = await DiscountReservationsRepo.get_by_id(session, reservation_id)
        if reservation is None:
            return None
        return await DiscountRedemptionsRepo.get_single_use_by_code_and_customer(
            session,
            discount_code_id=reservation.discount_code_id,
            customer_id=customer_id,
        )

    @staticmethod
    async def finalize(
        session: AsyncSession,
        *,
        reservation_id: UUID,
        customer_id: str,
        idempotency_key: str,
        now_utc: datetime | None = None,
    ) -> FinalizeResult:
        now_utc = now_utc or datetime.now(timezone.utc)

        existing = await DiscountRedemptionsRepo.get_by_idempotency_key(session, idempotency_key)
        if existing is not None:
            return RedemptionFinalizer._replayed(
                reservation_id=reservation_id,
                redemption=existing,
                reason=FINALIZE_REASON_IDEMPOTENT_REPLAY,
            )

        try:
            async with session.begin_nested():
                return await RedemptionFinalizer._apply(
                    session,
                    reservation_id=reservation_id,
                    customer_id=customer_id,
                    idempotency_key=idempotency_key,
                    now_utc=now_utc,
                )
        except IntegrityError:
            conflicting = await RedemptionFinalizer._find_conflicting_redemption(
                session,
                reservation_id=reservation_id,
                customer_id=customer_id,
                idempotency_key=idempotency_key,
            )
            if conflicting is None:
                raise
            return RedemptionFinalizer._replayed(
                reservation_id=reservation_id,
                redemption=conflicting,
                reason=FINALIZE_REASON_CONCURRENT_INSERT,
            )
