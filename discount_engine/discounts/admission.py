from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

import structlog
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from discount_engine.db.errors import is_lock_not_available
from discount_engine.db.models.discount_codes import DiscountCode
from discount_engine.db.models.discount_reservations import DiscountReservation
from discount_engine.db.repo.discount_codes_repo import DiscountCodesRepo
from discount_engine.db.repo.discount_redemptions_repo import DiscountRedemptionsRepo
from discount_engine.db.repo.discount_reservations_repo import DiscountReservationsRepo
from discount_engine.db.repo.plans_repo import PlansRepo
from discount_engine.discounts.constants import (
    RESERVATION_TTL,
    REJECT_ALREADY_RESERVED,
    REJECT_ALREADY_USED,
    REJECT_CAPACITY_EXHAUSTED,
    REJECT_CONTENDED,
    REJECT_INACTIVE,
    REJECT_NOT_FOUND,
    REJECT_PLAN_UNAVAILABLE,
)
from discount_engine.discounts.eligibility import (
    build_rejection,
    build_terms,
    check_validity_window,
    has_capacity,
    has_customer_quota,
)
from discount_engine.discounts.suggestions import suggest_code
from discount_engine.discounts.types import (
    ReservationGranted,
    ReservationOutcome,
    ReservationRejected,
)
from discount_engine.services.discount_codes import (
    is_valid_code_format,
    normalize_discount_code,
    normalize_holder_identity,
)

logger = structlog.get_logger(__name__)


class AdmissionController:
    @staticmethod
    async def _lock_code_nowait(
        session: AsyncSession,
        *,
        normalized_code: str,
    ) -> tuple[DiscountCode | None, bool]:
        """Return (code, contended). A refused NOWAIT lock only rolls back its savepoint."""
        try:
            async with session.begin_nested():
                discount_code = await DiscountCodesRepo.get_by_code_for_update_nowait(
                    session, normalized_code
                )
        except DBAPIError as exc:
            if not is_lock_not_available(exc):
                raise
            return None, True
        return discount_code, False

    @staticmethod
    def _reject(
        reason: str,
        *,
        code: str,
        holder_identity: str,
        **context: object,
    ) -> ReservationRejected:
        rejection = build_rejection(reason, code=code, **context)
        logger.info(
            "discount_reserve_rejected",
            code=code,
            reason=reason,
            holder_identity=holder_identity,
            suggestion=rejection.suggestion,
        )
        return rejection

    @staticmethod
    async def reserve(
        session: AsyncSession,
        *,
        code: str,
        holder_identity: str,
        now_utc: datetime | None = None,
    ) -> ReservationOutcome:
        now_utc = now_utc or datetime.now(timezone.utc)
        normalized_code = normalize_discount_code(code)
        holder = normalize_holder_identity(holder_identity)

        discount_code: DiscountCode | None = None
        if is_valid_code_format(normalized_code):
            discount_code, contended = await AdmissionController._lock_code_nowait(
                session, normalized_code=normalized_code
            )
            if contended:
                logger.info(
                    "discount_reserve_contended",
                    code=normalized_code,
                    holder_identity=holder,
                )
                return build_rejection(REJECT_CONTENDED, code=normalized_code)

        if discount_code is None:
            active_codes = await DiscountCodesRepo.list_active_code_strings(session)
            return AdmissionController._reject(
                REJECT_NOT_FOUND,
                code=normalized_code,
                holder_identity=holder,
                suggestion=suggest_code(normalized_code, active_codes),
            )

        if not discount_code.is_active:
            return AdmissionController._reject(
                REJECT_INACTIVE, code=normalized_code, holder_identity=holder
            )

        window_violation = check_validity_window(discount_code, now_utc=now_utc)
        if window_violation is not None:
            reason, boundary_at = window_violation
            return AdmissionController._reject(
                reason,
                code=normalized_code,
                holder_identity=holder,
                boundary_at=boundary_at,
            )

        if not has_capacity(discount_code):
            return AdmissionController._reject(
                REJECT_CAPACITY_EXHAUSTED, code=normalized_code, holder_identity=holder
            )

        if discount_code.max_uses_per_customer is not None:
            redemption_count = await DiscountRedemptionsRepo.count_for_holder(
                session,
                discount_code_id=discount_code.id,
                holder_identity=holder,
            )
            if not has_customer_quota(discount_code, redemption_count=redemption_count):
                return AdmissionController._reject(
                    REJECT_ALREADY_USED, code=normalized_code, holder_identity=holder
                )

        pending = await DiscountReservationsRepo.get_active_for_holder(
            session,
            discount_code_id=discount_code.id,
            holder_identity=holder,
            now_utc=now_utc,
        )
        if pending is not None:
            return AdmissionController._reject(
                REJECT_ALREADY_RESERVED,
                code=normalized_code,
                holder_identity=holder,
                boundary_at=pending.expires_at,
            )

        plan = await PlansRepo.get_by_id(session, discount_code.plan_id)
        if plan is None or not plan.is_active:
            return AdmissionController._reject(
                REJECT_PLAN_UNAVAILABLE, code=normalized_code, holder_identity=holder
            )

        default_plan = plan if plan.is_default else await PlansRepo.get_active_default(session)

        discount_code.reserved_uses += 1
        discount_code.updated_at = now_utc
        reservation = await DiscountReservationsRepo.create(
            session,
            reservation=DiscountReservation(
                id=uuid4(),
                discount_code_id=discount_code.id,
                holder_identity=holder,
                created_at=now_utc,
                expires_at=now_utc + RESERVATION_TTL,
                redeemed_at=None,
                released_at=None,
            ),
        )

        logger.info(
            "discount_reserved",
            code=normalized_code,
            discount_code_id=str(discount_code.id),
            reservation_id=str(reservation.id),
            holder_identity=holder,
            reserved_uses=discount_code.reserved_uses,
            expires_at=reservation.expires_at.isoformat(),
        )
        return ReservationGranted(
            reservation_id=reservation.id,
            discount_code_id=discount_code.id,
            code=discount_code.code,
            expires_at=reservation.expires_at,
            terms=build_terms(discount_code, plan, default_plan=default_plan),
        )
