from __future__ import annotations

from datetime import datetime, timezone

from fastapi import HTTPException, Request

from discount_engine.db.session import SessionLocal
from discount_engine.discounts.admission import AdmissionController
from discount_engine.discounts.constants import FINALIZE_NOT_FOUND
from discount_engine.discounts.finalizer import RedemptionFinalizer
from discount_engine.discounts.types import ReservationRejected

from .internal_discounts_helpers import (
    STORE_UNAVAILABLE_ERRORS,
    _assert_internal_access,
    _finalize_as_response,
    _granted_as_response,
    _rejection_as_http,
    _store_unavailable,
)
from .internal_discounts_models import (
    DiscountFinalizeRequest,
    DiscountFinalizeResponse,
    DiscountReserveRequest,
    DiscountReserveResponse,
)


async def reserve_discount(
    *,
    payload: DiscountReserveRequest,
    request: Request,
) -> DiscountReserveResponse:
    _assert_internal_access(request)

    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            outcome = await AdmissionController.reserve(
                session,
                code=payload.code,
                holder_identity=payload.holder_identity,
                now_utc=now_utc,
            )
    except STORE_UNAVAILABLE_ERRORS as exc:
        raise _store_unavailable(exc) from exc

    if isinstance(outcome, ReservationRejected):
        raise _rejection_as_http(outcome)
    return _granted_as_response(outcome)


async def finalize_discount(
    *,
    payload: DiscountFinalizeRequest,
    request: Request,
) -> DiscountFinalizeResponse:
    _assert_internal_access(request)

    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            result = await RedemptionFinalizer.finalize(
                session,
                reservation_id=payload.reservation_id,
                customer_id=payload.customer_id,
                idempotency_key=payload.idempotency_key,
                now_utc=now_utc,
            )
    except STORE_UNAVAILABLE_ERRORS as exc:
        raise _store_unavailable(exc) from exc

    if result.status == FINALIZE_NOT_FOUND:
        raise HTTPException(
            status_code=404,
            detail={
                "code": "E_RESERVATION_NOT_FOUND",
                "reason": result.reason,
                "reservation_id": str(result.reservation_id),
            },
        )
    return _finalize_as_response(result)
