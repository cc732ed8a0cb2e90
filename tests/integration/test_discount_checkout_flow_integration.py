from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from discount_engine.db.models.discount_redemptions import DiscountRedemption
from discount_engine.db.session import SessionLocal
from discount_engine.discounts.admission import AdmissionController
from discount_engine.discounts.catalog import CodeCatalog
from discount_engine.discounts.constants import (
    FINALIZE_ALREADY_FINALIZED,
    FINALIZE_FINALIZED,
    FINALIZE_NOT_FOUND,
    FINALIZE_REASON_CODE_INACTIVE,
    FINALIZE_REASON_IDEMPOTENT_REPLAY,
    FINALIZE_REASON_RESERVATION_REDEEMED,
    REJECT_ALREADY_RESERVED,
    REJECT_ALREADY_USED,
    REJECT_CAPACITY_EXHAUSTED,
    REJECT_INACTIVE,
    REJECT_NOT_FOUND,
)
from discount_engine.discounts.finalizer import RedemptionFinalizer
from discount_engine.discounts.types import ReservationGranted, ReservationRejected
from tests.integration.discount_fixtures import UTC, create_code, create_plan, load_code


async def _reserve(code: str, holder_identity: str, now_utc: datetime):
    async with SessionLocal.begin() as session:
        return await AdmissionController.reserve(
            session,
            code=code,
            holder_identity=holder_identity,
            now_utc=now_utc,
        )


async def _finalize(reservation_id, *, idempotency_key: str, now_utc: datetime):
    async with SessionLocal.begin() as session:
        return await RedemptionFinalizer.finalize(
            session,
            reservation_id=reservation_id,
            customer_id="cus_123",
            idempotency_key=idempotency_key,
            now_utc=now_utc,
        )


async def _redemption_count() -> int:
    async with SessionLocal() as session:
        result = await session.execute(select(func.count(DiscountRedemption.id)))
        return int(result.scalar_one())


@pytest.mark.asyncio
async def test_typo_gets_suggestion_then_checkout_completes() -> None:
    now_utc = datetime.now(UTC)
    plan_id = await create_plan(now_utc=now_utc)
    discount_code_id = await create_code(
        plan_id=plan_id,
        code="SUMMER50",
        max_uses=100,
        now_utc=now_utc,
    )

    typo = await _reserve("SUMER50", "alice@example.com", now_utc)
    assert isinstance(typo, ReservationRejected)
    assert typo.reason == REJECT_NOT_FOUND
    assert typo.suggestion == "SUMMER50"

    granted = await _reserve("summer50", "alice@example.com", now_utc)
    assert isinstance(granted, ReservationGranted)
    assert granted.terms.display == "50% off first month"

    result = await _finalize(
        granted.reservation_id,
        idempotency_key="checkout-alice",
        now_utc=now_utc + timedelta(minutes=3),
    )
    assert result.status == FINALIZE_FINALIZED

    discount_code = await load_code(discount_code_id)
    assert discount_code.current_uses == 1
    assert discount_code.reserved_uses == 0


@pytest.mark.asyncio
async def test_single_use_summer50_checkout_with_webhook_redelivery() -> None:
    now_utc = datetime.now(UTC)
    plan_id = await create_plan(now_utc=now_utc)
    discount_code_id = await create_code(
        plan_id=plan_id,
        code="SUMMER50",
        max_uses=1,
        now_utc=now_utc,
    )

    granted = await _reserve("SUMMER50", "a@example.com", now_utc)
    assert isinstance(granted, ReservationGranted)
    held = await load_code(discount_code_id)
    assert (held.current_uses, held.reserved_uses) == (0, 1)

    blocked = await _reserve("SUMMER50", "b@example.com", now_utc + timedelta(seconds=5))
    assert isinstance(blocked, ReservationRejected)
    assert blocked.reason == REJECT_CAPACITY_EXHAUSTED
    assert blocked.retryable is False

    paid = await _finalize(
        granted.reservation_id,
        idempotency_key="pay_123",
        now_utc=now_utc + timedelta(minutes=2),
    )
    assert paid.status == FINALIZE_FINALIZED
    redeemed = await load_code(discount_code_id)
    assert (redeemed.current_uses, redeemed.reserved_uses) == (1, 0)

    redelivered = await _finalize(
        granted.reservation_id,
        idempotency_key="pay_123",
        now_utc=now_utc + timedelta(minutes=3),
    )
    assert redelivered.status == FINALIZE_ALREADY_FINALIZED
    assert redelivered.redemption_id == paid.redemption_id
    unchanged = await load_code(discount_code_id)
    assert (unchanged.current_uses, unchanged.reserved_uses) == (1, 0)
    assert await _redemption_count() == 1


@pytest.mark.asyncio
async def test_reserve_quotes_default_plan_price() -> None:
    now_utc = datetime.now(UTC)
    await create_plan(
        provider_plan_id="price_pro_default",
        price_amount=Decimal("30.00"),
        is_default=True,
        now_utc=now_utc,
    )
    starter_plan_id = await create_plan(
        provider_plan_id="price_starter",
        price_amount=Decimal("12.00"),
        now_utc=now_utc,
    )
    await create_code(plan_id=starter_plan_id, code="STARTER", now_utc=now_utc)

    granted = await _reserve("STARTER", "dana@example.com", now_utc)

    assert isinstance(granted, ReservationGranted)
    assert granted.terms.price_amount == Decimal("12.00")
    assert granted.terms.default_plan_price == Decimal("30.00")


@pytest.mark.asyncio
async def test_finalize_replays_are_idempotent() -> None:
    now_utc = datetime.now(UTC)
    plan_id = await create_plan(now_utc=now_utc)
    discount_code_id = await create_code(plan_id=plan_id, code="ONCE", now_utc=now_utc)
    granted = await _reserve("ONCE", "bob@example.com", now_utc)
    assert isinstance(granted, ReservationGranted)

    first = await _finalize(granted.reservation_id, idempotency_key="k-1", now_utc=now_utc)
    same_key = await _finalize(granted.reservation_id, idempotency_key="k-1", now_utc=now_utc)
    other_key = await _finalize(granted.reservation_id, idempotency_key="k-2", now_utc=now_utc)

    assert first.status == FINALIZE_FINALIZED
    assert same_key.status == FINALIZE_ALREADY_FINALIZED
    assert same_key.reason == FINALIZE_REASON_IDEMPOTENT_REPLAY
    assert same_key.redemption_id == first.redemption_id
    assert other_key.status == FINALIZE_ALREADY_FINALIZED
    assert other_key.reason == FINALIZE_REASON_RESERVATION_REDEEMED
    assert await _redemption_count() == 1

    discount_code = await load_code(discount_code_id)
    assert discount_code.current_uses == 1


@pytest.mark.asyncio
async def test_holder_limits_apply_to_pending_and_redeemed_use() -> None:
    now_utc = datetime.now(UTC)
    plan_id = await create_plan(now_utc=now_utc)
    await create_code(plan_id=plan_id, code="PERUSER", now_utc=now_utc)

    granted = await _reserve("PERUSER", "carol@example.com", now_utc)
    assert isinstance(granted, ReservationGranted)

    pending = await _reserve("PERUSER", "Carol@Example.com", now_utc + timedelta(minutes=1))
    assert isinstance(pending, ReservationRejected)
    assert pending.reason == REJECT_ALREADY_RESERVED

    await _finalize(granted.reservation_id, idempotency_key="carol-1", now_utc=now_utc)
    used = await _reserve("PERUSER", "carol@example.com", now_utc + timedelta(minutes=2))
    assert isinstance(used, ReservationRejected)
    assert used.reason == REJECT_ALREADY_USED


@pytest.mark.asyncio
async def test_unknown_reservation_is_not_found() -> None:
    now_utc = datetime.now(UTC)
    result = await _finalize(uuid4(), idempotency_key="ghost", now_utc=now_utc)
    assert result.status == FINALIZE_NOT_FOUND


@pytest.mark.asyncio
async def test_deactivation_grace_period() -> None:
    now_utc = datetime.now(UTC)
    plan_id = await create_plan(now_utc=now_utc)
    discount_code_id = await create_code(
        plan_id=plan_id,
        code="GRACE",
        max_uses_per_customer=None,
        grace_period_minutes=30,
        now_utc=now_utc,
    )
    early = await _reserve("GRACE", "early@example.com", now_utc)
    late = await _reserve("GRACE", "late@example.com", now_utc)
    assert isinstance(early, ReservationGranted)
    assert isinstance(late, ReservationGranted)

    deactivated_at = now_utc + timedelta(minutes=1)
    async with SessionLocal.begin() as session:
        await CodeCatalog.set_code_active(
            session,
            discount_code_id=discount_code_id,
            is_active=False,
            changed_by="ops",
            now_utc=deactivated_at,
        )

    blocked = await _reserve("GRACE", "new@example.com", deactivated_at + timedelta(minutes=1))
    assert isinstance(blocked, ReservationRejected)
    assert blocked.reason == REJECT_INACTIVE

    within_grace = await _finalize(
        early.reservation_id,
        idempotency_key="early",
        now_utc=deactivated_at + timedelta(minutes=10),
    )
    assert within_grace.status == FINALIZE_FINALIZED

    after_grace = await _finalize(
        late.reservation_id,
        idempotency_key="late",
        now_utc=deactivated_at + timedelta(minutes=31),
    )
    assert after_grace.status == FINALIZE_NOT_FOUND
    assert after_grace.reason == FINALIZE_REASON_CODE_INACTIVE

    discount_code = await load_code(discount_code_id)
    assert discount_code.current_uses == 1
    assert discount_code.reserved_uses == 1
