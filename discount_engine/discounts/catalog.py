from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from discount_engine.db.errors import violated_constraint
from discount_engine.db.models.discount_code_audit import DiscountCodeAuditEntry
from discount_engine.db.models.discount_codes import DiscountCode
from discount_engine.db.models.subscription_plans import SubscriptionPlan
from discount_engine.db.repo.discount_audit_repo import DiscountAuditRepo
from discount_engine.db.repo.discount_codes_repo import DiscountCodesRepo
from discount_engine.db.repo.discount_redemptions_repo import DiscountRedemptionsRepo
from discount_engine.db.repo.discount_reservations_repo import DiscountReservationsRepo
from discount_engine.db.repo.plans_repo import PlansRepo
from discount_engine.discounts.audit import record_code_change, snapshot_code
from discount_engine.discounts.batch import as_utc
from discount_engine.discounts.constants import BILLING_CYCLES, DISCOUNT_TYPES
from discount_engine.discounts.eligibility import remaining_uses
from discount_engine.discounts.errors import (
    CatalogValidationError,
    CodeAlreadyExistsError,
    CodeInUseError,
    CodeNotFoundError,
    PlanNotFoundError,
)
from discount_engine.discounts.status import compute_admin_status
from discount_engine.discounts.types import DiscountCodeOverview
from discount_engine.services.discount_codes import is_valid_code_format, normalize_discount_code

logger = structlog.get_logger(__name__)

UPDATABLE_CODE_FIELDS = frozenset(
    {
        "code",
        "plan_id",
        "discount_type",
        "discount_value",
        "discount_duration_months",
        "max_uses",
        "max_uses_per_customer",
        "valid_from",
        "valid_until",
        "grace_period_minutes",
        "admin_notes",
    }
)
REQUIRED_CODE_FIELDS = frozenset(
    {"code", "plan_id", "discount_type", "discount_duration_months", "grace_period_minutes"}
)
WINDOW_FIELDS = ("valid_from", "valid_until")
DEFAULT_PLAN_CONSTRAINT = "uq_subscription_plans_default"


def normalize_catalog_code(raw_code: str) -> str:
    normalized = normalize_discount_code(raw_code)
    if not is_valid_code_format(normalized):
        raise CatalogValidationError("code", "must be 1-32 characters of A-Z and 0-9")
    return normalized


def validate_discount_payload(
    *,
    discount_type: str,
    discount_value: Decimal | None,
    discount_duration_months: int,
) -> None:
    if discount_type not in DISCOUNT_TYPES:
        raise CatalogValidationError("discount_type", f"must be one of {', '.join(DISCOUNT_TYPES)}")
    if discount_duration_months <= 0:
        raise CatalogValidationError("discount_duration_months", "must be positive")
    if discount_type == "free_trial":
        if discount_value is not None:
            raise CatalogValidationError("discount_value", "must be empty for free_trial")
        return
    if discount_value is None or discount_value <= 0:
        raise CatalogValidationError("discount_value", "is required and must be positive")
    if discount_type == "percentage" and discount_value > 100:
        raise CatalogValidationError("discount_value", "percentage cannot exceed 100")


def validate_limits(
    *,
    max_uses: int | None,
    max_uses_per_customer: int | None,
    valid_from: datetime | None,
    valid_until: datetime | None,
    grace_period_minutes: int,
) -> None:
    if max_uses is not None and max_uses <= 0:
        raise CatalogValidationError("max_uses", "must be positive or empty")
    if max_uses_per_customer is not None and max_uses_per_customer <= 0:
        raise CatalogValidationError("max_uses_per_customer", "must be positive or empty")
    if valid_from is not None and valid_until is not None and valid_from >= valid_until:
        raise CatalogValidationError("valid_until", "must be after valid_from")
    if grace_period_minutes < 0:
        raise CatalogValidationError("grace_period_minutes", "cannot be negative")


def _validate_code_state(discount_code: DiscountCode) -> None:
    validate_discount_payload(
        discount_type=discount_code.discount_type,
        discount_value=discount_code.discount_value,
        discount_duration_months=discount_code.discount_duration_months,
    )
    validate_limits(
        max_uses=discount_code.max_uses,
        max_uses_per_customer=discount_code.max_uses_per_customer,
        valid_from=discount_code.valid_from,
        valid_until=discount_code.valid_until,
        grace_period_minutes=discount_code.grace_period_minutes,
    )
    committed = discount_code.current_uses + discount_code.reserved_uses
    if discount_code.max_uses is not None and discount_code.max_uses < committed:
        raise CatalogValidationError(
            "max_uses",
            f"cannot be lower than {committed} (confirmed plus reserved uses)",
        )


class CodeCatalog:
    @staticmethod
    async def create_plan(
        session: AsyncSession,
        *,
        name: str,
        provider_plan_id: str,
        price_amount: Decimal,
        billing_cycle: str,
        price_currency: str = "USD",
        description: str | None = None,
        is_default: bool = False,
        sort_order: int = 0,
        now_utc: datetime | None = None,
    ) -> SubscriptionPlan:
        now_utc = now_utc or datetime.now(timezone.utc)
        if not name.strip():
            raise CatalogValidationError("name", "is required")
        if not provider_plan_id.strip():
            raise CatalogValidationError("provider_plan_id", "is required")
        if billing_cycle not in BILLING_CYCLES:
            raise CatalogValidationError("billing_cycle", f"must be one of {', '.join(BILLING_CYCLES)}")
        if price_amount <= 0:
            raise CatalogValidationError("price_amount", "must be positive")
        currency = price_currency.strip().upper()
        if len(currency) != 3 or not currency.isalpha():
            raise CatalogValidationError("price_currency", "must be a 3-letter ISO code")

        if is_default:
            await PlansRepo.clear_default(session, now_utc=now_utc)

        plan_id = uuid4()
        try:
            async with session.begin_nested():
                plan = await PlansRepo.create(
                    session,
                    plan=SubscriptionPlan(
                        id=plan_id,
                        name=name.strip(),
                        description=description,
                        price_amount=price_amount,
                        price_currency=currency,
                        billing_cycle=billing_cycle,
                        provider_plan_id=provider_plan_id.strip(),
                        is_default=is_default,
                        is_active=True,
                        sort_order=sort_order,
                        created_at=now_utc,
                        updated_at=now_utc,
                    ),
                )
        except IntegrityError as exc:
            if violated_constraint(exc) == DEFAULT_PLAN_CONSTRAINT:
                raise CatalogValidationError(
                    "is_default", "another plan was made default at the same time"
                ) from exc
            raise CatalogValidationError("provider_plan_id", "is already registered") from exc

        logger.info(
            "subscription_plan_created",
            plan_id=str(plan.id),
            provider_plan_id=plan.provider_plan_id,
            is_default=plan.is_default,
        )
        return plan

    @staticmethod
    async def list_plans(
        session: AsyncSession,
        *,
        include_inactive: bool = False,
    ) -> list[SubscriptionPlan]:
        return await PlansRepo.list_plans(session, include_inactive=include_inactive)

    @staticmethod
    async def set_plan_active(
        session: AsyncSession,
        *,
        plan_id: UUID,
        is_active: bool,
        now_utc: datetime | None = None,
    ) -> SubscriptionPlan:
        now_utc = now_utc or datetime.now(timezone.utc)
        plan = await PlansRepo.get_by_id_for_update(session, plan_id)
        if plan is None:
            raise PlanNotFoundError

        if plan.is_active != is_active:
            plan.is_active = is_active
            if not is_active:
                plan.is_default = False
            plan.updated_at = now_utc
            logger.info("subscription_plan_status_changed", plan_id=str(plan.id), is_active=is_active)
        return plan

    @staticmethod
    def _overview(
        *,
        discount_code: DiscountCode,
        plan: SubscriptionPlan | None,
        now_utc: datetime,
    ) -> DiscountCodeOverview:
        return DiscountCodeOverview(
            discount_code=discount_code,
            plan=plan,
            admin_status=compute_admin_status(discount_code, plan=plan, now_utc=now_utc),
            remaining_uses=remaining_uses(discount_code),
        )

    @staticmethod
    async def _require_plan(session: AsyncSession, plan_id: UUID) -> SubscriptionPlan:
        plan = await PlansRepo.get_by_id(session, plan_id)
        if plan is None:
            raise PlanNotFoundError
        return plan

    @staticmethod
    async def create_code(
        session: AsyncSession,
        *,
        code: str,
        plan_id: UUID,
        discount_type: str,
        discount_value: Decimal | None = None,
        discount_duration_months: int = 1,
        max_uses: int | None = None,
        max_uses_per_customer: int | None = 1,
        valid_from: datetime | None = None,
        valid_until: datetime | None = None,
        is_active: bool = True,
        grace_period_minutes: int = 30,
        admin_notes: str | None = None,
        created_by: str | None = None,
        now_utc: datetime | None = None,
    ) -> DiscountCode:
        now_utc = now_utc or datetime.now(timezone.utc)
        normalized_code = normalize_catalog_code(code)
        valid_from = as_utc(valid_from) if valid_from is not None else None
        valid_until = as_utc(valid_until) if valid_until is not None else None
        validate_discount_payload(
            discount_type=discount_type,
            discount_value=discount_value,
            discount_duration_months=discount_duration_months,
        )
        validate_limits(
            max_uses=max_uses,
            max_uses_per_customer=max_uses_per_customer,
            valid_from=valid_from,
            valid_until=valid_until,
            grace_period_minutes=grace_period_minutes,
        )
        await CodeCatalog._require_plan(session, plan_id)

        if await DiscountCodesRepo.get_by_code(session, normalized_code) is not None:
            raise CodeAlreadyExistsError

        try:
            async with session.begin_nested():
                discount_code = await DiscountCodesRepo.create(
                    session,
                    discount_code=DiscountCode(
                        id=uuid4(),
                        code=normalized_code,
                        plan_id=plan_id,
                        discount_type=discount_type,
                        discount_value=discount_value,
                        discount_duration_months=discount_duration_months,
                        max_uses=max_uses,
                        current_uses=0,
                        reserved_uses=0,
                        max_uses_per_customer=max_uses_per_customer,
                        valid_from=valid_from,
                        valid_until=valid_until,
                        is_active=is_active,
                        deactivated_at=None if is_active else now_utc,
                        grace_period_minutes=grace_period_minutes,
                        admin_notes=admin_notes,
                        created_by=created_by,
                        created_at=now_utc,
                        updated_at=now_utc,
                    ),
                )
        except IntegrityError as exc:
            raise CodeAlreadyExistsError from exc

        await record_code_change(
            session,
            discount_code=discount_code,
            old_values=None,
            changed_by=created_by,
            now_utc=now_utc,
        )
        logger.info(
            "discount_code_created",
            discount_code_id=str(discount_code.id),
            code=discount_code.code,
            plan_id=str(plan_id),
            created_by=created_by,
        )
        return discount_code

    @staticmethod
    async def get_code(
        session: AsyncSession,
        *,
        discount_code_id: UUID,
        now_utc: datetime | None = None,
    ) -> DiscountCodeOverview:
        now_utc = now_utc or datetime.now(timezone.utc)
        discount_code = await DiscountCodesRepo.get_by_id(session, discount_code_id)
        if discount_code is None:
            raise CodeNotFoundError
        plan = await PlansRepo.get_by_id(session, discount_code.plan_id)
        return CodeCatalog._overview(discount_code=discount_code, plan=plan, now_utc=now_utc)

    @staticmethod
    async def list_codes(
        session: AsyncSession,
        *,
        plan_id: UUID | None = None,
        is_active: bool | None = None,
        limit: int = 100,
        now_utc: datetime | None = None,
    ) -> list[DiscountCodeOverview]:
        now_utc = now_utc or datetime.now(timezone.utc)
        rows = await DiscountCodesRepo.list_codes_with_plans(
            session,
            plan_id=plan_id,
            is_active=is_active,
            limit=limit,
        )
        return [
            CodeCatalog._overview(discount_code=code, plan=plan, now_utc=now_utc)
            for code, plan in rows
        ]

    @staticmethod
    async def update_code(
        session: AsyncSession,
        *,
        discount_code_id: UUID,
        changes: Mapping[str, object],
        changed_by: str | None = None,
        now_utc: datetime | None = None,
    ) -> DiscountCode:
        now_utc = now_utc or datetime.now(timezone.utc)
        unknown = set(changes) - UPDATABLE_CODE_FIELDS
        if unknown:
            raise CatalogValidationError(sorted(unknown)[0], "cannot be changed")
        for field in sorted(REQUIRED_CODE_FIELDS & set(changes)):
            if changes[field] is None:
                raise CatalogValidationError(field, "cannot be empty")

        discount_code = await DiscountCodesRepo.get_by_id_for_update(session, discount_code_id)
        if discount_code is None:
            raise CodeNotFoundError

        old_values = snapshot_code(discount_code)
        resolved = dict(changes)
        for field in WINDOW_FIELDS:
            value = resolved.get(field)
            if isinstance(value, datetime):
                resolved[field] = as_utc(value)
        if "code" in resolved:
            new_code = normalize_catalog_code(str(resolved["code"]))
            if new_code != discount_code.code:
                clash = await DiscountCodesRepo.get_by_code(session, new_code)
                if clash is not None:
                    raise CodeAlreadyExistsError
            resolved["code"] = new_code
        if "plan_id" in resolved and resolved["plan_id"] != discount_code.plan_id:
            plan_id = resolved["plan_id"]
            if not isinstance(plan_id, UUID):
                raise CatalogValidationError("plan_id", "must be a UUID")
            await CodeCatalog._require_plan(session, plan_id)

        for field, value in resolved.items():
            setattr(discount_code, field, value)
        if discount_code.discount_type == "free_trial":
            discount_code.discount_value = None
        _validate_code_state(discount_code)

        if snapshot_code(discount_code) == old_values:
            return discount_code

        discount_code.updated_at = now_utc
        try:
            async with session.begin_nested():
                await session.flush()
        except IntegrityError as exc:
            raise CodeAlreadyExistsError from exc

        entry = await record_code_change(
            session,
            discount_code=discount_code,
            old_values=old_values,
            changed_by=changed_by,
            now_utc=now_utc,
        )
        logger.info(
            "discount_code_updated",
            discount_code_id=str(discount_code.id),
            code=discount_code.code,
            action=entry.action,
            changed_by=changed_by,
            fields=sorted(resolved),
        )
        return discount_code

    @staticmethod
    async def set_code_active(
        session: AsyncSession,
        *,
        discount_code_id: UUID,
        is_active: bool,
        changed_by: str | None = None,
        now_utc: datetime | None = None,
    ) -> DiscountCode:
        """Toggle a code; outstanding reservations are left for finalize or the sweeper."""
        now_utc = now_utc or datetime.now(timezone.utc)
        discount_code = await DiscountCodesRepo.get_by_id_for_update(session, discount_code_id)
        if discount_code is None:
            raise CodeNotFoundError
        if discount_code.is_active == is_active:
            return discount_code

        old_values = snapshot_code(discount_code)
        discount_code.is_active = is_active
        discount_code.deactivated_at = None if is_active else now_utc
        discount_code.updated_at = now_utc

        entry = await record_code_change(
            session,
            discount_code=discount_code,
            old_values=old_values,
            changed_by=changed_by,
            now_utc=now_utc,
        )
        logger.info(
            "discount_code_status_changed",
            discount_code_id=str(discount_code.id),
            code=discount_code.code,
            action=entry.action,
            changed_by=changed_by,
        )
        return discount_code

    @staticmethod
    async def delete_code(
        session: AsyncSession,
        *,
        discount_code_id: UUID,
        deleted_by: str | None = None,
    ) -> None:
        discount_code = await DiscountCodesRepo.get_by_id_for_update(session, discount_code_id)
        if discount_code is None:
            raise CodeNotFoundError

        redemptions = await DiscountRedemptionsRepo.count_for_code(
            session, discount_code_id=discount_code.id
        )
        if redemptions > 0:
            raise CodeInUseError(
                f"code {discount_code.code} has {redemptions} redemption(s), deactivate it instead"
            )
        pending = await DiscountReservationsRepo.count_pending_for_code(
            session, discount_code_id=discount_code.id
        )
        if pending > 0:
            raise CodeInUseError(f"code {discount_code.code} has {pending} pending reservation(s)")

        await DiscountReservationsRepo.delete_terminal_for_code(
            session, discount_code_id=discount_code.id
        )
        await DiscountCodesRepo.delete(session, discount_code=discount_code)
        logger.info(
            "discount_code_deleted",
            discount_code_id=str(discount_code_id),
            code=discount_code.code,
            deleted_by=deleted_by,
        )

    @staticmethod
    async def list_audit_entries(
        session: AsyncSession,
        *,
        discount_code_id: UUID,
        limit: int = 100,
    ) -> list[DiscountCodeAuditEntry]:
        return await DiscountAuditRepo.list_for_code(
            session,
            discount_code_id=discount_code_id,
            limit=limit,
        )
