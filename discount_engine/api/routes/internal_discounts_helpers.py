from __future__ import annotations

import structlog
from fastapi import HTTPException, Request
from sqlalchemy.exc import InterfaceError, OperationalError

from discount_engine.core.config import get_settings
from discount_engine.db.models.discount_code_audit import DiscountCodeAuditEntry
from discount_engine.db.models.subscription_plans import SubscriptionPlan
from discount_engine.discounts.constants import (
    REJECT_ALREADY_RESERVED,
    REJECT_ALREADY_USED,
    REJECT_CAPACITY_EXHAUSTED,
    REJECT_CONTENDED,
    REJECT_EXPIRED,
    REJECT_INACTIVE,
    REJECT_NOT_FOUND,
    REJECT_NOT_YET_VALID,
    REJECT_PLAN_UNAVAILABLE,
)
from discount_engine.discounts.errors import (
    CatalogError,
    CatalogValidationError,
    CodeAlreadyExistsError,
    CodeInUseError,
    CodeNotFoundError,
    PlanNotFoundError,
)
from discount_engine.discounts.types import (
    DiscountCodeOverview,
    FinalizeResult,
    ReservationGranted,
    ReservationRejected,
)
from discount_engine.services.internal_auth import (
    extract_client_ip,
    is_client_ip_allowed,
    is_internal_request_authenticated,
)

from .internal_discounts_models import (
    DiscountCodeAuditEntryResponse,
    DiscountCodeResponse,
    DiscountFinalizeResponse,
    DiscountReserveResponse,
    DiscountTermsResponse,
    SubscriptionPlanResponse,
)

logger = structlog.get_logger(__name__)

STORE_UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, OSError, TimeoutError)

REJECTION_STATUS_CODES: dict[str, int] = {
    REJECT_CONTENDED: 409,
    REJECT_NOT_FOUND: 404,
    REJECT_INACTIVE: 410,
    REJECT_EXPIRED: 410,
    REJECT_NOT_YET_VALID: 422,
    REJECT_PLAN_UNAVAILABLE: 422,
    REJECT_CAPACITY_EXHAUSTED: 409,
    REJECT_ALREADY_USED: 409,
    REJECT_ALREADY_RESERVED: 409,
}


def _assert_internal_access(request: Request) -> None:
    settings = get_settings()
    client_ip = extract_client_ip(
        request,
        trusted_proxies=getattr(settings, "internal_api_trusted_proxies", ""),
    )

    if not is_client_ip_allowed(client_ip=client_ip, allowlist=settings.internal_api_allowlist):
        logger.warning("internal_discounts_auth_failed", reason="ip_not_allowed", client_ip=client_ip)
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})

    if not is_internal_request_authenticated(
        request,
        expected_token=settings.internal_api_token,
    ):
        logger.warning(
            "internal_discounts_auth_failed",
            reason="invalid_credentials",
            client_ip=client_ip,
        )
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})


def _store_unavailable(exc: Exception) -> HTTPException:
    logger.error("discount_store_unavailable", error_type=type(exc).__name__)
    return HTTPException(
        status_code=503,
        detail={"code": "E_STORE_UNAVAILABLE", "retryable": True},
    )


def _rejection_as_http(rejection: ReservationRejected) -> HTTPException:
    return HTTPException(
        status_code=REJECTION_STATUS_CODES[rejection.reason],
        detail={
            "code": f"E_DISCOUNT_{rejection.reason}",
            "reason": rejection.reason,
            "message": rejection.message,
            "retryable": rejection.retryable,
            "suggestion": rejection.suggestion,
            "boundary_at": (
                rejection.boundary_at.isoformat() if rejection.boundary_at is not None else None
            ),
        },
    )


def _catalog_error_as_http(exc: CatalogError) -> HTTPException:
    if isinstance(exc, CodeNotFoundError):
        return HTTPException(status_code=404, detail={"code": "E_DISCOUNT_CODE_NOT_FOUND"})
    if isinstance(exc, PlanNotFoundError):
        return HTTPException(status_code=404, detail={"code": "E_PLAN_NOT_FOUND"})
    if isinstance(exc, CodeAlreadyExistsError):
        return HTTPException(status_code=409, detail={"code": "E_DISCOUNT_CODE_EXISTS"})
    if isinstance(exc, CodeInUseError):
        return HTTPException(
            status_code=409,
            detail={"code": "E_DISCOUNT_CODE_IN_USE", "message": str(exc)},
        )
    if isinstance(exc, CatalogValidationError):
        return HTTPException(
            status_code=422,
            detail={"code": "E_VALIDATION", "field": exc.field, "message": exc.message},
        )
    return HTTPException(status_code=422, detail={"code": "E_CATALOG"})


def _granted_as_response(granted: ReservationGranted) -> DiscountReserveResponse:
    terms = granted.terms
    return DiscountReserveResponse(
        reservation_id=granted.reservation_id,
        discount_code_id=granted.discount_code_id,
        code=granted.code,
        expires_at=granted.expires_at,
        terms=DiscountTermsResponse(
            plan_id=terms.plan_id,
            plan_name=terms.plan_name,
            provider_plan_id=terms.provider_plan_id,
            price_amount=terms.price_amount,
            price_currency=terms.price_currency,
            billing_cycle=terms.billing_cycle,
            discount_type=terms.discount_type,
            discount_value=terms.discount_value,
            discount_duration_months=terms.discount_duration_months,
            display=terms.display,
            default_plan_price=terms.default_plan_price,
        ),
    )


def _finalize_as_response(result: FinalizeResult) -> DiscountFinalizeResponse:
    return DiscountFinalizeResponse(
        status=result.status,
        reservation_id=result.reservation_id,
        redemption_id=result.redemption_id,
        discount_code_id=result.discount_code_id,
        reason=result.reason,
    )


def _plan_as_response(plan: SubscriptionPlan) -> SubscriptionPlanResponse:
    return SubscriptionPlanResponse(
        id=plan.id,
        name=plan.name,
        description=plan.description,
        provider_plan_id=plan.provider_plan_id,
        price_amount=plan.price_amount,
        price_currency=plan.price_currency,
        billing_cycle=plan.billing_cycle,
        is_default=plan.is_default,
        is_active=plan.is_active,
        sort_order=plan.sort_order,
        updated_at=plan.updated_at,
    )


def _overview_as_response(overview: DiscountCodeOverview) -> DiscountCodeResponse:
    discount_code = overview.discount_code
    return DiscountCodeResponse(
        id=discount_code.id,
        code=discount_code.code,
        plan_id=discount_code.plan_id,
        plan_name=overview.plan.name if overview.plan is not None else None,
        discount_type=discount_code.discount_type,
        discount_value=discount_code.discount_value,
        discount_duration_months=discount_code.discount_duration_months,
        max_uses=discount_code.max_uses,
        current_uses=discount_code.current_uses,
        reserved_uses=discount_code.reserved_uses,
        remaining_uses=overview.remaining_uses,
        max_uses_per_customer=discount_code.max_uses_per_customer,
        valid_from=discount_code.valid_from,
        valid_until=discount_code.valid_until,
        is_active=discount_code.is_active,
        deactivated_at=discount_code.deactivated_at,
        grace_period_minutes=discount_code.grace_period_minutes,
        admin_notes=discount_code.admin_notes,
        admin_status=overview.admin_status,
        created_by=discount_code.created_by,
        created_at=discount_code.created_at,
        updated_at=discount_code.updated_at,
    )


def _audit_entry_as_response(entry: DiscountCodeAuditEntry) -> DiscountCodeAuditEntryResponse:
    return DiscountCodeAuditEntryResponse(
        id=entry.id,
        discount_code_id=entry.discount_code_id,
        code=entry.code,
        action=entry.action,
        changed_by=entry.changed_by,
        changed_at=entry.changed_at,
        old_values=entry.old_values,
        new_values=entry.new_values or {},
    )
