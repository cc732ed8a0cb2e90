from __future__ import annotations

from uuid import UUID

from fastapi import Request

from discount_engine.db.session import SessionLocal
from discount_engine.discounts.catalog import CodeCatalog
from discount_engine.discounts.errors import CatalogError

from .internal_discounts_helpers import (
    STORE_UNAVAILABLE_ERRORS,
    _assert_internal_access,
    _audit_entry_as_response,
    _catalog_error_as_http,
    _overview_as_response,
    _plan_as_response,
    _store_unavailable,
)
from .internal_discounts_models import (
    ActiveStatusUpdateRequest,
    DiscountCodeAuditListResponse,
    DiscountCodeCreateRequest,
    DiscountCodeListResponse,
    DiscountCodeResponse,
    DiscountCodeUpdateRequest,
    SubscriptionPlanCreateRequest,
    SubscriptionPlanListResponse,
    SubscriptionPlanResponse,
)


async def create_plan(
    *,
    payload: SubscriptionPlanCreateRequest,
    request: Request,
) -> SubscriptionPlanResponse:
    _assert_internal_access(request)
    try:
        async with SessionLocal.begin() as session:
            plan = await CodeCatalog.create_plan(session, **payload.model_dump())
    except CatalogError as exc:
        raise _catalog_error_as_http(exc) from exc
    except STORE_UNAVAILABLE_ERRORS as exc:
        raise _store_unavailable(exc) from exc
    return _plan_as_response(plan)


async def list_plans(*, include_inactive: bool, request: Request) -> SubscriptionPlanListResponse:
    _assert_internal_access(request)
    try:
        async with SessionLocal.begin() as session:
            plans = await CodeCatalog.list_plans(session, include_inactive=include_inactive)
    except STORE_UNAVAILABLE_ERRORS as exc:
        raise _store_unavailable(exc) from exc
    return SubscriptionPlanListResponse(plans=[_plan_as_response(plan) for plan in plans])


async def update_plan_status(
    *,
    plan_id: UUID,
    payload: ActiveStatusUpdateRequest,
    request: Request,
) -> SubscriptionPlanResponse:
    _assert_internal_access(request)
    try:
        async with SessionLocal.begin() as session:
            plan = await CodeCatalog.set_plan_active(
                session,
                plan_id=plan_id,
                is_active=payload.is_active,
            )
    except CatalogError as exc:
        raise _catalog_error_as_http(exc) from exc
    except STORE_UNAVAILABLE_ERRORS as exc:
        raise _store_unavailable(exc) from exc
    return _plan_as_response(plan)


async def create_code(
    *,
    payload: DiscountCodeCreateRequest,
    request: Request,
) -> DiscountCodeResponse:
    _assert_internal_access(request)
    try:
        async with SessionLocal.begin() as session:
            discount_code = await CodeCatalog.create_code(session, **payload.model_dump())
            overview = await CodeCatalog.get_code(session, discount_code_id=discount_code.id)
    except CatalogError as exc:
        raise _catalog_error_as_http(exc) from exc
    except STORE_UNAVAILABLE_ERRORS as exc:
        raise _store_unavailable(exc) from exc
    return _overview_as_response(overview)


async def list_codes(
    *,
    plan_id: UUID | None,
    is_active: bool | None,
    limit: int,
    request: Request,
) -> DiscountCodeListResponse:
    _assert_internal_access(request)
    try:
        async with SessionLocal.begin() as session:
            overviews = await CodeCatalog.list_codes(
                session,
                plan_id=plan_id,
                is_active=is_active,
                limit=limit,
            )
    except STORE_UNAVAILABLE_ERRORS as exc:
        raise _store_unavailable(exc) from exc
    return DiscountCodeListResponse(codes=[_overview_as_response(item) for item in overviews])


async def get_code(*, discount_code_id: UUID, request: Request) -> DiscountCodeResponse:
    _assert_internal_access(request)
    try:
        async with SessionLocal.begin() as session:
            overview = await CodeCatalog.get_code(session, discount_code_id=discount_code_id)
    except CatalogError as exc:
        raise _catalog_error_as_http(exc) from exc
    except STORE_UNAVAILABLE_ERRORS as exc:
        raise _store_unavailable(exc) from exc
    return _overview_as_response(overview)


async def update_code(
    *,
    discount_code_id: UUID,
    payload: DiscountCodeUpdateRequest,
    request: Request,
) -> DiscountCodeResponse:
    _assert_internal_access(request)
    changes = payload.model_dump(exclude_unset=True)
    changed_by = changes.pop("changed_by", None)
    try:
        async with SessionLocal.begin() as session:
            await CodeCatalog.update_code(
                session,
                discount_code_id=discount_code_id,
                changes=changes,
                changed_by=changed_by,
            )
            overview = await CodeCatalog.get_code(session, discount_code_id=discount_code_id)
    except CatalogError as exc:
        raise _catalog_error_as_http(exc) from exc
    except STORE_UNAVAILABLE_ERRORS as exc:
        raise _store_unavailable(exc) from exc
    return _overview_as_response(overview)


async def update_code_status(
    *,
    discount_code_id: UUID,
    payload: ActiveStatusUpdateRequest,
    request: Request,
) -> DiscountCodeResponse:
    _assert_internal_access(request)
    try:
        async with SessionLocal.begin() as session:
            await CodeCatalog.set_code_active(
                session,
                discount_code_id=discount_code_id,
                is_active=payload.is_active,
                changed_by=payload.changed_by,
            )
            overview = await CodeCatalog.get_code(session, discount_code_id=discount_code_id)
    except CatalogError as exc:
        raise _catalog_error_as_http(exc) from exc
    except STORE_UNAVAILABLE_ERRORS as exc:
        raise _store_unavailable(exc) from exc
    return _overview_as_response(overview)


async def delete_code(
    *,
    discount_code_id: UUID,
    deleted_by: str | None,
    request: Request,
) -> None:
    _assert_internal_access(request)
    try:
        async with SessionLocal.begin() as session:
            await CodeCatalog.delete_code(
                session,
                discount_code_id=discount_code_id,
                deleted_by=deleted_by,
            )
    except CatalogError as exc:
        raise _catalog_error_as_http(exc) from exc
    except STORE_UNAVAILABLE_ERRORS as exc:
        raise _store_unavailable(exc) from exc


async def list_code_audit(
    *,
    discount_code_id: UUID,
    limit: int,
    request: Request,
) -> DiscountCodeAuditListResponse:
    _assert_internal_access(request)
    try:
        async with SessionLocal.begin() as session:
            entries = await CodeCatalog.list_audit_entries(
                session,
                discount_code_id=discount_code_id,
                limit=limit,
            )
    except STORE_UNAVAILABLE_ERRORS as exc:
        raise _store_unavailable(exc) from exc
    return DiscountCodeAuditListResponse(
        entries=[_audit_entry_as_response(entry) for entry in entries]
    )
