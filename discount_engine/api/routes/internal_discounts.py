from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query, Request, Response, status

from . import internal_discounts_catalog as catalog_handlers
from . import internal_discounts_checkout as checkout_handlers
from .internal_discounts_models import (
    ActiveStatusUpdateRequest,
    DiscountCodeAuditListResponse,
    DiscountCodeCreateRequest,
    DiscountCodeListResponse,
    DiscountCodeResponse,
    DiscountCodeUpdateRequest,
    DiscountFinalizeRequest,
    DiscountFinalizeResponse,
    DiscountReserveRequest,
    DiscountReserveResponse,
    SubscriptionPlanCreateRequest,
    SubscriptionPlanListResponse,
    SubscriptionPlanResponse,
)

router = APIRouter(prefix="/internal/discounts", tags=["internal", "discounts"])


@router.post("/reserve", response_model=DiscountReserveResponse)
async def reserve_discount(
    payload: DiscountReserveRequest,
    request: Request,
) -> DiscountReserveResponse:
    return await checkout_handlers.reserve_discount(payload=payload, request=request)


@router.post("/finalize", response_model=DiscountFinalizeResponse)
async def finalize_discount(
    payload: DiscountFinalizeRequest,
    request: Request,
) -> DiscountFinalizeResponse:
    return await checkout_handlers.finalize_discount(payload=payload, request=request)


@router.post(
    "/plans",
    response_model=SubscriptionPlanResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_plan(
    payload: SubscriptionPlanCreateRequest,
    request: Request,
) -> SubscriptionPlanResponse:
    return await catalog_handlers.create_plan(payload=payload, request=request)


@router.get("/plans", response_model=SubscriptionPlanListResponse)
async def list_plans(
    request: Request,
    include_inactive: bool = Query(default=False),
) -> SubscriptionPlanListResponse:
    return await catalog_handlers.list_plans(include_inactive=include_inactive, request=request)


@router.post("/plans/{plan_id}/status", response_model=SubscriptionPlanResponse)
async def update_plan_status(
    plan_id: UUID,
    payload: ActiveStatusUpdateRequest,
    request: Request,
) -> SubscriptionPlanResponse:
    return await catalog_handlers.update_plan_status(
        plan_id=plan_id,
        payload=payload,
        request=request,
    )


@router.post(
    "/codes",
    response_model=DiscountCodeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_code(
    payload: DiscountCodeCreateRequest,
    request: Request,
) -> DiscountCodeResponse:
    return await catalog_handlers.create_code(payload=payload, request=request)


@router.get("/codes", response_model=DiscountCodeListResponse)
async def list_codes(
    request: Request,
    plan_id: UUID | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
) -> DiscountCodeListResponse:
    return await catalog_handlers.list_codes(
        plan_id=plan_id,
        is_active=is_active,
        limit=limit,
        request=request,
    )


@router.get("/codes/{discount_code_id}", response_model=DiscountCodeResponse)
async def get_code(discount_code_id: UUID, request: Request) -> DiscountCodeResponse:
    return await catalog_handlers.get_code(discount_code_id=discount_code_id, request=request)


@router.patch("/codes/{discount_code_id}", response_model=DiscountCodeResponse)
async def update_code(
    discount_code_id: UUID,
    payload: DiscountCodeUpdateRequest,
    request: Request,
) -> DiscountCodeResponse:
    return await catalog_handlers.update_code(
        discount_code_id=discount_code_id,
        payload=payload,
        request=request,
    )


@router.post("/codes/{discount_code_id}/status", response_model=DiscountCodeResponse)
async def update_code_status(
    discount_code_id: UUID,
    payload: ActiveStatusUpdateRequest,
    request: Request,
) -> DiscountCodeResponse:
    return await catalog_handlers.update_code_status(
        discount_code_id=discount_code_id,
        payload=payload,
        request=request,
    )


@router.delete("/codes/{discount_code_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_code(
    discount_code_id: UUID,
    request: Request,
    deleted_by: str | None = Query(default=None, max_length=64),
) -> Response:
    await catalog_handlers.delete_code(
        discount_code_id=discount_code_id,
        deleted_by=deleted_by,
        request=request,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/codes/{discount_code_id}/audit", response_model=DiscountCodeAuditListResponse)
async def list_code_audit(
    discount_code_id: UUID,
    request: Request,
    limit: int = Query(default=100, ge=1, le=500),
) -> DiscountCodeAuditListResponse:
    return await catalog_handlers.list_code_audit(
        discount_code_id=discount_code_id,
        limit=limit,
        request=request,
    )
