from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class DiscountReserveRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    holder_identity: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")


class DiscountTermsResponse(BaseModel):
    plan_id: UUID
    plan_name: str
    provider_plan_id: str
    price_amount: Decimal
    price_currency: str
    billing_cycle: str
    discount_type: str
    discount_value: Decimal | None = None
    discount_duration_months: int = Field(gt=0)
    display: str
    default_plan_price: Decimal


class DiscountReserveResponse(BaseModel):
    reservation_id: UUID
    discount_code_id: UUID
    code: str
    expires_at: datetime
    terms: DiscountTermsResponse


class DiscountFinalizeRequest(BaseModel):
    reservation_id: UUID
    customer_id: str = Field(min_length=1, max_length=64)
    idempotency_key: str = Field(min_length=1, max_length=128)


class DiscountFinalizeResponse(BaseModel):
    status: str
    reservation_id: UUID
    redemption_id: UUID | None = None
    discount_code_id: UUID | None = None
    reason: str | None = None


class SubscriptionPlanCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    description: str | None = Field(default=None, max_length=2000)
    provider_plan_id: str = Field(min_length=1, max_length=64)
    price_amount: Decimal = Field(gt=0)
    price_currency: str = Field(default="USD", min_length=3, max_length=3)
    billing_cycle: str = Field(min_length=1, max_length=16)
    is_default: bool = False
    sort_order: int = 0


class SubscriptionPlanResponse(BaseModel):
    id: UUID
    name: str
    description: str | None = None
    provider_plan_id: str
    price_amount: Decimal
    price_currency: str
    billing_cycle: str
    is_default: bool
    is_active: bool
    sort_order: int
    updated_at: datetime


class SubscriptionPlanListResponse(BaseModel):
    plans: list[SubscriptionPlanResponse]


class ActiveStatusUpdateRequest(BaseModel):
    is_active: bool
    changed_by: str | None = Field(default=None, max_length=64)


class DiscountCodeCreateRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    plan_id: UUID
    discount_type: str = Field(min_length=1, max_length=16)
    discount_value: Decimal | None = None
    discount_duration_months: int = Field(default=1, gt=0)
    max_uses: int | None = Field(default=None, gt=0)
    max_uses_per_customer: int | None = Field(default=1, gt=0)
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    is_active: bool = True
    grace_period_minutes: int = Field(default=30, ge=0)
    admin_notes: str | None = Field(default=None, max_length=2000)
    created_by: str | None = Field(default=None, max_length=64)


class DiscountCodeUpdateRequest(BaseModel):
    code: str | None = Field(default=None, min_length=1, max_length=64)
    plan_id: UUID | None = None
    discount_type: str | None = Field(default=None, min_length=1, max_length=16)
    discount_value: Decimal | None = None
    discount_duration_months: int | None = Field(default=None, gt=0)
    max_uses: int | None = Field(default=None, gt=0)
    max_uses_per_customer: int | None = Field(default=None, gt=0)
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    grace_period_minutes: int | None = Field(default=None, ge=0)
    admin_notes: str | None = Field(default=None, max_length=2000)
    changed_by: str | None = Field(default=None, max_length=64)


class DiscountCodeResponse(BaseModel):
    id: UUID
    code: str
    plan_id: UUID
    plan_name: str | None = None
    discount_type: str
    discount_value: Decimal | None = None
    discount_duration_months: int
    max_uses: int | None = None
    current_uses: int = Field(ge=0)
    reserved_uses: int = Field(ge=0)
    remaining_uses: int | None = None
    max_uses_per_customer: int | None = None
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    is_active: bool
    deactivated_at: datetime | None = None
    grace_period_minutes: int
    admin_notes: str | None = None
    admin_status: str
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime


class DiscountCodeListResponse(BaseModel):
    codes: list[DiscountCodeResponse]


class DiscountCodeAuditEntryResponse(BaseModel):
    id: int
    discount_code_id: UUID | None = None
    code: str
    action: str
    changed_by: str | None = None
    changed_at: datetime
    old_values: dict[str, object] | None = None
    new_values: dict[str, object]


class DiscountCodeAuditListResponse(BaseModel):
    entries: list[DiscountCodeAuditEntryResponse]
