from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

from discount_engine.db.models.discount_codes import DiscountCode
from discount_engine.db.models.subscription_plans import SubscriptionPlan
from discount_engine.discounts.constants import (
    REJECT_EXPIRED,
    REJECT_NOT_YET_VALID,
    REJECTION_MESSAGES,
)
from discount_engine.discounts.types import DiscountTerms, ReservationRejected


def build_rejection(
    reason: str,
    *,
    code: str,
    suggestion: str | None = None,
    boundary_at: datetime | None = None,
) -> ReservationRejected:
    message = REJECTION_MESSAGES[reason]
    if reason == REJECT_EXPIRED and boundary_at is not None:
        message = f"Code expired on {boundary_at:%b %d, %Y}"
    elif reason == REJECT_NOT_YET_VALID and boundary_at is not None:
        message = f"Code is valid from {boundary_at:%b %d, %Y}"
    return ReservationRejected(
        reason=reason,
        message=message,
        code=code,
        suggestion=suggestion,
        boundary_at=boundary_at,
    )


def check_validity_window(
    discount_code: DiscountCode, *, now_utc: datetime
) -> tuple[str, datetime] | None:
    """Return (reason, boundary) when now_utc falls outside [valid_from, valid_until)."""
    if discount_code.valid_from is not None and now_utc < discount_code.valid_from:
        return REJECT_NOT_YET_VALID, discount_code.valid_from
    if discount_code.valid_until is not None and now_utc >= discount_code.valid_until:
        return REJECT_EXPIRED, discount_code.valid_until
    return None


def has_capacity(discount_code: DiscountCode) -> bool:
    if discount_code.max_uses is None:
        return True
    return discount_code.current_uses + discount_code.reserved_uses < discount_code.max_uses


def remaining_uses(discount_code: DiscountCode) -> int | None:
    if discount_code.max_uses is None:
        return None
    used = discount_code.current_uses + discount_code.reserved_uses
    return max(0, discount_code.max_uses - used)


def is_exhausted(discount_code: DiscountCode) -> bool:
    return discount_code.max_uses is not None and discount_code.current_uses >= discount_code.max_uses


def has_customer_quota(discount_code: DiscountCode, *, redemption_count: int) -> bool:
    if discount_code.max_uses_per_customer is None:
        return True
    return redemption_count < discount_code.max_uses_per_customer


def is_finalizable(
    discount_code: DiscountCode,
    *,
    reservation_created_at: datetime,
    now_utc: datetime,
) -> bool:
    """Deactivated codes keep honouring holds taken before deactivation for the grace period."""
    if discount_code.is_active:
        return True
    deactivated_at = discount_code.deactivated_at
    if deactivated_at is None:
        return False
    if reservation_created_at > deactivated_at:
        return False
    grace_ends_at = deactivated_at + timedelta(minutes=discount_code.grace_period_minutes)
    return now_utc <= grace_ends_at


def _format_amount(value: Decimal | None) -> str:
    if value is None:
        return "0"
    if value == value.to_integral_value():
        return str(int(value))
    return f"{value:.2f}"


def describe_discount(
    *,
    discount_type: str,
    discount_value: Decimal | None,
    duration_months: int,
    currency: str = "USD",
) -> str:
    if duration_months == 1:
        period = "first month"
    else:
        period = f"first {duration_months} months"

    if discount_type == "percentage":
        return f"{_format_amount(discount_value)}% off {period}"
    if discount_type == "fixed_amount":
        prefix = "$" if currency == "USD" else f"{currency} "
        return f"{prefix}{_format_amount(discount_value)} off {period}"
    if discount_type == "free_trial":
        return f"{duration_months} month free trial"
    return "Special discount"


def build_terms(
    discount_code: DiscountCode,
    plan: SubscriptionPlan,
    *,
    default_plan: SubscriptionPlan | None = None,
) -> DiscountTerms:
    """Terms for checkout; the default plan price lets the caller show the saving."""
    return DiscountTerms(
        plan_id=plan.id,
        plan_name=plan.name,
        provider_plan_id=plan.provider_plan_id,
        price_amount=plan.price_amount,
        price_currency=plan.price_currency,
        billing_cycle=plan.billing_cycle,
        discount_type=discount_code.discount_type,
        discount_value=discount_code.discount_value,
        discount_duration_months=discount_code.discount_duration_months,
        display=describe_discount(
            discount_type=discount_code.discount_type,
            discount_value=discount_code.discount_value,
            duration_months=discount_code.discount_duration_months,
            currency=plan.price_currency,
        ),
        default_plan_price=(default_plan or plan).price_amount,
    )
