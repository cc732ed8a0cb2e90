from __future__ import annotations

from datetime import datetime

from discount_engine.db.models.discount_codes import DiscountCode
from discount_engine.db.models.subscription_plans import SubscriptionPlan
from discount_engine.discounts.eligibility import is_exhausted

ADMIN_STATUSES = ("inactive", "error", "expired", "exhausted", "unused", "active")


def compute_admin_status(
    discount_code: DiscountCode,
    *,
    plan: SubscriptionPlan | None,
    now_utc: datetime,
) -> str:
    if not discount_code.is_active:
        return "inactive"
    if plan is None or not plan.is_active:
        return "error"
    if discount_code.valid_until is not None and discount_code.valid_until <= now_utc:
        return "expired"
    if is_exhausted(discount_code):
        return "exhausted"
    if discount_code.current_uses == 0:
        return "unused"
    return "active"
