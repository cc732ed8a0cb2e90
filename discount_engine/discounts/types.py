from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from discount_engine.db.models.discount_codes import DiscountCode
from discount_engine.db.models.subscription_plans import SubscriptionPlan
from discount_engine.discounts.constants import REJECT_CONTENDED


@dataclass(slots=True, frozen=True)
class DiscountTerms:
    plan_id: UUID
    plan_name: str
    provider_plan_id: str
    price_amount: Decimal
    price_currency: str
    billing_cycle: str
    discount_type: str
    discount_value: Decimal | None
    discount_duration_months: int
    display: str
    default_plan_price: Decimal


@dataclass(slots=True)
class ReservationGranted:
    reservation_id: UUID
    discount_code_id: UUID
    code: str
    expires_at: datetime
    terms: DiscountTerms


@dataclass(slots=True)
class ReservationRejected:
    reason: str
    message: str
    code: str
    suggestion: str | None = None
    boundary_at: datetime | None = None

    @property
    def retryable(self) -> bool:
        return self.reason == REJECT_CONTENDED


ReservationOutcome = ReservationGranted | ReservationRejected


@dataclass(slots=True)
class FinalizeResult:
    status: str
    reservation_id: UUID
    redemption_id: UUID | None = None
    discount_code_id: UUID | None = None
    reason: str | None = None


@dataclass(slots=True)
class DiscountCodeOverview:
    discount_code: DiscountCode
    plan: SubscriptionPlan | None
    admin_status: str
    remaining_uses: int | None
