from discount_engine.db.models.discount_code_audit import DiscountCodeAuditEntry
from discount_engine.db.models.discount_codes import DiscountCode
from discount_engine.db.models.discount_redemptions import DiscountRedemption
from discount_engine.db.models.discount_reservations import DiscountReservation
from discount_engine.db.models.subscription_plans import SubscriptionPlan

__all__ = [
    "DiscountCode",
    "DiscountCodeAuditEntry",
    "DiscountRedemption",
    "DiscountReservation",
    "SubscriptionPlan",
]
