from discount_engine.db.repo.discount_audit_repo import DiscountAuditRepo
from discount_engine.db.repo.discount_codes_repo import DiscountCodesRepo
from discount_engine.db.repo.discount_redemptions_repo import DiscountRedemptionsRepo
from discount_engine.db.repo.discount_reservations_repo import DiscountReservationsRepo
from discount_engine.db.repo.plans_repo import PlansRepo

__all__ = [
    "DiscountAuditRepo",
    "DiscountCodesRepo",
    "DiscountRedemptionsRepo",
    "DiscountReservationsRepo",
    "PlansRepo",
]
