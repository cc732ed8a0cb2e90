from __future__ import annotations

from datetime import timedelta

RESERVATION_TTL = timedelta(minutes=15)

SUGGESTION_MAX_DISTANCE = 2
SUGGESTION_MAX_DISTANCE_RATIO = 0.3

MAX_CODE_LENGTH = 32
MAX_HOLDER_IDENTITY_LENGTH = 255

DISCOUNT_TYPES = ("percentage", "fixed_amount", "free_trial")
BILLING_CYCLES = ("monthly", "annual")
AUDIT_ACTIONS = ("created", "updated", "activated", "deactivated", "exhausted")

REJECT_CONTENDED = "CONTENDED"
REJECT_NOT_FOUND = "NOT_FOUND"
REJECT_INACTIVE = "INACTIVE"
REJECT_NOT_YET_VALID = "NOT_YET_VALID"
REJECT_EXPIRED = "EXPIRED"
REJECT_CAPACITY_EXHAUSTED = "CAPACITY_EXHAUSTED"
REJECT_ALREADY_USED = "ALREADY_USED"
REJECT_ALREADY_RESERVED = "ALREADY_RESERVED"
REJECT_PLAN_UNAVAILABLE = "PLAN_UNAVAILABLE"

REJECTION_MESSAGES: dict[str, str] = {
    REJECT_CONTENDED: "Code is being claimed by another checkout, please retry",
    REJECT_NOT_FOUND: "Code not found",
    REJECT_INACTIVE: "Code is no longer active",
    REJECT_NOT_YET_VALID: "Code is not yet valid",
    REJECT_EXPIRED: "Code has expired",
    REJECT_CAPACITY_EXHAUSTED: "Code has reached its usage limit",
    REJECT_ALREADY_USED: "You have already used this code",
    REJECT_ALREADY_RESERVED: "You already have a pending reservation for this code",
    REJECT_PLAN_UNAVAILABLE: "The plan for this code is no longer available",
}

FINALIZE_FINALIZED = "FINALIZED"
FINALIZE_ALREADY_FINALIZED = "ALREADY_FINALIZED"
FINALIZE_NOT_FOUND = "NOT_FOUND"

FINALIZE_REASON_IDEMPOTENT_REPLAY = "IDEMPOTENT_REPLAY"
FINALIZE_REASON_RESERVATION_REDEEMED = "RESERVATION_REDEEMED"
FINALIZE_REASON_RESERVATION_MISSING = "RESERVATION_MISSING"
FINALIZE_REASON_RESERVATION_RELEASED = "RESERVATION_RELEASED"
FINALIZE_REASON_CODE_INACTIVE = "CODE_INACTIVE"
FINALIZE_REASON_CONCURRENT_INSERT = "CONCURRENT_INSERT"
