from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from discount_engine.db.models.discount_code_audit import DiscountCodeAuditEntry
from discount_engine.db.models.discount_codes import DiscountCode
from discount_engine.db.repo.discount_audit_repo import DiscountAuditRepo

SNAPSHOT_FIELDS = (
    "code",
    "plan_id",
    "discount_type",
    "discount_value",
    "discount_duration_months",
    "max_uses",
    "current_uses",
    "reserved_uses",
    "max_uses_per_customer",
    "valid_from",
    "valid_until",
    "is_active",
    "deactivated_at",
    "grace_period_minutes",
    "admin_notes",
)


def _to_json_value(value: object) -> object:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    return value


def snapshot_code(discount_code: DiscountCode) -> dict[str, object]:
    return {field: _to_json_value(getattr(discount_code, field)) for field in SNAPSHOT_FIELDS}


def classify_change(
    *,
    old_values: dict[str, object] | None,
    new_values: dict[str, object],
) -> str:
    if old_values is None:
        return "created"
    was_active = bool(old_values.get("is_active"))
    is_active = bool(new_values.get("is_active"))
    if was_active and not is_active:
        return "deactivated"
    if not was_active and is_active:
        return "activated"

    max_uses = new_values.get("max_uses")
    current_uses = new_values.get("current_uses")
    if isinstance(max_uses, int) and isinstance(current_uses, int) and current_uses >= max_uses:
        return "exhausted"
    return "updated"


async def record_code_change(
    session: AsyncSession,
    *,
    discount_code: DiscountCode,
    old_values: dict[str, object] | None,
    changed_by: str | None,
    now_utc: datetime,
    action: str | None = None,
) -> DiscountCodeAuditEntry:
    new_values = snapshot_code(discount_code)
    return await DiscountAuditRepo.create(
        session,
        entry=DiscountCodeAuditEntry(
            discount_code_id=discount_code.id,
            code=discount_code.code,
            action=action or classify_change(old_values=old_values, new_values=new_values),
            changed_by=changed_by,
            changed_at=now_utc,
            old_values=old_values,
            new_values=new_values,
        ),
    )
