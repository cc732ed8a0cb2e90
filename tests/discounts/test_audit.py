from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from discount_engine.discounts.audit import classify_change, snapshot_code
from tests.discounts.discount_fixtures import NOW_UTC, make_code


def test_snapshot_is_json_friendly() -> None:
    discount_code = make_code(
        discount_value=Decimal("12.50"),
        valid_until=NOW_UTC + timedelta(days=7),
    )

    snapshot = snapshot_code(discount_code)

    assert snapshot["code"] == "SUMMER50"
    assert snapshot["plan_id"] == str(discount_code.plan_id)
    assert snapshot["discount_value"] == "12.50"
    assert snapshot["valid_until"] == "2026-06-08T12:00:00+00:00"
    assert snapshot["valid_from"] is None
    assert "id" not in snapshot


def test_classify_creation() -> None:
    assert classify_change(old_values=None, new_values={"is_active": True}) == "created"


def test_classify_activation_changes() -> None:
    assert (
        classify_change(old_values={"is_active": True}, new_values={"is_active": False})
        == "deactivated"
    )
    assert (
        classify_change(old_values={"is_active": False}, new_values={"is_active": True})
        == "activated"
    )


def test_classify_exhaustion_and_plain_update() -> None:
    assert (
        classify_change(
            old_values={"is_active": True, "max_uses": 2, "current_uses": 1},
            new_values={"is_active": True, "max_uses": 2, "current_uses": 2},
        )
        == "exhausted"
    )
    assert (
        classify_change(
            old_values={"is_active": True, "max_uses": 2, "current_uses": 1},
            new_values={"is_active": True, "max_uses": 5, "current_uses": 1},
        )
        == "updated"
    )
