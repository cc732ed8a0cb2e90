from __future__ import annotations

from discount_engine.core.logging import mask_holder_identity


def test_mask_holder_identity_keeps_only_domain() -> None:
    event = mask_holder_identity(
        None,
        "info",
        {
            "event": "discount_reserved",
            "holder_identity": "alice@example.com",
            "customer_email": "bob@corp.io",
            "code": "SUMMER50",
        },
    )

    assert event["holder_identity"] == "***@example.com"
    assert event["customer_email"] == "***@corp.io"
    assert event["code"] == "SUMMER50"


def test_mask_holder_identity_hides_values_without_domain() -> None:
    event = mask_holder_identity(None, "info", {"holder_identity": "no-at-sign"})
    assert event["holder_identity"] == "***"


def test_mask_holder_identity_ignores_missing_fields() -> None:
    event = mask_holder_identity(None, "info", {"event": "discount_finalized", "holder_identity": None})
    assert event == {"event": "discount_finalized", "holder_identity": None}
