from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from discount_engine.api.routes import internal_discounts_catalog
from discount_engine.db.models.discount_codes import DiscountCode
from discount_engine.discounts.errors import (
    CatalogValidationError,
    CodeAlreadyExistsError,
    CodeInUseError,
    CodeNotFoundError,
    PlanNotFoundError,
)
from discount_engine.discounts.types import DiscountCodeOverview
from discount_engine.main import app
from tests.api.internal_discounts_fixtures import (
    AUTH_HEADERS,
    FakeSessionLocal,
    allow_internal_access,
)
from tests.discounts.catalog_fixtures import CatalogSession, install_catalog_store
from tests.discounts.discount_fixtures import make_code, make_plan

NOW_UTC = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def _discount_code(**overrides: object) -> DiscountCode:
    values: dict[str, object] = {
        "id": uuid4(),
        "code": "SUMMER50",
        "plan_id": uuid4(),
        "discount_type": "percentage",
        "discount_value": Decimal("50"),
        "discount_duration_months": 1,
        "max_uses": 10,
        "current_uses": 2,
        "reserved_uses": 1,
        "max_uses_per_customer": 1,
        "valid_from": None,
        "valid_until": None,
        "is_active": True,
        "deactivated_at": None,
        "grace_period_minutes": 30,
        "admin_notes": None,
        "created_by": "admin",
        "created_at": NOW_UTC,
        "updated_at": NOW_UTC,
    }
    values.update(overrides)
    return DiscountCode(**values)


@pytest.fixture
def catalog_access(monkeypatch) -> None:
    allow_internal_access(monkeypatch)
    monkeypatch.setattr(internal_discounts_catalog, "SessionLocal", FakeSessionLocal())


def test_get_code_returns_admin_view(monkeypatch, catalog_access) -> None:
    discount_code = _discount_code()

    async def _fake_get_code(session, *, discount_code_id):
        del session
        assert discount_code_id == discount_code.id
        return DiscountCodeOverview(
            discount_code=discount_code,
            plan=None,
            admin_status="error",
            remaining_uses=7,
        )

    monkeypatch.setattr(internal_discounts_catalog.CodeCatalog, "get_code", _fake_get_code)

    client = TestClient(app)
    response = client.get(f"/internal/discounts/codes/{discount_code.id}", headers=AUTH_HEADERS)

    assert response.status_code == 200
    payload = response.json()
    assert payload["code"] == "SUMMER50"
    assert payload["remaining_uses"] == 7
    assert payload["reserved_uses"] == 1
    assert payload["admin_status"] == "error"
    assert payload["plan_name"] is None


@pytest.mark.parametrize(
    ("error", "status_code", "error_code"),
    [
        (CodeNotFoundError(), 404, "E_DISCOUNT_CODE_NOT_FOUND"),
        (PlanNotFoundError(), 404, "E_PLAN_NOT_FOUND"),
        (CodeAlreadyExistsError(), 409, "E_DISCOUNT_CODE_EXISTS"),
        (CodeInUseError("code SUMMER50 has 1 redemption(s)"), 409, "E_DISCOUNT_CODE_IN_USE"),
        (CatalogValidationError("max_uses", "too low"), 422, "E_VALIDATION"),
    ],
)
def test_update_code_maps_catalog_errors(
    monkeypatch, catalog_access, error: Exception, status_code: int, error_code: str
) -> None:
    async def _fake_update(session, *, discount_code_id, changes, changed_by):
        del session, discount_code_id, changes, changed_by
        raise error

    monkeypatch.setattr(internal_discounts_catalog.CodeCatalog, "update_code", _fake_update)

    client = TestClient(app)
    response = client.patch(
        f"/internal/discounts/codes/{uuid4()}",
        json={"max_uses": 1},
        headers=AUTH_HEADERS,
    )

    assert response.status_code == status_code
    assert response.json()["detail"]["code"] == error_code


def test_update_code_passes_only_sent_fields(monkeypatch, catalog_access) -> None:
    discount_code = _discount_code(max_uses=None)
    captured: dict[str, object] = {}

    async def _fake_update(session, *, discount_code_id, changes, changed_by):
        del session, discount_code_id
        captured.update(changes=changes, changed_by=changed_by)
        return discount_code

    async def _fake_get_code(session, *, discount_code_id):
        del session, discount_code_id
        return DiscountCodeOverview(
            discount_code=discount_code,
            plan=None,
            admin_status="error",
            remaining_uses=None,
        )

    monkeypatch.setattr(internal_discounts_catalog.CodeCatalog, "update_code", _fake_update)
    monkeypatch.setattr(internal_discounts_catalog.CodeCatalog, "get_code", _fake_get_code)

    client = TestClient(app)
    response = client.patch(
        f"/internal/discounts/codes/{discount_code.id}",
        json={"max_uses": None, "admin_notes": "uncapped", "changed_by": "ops"},
        headers=AUTH_HEADERS,
    )

    assert response.status_code == 200
    assert captured == {
        "changes": {"max_uses": None, "admin_notes": "uncapped"},
        "changed_by": "ops",
    }


def test_delete_code_returns_no_content(monkeypatch, catalog_access) -> None:
    deleted: list[object] = []

    async def _fake_delete(session, *, discount_code_id, deleted_by):
        del session
        deleted.append((discount_code_id, deleted_by))

    monkeypatch.setattr(internal_discounts_catalog.CodeCatalog, "delete_code", _fake_delete)
    discount_code_id = uuid4()

    client = TestClient(app)
    response = client.delete(
        f"/internal/discounts/codes/{discount_code_id}",
        params={"deleted_by": "ops"},
        headers=AUTH_HEADERS,
    )

    assert response.status_code == 204
    assert deleted == [(discount_code_id, "ops")]


class _CatalogSessionLocal:
    def __init__(self) -> None:
        self.session = CatalogSession()

    def begin(self) -> "_CatalogSessionLocal":
        return self

    async def __aenter__(self) -> CatalogSession:
        return self.session

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


def _as_utc_instant(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def test_create_code_accepts_offset_less_window(monkeypatch) -> None:
    allow_internal_access(monkeypatch)
    monkeypatch.setattr(internal_discounts_catalog, "SessionLocal", _CatalogSessionLocal())
    plan = make_plan()
    store = install_catalog_store(monkeypatch, plan)

    client = TestClient(app)
    response = client.post(
        "/internal/discounts/codes",
        json={
            "code": "new-year",
            "plan_id": str(plan.id),
            "discount_type": "percentage",
            "discount_value": "25",
            "valid_from": "2026-01-01T00:00:00",
            "valid_until": "2099-12-31T00:00:00",
        },
        headers=AUTH_HEADERS,
    )

    assert response.status_code == 201
    payload = response.json()
    assert payload["code"] == "NEWYEAR"
    assert payload["admin_status"] == "unused"
    assert _as_utc_instant(payload["valid_until"]) == datetime(2099, 12, 31, tzinfo=timezone.utc)
    (stored,) = store.codes.values()
    assert stored.valid_from == datetime(2026, 1, 1, tzinfo=timezone.utc)


def test_update_code_accepts_offset_less_window(monkeypatch) -> None:
    allow_internal_access(monkeypatch)
    monkeypatch.setattr(internal_discounts_catalog, "SessionLocal", _CatalogSessionLocal())
    plan = make_plan()
    store = install_catalog_store(monkeypatch, plan)
    discount_code = make_code(plan_id=plan.id, valid_from=NOW_UTC)
    store.codes[discount_code.id] = discount_code

    client = TestClient(app)
    ok = client.patch(
        f"/internal/discounts/codes/{discount_code.id}",
        json={"valid_until": "2099-12-31T00:00:00", "changed_by": "ops"},
        headers=AUTH_HEADERS,
    )
    too_early = client.patch(
        f"/internal/discounts/codes/{discount_code.id}",
        json={"valid_until": "2026-01-01T00:00:00"},
        headers=AUTH_HEADERS,
    )

    assert ok.status_code == 200
    assert _as_utc_instant(ok.json()["valid_until"]) == datetime(2099, 12, 31, tzinfo=timezone.utc)
    assert too_early.status_code == 422
    assert too_early.json()["detail"]["code"] == "E_VALIDATION"
