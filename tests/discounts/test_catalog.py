from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from discount_engine.discounts import catalog
from discount_engine.discounts.catalog import CodeCatalog
from discount_engine.discounts.errors import CatalogValidationError
from tests.discounts.catalog_fixtures import CatalogSession, install_catalog_store
from tests.discounts.discount_fixtures import NOW_UTC, make_code, make_plan


async def test_create_code_reads_offset_less_window_as_utc(monkeypatch) -> None:
    plan = make_plan()
    store = install_catalog_store(monkeypatch, plan)
    session = CatalogSession()

    discount_code = await CodeCatalog.create_code(
        session,
        code="newyear",
        plan_id=plan.id,
        discount_type="percentage",
        discount_value=Decimal("20"),
        valid_until=datetime(2099, 12, 31),
        now_utc=NOW_UTC,
    )
    overview = await CodeCatalog.get_code(
        session, discount_code_id=discount_code.id, now_utc=NOW_UTC
    )

    assert discount_code.valid_until == datetime(2099, 12, 31, tzinfo=timezone.utc)
    assert overview.admin_status == "unused"
    (entry,) = store.audit
    assert entry.action == "created"
    assert entry.new_values["valid_until"] == "2099-12-31T00:00:00+00:00"


async def test_create_code_converts_window_offsets_to_utc(monkeypatch) -> None:
    plan = make_plan()
    install_catalog_store(monkeypatch, plan)
    new_york_winter = timezone(timedelta(hours=-5))

    discount_code = await CodeCatalog.create_code(
        CatalogSession(),
        code="WINTER",
        plan_id=plan.id,
        discount_type="free_trial",
        valid_from=datetime(2026, 12, 1),
        valid_until=datetime(2026, 12, 31, 19, 0, tzinfo=new_york_winter),
        now_utc=NOW_UTC,
    )

    assert discount_code.valid_from == datetime(2026, 12, 1, tzinfo=timezone.utc)
    assert discount_code.valid_until == datetime(2027, 1, 1, tzinfo=timezone.utc)
    assert discount_code.valid_until.tzinfo is timezone.utc


async def test_update_code_compares_offset_less_bound_with_stored_one(monkeypatch) -> None:
    plan = make_plan()
    store = install_catalog_store(monkeypatch, plan)
    discount_code = make_code(plan_id=plan.id, valid_from=NOW_UTC)
    store.codes[discount_code.id] = discount_code

    await CodeCatalog.update_code(
        CatalogSession(),
        discount_code_id=discount_code.id,
        changes={"valid_until": datetime(2099, 12, 31)},
        changed_by="admin",
        now_utc=NOW_UTC,
    )

    assert discount_code.valid_until == datetime(2099, 12, 31, tzinfo=timezone.utc)
    assert store.audit[-1].action == "updated"


async def test_update_code_rejects_offset_less_bound_before_stored_start(monkeypatch) -> None:
    plan = make_plan()
    store = install_catalog_store(monkeypatch, plan)
    discount_code = make_code(plan_id=plan.id, valid_from=NOW_UTC)
    store.codes[discount_code.id] = discount_code

    with pytest.raises(CatalogValidationError) as exc_info:
        await CodeCatalog.update_code(
            CatalogSession(),
            discount_code_id=discount_code.id,
            changes={"valid_until": datetime(2026, 1, 1)},
            now_utc=NOW_UTC,
        )

    assert exc_info.value.field == "valid_until"


class _UniqueViolation(Exception):
    def __init__(self, constraint_name: str) -> None:
        super().__init__(f'duplicate key value violates unique constraint "{constraint_name}"')
        self.constraint_name = constraint_name


def _failing_plan_insert(monkeypatch, constraint_name: str) -> None:
    async def _clear_default(session, *, now_utc, except_plan_id=None):
        del session, now_utc, except_plan_id
        return 1

    async def _create(session, *, plan):
        del session, plan
        raise IntegrityError(
            "INSERT INTO subscription_plans", {}, _UniqueViolation(constraint_name)
        )

    monkeypatch.setattr(catalog.PlansRepo, "clear_default", _clear_default)
    monkeypatch.setattr(catalog.PlansRepo, "create", _create)


@pytest.mark.parametrize(
    ("constraint_name", "field"),
    [
        ("uq_subscription_plans_default", "is_default"),
        ("subscription_plans_provider_plan_id_key", "provider_plan_id"),
    ],
)
async def test_create_plan_names_the_conflicting_field(
    monkeypatch, constraint_name: str, field: str
) -> None:
    _failing_plan_insert(monkeypatch, constraint_name)

    with pytest.raises(CatalogValidationError) as exc_info:
        await CodeCatalog.create_plan(
            CatalogSession(),
            name="Pro Annual",
            provider_plan_id="price_pro_annual",
            price_amount=Decimal("180.00"),
            billing_cycle="annual",
            is_default=True,
            now_utc=NOW_UTC,
        )

    assert exc_info.value.field == field
