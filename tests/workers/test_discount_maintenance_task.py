from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace

from discount_engine.core.config import get_settings
from discount_engine.workers.celery_app import celery_app
from discount_engine.workers.tasks import discount_maintenance


def test_run_discount_reservation_sweep_task_wrapper(monkeypatch) -> None:
    async def fake_async() -> dict[str, int]:
        return {
            "released_reservations": 4,
            "pending_reservations": 2,
            "expired_pending_remaining": 0,
        }

    monkeypatch.setattr(discount_maintenance, "run_discount_reservation_sweep_async", fake_async)

    result = discount_maintenance.run_discount_reservation_sweep()
    assert result["released_reservations"] == 4


async def test_sweep_job_reports_backlog(monkeypatch) -> None:
    captured: dict[str, object] = {}

    class _Session:
        async def __aenter__(self) -> "_Session":
            return self

        async def __aexit__(self, exc_type, exc, tb) -> bool:
            return False

    async def _fake_sweep(session_factory, *, grace, batch_size, now_utc):
        del session_factory
        captured.update(grace=grace, batch_size=batch_size, now_utc=now_utc)
        return 7

    async def _fake_count(session, *, now_utc):
        del session
        assert now_utc == captured["now_utc"]
        return {"active": 3, "expired": 1}

    monkeypatch.setattr(
        discount_maintenance,
        "get_settings",
        lambda: SimpleNamespace(discount_sweep_grace_minutes=2, discount_sweep_batch_size=50),
    )
    monkeypatch.setattr(discount_maintenance, "SessionLocal", lambda: _Session())
    monkeypatch.setattr(discount_maintenance.ReclamationSweeper, "sweep", _fake_sweep)
    monkeypatch.setattr(
        discount_maintenance.DiscountReservationsRepo, "count_pending_by_expiry", _fake_count
    )

    result = await discount_maintenance.run_discount_reservation_sweep_async()

    assert result == {
        "released_reservations": 7,
        "pending_reservations": 3,
        "expired_pending_remaining": 1,
    }
    assert captured["grace"] == timedelta(minutes=2)
    assert captured["batch_size"] == 50


def test_sweep_is_scheduled_on_beat() -> None:
    entry = celery_app.conf.beat_schedule["discount-reservation-sweep"]
    assert entry["task"] == discount_maintenance.run_discount_reservation_sweep.name
    assert entry["schedule"] == float(get_settings().discount_sweep_interval_seconds)
    assert entry["options"] == {"queue": "q_normal"}
