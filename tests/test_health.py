from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from discount_engine.api.routes import health as health_routes
from discount_engine.main import app


async def _ok_check() -> dict[str, str]:
    return {"status": "ok"}


def _failing(error: str):
    async def _check() -> dict[str, str]:
        return {"status": "failed", "error": error}

    return _check


@pytest.fixture
def healthy_dependencies(monkeypatch) -> None:
    monkeypatch.setattr(health_routes, "_check_database", _ok_check)
    monkeypatch.setattr(health_routes, "_check_redis", _ok_check)
    monkeypatch.setattr(health_routes, "_check_celery_worker", _ok_check)


def test_live_does_not_touch_dependencies() -> None:
    response = TestClient(app).get("/live")

    assert response.status_code == 200
    assert response.json() == {"status": "live"}


def test_health_reports_every_dependency(healthy_dependencies) -> None:
    response = TestClient(app).get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "checks": {
            "database": {"status": "ok"},
            "redis": {"status": "ok"},
            "celery": {"status": "ok"},
        },
    }


@pytest.mark.parametrize("check_name", ["database", "redis", "celery"])
def test_health_degrades_when_any_dependency_fails(
    monkeypatch, healthy_dependencies, check_name: str
) -> None:
    attribute = {
        "database": "_check_database",
        "redis": "_check_redis",
        "celery": "_check_celery_worker",
    }[check_name]
    monkeypatch.setattr(health_routes, attribute, _failing(f"{check_name}_unavailable"))

    response = TestClient(app).get("/health")

    assert response.status_code == 503
    payload = response.json()
    assert payload["status"] == "degraded"
    assert payload["checks"][check_name] == {
        "status": "failed",
        "error": f"{check_name}_unavailable",
    }


def test_ready_ignores_celery_worker(monkeypatch, healthy_dependencies) -> None:
    monkeypatch.setattr(health_routes, "_check_celery_worker", _failing("no_celery_workers"))

    response = TestClient(app).get("/ready")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ready",
        "checks": {
            "database": {"status": "ok"},
            "redis": {"status": "ok"},
        },
    }


def test_ready_fails_without_database(monkeypatch, healthy_dependencies) -> None:
    monkeypatch.setattr(health_routes, "_check_database", _failing("database_unavailable"))

    response = TestClient(app).get("/ready")

    assert response.status_code == 503
    assert response.json()["status"] == "not_ready"


async def test_database_check_hides_connection_details(monkeypatch) -> None:
    class _BrokenSession:
        async def __aenter__(self):
            raise RuntimeError("password=secret")

        async def __aexit__(self, exc_type, exc, tb) -> bool:
            return False

    monkeypatch.setattr(health_routes, "SessionLocal", lambda: _BrokenSession())

    result = await health_routes._check_database()
    assert result == {"status": "failed", "error": "database_unavailable"}


def test_celery_check_hides_broker_details(monkeypatch) -> None:
    class _BrokenControl:
        def inspect(self, timeout: float):
            raise RuntimeError("broker-url=redis://secret")

    monkeypatch.setattr(health_routes.celery_app, "control", _BrokenControl())

    result = health_routes._check_celery_worker_sync()
    assert result == {"status": "failed", "error": "celery_unavailable"}


def test_celery_check_counts_workers(monkeypatch) -> None:
    class _Inspector:
        def ping(self) -> dict[str, dict[str, str]]:
            return {"worker-1": {"ok": "pong"}, "worker-2": {"ok": "pong"}}

    class _Control:
        def inspect(self, timeout: float) -> _Inspector:
            return _Inspector()

    monkeypatch.setattr(health_routes.celery_app, "control", _Control())

    assert health_routes._check_celery_worker_sync() == {"status": "ok", "workers": 2}
