from __future__ import annotations

from datetime import datetime, timedelta, timezone

import structlog

from discount_engine.core.config import get_settings
from discount_engine.db.repo.discount_reservations_repo import DiscountReservationsRepo
from discount_engine.db.session import SessionLocal
from discount_engine.discounts.sweeper import ReclamationSweeper
from discount_engine.workers.asyncio_runner import run_async_job
from discount_engine.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)


async def run_discount_reservation_sweep_async() -> dict[str, int]:
    settings = get_settings()
    now_utc = datetime.now(timezone.utc)
    released = await ReclamationSweeper.sweep(
        SessionLocal,
        grace=timedelta(minutes=settings.discount_sweep_grace_minutes),
        batch_size=settings.discount_sweep_batch_size,
        now_utc=now_utc,
    )

    async with SessionLocal() as session:
        pending = await DiscountReservationsRepo.count_pending_by_expiry(session, now_utc=now_utc)

    result = {
        "released_reservations": released,
        "pending_reservations": pending["active"],
        "expired_pending_remaining": pending["expired"],
    }
    if result["expired_pending_remaining"] > 0:
        logger.warning("discount_reservation_sweep_backlog", **result)
    else:
        logger.info("discount_reservation_sweep_stats", **result)
    return result


@celery_app.task(name="discount_engine.workers.tasks.discount_maintenance.run_discount_reservation_sweep")
def run_discount_reservation_sweep() -> dict[str, int]:
    return run_async_job(
        run_discount_reservation_sweep_async(),
        job_name="discount_reservation_sweep",
    )


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "discount-reservation-sweep": {
            "task": "discount_engine.workers.tasks.discount_maintenance.run_discount_reservation_sweep",
            "schedule": float(get_settings().discount_sweep_interval_seconds),
            "options": {"queue": "q_normal"},
        },
    }
)
