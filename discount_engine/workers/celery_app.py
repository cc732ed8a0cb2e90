from celery import Celery

from discount_engine.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "discount_engine",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "discount_engine.workers.tasks.discount_maintenance",
    ],
)

celery_app.conf.update(
    task_default_queue="q_normal",
    task_routes={"discount_engine.workers.tasks.discount_maintenance.*": {"queue": "q_normal"}},
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # A sweep run never needs to outlive the next scheduled one.
    task_soft_time_limit=settings.discount_sweep_interval_seconds,
    result_expires=3600,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
)


@celery_app.task(name="discount_engine.workers.celery_app.ping")
def ping() -> str:
    return "pong"
