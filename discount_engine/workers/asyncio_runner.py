from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from typing import TypeVar

import structlog

from discount_engine.db.session import dispose_engine

T = TypeVar("T")

logger = structlog.get_logger(__name__)


async def _run_isolated(awaitable: Awaitable[T], *, job_name: str) -> T:
    # Each Celery invocation gets its own loop; asyncpg connections cannot outlive it.
    await dispose_engine()
    started_at = time.monotonic()
    try:
        return await awaitable
    except Exception:
        logger.exception("discount_job_failed", job=job_name)
        raise
    finally:
        logger.info(
            "discount_job_finished",
            job=job_name,
            duration_ms=int((time.monotonic() - started_at) * 1000),
        )
        await dispose_engine()


def run_async_job(awaitable: Awaitable[T], *, job_name: str = "async_job") -> T:
    return asyncio.run(_run_isolated(awaitable, job_name=job_name))
