"""Celery configuration for scheduled jobs."""

from __future__ import annotations

import os

from celery import Celery

from app.jobs.notifier import NOTIFY_INTERVAL_SECONDS
from app.utils.dates import timezone_name


def celery_dedup_backend() -> str:
    """Worker children do not share memory, so sent markers must live in the database."""
    backend = os.environ.get("NOTIFY_DEDUP_BACKEND", "sql").lower()
    if backend != "sql":
        raise RuntimeError(
            f"NOTIFY_DEDUP_BACKEND={backend!r} cannot be used with Celery workers; set it to 'sql'"
        )
    return backend


DEDUP_BACKEND = celery_dedup_backend()

broker_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")
backend_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")

celery_app = Celery("solecalendar", broker=broker_url, backend=backend_url, include=["app.jobs.notifier"])
celery_app.conf.timezone = timezone_name()
celery_app.conf.beat_schedule = {
    "calendar-notifications": {
        "task": "app.jobs.notifier.run_calendar_notifications",
        "schedule": NOTIFY_INTERVAL_SECONDS,
        "options": {"expires": NOTIFY_INTERVAL_SECONDS * 10},
    },
}


@celery_app.task(name="app.jobs.notifier.run_calendar_notifications", ignore_result=True)
def run_calendar_notifications_task() -> None:
    import asyncio

    from app.jobs.notifier import run_once

    asyncio.run(run_once(DEDUP_BACKEND))
