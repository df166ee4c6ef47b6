# salon_booking/tasks.py
"""
Celery application and the periodic reminder sweep.

Beat enqueues ``reminders.sweep`` every ``sweep_interval_seconds``. Run a
worker with the beat scheduler embedded:

    celery -A salon_booking.tasks worker --beat --loglevel=INFO
"""

from dataclasses import asdict
from datetime import timedelta
from typing import Optional

from celery import Celery
from celery.utils.log import get_task_logger

from salon_booking.config import get_settings
from salon_booking.db import engine
from salon_booking.services.messaging import build_dispatcher
from salon_booking.services.notifications import NotificationScheduler

logger = get_task_logger(__name__)

SWEEP_TASK = "reminders.sweep"


def create_celery_app() -> Celery:
    settings = get_settings()
    celery_app = Celery("salon_booking", broker=settings.celery_broker_url)
    celery_app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        task_ignore_result=True,
        worker_hijack_root_logger=False,
        beat_schedule={
            "sweep-due-reminders": {
                "task": SWEEP_TASK,
                "schedule": timedelta(seconds=settings.sweep_interval_seconds),
                # a sweep still queued when the next one is due is dropped
                "options": {"expires": settings.sweep_interval_seconds},
            },
        },
    )
    return celery_app


celery_app = create_celery_app()

_scheduler: Optional[NotificationScheduler] = None


def get_scheduler() -> NotificationScheduler:
    """One scheduler per worker process, so its sweep lock is shared by every run."""
    global _scheduler
    if _scheduler is None:
        settings = get_settings()
        _scheduler = NotificationScheduler(engine, build_dispatcher(settings), settings=settings)
    return _scheduler


@celery_app.task(name=SWEEP_TASK, max_retries=0)
def sweep_due_reminders() -> dict:
    result = get_scheduler().sweep()
    logger.debug("Reminder sweep finished: %s", result)
    return asdict(result)
