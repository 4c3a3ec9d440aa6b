"""Celery application for ReelRelay workers.

Two queues: ``upload`` runs publish tasks (long, one at a time per
worker process) and ``maintenance`` runs the scratch sweep. Redis is the
broker and result backend. Beat triggers the daily sweep at the time set
in the janitor section of the publishing config.
"""

from celery import Celery
from celery.schedules import crontab

from app.core.config import get_config
from app.core.config_loader import get_publishing_config

config = get_config()
janitor_config = get_publishing_config().janitor

celery_app = Celery(
    "reelrelay",
    broker=config.celery_broker_url,
    backend=config.celery_result_backend,
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # A publish interrupted by a worker crash is redelivered
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Large sources can spend most of an hour transcoding
    task_time_limit=3600,
    task_soft_time_limit=3300,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=50,
    result_expires=24 * 60 * 60,
    result_extended=True,
    beat_scheduler="celery.beat:PersistentScheduler",
    beat_schedule_filename="celerybeat-schedule",
    beat_schedule={
        "sweep-scratch-daily": {
            "task": "app.workers.janitor.sweep_scratch",
            "schedule": crontab(
                hour=janitor_config.cron_hour,
                minute=janitor_config.cron_minute,
            ),
            "options": {"queue": "maintenance"},
        },
    },
    task_routes={
        "app.workers.publish.*": {"queue": "upload"},
        "app.workers.janitor.*": {"queue": "maintenance"},
    },
    task_default_queue="default",
)

celery_app.autodiscover_tasks(
    ["app.workers.publish", "app.workers.janitor"],
    related_name=None,
)

__all__ = ["celery_app"]
