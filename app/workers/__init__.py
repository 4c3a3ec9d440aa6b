"""Celery workers for ReelRelay.

This package contains Celery tasks and configuration for background processing.

Modules:
- celery_app: Celery application configuration and beat schedule
- publish: Video publish task
- janitor: Scratch sweep task and startup hook
"""

from app.workers.celery_app import celery_app

__all__ = ["celery_app"]
