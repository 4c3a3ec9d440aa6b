"""Scratch housekeeping Celery tasks.

- sweep_scratch: Delete stale scratch files (daily via Celery Beat)
- A worker_ready handler runs one sweep when a worker starts
"""

from typing import Any

from celery import shared_task
from celery.signals import worker_ready
from celery.utils.log import get_task_logger
from pydantic import BaseModel

from app.core.container import get_container

logger = get_task_logger(__name__)


class SweepTaskResult(BaseModel):
    """Result of a sweep task.

    Attributes:
        deleted_count: Files removed
        skipped_count: Matching files left in place
        bytes_freed: Space reclaimed
        usage_percent: Disk usage after the sweep
        above_high_water: Usage is at or above the high-water mark
    """

    deleted_count: int = 0
    skipped_count: int = 0
    bytes_freed: int = 0
    usage_percent: float | None = None
    above_high_water: bool = False


def run_sweep() -> SweepTaskResult:
    """Run one sweep with the container's janitor."""
    janitor = get_container().services.disk_janitor()
    report = janitor.sweep()
    return SweepTaskResult(
        deleted_count=len(report.deleted),
        skipped_count=len(report.skipped),
        bytes_freed=report.bytes_freed,
        usage_percent=report.disk.usage_percent if report.disk else None,
        above_high_water=report.above_high_water,
    )


# =============================================================================
# Celery Tasks
# =============================================================================


@shared_task(name="app.workers.janitor.sweep_scratch")
def sweep_scratch() -> dict[str, Any]:
    """Delete stale scratch files.

    Returns:
        SweepTaskResult as dict
    """
    result = run_sweep()
    logger.info(
        f"Scratch sweep removed {result.deleted_count} files "
        f"({result.bytes_freed} bytes), skipped {result.skipped_count}"
    )
    return result.model_dump()


@worker_ready.connect
def sweep_on_startup(sender: Any = None, **kwargs: Any) -> None:
    """Queue one sweep when a worker comes up."""
    janitor_config = get_container().configs.janitor_config()
    if not janitor_config.run_on_startup:
        return
    logger.info("Queueing startup scratch sweep")
    sweep_scratch.apply_async(queue="maintenance")


__all__ = ["SweepTaskResult", "run_sweep", "sweep_on_startup", "sweep_scratch"]
