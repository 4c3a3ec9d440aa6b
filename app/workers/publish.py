"""Video publishing Celery tasks.

This module defines the Celery task that runs the publish pipeline:
- publish_video: Fetch a video reference and publish it to a Facebook Page
"""

import asyncio
from typing import Any

from celery import shared_task
from celery.utils.log import get_task_logger
from pydantic import ValidationError

from app.core.container import get_container
from app.core.exceptions import ErrorKind
from app.core.logging import bound_context
from app.models.publish import PublishRequest, UploadOutcome

logger = get_task_logger(__name__)


async def _publish_video_async(request: PublishRequest) -> UploadOutcome:
    """Run the orchestrator inside a fresh event loop.

    Args:
        request: Publish request

    Returns:
        UploadOutcome
    """
    container = get_container()
    orchestrator = container.services.upload_orchestrator()
    try:
        with bound_context(page_id=request.page_id, task="publish_video"):
            return await orchestrator.publish(request)
    finally:
        # The pooled client is bound to this loop
        await container.infrastructure.http_client().close()


# =============================================================================
# Celery Tasks
# =============================================================================


@shared_task(
    bind=True,
    name="app.workers.publish.publish_video",
    max_retries=0,
)
def publish_video(self, request: dict[str, Any]) -> dict[str, Any]:
    """Publish a video to a Facebook Page.

    Not retried automatically: the pipeline has already tried every
    strategy it has by the time it reports a failure.

    Args:
        self: Celery task instance
        request: PublishRequest fields

    Returns:
        UploadOutcome as a JSON-safe dict
    """
    try:
        publish_request = PublishRequest.model_validate(request)
    except ValidationError as e:
        logger.error(f"Invalid publish request: {e}")
        outcome = UploadOutcome(
            success=False,
            method="request",
            error=f"Invalid publish request: {e}",
            error_kind=ErrorKind.MALFORMED_REFERENCE,
        )
        return outcome.model_dump(mode="json")

    logger.info(f"Publishing {publish_request.video_reference} to page {publish_request.page_id}")

    try:
        outcome = asyncio.run(_publish_video_async(publish_request))
    except Exception as exc:
        logger.error(f"Publish task failed: {exc}", exc_info=True)
        outcome = UploadOutcome(
            success=False,
            method="task",
            error=str(exc),
            error_kind=ErrorKind.UNKNOWN,
        )
    finally:
        get_container().reset_singletons()

    if outcome.success:
        logger.info(f"Published via {outcome.method}: {outcome.post_id}")
    else:
        logger.error(f"Publish failed via {outcome.method}: {outcome.error}")

    return outcome.model_dump(mode="json")


__all__ = ["publish_video"]
