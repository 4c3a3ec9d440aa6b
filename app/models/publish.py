"""Publish request and outcome models.

These are the inbound and outbound records exchanged with the caller
(web layer or Celery task). Both are pydantic models so they can cross
the task queue as JSON.
"""

from enum import Enum

from pydantic import BaseModel, Field

from app.core.exceptions import ErrorKind


class PublishState(str, Enum):
    """Orchestrator states for one publish attempt."""

    FETCHING = "fetching"
    VALIDATING = "validating"
    UPLOADING_DIRECT = "uploading_direct"
    TRANSCODING = "transcoding"
    UPLOADING_TRANSCODED = "uploading_transcoded"
    DONE = "done"
    FAILED = "failed"


class PublishRequest(BaseModel):
    """A request to publish a video to a Facebook Page.

    Attributes:
        page_id: Facebook Page ID
        access_token: Page access token
        video_reference: Source URL of the video
        caption: Post description
        custom_labels: Analytics labels
        language: Locale, e.g. "en_US"
        title: Optional video title
    """

    page_id: str = Field(..., min_length=1)
    access_token: str = Field(..., min_length=1, repr=False)
    video_reference: str
    caption: str = ""
    custom_labels: list[str] = Field(default_factory=list)
    language: str | None = None
    title: str | None = None


class AttemptSummary(BaseModel):
    """One strategy attempt recorded for observability."""

    stage: str
    strategy: str
    success: bool
    error: str | None = None
    error_kind: ErrorKind | None = None


class UploadOutcome(BaseModel):
    """Result returned to the caller.

    Attributes:
        success: Whether the post was published
        post_id: Facebook post/video ID on success
        method: Strategy that succeeded, or the last one attempted
        final_size_bytes: Size of the file that was uploaded
        error: Failure message including the verbatim platform message
        error_kind: Failure classification
        remediation: Steps the user can take to fix the failure
        degraded: True when a transcoded variant was published
        attempts: Every strategy attempt, in order
        states: Orchestrator states visited, in order
    """

    success: bool
    post_id: str | None = None
    method: str
    final_size_bytes: int | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    remediation: list[str] = Field(default_factory=list)
    degraded: bool = False
    attempts: list[AttemptSummary] = Field(default_factory=list)
    states: list[PublishState] = Field(default_factory=list)


__all__ = ["AttemptSummary", "PublishRequest", "PublishState", "UploadOutcome"]
