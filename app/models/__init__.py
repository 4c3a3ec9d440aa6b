"""Pipeline data models.

- media: video references, fetch results, resumable upload sessions
- publish: publish requests, outcomes and orchestrator states
"""

from app.models.media import (
    FetchResult,
    SourceKind,
    TranscodeResult,
    UploadSession,
    VideoReference,
    classify_url,
)
from app.models.publish import AttemptSummary, PublishRequest, PublishState, UploadOutcome

__all__ = [
    # Media
    "FetchResult",
    "SourceKind",
    "TranscodeResult",
    "UploadSession",
    "VideoReference",
    "classify_url",
    # Publish
    "AttemptSummary",
    "PublishRequest",
    "PublishState",
    "UploadOutcome",
]
