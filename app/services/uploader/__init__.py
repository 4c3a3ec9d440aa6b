"""Facebook publishing: uploader, token checks and the publish orchestrator."""

from app.services.uploader.facebook_uploader import (
    FacebookUploader,
    PostMetadata,
    PublishResult,
    extract_post_id,
)
from app.services.uploader.labels import sanitize_labels, serialize_labels
from app.services.uploader.orchestrator import UploadOrchestrator, describe_error
from app.services.uploader.strategies import (
    DirectUploadStrategy,
    TranscodedUploadStrategy,
    UploadContext,
    build_upload_strategies,
    escalate_on_media_error,
)
from app.services.uploader.token_manager import ManagedPage, TokenManager, TokenValidation

__all__ = [
    "DirectUploadStrategy",
    "FacebookUploader",
    "ManagedPage",
    "PostMetadata",
    "PublishResult",
    "TokenManager",
    "TokenValidation",
    "TranscodedUploadStrategy",
    "UploadContext",
    "UploadOrchestrator",
    "build_upload_strategies",
    "describe_error",
    "escalate_on_media_error",
    "extract_post_id",
    "sanitize_labels",
    "serialize_labels",
]
