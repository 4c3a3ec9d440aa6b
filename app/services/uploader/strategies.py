"""Upload strategies run by the orchestrator's StrategyChain.

The chain is ``direct`` followed by one transcoded strategy per profile.
It only moves past a failed upload when re-encoding could help: the
platform rejected the media or the call timed out. A failed transcode
always moves on to the next profile.
"""

from dataclasses import dataclass, field
from pathlib import Path

from app.config.transcode import TranscodeProfile
from app.core.exceptions import ErrorKind, FacebookAPIError, PipelineError, TranscodeError
from app.core.logging import get_logger
from app.core.state_machine import StateMachine
from app.models.publish import PublishRequest, PublishState
from app.services.progress import ProgressChannel, ProgressPhase
from app.services.scratch import CleanupStack
from app.services.transcoder import Transcoder
from app.services.uploader.facebook_uploader import FacebookUploader, PostMetadata, PublishResult

logger = get_logger(__name__)


@dataclass
class UploadContext:
    """Per-publish state shared by the upload strategies.

    Attributes:
        request: Inbound publish request
        source_path: Fetched and validated source video
        metadata: Post metadata derived from the request
        machine: Publish state machine
        cleanups: Cleanup closures for this publish
        progress: Optional progress channel
    """

    request: PublishRequest
    source_path: Path
    metadata: PostMetadata
    machine: StateMachine
    cleanups: CleanupStack = field(default_factory=CleanupStack)
    progress: ProgressChannel | None = None

    async def emit(self, phase: ProgressPhase, percent: float | None, detail: str) -> None:
        if self.progress is not None:
            await self.progress.emit(phase, percent, detail)


def escalate_on_media_error(error: PipelineError) -> bool:
    """Continuation policy for the upload chain."""
    if isinstance(error, TranscodeError):
        return True
    if isinstance(error, FacebookAPIError):
        return error.kind == ErrorKind.PLATFORM_MEDIA_REJECTED or error.timed_out
    return False


def _raise_failure(result: PublishResult) -> None:
    if result.exception is not None:
        raise result.exception
    raise FacebookAPIError(
        result.error or "Upload failed", kind=result.error_kind or ErrorKind.UNKNOWN
    )


class DirectUploadStrategy:
    """Upload the fetched file as-is."""

    name = "direct"

    def __init__(self, uploader: FacebookUploader) -> None:
        self._uploader = uploader

    async def attempt(self, ctx: UploadContext) -> PublishResult:
        ctx.machine.transition(PublishState.UPLOADING_DIRECT)
        await ctx.emit(ProgressPhase.UPLOAD, 0, "Uploading original video")
        result = await self._uploader.publish_video(
            ctx.request.page_id,
            ctx.request.access_token,
            ctx.source_path,
            ctx.metadata,
            progress=ctx.progress,
        )
        if not result.success:
            _raise_failure(result)
        return result


class TranscodedUploadStrategy:
    """Re-encode with one profile, then upload the result."""

    def __init__(
        self,
        transcoder: Transcoder,
        uploader: FacebookUploader,
        profile: TranscodeProfile,
    ) -> None:
        self._transcoder = transcoder
        self._uploader = uploader
        self.profile = profile
        self.name = profile.name

    async def attempt(self, ctx: UploadContext) -> PublishResult:
        ctx.machine.transition(PublishState.TRANSCODING)
        await ctx.emit(ProgressPhase.TRANSCODE, None, f"Transcoding with {self.name}")

        encoded = await self._transcoder.transcode(ctx.source_path, self.profile)
        if not encoded.success or encoded.output_path is None:
            raise TranscodeError(encoded.error or "Transcode failed", profile=self.name)
        if encoded.cleanup is not None:
            ctx.cleanups.push(encoded.cleanup, label=f"transcode:{self.name}")

        ctx.machine.transition(PublishState.UPLOADING_TRANSCODED)
        await ctx.emit(ProgressPhase.UPLOAD, 0, f"Uploading {self.name} variant")
        result = await self._uploader.publish_video(
            ctx.request.page_id,
            ctx.request.access_token,
            encoded.output_path,
            ctx.metadata,
            progress=ctx.progress,
        )
        if not result.success:
            # The variant is useless now; free the space before the next profile
            if encoded.cleanup is not None:
                ctx.cleanups.release_last()
            _raise_failure(result)
        return result


def build_upload_strategies(
    uploader: FacebookUploader,
    transcoder: Transcoder,
) -> list[DirectUploadStrategy | TranscodedUploadStrategy]:
    """Direct upload first, then one strategy per transcode profile."""
    strategies: list[DirectUploadStrategy | TranscodedUploadStrategy] = [
        DirectUploadStrategy(uploader)
    ]
    strategies.extend(
        TranscodedUploadStrategy(transcoder, uploader, profile)
        for profile in transcoder.iter_profiles()
    )
    return strategies


__all__ = [
    "DirectUploadStrategy",
    "TranscodedUploadStrategy",
    "UploadContext",
    "build_upload_strategies",
    "escalate_on_media_error",
]
