"""Top-level publish pipeline.

Fetch the source video, validate it, then publish it through the upload
strategy chain (direct upload, then one transcoded variant per profile).
The publish state machine records every state visited, and every scratch
file acquired along the way is deleted exactly once, newest first, when the
publish ends, whether it succeeds, fails or raises.
"""

from app.config import PublishingConfig
from app.core.exceptions import FETCH_KIND_TO_ERROR_KIND, ErrorKind, PipelineError
from app.core.logging import get_logger
from app.core.state_machine import StateMachine, create_publish_state_machine
from app.models.media import FetchResult
from app.models.publish import AttemptSummary, PublishRequest, PublishState, UploadOutcome
from app.services.fetcher import SourceFetcher
from app.services.janitor import DiskMonitor
from app.services.progress import ProgressChannel, ProgressPhase
from app.services.scratch import CleanupStack
from app.services.strategy import ChainResult, StrategyChain
from app.services.transcoder import Transcoder
from app.services.uploader.facebook_uploader import FacebookUploader, PostMetadata
from app.services.uploader.strategies import (
    DirectUploadStrategy,
    UploadContext,
    build_upload_strategies,
    escalate_on_media_error,
)
from app.services.uploader.token_manager import TokenManager
from app.services.validator import VideoValidator

logger = get_logger(__name__)

DISK_REMEDIATION = [
    "Free disk space on the worker or wait for the scheduled scratch sweep",
    "Retry the publish once disk usage is back below the critical threshold",
]


def describe_error(error: PipelineError) -> str:
    """Failure message naming the strategy and the verbatim platform message."""
    message = str(error)
    if error.platform_message and error.platform_message not in message:
        message = f"{message} (platform: {error.platform_message})"
    if error.strategy:
        message = f"[{error.strategy}] {message}"
    return message


class UploadOrchestrator:
    """Publish a video reference to a Facebook Page.

    Example:
        >>> orchestrator = container.services.upload_orchestrator()
        >>> outcome = await orchestrator.publish(
        ...     PublishRequest(page_id="123", access_token=token, video_reference=url)
        ... )
        >>> outcome.method, outcome.degraded
        ('facebook_compatible', True)
    """

    def __init__(
        self,
        fetcher: SourceFetcher,
        transcoder: Transcoder,
        uploader: FacebookUploader,
        token_manager: TokenManager | None = None,
        disk_monitor: DiskMonitor | None = None,
        config: PublishingConfig | None = None,
        validator: VideoValidator | None = None,
    ) -> None:
        """Initialize UploadOrchestrator.

        Args:
            fetcher: Multi-source video fetcher
            transcoder: Profile ladder transcoder
            uploader: Facebook publisher
            token_manager: Token checks for pre-flight
            disk_monitor: Disk check for pre-flight
            config: Pipeline configuration
            validator: Video signature validator
        """
        self.fetcher = fetcher
        self.transcoder = transcoder
        self.uploader = uploader
        self.token_manager = token_manager
        self.disk_monitor = disk_monitor
        self.config = config or PublishingConfig()
        self.validator = validator or VideoValidator()
        self.progress = ProgressChannel()

    async def publish(
        self,
        request: PublishRequest,
        progress: ProgressChannel | None = None,
    ) -> UploadOutcome:
        """Run the full pipeline for one request.

        Args:
            request: Publish request
            progress: Progress channel; defaults to the orchestrator's own

        Returns:
            UploadOutcome. Expected failures are reported in the outcome;
            unexpected exceptions propagate after cleanup
        """
        progress = progress or self.progress
        machine = create_publish_state_machine()
        cleanups = CleanupStack()
        attempts: list[AttemptSummary] = []

        logger.info(
            "Publish started",
            page_id=request.page_id,
            video_reference=request.video_reference,
        )
        try:
            outcome = await self._run(request, machine, cleanups, attempts, progress)
        except Exception:
            logger.exception("Publish aborted by unexpected error", page_id=request.page_id)
            if not machine.is_terminal:
                machine.transition(PublishState.FAILED)
            raise
        finally:
            released = cleanups.release()
            if released:
                await progress.emit(ProgressPhase.CLEANUP, 100, f"Removed {released} scratch files")

        outcome.states = list(machine.history)
        outcome.attempts = attempts
        await progress.emit(
            ProgressPhase.DONE if outcome.success else ProgressPhase.FAILED,
            100,
            "Published" if outcome.success else (outcome.error or "Publish failed"),
            method=outcome.method,
        )
        logger.info(
            "Publish finished",
            page_id=request.page_id,
            success=outcome.success,
            method=outcome.method,
            degraded=outcome.degraded,
            post_id=outcome.post_id,
            error_kind=outcome.error_kind.value if outcome.error_kind else None,
        )
        return outcome

    async def _run(
        self,
        request: PublishRequest,
        machine: StateMachine,
        cleanups: CleanupStack,
        attempts: list[AttemptSummary],
        progress: ProgressChannel,
    ) -> UploadOutcome:
        if self.config.preflight:
            failed = await self._preflight(request, machine)
            if failed is not None:
                return failed

        # Fetching
        fetched = await self.fetcher.fetch(request.video_reference, progress=progress)
        attempts.extend(_fetch_attempts(fetched))
        if fetched.cleanup is not None:
            cleanups.push(fetched.cleanup, label="fetch")
        if not fetched.success or fetched.file_path is None:
            return self._fetch_failed(fetched, machine)

        # Validating
        machine.transition(PublishState.VALIDATING)
        await progress.emit(ProgressPhase.VALIDATE, None, "Validating video")
        if not self.validator.validate_file(fetched.file_path, self.config.fetch.sniff_bytes):
            machine.transition(PublishState.FAILED)
            return UploadOutcome(
                success=False,
                method=fetched.strategy or "fetch",
                error="Fetched file is not a recognized video format",
                error_kind=ErrorKind.DOWNLOAD_INTEGRITY_FAILURE,
            )

        # Uploading, then transcoding
        ctx = UploadContext(
            request=request,
            source_path=fetched.file_path,
            metadata=PostMetadata(
                caption=request.caption,
                custom_labels=list(request.custom_labels),
                language=request.language,
                title=request.title,
            ),
            machine=machine,
            cleanups=cleanups,
            progress=progress,
        )
        chain = StrategyChain(
            build_upload_strategies(self.uploader, self.transcoder),
            concern="upload",
            should_continue=escalate_on_media_error,
        )
        result = await chain.run(ctx)
        attempts.extend(_chain_attempts("upload", result))
        return self._upload_outcome(result, machine)

    async def _preflight(
        self, request: PublishRequest, machine: StateMachine
    ) -> UploadOutcome | None:
        if self.token_manager is not None:
            check = await self.token_manager.validate_page_token(
                request.page_id, request.access_token
            )
            if not check.valid and check.error_kind == ErrorKind.PLATFORM_AUTH_FAILURE:
                machine.transition(PublishState.FAILED)
                return UploadOutcome(
                    success=False,
                    method="preflight",
                    error=f"[preflight] Page token rejected: {check.error}",
                    error_kind=ErrorKind.PLATFORM_AUTH_FAILURE,
                    remediation=check.remediation,
                )
            if not check.valid:
                logger.warning(
                    "Token check inconclusive, continuing",
                    page_id=request.page_id,
                    error=check.error,
                )

        if self.disk_monitor is not None:
            try:
                safe = self.disk_monitor.is_safe_for_operation()
            except OSError as e:
                logger.warning("Disk check failed, continuing", error=str(e))
                safe = True
            if not safe:
                machine.transition(PublishState.FAILED)
                return UploadOutcome(
                    success=False,
                    method="preflight",
                    error="[preflight] Not enough free disk space for scratch files",
                    error_kind=ErrorKind.QUOTA_EXCEEDED,
                    remediation=list(DISK_REMEDIATION),
                )
        return None

    def _fetch_failed(self, fetched: FetchResult, machine: StateMachine) -> UploadOutcome:
        machine.transition(PublishState.FAILED)
        kind = FETCH_KIND_TO_ERROR_KIND[fetched.error] if fetched.error else ErrorKind.UNKNOWN
        message = fetched.message or "Could not fetch the video"
        if fetched.strategy:
            message = f"[{fetched.strategy}] {message}"
        return UploadOutcome(
            success=False,
            method=fetched.strategy or "fetch",
            error=message,
            error_kind=kind,
            remediation=list(fetched.remediation),
        )

    def _upload_outcome(self, result: ChainResult, machine: StateMachine) -> UploadOutcome:
        if result.success:
            machine.transition(PublishState.DONE)
            published = result.value
            degraded = result.strategy != DirectUploadStrategy.name
            if degraded:
                logger.warning("Published a transcoded variant", profile=result.strategy)
            return UploadOutcome(
                success=True,
                post_id=published.post_id,
                method=result.strategy,
                final_size_bytes=published.size_bytes,
                degraded=degraded,
            )

        machine.transition(PublishState.FAILED)
        error = result.error
        if error is None:
            return UploadOutcome(success=False, method="upload", error="No upload strategies")
        return UploadOutcome(
            success=False,
            method=error.strategy or "upload",
            error=describe_error(error),
            error_kind=error.kind,
            remediation=list(error.remediation),
        )


def _chain_attempts(stage: str, result: ChainResult) -> list[AttemptSummary]:
    return [
        AttemptSummary(
            stage=stage,
            strategy=record.name,
            success=record.success,
            error=str(record.error) if record.error else None,
            error_kind=record.error.kind if record.error else None,
        )
        for record in result.attempts
    ]


def _fetch_attempts(fetched: FetchResult) -> list[AttemptSummary]:
    summaries = []
    for index, name in enumerate(fetched.attempts):
        last = index == len(fetched.attempts) - 1
        succeeded = fetched.success and last
        summaries.append(
            AttemptSummary(
                stage="fetch",
                strategy=name,
                success=succeeded,
                error=fetched.message if last and not fetched.success else None,
                error_kind=(
                    FETCH_KIND_TO_ERROR_KIND[fetched.error]
                    if last and fetched.error is not None
                    else None
                ),
            )
        )
    return summaries


__all__ = ["UploadOrchestrator", "describe_error"]
