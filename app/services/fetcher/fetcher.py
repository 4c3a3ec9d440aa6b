"""Unified multi-source video fetcher.

One SourceFetcher serves every source kind. Each kind maps to an ordered
table of download strategies, run through the generic StrategyChain; the
first strategy that produces a validated, large-enough file wins.
"""

from collections.abc import Mapping, Sequence

from app.config.fetch import FetchConfig
from app.core.exceptions import FetchError, FetchErrorKind
from app.core.logging import get_logger
from app.infrastructure.http_client import HTTPClient
from app.models.media import FetchResult, SourceKind, VideoReference
from app.services.fetcher.base import (
    DownloadedFile,
    FetchContext,
    FetchStrategy,
    remediation_for,
)
from app.services.fetcher.direct import direct_strategies
from app.services.fetcher.downloader import StreamingDownloader
from app.services.fetcher.facebook import facebook_strategies
from app.services.fetcher.google_drive import google_drive_strategies
from app.services.fetcher.sharepoint import sharepoint_strategies
from app.services.fetcher.youtube import youtube_strategies
from app.services.progress import ProgressChannel, ProgressPhase
from app.services.scratch import ScratchSpace
from app.services.strategy import StrategyChain
from app.services.validator import VideoValidator

logger = get_logger(__name__)


def build_strategy_table(
    http_client: HTTPClient,
    scratch: ScratchSpace,
    config: FetchConfig | None = None,
) -> dict[SourceKind, list[FetchStrategy]]:
    """Build the default per-source strategy table.

    Args:
        http_client: Shared HTTP client
        scratch: Scratch file allocator
        config: Fetch configuration

    Returns:
        Ordered strategies for every SourceKind
    """
    config = config or FetchConfig()
    downloader = StreamingDownloader(http_client, scratch, config)
    user_agent = config.user_agent
    return {
        SourceKind.GOOGLE_DRIVE: google_drive_strategies(downloader, user_agent),
        SourceKind.SHAREPOINT: sharepoint_strategies(downloader, http_client, user_agent),
        SourceKind.FACEBOOK_HOSTED: facebook_strategies(http_client, downloader, user_agent),
        SourceKind.YOUTUBE: youtube_strategies(scratch, config),
        SourceKind.DIRECT_URL: direct_strategies(downloader, user_agent),
    }


class SourceFetcher:
    """Retrieve a video reference into scratch storage.

    Example:
        >>> fetcher = SourceFetcher.create(http_client, scratch)
        >>> result = await fetcher.fetch("https://drive.google.com/file/d/1AbC.../view")
        >>> result.success, result.strategy
        (True, 'usercontent_direct')
    """

    def __init__(
        self,
        strategies: Mapping[SourceKind, Sequence[FetchStrategy]],
        validator: VideoValidator | None = None,
    ) -> None:
        """Initialize SourceFetcher.

        Args:
            strategies: Ordered strategies per source kind
            validator: Re-checks each download before it is accepted; a
                rejected file is deleted and the next strategy runs
        """
        self._strategies = {kind: list(items) for kind, items in strategies.items()}
        self._validator = validator

    @classmethod
    def create(
        cls,
        http_client: HTTPClient,
        scratch: ScratchSpace,
        config: FetchConfig | None = None,
    ) -> "SourceFetcher":
        """Create a fetcher with the default strategy table."""
        return cls(build_strategy_table(http_client, scratch, config))

    def strategies_for(self, reference: VideoReference) -> list[FetchStrategy]:
        """Applicable strategies for a reference, in order."""
        return [s for s in self._strategies.get(reference.kind, []) if s.applies_to(reference)]

    async def fetch(
        self,
        reference: VideoReference | str,
        progress: ProgressChannel | None = None,
    ) -> FetchResult:
        """Download a reference, trying each strategy for its source kind.

        Expected failures are returned, never raised.

        Args:
            reference: VideoReference or raw URL
            progress: Optional progress channel

        Returns:
            FetchResult; on success the caller owns the scratch file and must
            call ``cleanup``
        """
        if isinstance(reference, str):
            try:
                reference = VideoReference.parse(reference)
            except FetchError as e:
                logger.warning("Malformed video reference", error=str(e))
                return FetchResult(
                    success=False,
                    error=FetchErrorKind.MALFORMED,
                    message=str(e),
                )

        kind = reference.kind
        strategies = self.strategies_for(reference)
        logger.info(
            "Fetching video",
            source_kind=kind.value,
            strategies=[s.name for s in strategies],
        )
        if progress is not None:
            await progress.emit(ProgressPhase.FETCH, 0, f"Fetching from {kind.value}")

        chain = StrategyChain(strategies, concern=f"fetch:{kind.value}")
        result = await chain.run(
            FetchContext(reference=reference, progress=progress),
            accept=self._accept if self._validator is not None else None,
        )

        if result.success:
            downloaded = result.value
            if progress is not None:
                await progress.emit(
                    ProgressPhase.FETCH,
                    100,
                    "Download complete",
                    strategy=result.strategy,
                    size_bytes=downloaded.size_bytes,
                )
            return FetchResult(
                success=True,
                file_path=downloaded.path,
                size_bytes=downloaded.size_bytes,
                strategy=result.strategy,
                attempts=result.attempted,
                cleanup=downloaded.cleanup,
            )

        error = result.error
        fetch_kind = error.fetch_kind if isinstance(error, FetchError) else FetchErrorKind.UNKNOWN
        logger.warning(
            "All fetch strategies failed",
            source_kind=kind.value,
            error=fetch_kind.value,
            attempts=result.attempted,
        )
        return FetchResult(
            success=False,
            error=fetch_kind,
            message=str(error) if error else "No strategies available",
            strategy=error.strategy if error else None,
            attempts=result.attempted,
            remediation=remediation_for(kind, fetch_kind),
        )

    def _accept(self, downloaded: DownloadedFile) -> bool:
        if self._validator.validate_file(downloaded.path):
            return True
        logger.warning("Discarding download that failed validation", path=str(downloaded.path))
        downloaded.cleanup()
        return False


__all__ = ["SourceFetcher", "build_strategy_table"]
