"""YouTube download strategy using yt-dlp.

yt-dlp is blocking, so it runs in the default executor under a timeout. On
timeout the worker thread is told to stop through a progress hook and is
awaited before the scratch file is removed.
"""

import asyncio
import threading
from pathlib import Path
from typing import Any

import yt_dlp
from yt_dlp.utils import DownloadCancelled

from app.config.fetch import FetchConfig
from app.core.exceptions import FetchError, FetchErrorKind
from app.core.logging import get_logger
from app.services.fetcher.base import DownloadedFile, FetchContext, FetchStrategy
from app.services.scratch import ScratchSpace, make_cleanup
from app.services.validator import VideoValidator

logger = get_logger(__name__)

SCRATCH_PREFIX = "youtube"

_ACCESS_MARKERS = ("private video", "sign in to confirm", "members-only", "age-restricted")
_NOT_FOUND_MARKERS = ("video unavailable", "has been removed", "does not exist", "not available")


def classify_ytdlp_error(message: str) -> FetchErrorKind:
    """Map a yt-dlp error message to a fetch failure reason."""
    lowered = message.lower()
    if any(marker in lowered for marker in _ACCESS_MARKERS):
        return FetchErrorKind.ACCESS_DENIED
    if any(marker in lowered for marker in _NOT_FOUND_MARKERS):
        return FetchErrorKind.NOT_FOUND
    if "http error 429" in lowered or "too many requests" in lowered:
        return FetchErrorKind.QUOTA_EXCEEDED
    return FetchErrorKind.UNKNOWN


class YtDlpStrategy(FetchStrategy):
    """Download a YouTube video as a single progressive MP4."""

    name = "yt_dlp"

    def __init__(
        self,
        scratch: ScratchSpace,
        config: FetchConfig | None = None,
        validator: VideoValidator | None = None,
    ) -> None:
        """Initialize YtDlpStrategy.

        Args:
            scratch: Scratch file allocator
            config: Fetch configuration (format selector, timeout, size floor)
            validator: Video signature validator
        """
        self._scratch = scratch
        self.config = config or FetchConfig()
        self._validator = validator or VideoValidator()

    def _build_options(self, output_path: Path, cancelled: threading.Event) -> dict[str, Any]:
        def stop_when_cancelled(status: dict[str, Any]) -> None:
            if cancelled.is_set():
                raise DownloadCancelled("Download abandoned after timeout")

        return {
            "format": self.config.youtube_format,
            "outtmpl": str(output_path),
            "noplaylist": True,
            "quiet": True,
            "no_warnings": True,
            "noprogress": True,
            "overwrites": True,
            "http_headers": {"User-Agent": self.config.user_agent},
            "progress_hooks": [stop_when_cancelled],
        }

    def _download_sync(self, url: str, output_path: Path, cancelled: threading.Event) -> None:
        with yt_dlp.YoutubeDL(self._build_options(output_path, cancelled)) as ydl:
            ydl.download([url])

    async def _stop(self, download: asyncio.Future, cancelled: threading.Event) -> None:
        """Signal the worker thread and wait until it no longer writes."""
        cancelled.set()
        try:
            await download
        except (DownloadCancelled, yt_dlp.DownloadError) as e:
            logger.debug("yt-dlp stopped after timeout", error=str(e))

    async def attempt(self, ctx: FetchContext) -> DownloadedFile:
        url = ctx.reference.url
        output_path = self._scratch.allocate(SCRATCH_PREFIX)
        cleanup = make_cleanup(output_path)
        # yt-dlp writes to "<name>.part" and renames on completion
        discard_partial = make_cleanup(output_path.with_name(f"{output_path.name}.part"))

        cancelled = threading.Event()
        loop = asyncio.get_running_loop()
        download = loop.run_in_executor(None, self._download_sync, url, output_path, cancelled)
        try:
            await asyncio.wait_for(
                asyncio.shield(download), timeout=self.config.youtube_timeout_seconds
            )
        except TimeoutError:
            await self._stop(download, cancelled)
            cleanup()
            discard_partial()
            raise FetchError(
                f"yt-dlp download timeout after {self.config.youtube_timeout_seconds:.0f}s",
                fetch_kind=FetchErrorKind.STALLED,
                url=url,
            ) from None
        except yt_dlp.DownloadError as e:
            cleanup()
            discard_partial()
            raise FetchError(
                f"yt-dlp download failed: {e}",
                fetch_kind=classify_ytdlp_error(str(e)),
                url=url,
            ) from e

        if not output_path.exists():
            cleanup()
            raise FetchError(
                "yt-dlp finished without producing a file",
                fetch_kind=FetchErrorKind.UNKNOWN,
                url=url,
            )

        size = output_path.stat().st_size
        if size < self.config.min_video_bytes:
            cleanup()
            raise FetchError(
                f"File too small: {size} bytes", fetch_kind=FetchErrorKind.TOO_SMALL, url=url
            )
        if not self._validator.validate_file(output_path, self.config.sniff_bytes):
            cleanup()
            raise FetchError(
                "Downloaded content is not a recognized video format",
                fetch_kind=FetchErrorKind.INVALID_FORMAT,
                url=url,
            )

        logger.info("YouTube download complete", size=size)
        return DownloadedFile(path=output_path, size_bytes=size, cleanup=cleanup)


def youtube_strategies(
    scratch: ScratchSpace,
    config: FetchConfig | None = None,
) -> list[FetchStrategy]:
    """Build the ordered YouTube strategy list."""
    return [YtDlpStrategy(scratch, config)]


__all__ = ["YtDlpStrategy", "classify_ytdlp_error", "youtube_strategies"]
