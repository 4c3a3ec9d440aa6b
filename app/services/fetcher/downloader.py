"""Streaming downloader shared by every URL-based fetch strategy.

Bodies are written to scratch chunk by chunk, so memory use does not grow
with file size. A download is rejected before any byte is written when the
server answers with an HTML/JSON page or advertises a file that is too
small, and after streaming when the file fails validation or does not
match its advertised Content-Length.
"""

import asyncio
from collections.abc import Callable
from pathlib import Path

import httpx

from app.config.fetch import FetchConfig
from app.core.exceptions import FetchError, FetchErrorKind
from app.core.logging import get_logger
from app.infrastructure.http_client import HTTPClient
from app.services.fetcher.base import DownloadedFile, classify_page_text
from app.services.progress import ProgressChannel, ProgressPhase
from app.services.scratch import ScratchSpace, make_cleanup
from app.services.validator import VideoValidator

logger = get_logger(__name__)

NON_VIDEO_CONTENT_TYPES = ("text/html", "application/json", "text/plain", "application/xhtml")

# Enough of an error page to classify it
MAX_PAGE_BYTES = 2 * 1024 * 1024

PageClassifier = Callable[[str], FetchErrorKind]


def _status_error(status_code: int, url: str) -> FetchError | None:
    if status_code in (404, 410):
        return FetchError(
            f"Source returned HTTP {status_code}", fetch_kind=FetchErrorKind.NOT_FOUND, url=url
        )
    if status_code in (401, 403):
        return FetchError(
            f"Source returned HTTP {status_code}",
            fetch_kind=FetchErrorKind.ACCESS_DENIED,
            url=url,
        )
    if status_code == 429:
        return FetchError(
            "Source rate limit reached", fetch_kind=FetchErrorKind.QUOTA_EXCEEDED, url=url
        )
    if status_code >= 400:
        return FetchError(
            f"Source returned HTTP {status_code}", fetch_kind=FetchErrorKind.UNKNOWN, url=url
        )
    return None


def _is_page_content_type(content_type: str) -> bool:
    lowered = content_type.lower()
    return any(t in lowered for t in NON_VIDEO_CONTENT_TYPES)


async def read_limited(response: httpx.Response, limit: int = MAX_PAGE_BYTES) -> str:
    """Read at most ``limit`` bytes of a streamed body as text."""
    buffer = bytearray()
    async for chunk in response.aiter_bytes():
        buffer.extend(chunk)
        if len(buffer) >= limit:
            break
    return buffer[:limit].decode(response.encoding or "utf-8", errors="replace")


class StreamingDownloader:
    """Downloads a URL into a scratch file with integrity checks.

    Example:
        >>> downloader = StreamingDownloader(http_client, scratch, FetchConfig())
        >>> result = await downloader.download(url, prefix="google_drive")
        >>> result.size_bytes
        124518400
    """

    def __init__(
        self,
        http_client: HTTPClient,
        scratch: ScratchSpace,
        config: FetchConfig | None = None,
        validator: VideoValidator | None = None,
    ) -> None:
        """Initialize StreamingDownloader.

        Args:
            http_client: Shared HTTP client
            scratch: Scratch file allocator
            config: Download thresholds and timeouts
            validator: Video signature validator
        """
        self._http = http_client
        self._scratch = scratch
        self.config = config or FetchConfig()
        self._validator = validator or VideoValidator()

    async def download(
        self,
        url: str,
        prefix: str = "download",
        headers: dict[str, str] | None = None,
        progress: ProgressChannel | None = None,
        page_classifier: PageClassifier = classify_page_text,
    ) -> DownloadedFile:
        """Stream a URL to a new scratch file.

        Args:
            url: URL to fetch
            prefix: Scratch file prefix
            headers: Extra request headers
            progress: Optional progress channel
            page_classifier: Maps an HTML/JSON body to a failure reason

        Returns:
            DownloadedFile owning the scratch file

        Raises:
            FetchError: For any failure; no scratch file is left behind
        """
        path = self._scratch.allocate(prefix)
        cleanup = make_cleanup(path)

        try:
            size, content_length = await asyncio.wait_for(
                self._stream_to_file(url, path, headers, progress, page_classifier),
                timeout=self.config.attempt_timeout_seconds,
            )
        except TimeoutError:
            cleanup()
            raise FetchError(
                f"Download exceeded {self.config.attempt_timeout_seconds:.0f}s budget",
                fetch_kind=FetchErrorKind.STALLED,
                url=url,
            ) from None
        except FetchError:
            cleanup()
            raise
        except httpx.HTTPError as e:
            cleanup()
            raise FetchError(
                f"Download failed: {e}", fetch_kind=FetchErrorKind.UNKNOWN, url=url
            ) from e
        except OSError as e:
            cleanup()
            raise FetchError(
                f"Could not write scratch file: {e}",
                fetch_kind=FetchErrorKind.UNKNOWN,
                url=url,
            ) from e

        logger.info(
            "Download complete",
            path=str(path),
            size=size,
            content_length=content_length,
        )
        return DownloadedFile(
            path=path, size_bytes=size, cleanup=cleanup, content_length=content_length
        )

    async def fetch_page(self, url: str, headers: dict[str, str] | None = None) -> str | None:
        """Fetch a URL that may be an HTML page or may already be the file.

        Args:
            url: URL to fetch
            headers: Extra request headers

        Returns:
            Page text when the response is HTML/JSON, None when it is binary
            (the body is not read in that case)

        Raises:
            FetchError: On HTTP error statuses or transport failures
        """
        try:
            async with self._http.stream("GET", url, headers=headers) as response:
                error = _status_error(response.status_code, url)
                if error is not None:
                    raise error
                if not _is_page_content_type(response.headers.get("content-type", "")):
                    return None
                return await read_limited(response)
        except httpx.HTTPError as e:
            raise FetchError(
                f"Request failed: {e}", fetch_kind=FetchErrorKind.UNKNOWN, url=url
            ) from e

    async def _stream_to_file(
        self,
        url: str,
        path: Path,
        headers: dict[str, str] | None,
        progress: ProgressChannel | None,
        page_classifier: PageClassifier,
    ) -> tuple[int, int | None]:
        async with self._http.stream("GET", url, headers=headers) as response:
            error = _status_error(response.status_code, url)
            if error is not None:
                raise error

            content_type = response.headers.get("content-type", "")
            if _is_page_content_type(content_type):
                text = await read_limited(response)
                kind = page_classifier(text)
                raise FetchError(
                    f"Expected a video but received {content_type.split(';')[0]}",
                    fetch_kind=kind,
                    url=url,
                    context={"content_type": content_type},
                )

            content_length = _parse_length(response.headers.get("content-length"))
            if content_length is not None and 0 < content_length < self.config.min_video_bytes:
                raise FetchError(
                    f"File too small: {content_length} bytes advertised",
                    fetch_kind=FetchErrorKind.TOO_SMALL,
                    url=url,
                )

            received = await self._write_body(response, path, url, content_length, progress)

        self._check_size(received, content_length, url)
        return received, content_length

    async def _write_body(
        self,
        response: httpx.Response,
        path: Path,
        url: str,
        content_length: int | None,
        progress: ProgressChannel | None,
    ) -> int:
        received = 0
        head = bytearray()
        validated = False
        step = self.config.progress_step_percent
        next_report = step
        chunks = response.aiter_bytes(self.config.chunk_size).__aiter__()

        with open(path, "wb") as f:
            while True:
                try:
                    chunk = await asyncio.wait_for(
                        chunks.__anext__(), timeout=self.config.stall_timeout_seconds
                    )
                except StopAsyncIteration:
                    break
                except TimeoutError:
                    raise FetchError(
                        f"No data received for {self.config.stall_timeout_seconds:.0f}s "
                        f"after {received} bytes",
                        fetch_kind=FetchErrorKind.STALLED,
                        url=url,
                    ) from None

                if not validated:
                    head.extend(chunk)
                    if len(head) >= self.config.sniff_bytes:
                        self._check_signature(bytes(head), url)
                        validated = True

                await asyncio.to_thread(f.write, chunk)
                received += len(chunk)

                if progress is not None and content_length:
                    percent = received * 100 / content_length
                    if percent >= next_report:
                        await progress.emit(
                            ProgressPhase.FETCH,
                            percent,
                            "Downloading video",
                            bytes_received=received,
                            bytes_total=content_length,
                        )
                        next_report = (int(percent) // step + 1) * step

        if not validated:
            self._check_signature(bytes(head), url)
        return received

    def _check_signature(self, head: bytes, url: str) -> None:
        if not self._validator.is_valid_video(head):
            kind = classify_page_text(head.decode("utf-8", errors="ignore"))
            raise FetchError(
                "Downloaded content is not a recognized video format",
                fetch_kind=kind,
                url=url,
            )

    def _check_size(self, received: int, content_length: int | None, url: str) -> None:
        if received < self.config.min_video_bytes:
            raise FetchError(
                f"File too small: {received} bytes",
                fetch_kind=FetchErrorKind.TOO_SMALL,
                url=url,
            )
        if not content_length:
            return

        mismatch = abs(received - content_length) / content_length
        if mismatch > self.config.size_tolerance_hard:
            raise FetchError(
                f"Size mismatch: received {received} of {content_length} bytes",
                fetch_kind=FetchErrorKind.SIZE_MISMATCH,
                url=url,
                context={"received": received, "expected": content_length},
            )
        if mismatch > self.config.size_tolerance_warn:
            logger.warning(
                "Downloaded size differs slightly from Content-Length",
                received=received,
                expected=content_length,
                mismatch_percent=round(mismatch * 100, 4),
            )


def _parse_length(value: str | None) -> int | None:
    if value is None or not value.strip().isdigit():
        return None
    return int(value.strip())


__all__ = ["PageClassifier", "StreamingDownloader", "read_limited"]
