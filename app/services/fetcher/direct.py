"""Direct URL strategies.

Dropbox sharing links are rewritten to their raw-content host first; every
other URL is fetched as-is.
"""

from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from app.models.media import VideoReference
from app.services.fetcher.base import DownloadedFile, FetchContext, FetchStrategy
from app.services.fetcher.downloader import StreamingDownloader

SCRATCH_PREFIX = "direct"
DROPBOX_CONTENT_HOST = "dl.dropboxusercontent.com"


def is_dropbox_url(url: str) -> bool:
    """Check for a dropbox.com sharing link."""
    host = (urlparse(url).hostname or "").lower()
    return host in ("dropbox.com", "www.dropbox.com")


def to_dropbox_direct_url(url: str) -> str:
    """Rewrite a Dropbox sharing link to a raw download link.

    ``/s/<id>/<name>`` and ``/scl/fi/<id>/<name>`` links move to the content
    host; ``dl=0`` becomes ``dl=1`` and the ``rlkey`` parameter is kept.

    Args:
        url: Dropbox sharing URL

    Returns:
        Direct download URL (unchanged for non-Dropbox URLs)
    """
    if not is_dropbox_url(url):
        return url
    parsed = urlparse(url)
    query = {k: v for k, v in parse_qs(parsed.query).items() if k not in ("dl", "raw")}
    query["dl"] = ["1"]
    return urlunparse(
        parsed._replace(netloc=DROPBOX_CONTENT_HOST, query=urlencode(query, doseq=True))
    )


class DropboxDirectStrategy(FetchStrategy):
    """Download a Dropbox link through the raw content host."""

    name = "dropbox_direct"

    def __init__(self, downloader: StreamingDownloader, user_agent: str | None = None) -> None:
        self._downloader = downloader
        self._headers = {"User-Agent": user_agent} if user_agent else None

    def applies_to(self, reference: VideoReference) -> bool:
        return is_dropbox_url(reference.url)

    async def attempt(self, ctx: FetchContext) -> DownloadedFile:
        return await self._downloader.download(
            to_dropbox_direct_url(ctx.reference.url),
            prefix="download",
            headers=self._headers,
            progress=ctx.progress,
        )


class HttpGetStrategy(FetchStrategy):
    """Plain HTTPS GET of the reference URL."""

    name = "http_get"

    def __init__(self, downloader: StreamingDownloader, user_agent: str | None = None) -> None:
        self._downloader = downloader
        self._headers = {"User-Agent": user_agent} if user_agent else None

    async def attempt(self, ctx: FetchContext) -> DownloadedFile:
        return await self._downloader.download(
            ctx.reference.url,
            prefix=SCRATCH_PREFIX,
            headers=self._headers,
            progress=ctx.progress,
        )


def direct_strategies(
    downloader: StreamingDownloader, user_agent: str | None = None
) -> list[FetchStrategy]:
    """Build the ordered direct URL strategy list."""
    return [
        DropboxDirectStrategy(downloader, user_agent),
        HttpGetStrategy(downloader, user_agent),
    ]


__all__ = [
    "DropboxDirectStrategy",
    "HttpGetStrategy",
    "direct_strategies",
    "is_dropbox_url",
    "to_dropbox_direct_url",
]
