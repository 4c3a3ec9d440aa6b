"""SharePoint / OneDrive download strategies.

Sharing links redirect to a ``stream.aspx`` player whose ``id`` parameter
holds the server-relative path of the file. Once that path is known the
file can be requested directly.

Strategies, in order:
1. stream_redirect: resolve the player redirect, then the file path with
   ?download=1 or ?web=1&download=1, then download.aspx with a relative and
   an absolute SourceUrl
2. rest_api: ``getfilebyserverrelativeurl(...)/$value``, the listdata.svc
   Documents endpoint, then the v2.0 shares API
3. download_param: the original sharing URL with download=1 appended
"""

import base64
from dataclasses import dataclass
from urllib.parse import parse_qs, quote, unquote, urlencode, urlparse, urlunparse

import httpx

from app.core.exceptions import FetchError, FetchErrorKind
from app.core.logging import get_logger
from app.infrastructure.http_client import HTTPClient
from app.services.fetcher.base import DownloadedFile, FetchContext, FetchStrategy
from app.services.fetcher.downloader import StreamingDownloader

logger = get_logger(__name__)

SCRATCH_PREFIX = "sharepoint"

_REDIRECT_STATUSES = (301, 302, 303, 307, 308)


@dataclass(frozen=True)
class SharePointLocation:
    """Resolved file location.

    Attributes:
        base: Scheme and host, e.g. https://contoso.sharepoint.com
        path: Server-relative file path, e.g. /sites/team/Shared Documents/a.mp4
    """

    base: str
    path: str

    @property
    def absolute_url(self) -> str:
        return f"{self.base}{self.path}"

    def download_urls(self) -> list[str]:
        """Direct download URLs, in order."""
        encoded = quote(self.path)
        return [
            f"{self.base}{encoded}?download=1",
            f"{self.base}{encoded}?web=1&download=1",
            f"{self.base}/_layouts/15/download.aspx?SourceUrl={quote(self.path, safe='')}",
            f"{self.base}/_layouts/15/download.aspx?SourceUrl={quote(self.absolute_url, safe='')}",
        ]

    def rest_urls(self) -> list[str]:
        """REST endpoints returning the raw file content, in order."""
        escaped = quote(self.path.replace("'", "''"))
        # Sharing token: "u!" + unpadded base64url of the absolute URL
        token = base64.urlsafe_b64encode(self.absolute_url.encode()).decode().rstrip("=")
        return [
            f"{self.base}/_api/web/getfilebyserverrelativeurl('{escaped}')/$value",
            f"{self.base}/_vti_bin/listdata.svc/Documents('{escaped}')/$value",
            f"{self.base}/_api/v2.0/shares/u!{token}/driveItem/content",
        ]


def parse_stream_location(location: str) -> SharePointLocation | None:
    """Extract the file path from a stream.aspx redirect target.

    Args:
        location: Redirect Location header value

    Returns:
        SharePointLocation, None if the redirect is not a stream.aspx player
    """
    if "stream.aspx" not in location.lower():
        return None
    parsed = urlparse(location)
    file_id = parse_qs(parsed.query).get("id")
    if not file_id:
        return None
    path = unquote(file_id[0])
    if not path.startswith("/"):
        path = "/" + path
    return SharePointLocation(base=f"{parsed.scheme}://{parsed.netloc}", path=path)


def with_download_param(url: str) -> str:
    """Append download=1 to a sharing URL, replacing any existing value."""
    parsed = urlparse(url)
    query = {k: v for k, v in parse_qs(parsed.query).items() if k != "download"}
    query["download"] = ["1"]
    return urlunparse(parsed._replace(query=urlencode(query, doseq=True)))


class SharePointResolver:
    """Resolves a sharing link to its server-relative file path."""

    def __init__(self, http_client: HTTPClient, user_agent: str | None = None) -> None:
        self._http = http_client
        self._headers = {"User-Agent": user_agent} if user_agent else None

    async def resolve(self, url: str) -> SharePointLocation:
        """Follow the sharing redirect chain manually until stream.aspx.

        Args:
            url: Sharing link

        Returns:
            Resolved location

        Raises:
            FetchError: If the link is denied, missing, or never reaches stream.aspx
        """
        current = url
        for _ in range(5):
            try:
                response = await self._http.head(
                    current, headers=self._headers, follow_redirects=False
                )
            except httpx.HTTPError as e:
                raise FetchError(
                    f"SharePoint link request failed: {e}",
                    fetch_kind=FetchErrorKind.UNKNOWN,
                    url=url,
                ) from e

            if response.status_code in (401, 403):
                raise FetchError(
                    "SharePoint link requires sign-in",
                    fetch_kind=FetchErrorKind.ACCESS_DENIED,
                    url=url,
                )
            if response.status_code in (404, 410):
                raise FetchError(
                    "SharePoint link not found", fetch_kind=FetchErrorKind.NOT_FOUND, url=url
                )
            if response.status_code not in _REDIRECT_STATUSES:
                break

            location = response.headers.get("location", "")
            if not location:
                break
            location = str(httpx.URL(current).join(location))
            lowered = location.lower()
            if "/_layouts/15/authenticate" in lowered or "login.microsoftonline" in lowered:
                raise FetchError(
                    "SharePoint link redirects to a sign-in page",
                    fetch_kind=FetchErrorKind.ACCESS_DENIED,
                    url=url,
                )
            resolved = parse_stream_location(location)
            if resolved is not None:
                logger.debug("Resolved SharePoint file path", base=resolved.base)
                return resolved
            current = location

        raise FetchError(
            "SharePoint link did not redirect to a stream.aspx player",
            fetch_kind=FetchErrorKind.UNKNOWN,
            url=url,
        )


class _SharePointStrategy(FetchStrategy):
    def __init__(
        self,
        downloader: StreamingDownloader,
        resolver: SharePointResolver,
        user_agent: str | None = None,
    ) -> None:
        self._downloader = downloader
        self._resolver = resolver
        self._headers = {"User-Agent": user_agent} if user_agent else None

    async def _try_urls(self, urls: list[str], ctx: FetchContext) -> DownloadedFile:
        last_error: FetchError | None = None
        for url in urls:
            try:
                return await self._downloader.download(
                    url, prefix=SCRATCH_PREFIX, headers=self._headers, progress=ctx.progress
                )
            except FetchError as e:
                if not e.recoverable:
                    raise
                last_error = e
                logger.debug("SharePoint URL failed", strategy=self.name, error=str(e))
        if last_error is not None:
            raise last_error
        raise FetchError("No SharePoint download URLs", url=ctx.reference.url)


class StreamRedirectStrategy(_SharePointStrategy):
    """Resolve the stream.aspx redirect and download the file path directly."""

    name = "stream_redirect"

    async def attempt(self, ctx: FetchContext) -> DownloadedFile:
        location = await self._resolver.resolve(ctx.reference.url)
        return await self._try_urls(location.download_urls(), ctx)


class RestApiStrategy(_SharePointStrategy):
    """Download through the SharePoint REST file endpoint."""

    name = "rest_api"

    async def attempt(self, ctx: FetchContext) -> DownloadedFile:
        location = await self._resolver.resolve(ctx.reference.url)
        return await self._try_urls(location.rest_urls(), ctx)


class DownloadParamStrategy(_SharePointStrategy):
    """Append download=1 to the sharing URL itself."""

    name = "download_param"

    async def attempt(self, ctx: FetchContext) -> DownloadedFile:
        return await self._try_urls([with_download_param(ctx.reference.url)], ctx)


def sharepoint_strategies(
    downloader: StreamingDownloader,
    http_client: HTTPClient,
    user_agent: str | None = None,
) -> list[FetchStrategy]:
    """Build the ordered SharePoint strategy list."""
    resolver = SharePointResolver(http_client, user_agent)
    return [
        StreamRedirectStrategy(downloader, resolver, user_agent),
        RestApiStrategy(downloader, resolver, user_agent),
        DownloadParamStrategy(downloader, resolver, user_agent),
    ]


__all__ = [
    "DownloadParamStrategy",
    "RestApiStrategy",
    "SharePointLocation",
    "SharePointResolver",
    "StreamRedirectStrategy",
    "parse_stream_location",
    "sharepoint_strategies",
    "with_download_param",
]
