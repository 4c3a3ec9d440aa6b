"""Facebook-hosted video strategies.

Facebook does not offer a public download endpoint, so the video page is
fetched and the embedded media URL is pulled out of the page markup. The
desktop page is tried first, then the lighter mobile page, which is often
served without a login wall.
"""

import re
from urllib.parse import urlparse, urlunparse

import httpx

from app.core.exceptions import FetchError, FetchErrorKind
from app.core.logging import get_logger
from app.infrastructure.http_client import HTTPClient
from app.services.fetcher.base import DownloadedFile, FetchContext, FetchStrategy
from app.services.fetcher.downloader import StreamingDownloader, read_limited

logger = get_logger(__name__)

SCRATCH_PREFIX = "facebook_video"
FACEBOOK_REFERER = "https://www.facebook.com/"

VIDEO_PAGE_PATTERNS = [
    re.compile(r"/videos/(?:[^/?#]+/)?\d+"),
    re.compile(r"/watch/?\?(?:.*&)?v=\d+"),
    re.compile(r"/posts/[^/?#]+"),
    re.compile(r"video\.php\?(?:.*&)?v=\d+"),
    re.compile(r"/reel/\d+"),
    re.compile(r"/share/[rv]/[^/?#]+"),
]

# Embedded media fields, best quality first
_MEDIA_KEYS = (
    "hd_src",
    "hd_src_no_ratelimit",
    "browser_native_hd_url",
    "playable_url_quality_hd",
    "sd_src",
    "sd_src_no_ratelimit",
    "browser_native_sd_url",
    "playable_url",
    "playable_url_quality_sd",
    "progressive_url",
    "video_url",
)
MEDIA_URL_PATTERNS = [
    re.compile(rf'\\?"{key}\\?"\s*:\s*\\?"(https?[^"]+?)\\?"') for key in _MEDIA_KEYS
] + [
    re.compile(r'data-video-url="([^"]+)"'),
    re.compile(r'<meta property="og:video(?::secure_url|:url)?" content="([^"]+)"'),
]

_LOGIN_MARKERS = ("log in to facebook", "login_form", "you must log in", "log into facebook")
_UNAVAILABLE_MARKERS = (
    "this content isn't available",
    "content isn't available right now",
    "this video is private",
    "video unavailable",
    "restricted",
)
_NOT_FOUND_MARKERS = ("page not found", "this page isn't available", "error 404")
_REMOVED_MARKERS = ("has been removed", "was removed", "blocked", "violates our community")


def is_facebook_video_url(url: str) -> bool:
    """Check that a facebook.com URL points at a video, reel or post."""
    host = (urlparse(url).hostname or "").lower()
    if host == "fb.watch" or host.endswith(".fb.watch"):
        return True
    return any(pattern.search(url) for pattern in VIDEO_PAGE_PATTERNS)


def unescape_media_url(raw: str) -> str:
    """Undo the JSON and HTML escaping used in page markup."""
    url = raw.replace("\\/", "/")
    url = url.replace("\\u0025", "%").replace("\\u0026", "&").replace("\\u003D", "=")
    url = url.replace("&amp;", "&")
    return url.replace("\\", "")


def extract_media_url(html: str) -> str | None:
    """Find the best embedded media URL in a video page.

    Args:
        html: Page markup

    Returns:
        Media URL, None if no known field is present
    """
    for pattern in MEDIA_URL_PATTERNS:
        match = pattern.search(html)
        if match:
            url = unescape_media_url(match.group(1))
            if url.startswith("http"):
                return url
    return None


def classify_facebook_page(html: str, conclusive: bool) -> FetchError:
    """Explain why a page had no media URL.

    Desktop pages carry large inline scripts that mention words such as
    "blocked" or "restricted" regardless of the video, so their markers only
    produce a recoverable UNKNOWN error and the mobile page gets its turn.

    Args:
        html: Page markup
        conclusive: Whether the markers found are a final verdict (mobile page)

    Returns:
        FetchError describing the failure
    """
    lowered = html.lower()
    if any(marker in lowered for marker in _REMOVED_MARKERS):
        message, kind = "Facebook video was removed or blocked", FetchErrorKind.ACCESS_DENIED
    elif any(marker in lowered for marker in _NOT_FOUND_MARKERS):
        message, kind = "Facebook video not found", FetchErrorKind.NOT_FOUND
    elif any(marker in lowered for marker in _UNAVAILABLE_MARKERS):
        message, kind = "Facebook video is private or restricted", FetchErrorKind.ACCESS_DENIED
    elif any(marker in lowered for marker in _LOGIN_MARKERS):
        message, kind = "Facebook requires login to view this video", FetchErrorKind.ACCESS_DENIED
    else:
        message, kind = "No video URL found in Facebook page", FetchErrorKind.UNKNOWN
    return FetchError(message, fetch_kind=kind if conclusive else FetchErrorKind.UNKNOWN)


def to_mobile_url(url: str) -> str:
    """Rewrite a facebook.com URL to the m.facebook.com host."""
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    if host.endswith("facebook.com"):
        return urlunparse(parsed._replace(netloc="m.facebook.com"))
    return url


class FacebookPageStrategy(FetchStrategy):
    """Scrape a Facebook video page and download the embedded media URL."""

    def __init__(
        self,
        http_client: HTTPClient,
        downloader: StreamingDownloader,
        user_agent: str | None = None,
        mobile: bool = False,
    ) -> None:
        """Initialize FacebookPageStrategy.

        Args:
            http_client: Shared HTTP client
            downloader: Streaming downloader
            user_agent: Browser user agent
            mobile: Fetch the m.facebook.com page (the last resort)
        """
        self._http = http_client
        self._downloader = downloader
        self._user_agent = user_agent
        self.mobile = mobile
        self.name = "mobile_page" if mobile else "desktop_page"

    def _page_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "text/html,application/xhtml+xml",
            "Accept-Language": "en-US,en;q=0.9",
        }
        if self._user_agent:
            headers["User-Agent"] = self._user_agent
        return headers

    async def _fetch_page(self, url: str) -> str:
        try:
            async with self._http.stream("GET", url, headers=self._page_headers()) as response:
                if response.status_code == 404 and self.mobile:
                    raise FetchError(
                        "Facebook video page not found",
                        fetch_kind=FetchErrorKind.NOT_FOUND,
                        url=url,
                    )
                if response.status_code >= 400:
                    raise FetchError(
                        f"Facebook page returned HTTP {response.status_code}",
                        fetch_kind=FetchErrorKind.UNKNOWN,
                        url=url,
                    )
                return await read_limited(response)
        except httpx.HTTPError as e:
            raise FetchError(
                f"Facebook page request failed: {e}", fetch_kind=FetchErrorKind.UNKNOWN, url=url
            ) from e

    async def attempt(self, ctx: FetchContext) -> DownloadedFile:
        url = ctx.reference.url
        if not is_facebook_video_url(url):
            raise FetchError(
                "Facebook URL does not point at a video, reel or post",
                fetch_kind=FetchErrorKind.MALFORMED,
                url=url,
            )

        page_url = to_mobile_url(url) if self.mobile else url
        html = await self._fetch_page(page_url)
        media_url = extract_media_url(html)
        if media_url is None:
            error = classify_facebook_page(html, conclusive=self.mobile)
            error.with_context(url=page_url)
            raise error

        logger.info("Found embedded Facebook media URL", strategy=self.name)
        headers = {"Referer": FACEBOOK_REFERER}
        if self._user_agent:
            headers["User-Agent"] = self._user_agent
        return await self._downloader.download(
            media_url, prefix=SCRATCH_PREFIX, headers=headers, progress=ctx.progress
        )


def facebook_strategies(
    http_client: HTTPClient,
    downloader: StreamingDownloader,
    user_agent: str | None = None,
) -> list[FetchStrategy]:
    """Build the ordered Facebook strategy list."""
    return [
        FacebookPageStrategy(http_client, downloader, user_agent, mobile=False),
        FacebookPageStrategy(http_client, downloader, user_agent, mobile=True),
    ]


__all__ = [
    "FacebookPageStrategy",
    "classify_facebook_page",
    "extract_media_url",
    "facebook_strategies",
    "is_facebook_video_url",
    "to_mobile_url",
    "unescape_media_url",
]
