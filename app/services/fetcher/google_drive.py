"""Google Drive download strategies.

Drive serves small files directly but answers large ones with a virus-scan
interstitial page. The confirmation token needed to bypass it is found in a
"Download anyway" link, in a ``download-form`` with ``confirm``/``uuid``
inputs, or as a bare ``confirm=`` parameter.

Strategies, in order:
1. usercontent_direct: usercontent download endpoint with confirm=t
2. uc_confirm_token: legacy uc export, parsing the interstitial for a token
3. alternate_urls: alternate export hosts and parameters
"""

import re
from html import unescape
from urllib.parse import urlencode, urljoin

from bs4 import BeautifulSoup

from app.core.exceptions import FetchError, FetchErrorKind
from app.core.logging import get_logger
from app.services.fetcher.base import (
    DownloadedFile,
    FetchContext,
    FetchStrategy,
    classify_page_text,
)
from app.services.fetcher.downloader import StreamingDownloader

logger = get_logger(__name__)

USERCONTENT_DOWNLOAD_URL = "https://drive.usercontent.google.com/download"
UC_EXPORT_URL = "https://drive.google.com/uc"
DOCS_UC_EXPORT_URL = "https://docs.google.com/uc"

SCRATCH_PREFIX = "google_drive"

_FILE_ID_PATTERNS = [
    re.compile(r"/file/d/([a-zA-Z0-9_-]{10,})"),
    re.compile(r"/d/([a-zA-Z0-9_-]{10,})"),
    re.compile(r"[?&]id=([a-zA-Z0-9_-]{10,})"),
]

VIRUS_SCAN_MARKERS = (
    "virus scan",
    "can't scan this file",
    "can&#39;t scan this file",
    "download anyway",
    "download-form",
)

_DOWNLOAD_ANYWAY_HREF = re.compile(r'href="([^"]*download[^"]*confirm=[^"]*)"')
_CONFIRM_PARAM = re.compile(r"confirm=([0-9A-Za-z_-]+)")


def extract_drive_file_id(url: str) -> str | None:
    """Extract the file ID from any Drive sharing URL shape.

    Args:
        url: Drive URL

    Returns:
        File ID, None if not found
    """
    for pattern in _FILE_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def usercontent_url(file_id: str, **extra: str) -> str:
    """Build a usercontent download URL."""
    params = {"id": file_id, "export": "download", **extra}
    return f"{USERCONTENT_DOWNLOAD_URL}?{urlencode(params)}"


def is_virus_scan_page(html: str) -> bool:
    """Check whether a page is the large-file virus-scan interstitial."""
    lowered = html.lower()
    return any(marker in lowered for marker in VIRUS_SCAN_MARKERS)


def classify_drive_page(html: str) -> FetchErrorKind:
    """Classify a Drive page; the interstitial is never an access failure."""
    if is_virus_scan_page(html):
        return FetchErrorKind.INVALID_FORMAT
    return classify_page_text(html)


def find_bypass_url(html: str, file_id: str) -> str | None:
    """Derive the confirmed download URL from an interstitial page.

    Args:
        html: Interstitial page
        file_id: Drive file ID

    Returns:
        URL that downloads the file, None when no token could be found
    """
    match = _DOWNLOAD_ANYWAY_HREF.search(html)
    if match:
        href = unescape(match.group(1))
        return urljoin("https://drive.google.com", href)

    soup = BeautifulSoup(html, "html.parser")
    form = soup.find("form", id="download-form")
    if form is not None:
        fields = {
            str(field.get("name")): str(field.get("value", ""))
            for field in form.find_all("input")
            if field.get("name")
        }
        if "confirm" in fields:
            fields.setdefault("id", file_id)
            fields.setdefault("export", "download")
            action = str(form.get("action") or USERCONTENT_DOWNLOAD_URL)
            return f"{urljoin(USERCONTENT_DOWNLOAD_URL, action)}?{urlencode(fields)}"

    match = _CONFIRM_PARAM.search(html)
    if match:
        params = {"export": "download", "confirm": match.group(1), "id": file_id}
        return f"{UC_EXPORT_URL}?{urlencode(params)}"

    return None


class _DriveStrategy(FetchStrategy):
    def __init__(self, downloader: StreamingDownloader, user_agent: str | None = None) -> None:
        self._downloader = downloader
        self._headers = {"User-Agent": user_agent} if user_agent else None

    def _file_id(self, ctx: FetchContext) -> str:
        file_id = extract_drive_file_id(ctx.reference.url)
        if file_id is None:
            raise FetchError(
                "Could not find a Google Drive file ID in the URL",
                fetch_kind=FetchErrorKind.MALFORMED,
                url=ctx.reference.url,
            )
        return file_id

    async def _download(self, url: str, ctx: FetchContext) -> DownloadedFile:
        return await self._downloader.download(
            url,
            prefix=SCRATCH_PREFIX,
            headers=self._headers,
            progress=ctx.progress,
            page_classifier=classify_drive_page,
        )


class UserContentDirectStrategy(_DriveStrategy):
    """Download through the usercontent endpoint with confirm=t."""

    name = "usercontent_direct"

    async def attempt(self, ctx: FetchContext) -> DownloadedFile:
        file_id = self._file_id(ctx)
        return await self._download(usercontent_url(file_id, confirm="t"), ctx)


class ConfirmTokenStrategy(_DriveStrategy):
    """Legacy uc export that handles the virus-scan interstitial."""

    name = "uc_confirm_token"

    async def attempt(self, ctx: FetchContext) -> DownloadedFile:
        file_id = self._file_id(ctx)
        export_url = f"{UC_EXPORT_URL}?{urlencode({'export': 'download', 'id': file_id})}"

        page = await self._downloader.fetch_page(export_url, headers=self._headers)
        if page is None:
            # Small file served directly
            return await self._download(export_url, ctx)

        if not is_virus_scan_page(page):
            kind = classify_page_text(page)
            raise FetchError(
                "Google Drive returned a page instead of the file",
                fetch_kind=kind,
                url=export_url,
            )

        bypass_url = find_bypass_url(page, file_id)
        if bypass_url is None:
            logger.info("No confirmation token found, falling back to confirm=t", file_id=file_id)
            bypass_url = usercontent_url(file_id, confirm="t")
        else:
            logger.info("Using virus-scan bypass token", file_id=file_id)
        return await self._download(bypass_url, ctx)


class AlternateUrlStrategy(_DriveStrategy):
    """Try alternate export URLs in order."""

    name = "alternate_urls"

    def candidate_urls(self, file_id: str) -> list[str]:
        """Alternate download URLs, in order."""
        return [
            f"{UC_EXPORT_URL}?"
            + urlencode({"id": file_id, "export": "download", "confirm": "no_antivirus"}),
            f"{DOCS_UC_EXPORT_URL}?{urlencode({'id': file_id, 'export': 'download'})}",
        ]

    async def attempt(self, ctx: FetchContext) -> DownloadedFile:
        file_id = self._file_id(ctx)
        last_error: FetchError | None = None
        for url in self.candidate_urls(file_id):
            try:
                return await self._download(url, ctx)
            except FetchError as e:
                if not e.recoverable:
                    raise
                last_error = e
                logger.debug("Alternate Drive URL failed", url=url, error=str(e))
        if last_error is not None:
            raise last_error
        raise FetchError("No alternate Drive URLs", url=ctx.reference.url)


def google_drive_strategies(
    downloader: StreamingDownloader, user_agent: str | None = None
) -> list[FetchStrategy]:
    """Build the ordered Drive strategy list."""
    return [
        UserContentDirectStrategy(downloader, user_agent),
        ConfirmTokenStrategy(downloader, user_agent),
        AlternateUrlStrategy(downloader, user_agent),
    ]


__all__ = [
    "AlternateUrlStrategy",
    "ConfirmTokenStrategy",
    "UserContentDirectStrategy",
    "extract_drive_file_id",
    "classify_drive_page",
    "find_bypass_url",
    "google_drive_strategies",
    "is_virus_scan_page",
    "usercontent_url",
]
