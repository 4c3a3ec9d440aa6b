"""Unit tests for SharePoint strategies."""

import base64

import httpx
import pytest

from app.config.fetch import FetchConfig
from app.core.exceptions import FetchError, FetchErrorKind
from app.models.media import VideoReference
from app.services.fetcher.base import FetchContext
from app.services.fetcher.downloader import StreamingDownloader
from app.services.fetcher.sharepoint import (
    DownloadParamStrategy,
    RestApiStrategy,
    SharePointLocation,
    SharePointResolver,
    StreamRedirectStrategy,
    parse_stream_location,
    with_download_param,
)

SHARE_URL = "https://contoso.sharepoint.com/:v:/s/team/EAbCdEf?e=xyz"
STREAM_LOCATION = (
    "https://contoso.sharepoint.com/sites/team/_layouts/15/stream.aspx"
    "?id=%2Fsites%2Fteam%2FShared%20Documents%2Fclip.mp4&referrer=link"
)


def ctx() -> FetchContext:
    return FetchContext(reference=VideoReference.parse(SHARE_URL))


class TestSharePointHelpers:
    """Tests for URL helpers."""

    def test_parse_stream_location(self):
        """Test the id parameter becomes the server-relative path."""
        location = parse_stream_location(STREAM_LOCATION)
        assert location == SharePointLocation(
            base="https://contoso.sharepoint.com",
            path="/sites/team/Shared Documents/clip.mp4",
        )

    def test_parse_non_stream_location(self):
        """Test other redirects are ignored."""
        assert parse_stream_location("https://contoso.sharepoint.com/sites/team") is None

    def test_download_urls(self):
        """Test direct, web and download.aspx URLs, in order."""
        location = SharePointLocation(base="https://c.sharepoint.com", path="/s/a b.mp4")
        assert location.download_urls() == [
            "https://c.sharepoint.com/s/a%20b.mp4?download=1",
            "https://c.sharepoint.com/s/a%20b.mp4?web=1&download=1",
            "https://c.sharepoint.com/_layouts/15/download.aspx?SourceUrl=%2Fs%2Fa%20b.mp4",
            "https://c.sharepoint.com/_layouts/15/download.aspx"
            "?SourceUrl=https%3A%2F%2Fc.sharepoint.com%2Fs%2Fa%20b.mp4",
        ]

    def test_rest_urls(self):
        """Test REST file, listdata and shares endpoints, in order."""
        location = SharePointLocation(base="https://c.sharepoint.com", path="/s/a b.mp4")
        token = base64.urlsafe_b64encode(b"https://c.sharepoint.com/s/a b.mp4").decode()

        assert location.rest_urls() == [
            "https://c.sharepoint.com/_api/web/getfilebyserverrelativeurl('/s/a%20b.mp4')/$value",
            "https://c.sharepoint.com/_vti_bin/listdata.svc/Documents('/s/a%20b.mp4')/$value",
            f"https://c.sharepoint.com/_api/v2.0/shares/u!{token.rstrip('=')}/driveItem/content",
        ]

    def test_rest_url_escapes_quotes(self):
        """Test single quotes are doubled for the REST literal."""
        location = SharePointLocation(base="https://c.sharepoint.com", path="/s/it's.mp4")
        first, second, _ = location.rest_urls()
        assert "it%27%27s.mp4" in first
        assert "it%27%27s.mp4" in second

    def test_with_download_param(self):
        """Test download=1 replaces any existing value."""
        url = with_download_param("https://c.sharepoint.com/:v:/s/t/E?e=1&download=0")
        assert "download=1" in url
        assert "download=0" not in url
        assert "e=1" in url


class TestSharePointResolver:
    """Tests for manual redirect resolution."""

    @pytest.mark.asyncio
    async def test_resolves_stream_redirect(self, make_http_client):
        """Test the redirect chain is followed to stream.aspx."""

        def handler(request):
            return httpx.Response(302, headers={"location": STREAM_LOCATION})

        location = await SharePointResolver(make_http_client(handler)).resolve(SHARE_URL)

        assert location.path == "/sites/team/Shared Documents/clip.mp4"

    @pytest.mark.asyncio
    async def test_sign_in_redirect(self, make_http_client):
        """Test a redirect to the login page is access denied."""

        def handler(request):
            return httpx.Response(
                302,
                headers={"location": "https://login.microsoftonline.com/common/oauth2/authorize"},
            )

        with pytest.raises(FetchError) as exc_info:
            await SharePointResolver(make_http_client(handler)).resolve(SHARE_URL)

        assert exc_info.value.fetch_kind == FetchErrorKind.ACCESS_DENIED

    @pytest.mark.asyncio
    async def test_forbidden(self, make_http_client):
        """Test 403 is access denied."""
        resolver = SharePointResolver(make_http_client(lambda request: httpx.Response(403)))

        with pytest.raises(FetchError) as exc_info:
            await resolver.resolve(SHARE_URL)

        assert exc_info.value.fetch_kind == FetchErrorKind.ACCESS_DENIED

    @pytest.mark.asyncio
    async def test_no_redirect(self, make_http_client):
        """Test a plain 200 response cannot be resolved."""
        resolver = SharePointResolver(make_http_client(lambda request: httpx.Response(200)))

        with pytest.raises(FetchError) as exc_info:
            await resolver.resolve(SHARE_URL)

        assert exc_info.value.fetch_kind == FetchErrorKind.UNKNOWN
        assert exc_info.value.recoverable


class TestSharePointStrategies:
    """Tests for SharePoint strategies over a mock transport."""

    @pytest.mark.asyncio
    async def test_stream_redirect_download(self, make_http_client, scratch, mp4_bytes):
        """Test the resolved file path is downloaded with download=1."""
        downloads = []

        def handler(request):
            if request.method == "HEAD":
                return httpx.Response(302, headers={"location": STREAM_LOCATION})
            downloads.append(request.url)
            return httpx.Response(200, content=mp4_bytes(5000))

        client = make_http_client(handler)
        downloader = StreamingDownloader(client, scratch, FetchConfig(min_video_bytes=1000))
        strategy = StreamRedirectStrategy(downloader, SharePointResolver(client))

        result = await strategy.attempt(ctx())

        assert result.size_bytes == 5000
        assert str(downloads[0]).startswith(
            "https://contoso.sharepoint.com/sites/team/Shared%20Documents/clip.mp4?"
        )
        assert downloads[0].params["download"] == "1"
        assert result.path.name.startswith("sharepoint_")

    @pytest.mark.asyncio
    async def test_download_param_html_page(self, make_http_client, scratch):
        """Test a sign-in page on the sharing URL is access denied."""

        def handler(request):
            return httpx.Response(200, html="<html>Sign in to your account</html>")

        client = make_http_client(handler)
        downloader = StreamingDownloader(client, scratch, FetchConfig(min_video_bytes=1000))
        strategy = DownloadParamStrategy(downloader, SharePointResolver(client))

        with pytest.raises(FetchError) as exc_info:
            await strategy.attempt(ctx())

        assert exc_info.value.fetch_kind == FetchErrorKind.ACCESS_DENIED
        assert list(scratch.root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_stream_redirect_tries_urls_in_order(self, make_http_client, scratch, mp4_bytes):
        """Test each direct URL is tried in turn until the absolute SourceUrl works."""
        downloads = []

        def handler(request):
            if request.method == "HEAD":
                return httpx.Response(302, headers={"location": STREAM_LOCATION})
            downloads.append(str(request.url))
            if "contoso.sharepoint.com" in request.url.params.get("SourceUrl", ""):
                return httpx.Response(200, content=mp4_bytes(5000))
            return httpx.Response(500)

        client = make_http_client(handler)
        downloader = StreamingDownloader(client, scratch, FetchConfig(min_video_bytes=1000))
        strategy = StreamRedirectStrategy(downloader, SharePointResolver(client))

        result = await strategy.attempt(ctx())

        assert result.size_bytes == 5000
        assert len(downloads) == 4
        assert downloads[0].endswith("clip.mp4?download=1")
        assert downloads[1].endswith("clip.mp4?web=1&download=1")
        assert "SourceUrl=%2Fsites" in downloads[2]
        assert "SourceUrl=https" in downloads[3]

    @pytest.mark.asyncio
    async def test_rest_api_falls_through_to_shares(self, make_http_client, scratch, mp4_bytes):
        """Test the shares endpoint is tried after both REST file endpoints fail."""
        paths = []

        def handler(request):
            if request.method == "HEAD":
                return httpx.Response(302, headers={"location": STREAM_LOCATION})
            paths.append(request.url.path)
            if request.url.path.endswith("/driveItem/content"):
                return httpx.Response(200, content=mp4_bytes(5000))
            return httpx.Response(500)

        client = make_http_client(handler)
        downloader = StreamingDownloader(client, scratch, FetchConfig(min_video_bytes=1000))
        strategy = RestApiStrategy(downloader, SharePointResolver(client))

        result = await strategy.attempt(ctx())

        assert result.size_bytes == 5000
        assert [p.split("/")[1] + "/" + p.split("/")[2] for p in paths] == [
            "_api/web",
            "_vti_bin/listdata.svc",
            "_api/v2.0",
        ]
