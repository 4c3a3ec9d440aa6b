"""Unit tests for direct URL strategies."""

import httpx
import pytest

from app.config.fetch import FetchConfig
from app.models.media import VideoReference
from app.services.fetcher.base import FetchContext
from app.services.fetcher.direct import (
    DropboxDirectStrategy,
    HttpGetStrategy,
    is_dropbox_url,
    to_dropbox_direct_url,
)
from app.services.fetcher.downloader import StreamingDownloader


class TestDropboxRewrite:
    """Tests for Dropbox link rewriting."""

    def test_scl_link(self):
        """Test rlkey is kept and dl becomes 1."""
        url = "https://www.dropbox.com/scl/fi/abc123/clip.mp4?rlkey=xyz&dl=0"
        assert to_dropbox_direct_url(url) == (
            "https://dl.dropboxusercontent.com/scl/fi/abc123/clip.mp4?rlkey=xyz&dl=1"
        )

    def test_legacy_link(self):
        """Test /s/ links without query."""
        url = "https://www.dropbox.com/s/abc123/clip.mp4"
        assert to_dropbox_direct_url(url) == (
            "https://dl.dropboxusercontent.com/s/abc123/clip.mp4?dl=1"
        )

    def test_non_dropbox_unchanged(self):
        """Test other hosts pass through."""
        url = "https://cdn.example.com/clip.mp4?dl=0"
        assert not is_dropbox_url(url)
        assert to_dropbox_direct_url(url) == url


class TestDirectStrategies:
    """Tests for direct strategies."""

    def test_dropbox_applies_only_to_dropbox(self, make_http_client, scratch):
        """Test the Dropbox strategy is skipped for other hosts."""
        downloader = StreamingDownloader(make_http_client(lambda r: httpx.Response(200)), scratch)
        strategy = DropboxDirectStrategy(downloader)
        assert strategy.applies_to(VideoReference.parse("https://www.dropbox.com/s/a/b.mp4"))
        assert not strategy.applies_to(VideoReference.parse("https://cdn.example.com/b.mp4"))

    @pytest.mark.asyncio
    async def test_http_get(self, make_http_client, scratch, mp4_bytes):
        """Test the URL is fetched as-is."""
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, content=mp4_bytes(2000))

        client = make_http_client(handler)
        downloader = StreamingDownloader(client, scratch, FetchConfig(min_video_bytes=1000))
        reference = VideoReference.parse("https://cdn.example.com/clip.mp4")

        result = await HttpGetStrategy(downloader).attempt(FetchContext(reference=reference))

        assert seen == ["https://cdn.example.com/clip.mp4"]
        assert result.path.name.startswith("direct_")
