"""Unit tests for FacebookUploader."""

import json
import math

import pytest

from app.config.facebook import FacebookUploadConfig
from app.core.exceptions import ErrorKind, FacebookAPIError
from app.services.progress import ProgressChannel, ProgressPhase
from app.services.uploader.facebook_uploader import (
    FacebookUploader,
    PostMetadata,
    PublishResult,
    extract_post_id,
)

PAGE_ID = "1122334455"
TOKEN = "page-token"


def resumable_responder(calls, finish=None):
    """Graph post side effect implementing the three upload phases."""

    async def post(path, access_token, **kwargs):
        data = kwargs.get("data") or {}
        calls.append({"path": path, **kwargs})
        phase = data.get("upload_phase")
        if phase == "start":
            return {"video_id": "vid-1", "upload_session_id": "sess-1"}
        if phase == "transfer":
            chunk = kwargs["files"]["video_file_chunk"][1]
            return {"start_offset": str(data["start_offset"] + len(chunk))}
        if phase == "finish":
            return finish if finish is not None else {"success": True}
        raise AssertionError(f"unexpected call {data}")

    return post


class TestHelpers:
    """Tests for result helpers."""

    def test_extract_post_id_order(self):
        """Test id, then post_id, then video_id, then the fallback."""
        assert extract_post_id({"id": "1", "post_id": "2"}) == "1"
        assert extract_post_id({"post_id": "2", "video_id": "3"}) == "2"
        assert extract_post_id({"video_id": 3}) == "3"
        assert extract_post_id({"success": True}, fallback="vid") == "vid"

    def test_failed_appends_platform_message(self):
        """Test the verbatim platform message is kept."""
        error = FacebookAPIError(
            "Graph /123/videos failed (351)",
            kind=ErrorKind.PLATFORM_MEDIA_REJECTED,
            platform_message="Error loading video",
        )
        result = PublishResult.failed("simple", error)

        assert not result.success
        assert result.error == "Graph /123/videos failed (351) (platform: Error loading video)"
        assert result.error_kind == ErrorKind.PLATFORM_MEDIA_REJECTED
        assert result.exception is error


class TestSimpleUpload:
    """Tests for the single-request path."""

    @pytest.mark.asyncio
    async def test_small_file_uses_single_request(self, graph, video_file):
        """Test files at or below the threshold never start a resumable session."""
        graph.post.return_value = {"id": "post-1"}
        uploader = FacebookUploader(graph, FacebookUploadConfig(simple_upload_max_bytes=10_000))
        path = video_file(8_000)

        result = await uploader.publish_video(
            PAGE_ID, TOKEN, path, PostMetadata(caption="Launch day\nMore text")
        )

        assert result.success
        assert result.method == "simple"
        assert result.post_id == "post-1"
        assert result.size_bytes == 8_000
        graph.post.assert_awaited_once()
        args, kwargs = graph.post.call_args
        assert args == (f"{PAGE_ID}/videos", TOKEN)
        assert "upload_phase" not in kwargs["data"]
        assert kwargs["data"]["title"] == "Launch day"
        assert kwargs["data"]["description"] == "Launch day\nMore text"
        assert kwargs["video"] is True
        assert "source" in kwargs["files"]
        assert kwargs.get("retry", False) is False

    @pytest.mark.asyncio
    async def test_threshold_is_inclusive(self, graph, video_file):
        """Test a file exactly at the threshold uses the single request."""
        graph.post.return_value = {"id": "post-1"}
        uploader = FacebookUploader(graph, FacebookUploadConfig(simple_upload_max_bytes=5_000))

        result = await uploader.publish_video(PAGE_ID, TOKEN, video_file(5_000))

        assert result.method == "simple"

    @pytest.mark.asyncio
    async def test_rejection_is_returned(self, graph, video_file):
        """Test Graph errors come back as a failed result."""
        graph.post.side_effect = FacebookAPIError(
            "rejected", kind=ErrorKind.PLATFORM_MEDIA_REJECTED, code=351
        )
        uploader = FacebookUploader(graph)

        result = await uploader.publish_video(PAGE_ID, TOKEN, video_file(2_000))

        assert not result.success
        assert result.error_kind == ErrorKind.PLATFORM_MEDIA_REJECTED
        assert result.method == "simple"

    @pytest.mark.asyncio
    async def test_empty_file(self, graph, tmp_path):
        """Test a zero-byte file is rejected without calling the platform."""
        path = tmp_path / "empty.mp4"
        path.write_bytes(b"")

        result = await FacebookUploader(graph).publish_video(PAGE_ID, TOKEN, path)

        assert not result.success
        assert result.error_kind == ErrorKind.PLATFORM_MEDIA_REJECTED
        graph.post.assert_not_awaited()


class TestResumableUpload:
    """Tests for the three-phase protocol."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("size,chunk", [(10_500, 1_000), (4_000, 1_000), (999, 1_000)])
    async def test_chunk_sequencing(self, graph, video_file, size, chunk):
        """Test ceil(S/C) transfers with offsets 0, C, 2C, ... ending at S."""
        calls = []
        graph.post.side_effect = resumable_responder(calls)
        config = FacebookUploadConfig(simple_upload_max_bytes=1, chunk_size_bytes=chunk)

        result = await FacebookUploader(graph, config).publish_video(
            PAGE_ID, TOKEN, video_file(size)
        )

        assert result.success
        assert result.method == "resumable"
        transfers = [c for c in calls if c["data"]["upload_phase"] == "transfer"]
        offsets = [c["data"]["start_offset"] for c in transfers]
        lengths = [len(c["files"]["video_file_chunk"][1]) for c in transfers]
        assert len(transfers) == math.ceil(size / chunk)
        assert offsets == [i * chunk for i in range(len(transfers))]
        assert offsets[-1] + lengths[-1] == size
        assert all(c["retry"] is True for c in transfers)
        assert all(c["data"]["upload_session_id"] == "sess-1" for c in transfers)

    @pytest.mark.asyncio
    async def test_start_and_finish_fields(self, graph, video_file):
        """Test the start declares the size and finish publishes publicly."""
        calls = []
        graph.post.side_effect = resumable_responder(calls)
        config = FacebookUploadConfig(simple_upload_max_bytes=1, chunk_size_bytes=4096)
        metadata = PostMetadata(
            caption="Caption", custom_labels=["promo", ""], language="en_US", title="Title"
        )

        result = await FacebookUploader(graph, config).publish_video(
            PAGE_ID, TOKEN, video_file(5_000), metadata
        )

        start, finish = calls[0], calls[-1]
        assert start["data"] == {"upload_phase": "start", "file_size": 5_000}
        assert finish["data"]["upload_phase"] == "finish"
        assert json.loads(finish["data"]["privacy"]) == {"value": "EVERYONE"}
        assert finish["data"]["published"] is True
        assert finish["data"]["title"] == "Title"
        assert finish["data"]["description"] == "Caption"
        assert json.loads(finish["data"]["custom_labels"]) == ["promo"]
        assert finish["data"]["locale"] == "en_US"
        assert all(c["video"] is True for c in calls)
        assert "retry" not in start and "retry" not in finish
        # Finish returned no id; the session's video id is used
        assert result.post_id == "vid-1"

    @pytest.mark.asyncio
    async def test_progress_reported(self, graph, video_file):
        """Test upload progress after every chunk."""
        events = []
        channel = ProgressChannel()
        channel.subscribe(events.append)
        graph.post.side_effect = resumable_responder([])
        config = FacebookUploadConfig(simple_upload_max_bytes=1, chunk_size_bytes=1_000)

        await FacebookUploader(graph, config).publish_video(
            PAGE_ID, TOKEN, video_file(4_000), progress=channel
        )

        assert [e.percent for e in events] == [25.0, 50.0, 75.0, 100.0]
        assert all(e.phase == ProgressPhase.UPLOAD for e in events)

    @pytest.mark.asyncio
    async def test_start_without_session(self, graph, video_file):
        """Test a start response missing the session id fails."""
        graph.post.return_value = {"video_id": "vid-1"}
        config = FacebookUploadConfig(simple_upload_max_bytes=1)

        result = await FacebookUploader(graph, config).publish_video(
            PAGE_ID, TOKEN, video_file(2_000)
        )

        assert not result.success
        assert result.method == "resumable"
        graph.post.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_transfer_timeout(self, graph, video_file):
        """Test a chunk timeout fails the upload with timed_out set."""
        calls = []
        responder = resumable_responder(calls)

        async def post(path, access_token, **kwargs):
            if kwargs["data"].get("upload_phase") == "transfer":
                raise FacebookAPIError("timed out", timed_out=True)
            return await responder(path, access_token, **kwargs)

        graph.post.side_effect = post
        config = FacebookUploadConfig(simple_upload_max_bytes=1, chunk_size_bytes=1_000)

        result = await FacebookUploader(graph, config).publish_video(
            PAGE_ID, TOKEN, video_file(3_000)
        )

        assert not result.success
        assert result.exception.timed_out is True

    @pytest.mark.asyncio
    async def test_finish_not_accepted(self, graph, video_file):
        """Test success=false on finish is a failure."""
        graph.post.side_effect = resumable_responder([], finish={"success": False})
        config = FacebookUploadConfig(simple_upload_max_bytes=1, chunk_size_bytes=4096)

        result = await FacebookUploader(graph, config).publish_video(
            PAGE_ID, TOKEN, video_file(2_000)
        )

        assert not result.success


class TestOtherPosts:
    """Tests for text, photo and hosted video posts."""

    @pytest.mark.asyncio
    async def test_publish_text(self, graph):
        """Test a feed post with link and labels."""
        graph.post.return_value = {"id": "page_post"}

        result = await FacebookUploader(graph).publish_text(
            PAGE_ID,
            TOKEN,
            "Hello",
            PostMetadata(custom_labels=["news"]),
            link="https://example.com",
        )

        assert result.success
        assert result.method == "feed"
        args, kwargs = graph.post.call_args
        assert args[0] == f"{PAGE_ID}/feed"
        assert kwargs["data"]["message"] == "Hello"
        assert kwargs["data"]["link"] == "https://example.com"
        assert kwargs["data"]["custom_labels"] == '["news"]'

    @pytest.mark.asyncio
    async def test_publish_photo(self, graph):
        """Test a photo post from a URL."""
        graph.post.return_value = {"id": "photo-1", "post_id": "page_photo"}

        result = await FacebookUploader(graph).publish_photo(
            PAGE_ID, TOKEN, "https://cdn.example.com/a.jpg", PostMetadata(caption="Look")
        )

        assert result.post_id == "photo-1"
        args, kwargs = graph.post.call_args
        assert args[0] == f"{PAGE_ID}/photos"
        assert kwargs["data"]["url"] == "https://cdn.example.com/a.jpg"
        assert kwargs["data"]["caption"] == "Look"

    @pytest.mark.asyncio
    async def test_publish_video_url(self, graph):
        """Test a hosted video post."""
        graph.post.return_value = {"id": "vid-9"}

        result = await FacebookUploader(graph).publish_video_url(
            PAGE_ID, TOKEN, "https://cdn.example.com/a.mp4"
        )

        assert result.method == "file_url"
        args, kwargs = graph.post.call_args
        assert kwargs["data"]["file_url"] == "https://cdn.example.com/a.mp4"
        assert kwargs["video"] is True

    @pytest.mark.asyncio
    async def test_text_failure(self, graph):
        """Test auth failures come back as results."""
        graph.post.side_effect = FacebookAPIError(
            "expired", kind=ErrorKind.PLATFORM_AUTH_FAILURE, platform_message="Session expired"
        )

        result = await FacebookUploader(graph).publish_text(PAGE_ID, TOKEN, "Hello")

        assert not result.success
        assert result.error_kind == ErrorKind.PLATFORM_AUTH_FAILURE
        assert "Session expired" in result.error
