"""Facebook Page publishing.

Publishes text, photo and video posts through the Graph API. Videos at or
below ``simple_upload_max_bytes`` go up in one multipart request; larger
files use the three-phase resumable protocol:

1. start: declare ``file_size``, receive ``video_id`` and ``upload_session_id``
2. transfer: send fixed-size chunks in order, each with its ``start_offset``
3. finish: attach description, title, labels and locale and publish

A resumable session lives only inside one ``publish_video`` call and is
never resumed after a failure.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from app.config.facebook import FacebookUploadConfig
from app.core.exceptions import ErrorKind, FacebookAPIError
from app.core.logging import get_logger
from app.infrastructure.facebook_graph import FacebookGraphAPI
from app.models.media import UploadSession
from app.services.progress import ProgressChannel, ProgressPhase
from app.services.uploader.labels import serialize_labels

logger = get_logger(__name__)

PUBLIC_PRIVACY = json.dumps({"value": "EVERYONE"})


@dataclass
class PostMetadata:
    """Post text and analytics metadata.

    Attributes:
        caption: Post message or video description
        custom_labels: Analytics labels (sanitized before sending)
        language: Locale, e.g. "en_US"
        title: Video title; derived from the caption when empty
    """

    caption: str = ""
    custom_labels: list[str] = field(default_factory=list)
    language: str | None = None
    title: str | None = None


@dataclass
class PublishResult:
    """Result of one publish call.

    Attributes:
        success: Whether the platform accepted the post
        post_id: Post or video ID
        method: Transport used ("feed", "photo", "simple", "resumable", "file_url")
        size_bytes: Uploaded file size for local video uploads
        error: Failure message
        error_kind: Failure classification
        exception: The Graph error behind a failure
    """

    success: bool
    post_id: str | None = None
    method: str | None = None
    size_bytes: int | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    exception: FacebookAPIError | None = field(default=None, repr=False)

    @classmethod
    def failed(cls, method: str, error: FacebookAPIError) -> "PublishResult":
        """Build a failure result from a Graph error."""
        message = str(error)
        if error.platform_message and error.platform_message not in message:
            message = f"{message} (platform: {error.platform_message})"
        return cls(
            success=False,
            method=method,
            error=message,
            error_kind=error.kind,
            exception=error,
        )


def extract_post_id(payload: dict[str, Any], fallback: str | None = None) -> str | None:
    """Pick the post identifier out of a Graph response."""
    for key in ("id", "post_id", "video_id"):
        value = payload.get(key)
        if value:
            return str(value)
    return fallback


class FacebookUploader:
    """Publish content to a Facebook Page.

    Example:
        >>> uploader = FacebookUploader(graph)
        >>> result = await uploader.publish_video(
        ...     page_id, token, Path("/tmp/direct_1.mp4"), PostMetadata(caption="Hi")
        ... )
        >>> result.method
        'simple'
    """

    def __init__(
        self,
        graph: FacebookGraphAPI,
        config: FacebookUploadConfig | None = None,
    ) -> None:
        """Initialize FacebookUploader.

        Args:
            graph: Graph API client
            config: Upload thresholds and timeouts
        """
        self._graph = graph
        self.config = config or FacebookUploadConfig()

    # ============================================
    # Text and photo posts
    # ============================================

    async def publish_text(
        self,
        page_id: str,
        access_token: str,
        message: str,
        metadata: PostMetadata | None = None,
        link: str | None = None,
    ) -> PublishResult:
        """Publish a text post, optionally with a link."""
        metadata = metadata or PostMetadata()
        data = {"message": message, "link": link, **self._label_fields(metadata)}
        try:
            payload = await self._graph.post(
                f"{page_id}/feed",
                access_token,
                data=data,
                timeout=self.config.direct_timeout_seconds,
            )
        except FacebookAPIError as e:
            logger.warning("Text post failed", page_id=page_id, error=str(e))
            return PublishResult.failed("feed", e)

        post_id = extract_post_id(payload)
        logger.info("Text post published", page_id=page_id, post_id=post_id)
        return PublishResult(success=True, post_id=post_id, method="feed")

    async def publish_photo(
        self,
        page_id: str,
        access_token: str,
        image_url: str,
        metadata: PostMetadata | None = None,
    ) -> PublishResult:
        """Publish a photo post from a public image URL."""
        metadata = metadata or PostMetadata()
        data = {
            "url": image_url,
            "caption": metadata.caption or None,
            **self._label_fields(metadata),
        }
        try:
            payload = await self._graph.post(
                f"{page_id}/photos",
                access_token,
                data=data,
                timeout=self.config.direct_timeout_seconds,
            )
        except FacebookAPIError as e:
            logger.warning("Photo post failed", page_id=page_id, error=str(e))
            return PublishResult.failed("photo", e)

        post_id = extract_post_id(payload)
        logger.info("Photo post published", page_id=page_id, post_id=post_id)
        return PublishResult(success=True, post_id=post_id, method="photo")

    # ============================================
    # Video posts
    # ============================================

    async def publish_video_url(
        self,
        page_id: str,
        access_token: str,
        file_url: str,
        metadata: PostMetadata | None = None,
    ) -> PublishResult:
        """Publish a video the platform downloads itself from ``file_url``."""
        metadata = metadata or PostMetadata()
        data = {"file_url": file_url, "published": True, **self._video_fields(metadata)}
        try:
            payload = await self._graph.post(
                f"{page_id}/videos",
                access_token,
                data=data,
                video=True,
                timeout=self.config.direct_timeout_seconds,
            )
        except FacebookAPIError as e:
            logger.warning("Hosted video post failed", page_id=page_id, error=str(e))
            return PublishResult.failed("file_url", e)

        post_id = extract_post_id(payload)
        logger.info("Hosted video published", page_id=page_id, post_id=post_id)
        return PublishResult(success=True, post_id=post_id, method="file_url")

    async def publish_video(
        self,
        page_id: str,
        access_token: str,
        video_path: Path,
        metadata: PostMetadata | None = None,
        progress: ProgressChannel | None = None,
    ) -> PublishResult:
        """Publish a local video file.

        Args:
            page_id: Facebook Page ID
            access_token: Page access token
            video_path: Local video file
            metadata: Post metadata
            progress: Optional progress channel

        Returns:
            PublishResult; Graph failures are returned, not raised
        """
        metadata = metadata or PostMetadata()
        size = video_path.stat().st_size
        method = "simple" if size <= self.config.simple_upload_max_bytes else "resumable"
        logger.info("Publishing video", page_id=page_id, size=size, method=method)

        try:
            if size == 0:
                raise FacebookAPIError(
                    "Video file is empty", kind=ErrorKind.PLATFORM_MEDIA_REJECTED
                )
            if method == "simple":
                post_id = await self._simple_upload(page_id, access_token, video_path, metadata)
            else:
                post_id = await self._resumable_upload(
                    page_id, access_token, video_path, size, metadata, progress
                )
        except FacebookAPIError as e:
            logger.warning(
                "Video upload failed",
                page_id=page_id,
                method=method,
                kind=e.kind.value,
                error=str(e),
            )
            return PublishResult.failed(method, e)

        logger.info("Video published", page_id=page_id, post_id=post_id, method=method)
        return PublishResult(success=True, post_id=post_id, method=method, size_bytes=size)

    async def _simple_upload(
        self,
        page_id: str,
        access_token: str,
        video_path: Path,
        metadata: PostMetadata,
    ) -> str | None:
        data = {"published": True, **self._video_fields(metadata)}
        with open(video_path, "rb") as f:
            payload = await self._graph.post(
                f"{page_id}/videos",
                access_token,
                data=data,
                files={"source": (video_path.name, f, "video/mp4")},
                video=True,
                timeout=self.config.direct_timeout_seconds,
            )
        return extract_post_id(payload)

    async def _resumable_upload(
        self,
        page_id: str,
        access_token: str,
        video_path: Path,
        size: int,
        metadata: PostMetadata,
        progress: ProgressChannel | None,
    ) -> str | None:
        session = await self._start_session(page_id, access_token, size)
        chunk_size = self.config.chunk_size_bytes

        with open(video_path, "rb") as f:
            while not session.complete:
                offset = session.bytes_sent
                chunk = f.read(chunk_size)
                if not chunk:
                    raise FacebookAPIError(
                        f"File ended at {offset} of {size} declared bytes",
                        context={"upload_session_id": session.upload_session_id},
                    )
                await self._transfer_chunk(page_id, access_token, session, offset, chunk)
                session.advance(len(chunk))

                if progress is not None:
                    await progress.emit(
                        ProgressPhase.UPLOAD,
                        session.bytes_sent * 100 / size,
                        "Uploading video",
                        bytes_sent=session.bytes_sent,
                        bytes_total=size,
                    )

        return await self._finish_session(page_id, access_token, session, metadata)

    async def _start_session(self, page_id: str, access_token: str, size: int) -> UploadSession:
        payload = await self._graph.post(
            f"{page_id}/videos",
            access_token,
            data={"upload_phase": "start", "file_size": size},
            video=True,
            timeout=self.config.chunked_timeout_seconds,
        )
        video_id = payload.get("video_id")
        session_id = payload.get("upload_session_id")
        if not video_id or not session_id:
            raise FacebookAPIError(
                "Start phase returned no upload session",
                context={"response_keys": sorted(payload)},
            )
        logger.info(
            "Resumable upload session started",
            video_id=str(video_id),
            upload_session_id=str(session_id),
            size=size,
        )
        return UploadSession(
            video_id=str(video_id),
            upload_session_id=str(session_id),
            total_size=size,
        )

    async def _transfer_chunk(
        self,
        page_id: str,
        access_token: str,
        session: UploadSession,
        offset: int,
        chunk: bytes,
    ) -> None:
        payload = await self._graph.post(
            f"{page_id}/videos",
            access_token,
            data={
                "upload_phase": "transfer",
                "upload_session_id": session.upload_session_id,
                "start_offset": offset,
            },
            files={"video_file_chunk": ("chunk", chunk, "application/octet-stream")},
            video=True,
            timeout=self.config.chunked_timeout_seconds,
            retry=True,
        )
        expected_next = offset + len(chunk)
        server_next = payload.get("start_offset")
        if server_next is not None and str(server_next) != str(expected_next):
            logger.warning(
                "Server offset differs from local offset",
                local=expected_next,
                server=server_next,
            )
        logger.debug("Chunk transferred", start_offset=offset, length=len(chunk))

    async def _finish_session(
        self,
        page_id: str,
        access_token: str,
        session: UploadSession,
        metadata: PostMetadata,
    ) -> str | None:
        data = {
            "upload_phase": "finish",
            "upload_session_id": session.upload_session_id,
            "privacy": PUBLIC_PRIVACY,
            "published": True,
            **self._video_fields(metadata),
        }
        payload = await self._graph.post(
            f"{page_id}/videos",
            access_token,
            data=data,
            video=True,
            timeout=self.config.chunked_timeout_seconds,
        )
        if payload.get("success") is False:
            raise FacebookAPIError(
                "Finish phase was not accepted",
                context={"video_id": session.video_id},
            )
        return extract_post_id(payload, fallback=session.video_id)

    # ============================================
    # Form fields
    # ============================================

    def _label_fields(self, metadata: PostMetadata) -> dict[str, Any]:
        return {
            "custom_labels": serialize_labels(
                metadata.custom_labels,
                max_labels=self.config.max_labels,
                max_length=self.config.max_label_length,
            ),
            "locale": metadata.language,
        }

    def _video_fields(self, metadata: PostMetadata) -> dict[str, Any]:
        title = metadata.title
        if not title:
            lines = metadata.caption.strip().splitlines()
            title = lines[0] if lines else None
        return {
            "description": metadata.caption or None,
            "title": title[: self.config.title_max_length] if title else None,
            **self._label_fields(metadata),
        }


__all__ = ["FacebookUploader", "PostMetadata", "PublishResult", "extract_post_id"]
