"""Media models shared by the fetch, transcode and upload stages."""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from urllib.parse import urlparse

from app.core.exceptions import FetchError, FetchErrorKind


class SourceKind(str, Enum):
    """Where a video reference is hosted."""

    GOOGLE_DRIVE = "google_drive"
    SHAREPOINT = "sharepoint"
    FACEBOOK_HOSTED = "facebook_hosted"
    YOUTUBE = "youtube"
    DIRECT_URL = "direct_url"


_HOST_SUFFIXES: list[tuple[SourceKind, tuple[str, ...]]] = [
    (
        SourceKind.GOOGLE_DRIVE,
        ("drive.google.com", "docs.google.com", "drive.usercontent.google.com"),
    ),
    (SourceKind.SHAREPOINT, ("sharepoint.com", "1drv.ms", "onedrive.live.com")),
    (SourceKind.FACEBOOK_HOSTED, ("facebook.com", "fb.watch")),
    (SourceKind.YOUTUBE, ("youtube.com", "youtu.be")),
]


def _host_matches(host: str, suffix: str) -> bool:
    return host == suffix or host.endswith("." + suffix)


def classify_url(url: str) -> SourceKind:
    """Classify a URL by host shape.

    Args:
        url: Absolute http(s) URL

    Returns:
        Matching SourceKind, DIRECT_URL when no hosted service matches
    """
    host = (urlparse(url).hostname or "").lower()
    for kind, suffixes in _HOST_SUFFIXES:
        if any(_host_matches(host, suffix) for suffix in suffixes):
            return kind
    return SourceKind.DIRECT_URL


@dataclass(frozen=True)
class VideoReference:
    """A user-supplied video URL.

    The source kind is derived from the URL on every access and never stored.

    Attributes:
        url: Normalized absolute URL
    """

    url: str

    @classmethod
    def parse(cls, raw: str) -> "VideoReference":
        """Validate and normalize a raw reference string.

        Args:
            raw: User supplied URL

        Returns:
            VideoReference

        Raises:
            FetchError: MALFORMED if the value is not an absolute http(s) URL
        """
        value = (raw or "").strip()
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise FetchError(
                f"Not a downloadable URL: {value!r}",
                fetch_kind=FetchErrorKind.MALFORMED,
                url=value or None,
            )
        return cls(url=value)

    @property
    def kind(self) -> SourceKind:
        """Source kind inferred from the URL."""
        return classify_url(self.url)

    @property
    def host(self) -> str:
        """Lower-cased host name."""
        return (urlparse(self.url).hostname or "").lower()


@dataclass
class FetchResult:
    """Outcome of SourceFetcher.fetch.

    Attributes:
        success: Whether a validated video was written to scratch
        file_path: Scratch file path on success
        size_bytes: Final file size on success
        error: Failure reason when unsuccessful
        message: Human readable failure message
        strategy: Name of the winning (or last attempted) strategy
        attempts: Names of the strategies attempted, in order
        remediation: Steps the caller can take to fix an access problem
        cleanup: Idempotent closure deleting the scratch file
    """

    success: bool
    file_path: Path | None = None
    size_bytes: int | None = None
    error: FetchErrorKind | None = None
    message: str | None = None
    strategy: str | None = None
    attempts: list[str] = field(default_factory=list)
    remediation: list[str] = field(default_factory=list)
    cleanup: Callable[[], None] | None = field(default=None, repr=False)


@dataclass
class TranscodeResult:
    """Outcome of a single profile transcode.

    Attributes:
        success: Whether the encoder produced a usable file
        profile: Profile name
        output_path: Encoded file on success
        size_bytes: Encoded file size on success
        error: Failure description
        cleanup: Idempotent closure deleting the encoded file
    """

    success: bool
    profile: str
    output_path: Path | None = None
    size_bytes: int | None = None
    error: str | None = None
    cleanup: Callable[[], None] | None = field(default=None, repr=False)


@dataclass
class UploadSession:
    """State of one resumable upload.

    Lives only for the duration of a single upload attempt.

    Attributes:
        video_id: Video ID returned by the start phase
        upload_session_id: Session ID returned by the start phase
        total_size: File size declared at start
        bytes_sent: Bytes acknowledged so far
    """

    video_id: str
    upload_session_id: str
    total_size: int
    bytes_sent: int = 0

    def advance(self, sent: int) -> None:
        """Record a transferred chunk.

        Args:
            sent: Chunk length in bytes

        Raises:
            ValueError: If the chunk would move past the declared size
        """
        if sent <= 0 or self.bytes_sent + sent > self.total_size:
            raise ValueError(
                f"Invalid chunk length {sent} at offset {self.bytes_sent}/{self.total_size}"
            )
        self.bytes_sent += sent

    @property
    def complete(self) -> bool:
        """Whether every byte has been transferred."""
        return self.bytes_sent == self.total_size


__all__ = [
    "FetchResult",
    "SourceKind",
    "TranscodeResult",
    "UploadSession",
    "VideoReference",
    "classify_url",
]
