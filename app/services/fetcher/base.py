"""Fetch strategy interface and shared helpers.

A fetch strategy turns a VideoReference into a validated scratch file or
raises FetchError. Strategies for one SourceKind are run in order by the
SourceFetcher through the generic StrategyChain.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from app.core.exceptions import FetchErrorKind
from app.models.media import SourceKind, VideoReference
from app.services.progress import ProgressChannel


@dataclass
class FetchContext:
    """Inputs handed to every fetch strategy.

    Attributes:
        reference: Video reference being fetched
        progress: Optional channel for download progress
    """

    reference: VideoReference
    progress: ProgressChannel | None = None


@dataclass
class DownloadedFile:
    """A validated video written to scratch.

    Attributes:
        path: Scratch file
        size_bytes: File size
        cleanup: Idempotent deletion closure
        content_length: Size advertised by the server, if any
    """

    path: Path
    size_bytes: int
    cleanup: Callable[[], None] = field(repr=False)
    content_length: int | None = None


class FetchStrategy(ABC):
    """One download method for a source kind.

    Attributes:
        name: Strategy name, reported as the fetch method
    """

    name: str = "fetch"

    def applies_to(self, reference: VideoReference) -> bool:
        """Whether this strategy can handle the reference at all."""
        return True

    @abstractmethod
    async def attempt(self, ctx: FetchContext) -> DownloadedFile:
        """Download the reference to scratch.

        Args:
            ctx: Fetch context

        Returns:
            Validated downloaded file

        Raises:
            FetchError: If this method cannot produce a valid video
        """


# Markers found in HTML error pages, checked in order
_PAGE_MARKERS: list[tuple[FetchErrorKind, tuple[str, ...]]] = [
    (
        FetchErrorKind.QUOTA_EXCEEDED,
        ("quota exceeded", "download quota", "too many users", "limit exceeded", "rate limit"),
    ),
    (
        FetchErrorKind.ACCESS_DENIED,
        (
            "sign in",
            "signin",
            "log in",
            "login",
            "permission",
            "access denied",
            "request access",
            "you need access",
            "not authorized",
        ),
    ),
    (
        FetchErrorKind.NOT_FOUND,
        ("not found", "does not exist", "has been deleted", "error 404", "file is in the trash"),
    ),
]


def classify_page_text(text: str) -> FetchErrorKind:
    """Classify an HTML/JSON page returned instead of a video.

    Args:
        text: Page body

    Returns:
        FetchErrorKind; INVALID_FORMAT when nothing more specific matches
    """
    lowered = text.lower()
    for kind, markers in _PAGE_MARKERS:
        if any(marker in lowered for marker in markers):
            return kind
    return FetchErrorKind.INVALID_FORMAT


REMEDIATION: dict[SourceKind, list[str]] = {
    SourceKind.GOOGLE_DRIVE: [
        "Open the file in Google Drive and choose Share",
        "Set General access to 'Anyone with the link' with the Viewer role",
        "Make sure the file is not in the trash and the owner's account is active",
        "Copy the link again and retry, or upload the file manually",
    ],
    SourceKind.SHAREPOINT: [
        "Open the file in SharePoint/OneDrive and choose Share",
        "Select 'Anyone with the link can view' (not 'People in your organization')",
        "Confirm the link has no expiration date and downloads are not blocked",
        "Copy the new link and retry, or upload the file manually",
    ],
    SourceKind.FACEBOOK_HOSTED: [
        "Make sure the video is public and not restricted by age or country",
        "Use the direct video link (facebook.com/<page>/videos/<id>)",
        "Confirm the video has not been removed",
        "Download the video and upload the file manually if it stays private",
    ],
    SourceKind.YOUTUBE: [
        "Make sure the video is public or unlisted, not private",
        "Check that the video is not age-restricted or region-blocked",
        "Upload the file manually if the video cannot be made public",
    ],
    SourceKind.DIRECT_URL: [
        "Open the URL in a private browser window to confirm it downloads without signing in",
        "Use a direct file link instead of a preview or sharing page",
        "Upload the file manually if the host requires authentication",
    ],
}


def remediation_for(source_kind: SourceKind, error: FetchErrorKind) -> list[str]:
    """Remediation checklist for access-related failures.

    Args:
        source_kind: Where the video is hosted
        error: Fetch failure reason

    Returns:
        Checklist, empty for failures the user cannot fix by sharing settings
    """
    if error in (FetchErrorKind.ACCESS_DENIED, FetchErrorKind.NOT_FOUND):
        return list(REMEDIATION.get(source_kind, []))
    return []


__all__ = [
    "DownloadedFile",
    "FetchContext",
    "FetchStrategy",
    "REMEDIATION",
    "classify_page_text",
    "remediation_for",
]
