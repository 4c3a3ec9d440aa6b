"""Source download configuration models."""

from pydantic import BaseModel, Field

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class FetchConfig(BaseModel):
    """Configuration for SourceFetcher and the streaming downloader.

    Attributes:
        min_video_bytes: Smallest file accepted as a full video
        stall_timeout_seconds: Abort when no bytes arrive for this long
        attempt_timeout_seconds: Total budget for one download URL
        chunk_size: Bytes read per streamed chunk
        size_tolerance_hard: Relative Content-Length mismatch that fails a download
        size_tolerance_warn: Relative Content-Length mismatch that only logs a warning
        progress_step_percent: Emit download progress every N percent
        sniff_bytes: Leading bytes handed to the video validator
        user_agent: Browser user agent sent to hosting services
        youtube_format: yt-dlp format selector
        youtube_timeout_seconds: Time budget for a yt-dlp download
    """

    min_video_bytes: int = Field(
        default=1_000_000, ge=0, description="Smallest acceptable video file in bytes"
    )
    stall_timeout_seconds: float = Field(
        default=30.0, gt=0, le=600, description="Seconds without bytes before aborting"
    )
    attempt_timeout_seconds: float = Field(
        default=180.0, gt=0, le=7200, description="Total seconds allowed per download URL"
    )
    chunk_size: int = Field(
        default=32 * 1024, ge=1024, le=16 * 1024 * 1024, description="Streaming chunk size"
    )
    size_tolerance_hard: float = Field(
        default=0.001, ge=0, le=1, description="Relative size mismatch treated as truncation"
    )
    size_tolerance_warn: float = Field(
        default=0.00001, ge=0, le=1, description="Relative size mismatch logged as warning"
    )
    progress_step_percent: int = Field(
        default=5, ge=1, le=100, description="Progress event granularity"
    )
    sniff_bytes: int = Field(
        default=512, ge=16, le=65536, description="Bytes inspected by the validator"
    )
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="HTTP User-Agent")
    youtube_format: str = Field(
        default="best[ext=mp4][height<=1080]/best[ext=mp4]/best",
        description="yt-dlp format selector",
    )
    youtube_timeout_seconds: float = Field(
        default=600.0, gt=0, le=7200, description="yt-dlp download budget"
    )


__all__ = ["DEFAULT_USER_AGENT", "FetchConfig"]
