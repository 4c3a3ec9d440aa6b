"""Scratch directory housekeeping configuration."""

from pydantic import BaseModel, Field, model_validator

DEFAULT_VIDEO_EXTENSIONS = [".mp4", ".avi", ".mov", ".mkv", ".webm", ".flv", ".wmv", ".m4v"]

DEFAULT_WORK_PREFIXES = [
    "working_",
    "download_",
    "temp_video_",
    "google_drive_",
    "sharepoint_",
    "facebook_video_",
    "youtube_",
    "direct_",
    "aria2c_",
    "curl_download_",
]


class JanitorConfig(BaseModel):
    """Configuration for DiskJanitor.

    Attributes:
        video_extensions: Extensions always treated as scratch video
        work_prefixes: File name prefixes marking in-progress work files
        cron_hour: Daily sweep hour (UTC)
        cron_minute: Daily sweep minute
        run_on_startup: Sweep once when the worker starts
        min_age_seconds: Files younger than this are left alone
        high_water_percent: Disk usage that triggers a warning after a sweep
    """

    video_extensions: list[str] = Field(default_factory=lambda: list(DEFAULT_VIDEO_EXTENSIONS))
    work_prefixes: list[str] = Field(default_factory=lambda: list(DEFAULT_WORK_PREFIXES))
    cron_hour: int = Field(default=21, ge=0, le=23)
    cron_minute: int = Field(default=30, ge=0, le=59)
    run_on_startup: bool = Field(default=True)
    min_age_seconds: float = Field(default=0.0, ge=0)
    high_water_percent: float = Field(default=85.0, gt=0, le=100)


class DiskMonitorConfig(BaseModel):
    """Thresholds for disk usage alerts and pre-flight checks.

    Attributes:
        warning_percent: Usage that raises a warning
        critical_percent: Usage that blocks large operations
        emergency_percent: Usage that needs immediate action
        min_free_mb: Free space always kept in reserve
    """

    warning_percent: float = Field(default=80.0, gt=0, le=100)
    critical_percent: float = Field(default=90.0, gt=0, le=100)
    emergency_percent: float = Field(default=95.0, gt=0, le=100)
    min_free_mb: int = Field(default=500, ge=0)

    @model_validator(mode="after")
    def validate_ordering(self) -> "DiskMonitorConfig":
        """Ensure thresholds increase with severity."""
        if not self.warning_percent < self.critical_percent < self.emergency_percent:
            raise ValueError("thresholds must satisfy warning < critical < emergency")
        return self


__all__ = [
    "DEFAULT_VIDEO_EXTENSIONS",
    "DEFAULT_WORK_PREFIXES",
    "DiskMonitorConfig",
    "JanitorConfig",
]
