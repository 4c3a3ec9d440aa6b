"""Publishing pipeline configuration models."""

from pydantic import BaseModel, Field

from app.config.facebook import FacebookUploadConfig
from app.config.fetch import FetchConfig
from app.config.maintenance import DiskMonitorConfig, JanitorConfig
from app.config.transcode import TranscodeConfig, TranscodeProfile, default_profiles


class PublishingConfig(BaseModel):
    """Complete pipeline configuration, as loaded from config/publishing.yaml.

    Attributes:
        fetch: Source download settings
        transcode: Transcode ladder settings
        facebook: Graph upload settings
        janitor: Scratch sweep settings
        disk: Disk usage thresholds
        preflight: Validate the page token and disk space before fetching
    """

    fetch: FetchConfig = Field(default_factory=FetchConfig)
    transcode: TranscodeConfig = Field(default_factory=TranscodeConfig)
    facebook: FacebookUploadConfig = Field(default_factory=FacebookUploadConfig)
    janitor: JanitorConfig = Field(default_factory=JanitorConfig)
    disk: DiskMonitorConfig = Field(default_factory=DiskMonitorConfig)
    preflight: bool = Field(default=True)


__all__ = [
    "DiskMonitorConfig",
    "FacebookUploadConfig",
    "FetchConfig",
    "JanitorConfig",
    "PublishingConfig",
    "TranscodeConfig",
    "TranscodeProfile",
    "default_profiles",
]
