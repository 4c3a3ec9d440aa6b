"""Facebook Graph API publishing configuration."""

from pydantic import BaseModel, Field

MB = 1024 * 1024


class FacebookUploadConfig(BaseModel):
    """Configuration for FacebookUploader.

    Attributes:
        simple_upload_max_bytes: Files at or below this size use one request
        chunk_size_bytes: Resumable transfer chunk size
        direct_timeout_seconds: Timeout for single-request calls
        chunked_timeout_seconds: Timeout for each resumable phase call
        max_labels: Maximum custom labels sent
        max_label_length: Maximum characters per custom label
        title_max_length: Maximum characters of a derived video title
    """

    simple_upload_max_bytes: int = Field(
        default=50 * MB, ge=1, description="Single-request upload threshold"
    )
    chunk_size_bytes: int = Field(
        default=8 * MB, ge=1, le=1024 * MB, description="Resumable chunk size"
    )
    direct_timeout_seconds: float = Field(
        default=30.0, gt=0, le=3600, description="Single-request call timeout"
    )
    chunked_timeout_seconds: float = Field(
        default=45.0, gt=0, le=3600, description="Per-phase resumable call timeout"
    )
    max_labels: int = Field(default=10, ge=0, le=50, description="Maximum custom labels")
    max_label_length: int = Field(default=25, ge=1, le=100, description="Maximum label length")
    title_max_length: int = Field(default=100, ge=1, le=255, description="Derived title length")


__all__ = ["FacebookUploadConfig", "MB"]
