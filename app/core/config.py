"""Process-level settings read from the environment.

Secrets and deployment-specific values (broker URLs, Graph app
credentials, scratch location, binary paths) come from environment
variables or a ``.env`` file. Pipeline tuning lives in YAML instead; see
``app.core.config_loader``.
"""

import os
import tempfile
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Environment settings for workers.

    Example:
        >>> Config(_env_file=None, scratch_dir="/data/scratch").scratch_dir
        '/data/scratch'
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================
    # Runtime
    # ============================================
    app_name: str = Field(default="ReelRelay", description="Name stamped on log events")
    app_env: Literal["development", "staging", "production"] = Field(
        default="development", description="Selects console or JSON log output"
    )
    debug: bool = Field(default=False, description="Force DEBUG logging")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Root log level"
    )

    # ============================================
    # Files
    # ============================================
    scratch_dir: str = Field(
        default_factory=lambda: os.path.join(tempfile.gettempdir(), "reelrelay"),
        description="Directory for downloaded and transcoded scratch files",
    )
    publishing_config_path: str | None = Field(
        default=None, description="YAML pipeline config; config/publishing.yaml when unset"
    )

    # ============================================
    # Task Queue
    # ============================================
    celery_broker_url: str = Field(
        default="redis://localhost:6379/1", description="Celery broker URL"
    )
    celery_result_backend: str = Field(
        default="redis://localhost:6379/2", description="Celery result backend URL"
    )

    # ============================================
    # Facebook Graph API
    # ============================================
    facebook_app_id: str = Field(default="", description="App ID for token debugging")
    facebook_app_secret: str = Field(
        default="", description="App secret for token debugging and exchange", repr=False
    )
    facebook_graph_version: str = Field(
        default="v20.0", description="Pinned Graph API version for every endpoint"
    )

    # ============================================
    # External Tools
    # ============================================
    ffmpeg_path: str = Field(default="ffmpeg", description="Path to the ffmpeg binary")

    @field_validator("facebook_graph_version")
    @classmethod
    def validate_graph_version(cls, v: str) -> str:
        """Accept "20.0" as shorthand for "v20.0"."""
        v = v.strip()
        return v if v.startswith("v") else f"v{v}"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Return the process-wide Config, read once."""
    return Config()


__all__ = ["Config", "get_config"]
