"""Transcode profile ladder configuration.

Profiles are ordered from the least to the most aggressive quality loss.
Every profile encodes H.264/AAC, yuv420p, with the moov atom moved to the
front of the file for progressive playback.
"""

from pydantic import BaseModel, Field, field_validator


class TranscodeProfile(BaseModel):
    """Fixed encode parameters for one rung of the ladder.

    Attributes:
        name: Profile name, also used as the published method label
        width: Maximum output width
        height: Maximum output height
        fps: Output frame rate (None keeps the source rate)
        crf: x264 constant rate factor
        preset: x264 speed/size preset
        profile: H.264 profile
        level: H.264 level
        maxrate: Peak video bitrate
        bufsize: Rate control buffer size
        audio_bitrate: AAC bitrate
    """

    name: str = Field(..., min_length=1)
    width: int = Field(..., ge=16, le=7680)
    height: int = Field(..., ge=16, le=4320)
    fps: int | None = Field(default=None, ge=1, le=120)
    crf: int = Field(default=23, ge=0, le=51)
    preset: str = Field(default="medium")
    profile: str = Field(default="high")
    level: str = Field(default="4.0")
    maxrate: str = Field(default="5M")
    bufsize: str = Field(default="10M")
    audio_bitrate: str = Field(default="128k")

    @field_validator("profile")
    @classmethod
    def validate_profile(cls, v: str) -> str:
        """Restrict to H.264 profiles Facebook accepts."""
        allowed = {"baseline", "main", "high"}
        if v not in allowed:
            raise ValueError(f"profile must be one of {sorted(allowed)}")
        return v


def default_profiles() -> list[TranscodeProfile]:
    """Build the default quality-descending ladder."""
    return [
        TranscodeProfile(
            name="facebook_compatible",
            width=1920,
            height=1080,
            crf=20,
            preset="medium",
            profile="high",
            level="4.0",
            maxrate="5M",
            bufsize="10M",
            audio_bitrate="192k",
        ),
        TranscodeProfile(
            name="high_quality_compressed",
            width=1280,
            height=720,
            crf=22,
            preset="medium",
            profile="high",
            level="3.1",
            maxrate="3M",
            bufsize="6M",
            audio_bitrate="128k",
        ),
        TranscodeProfile(
            name="standard_compressed",
            width=854,
            height=480,
            crf=25,
            preset="fast",
            profile="baseline",
            level="3.0",
            maxrate="1M",
            bufsize="2M",
            audio_bitrate="96k",
        ),
        TranscodeProfile(
            name="facebook_specific",
            width=1280,
            height=720,
            fps=30,
            crf=25,
            preset="fast",
            profile="baseline",
            level="3.1",
            maxrate="2M",
            bufsize="4M",
            audio_bitrate="64k",
        ),
    ]


class TranscodeConfig(BaseModel):
    """Configuration for the Transcoder.

    Attributes:
        profiles: Ordered profile ladder
        timeout_seconds: Hard timeout per encoder process
        audio_sample_rate: Output audio sample rate
    """

    profiles: list[TranscodeProfile] = Field(default_factory=default_profiles)
    timeout_seconds: float = Field(default=600.0, gt=0, le=7200, description="Encoder timeout")
    audio_sample_rate: int = Field(default=44100, ge=8000, le=96000)

    @field_validator("profiles")
    @classmethod
    def validate_unique_names(cls, v: list[TranscodeProfile]) -> list[TranscodeProfile]:
        """Reject duplicate profile names."""
        names = [p.name for p in v]
        if len(names) != len(set(names)):
            raise ValueError("profile names must be unique")
        return v


__all__ = ["TranscodeConfig", "TranscodeProfile", "default_profiles"]
