"""Progressive re-encoding into Facebook-compatible profiles.

Commands are built with ffmpeg-python and executed through an injected
ProcessRunner, so the event loop is never blocked and tests never need a
real encoder. Each profile run is isolated: a non-zero exit, a timeout or
an empty output is a failure for that profile only.
"""

from collections.abc import Iterator
from pathlib import Path

import ffmpeg

from app.config.transcode import TranscodeConfig, TranscodeProfile
from app.core.logging import get_logger
from app.infrastructure.process_runner import ProcessRunner
from app.models.media import TranscodeResult
from app.services.scratch import ScratchSpace, make_cleanup

logger = get_logger(__name__)


def scale_filter(profile: TranscodeProfile) -> str:
    """Scale to fit the profile box, never upscaling, with even dimensions."""
    return (
        f"scale='min({profile.width},iw)':'min({profile.height},ih)'"
        ":force_original_aspect_ratio=decrease,"
        "scale=trunc(iw/2)*2:trunc(ih/2)*2"
    )


class Transcoder:
    """Re-encode a video through an ordered quality ladder.

    Example:
        >>> transcoder = Transcoder(scratch, AsyncProcessRunner())
        >>> for profile in transcoder.iter_profiles():
        ...     result = await transcoder.transcode(source, profile)
        ...     if result.success:
        ...         break
    """

    def __init__(
        self,
        scratch: ScratchSpace,
        runner: ProcessRunner,
        config: TranscodeConfig | None = None,
        ffmpeg_path: str = "ffmpeg",
    ) -> None:
        """Initialize Transcoder.

        Args:
            scratch: Scratch file allocator
            runner: External process runner
            config: Profile ladder and timeout
            ffmpeg_path: Encoder binary
        """
        self._scratch = scratch
        self._runner = runner
        self.config = config or TranscodeConfig()
        self.ffmpeg_path = ffmpeg_path

    def iter_profiles(self) -> Iterator[TranscodeProfile]:
        """Yield profiles in quality-descending order."""
        yield from self.config.profiles

    def get_profile(self, name: str) -> TranscodeProfile:
        """Look up a profile by name.

        Raises:
            KeyError: If no profile has that name
        """
        for profile in self.config.profiles:
            if profile.name == name:
                return profile
        raise KeyError(name)

    def build_command(
        self,
        input_path: Path,
        output_path: Path,
        profile: TranscodeProfile,
    ) -> list[str]:
        """Build the encoder command line for one profile.

        Args:
            input_path: Source video
            output_path: Destination file
            profile: Encode parameters

        Returns:
            Command and arguments
        """
        output_kwargs: dict[str, str | int] = {
            "vcodec": "libx264",
            "acodec": "aac",
            "pix_fmt": "yuv420p",
            "preset": profile.preset,
            "crf": profile.crf,
            "profile:v": profile.profile,
            "level": profile.level,
            "maxrate": profile.maxrate,
            "bufsize": profile.bufsize,
            "b:a": profile.audio_bitrate,
            "ar": self.config.audio_sample_rate,
            "movflags": "+faststart",
            "vf": scale_filter(profile),
        }
        if profile.fps:
            output_kwargs["r"] = profile.fps

        stream = (
            ffmpeg.input(str(input_path))
            .output(str(output_path), **output_kwargs)
            .global_args("-hide_banner", "-nostdin", "-loglevel", "error")
            .overwrite_output()
        )
        command: list[str] = ffmpeg.compile(stream, cmd=self.ffmpeg_path)
        return command

    async def transcode(
        self,
        input_path: Path,
        profile: TranscodeProfile | str,
    ) -> TranscodeResult:
        """Encode one profile.

        Args:
            input_path: Source video
            profile: Profile or profile name

        Returns:
            TranscodeResult; on success it carries a cleanup closure the caller
            must invoke once the file is no longer needed
        """
        if isinstance(profile, str):
            profile = self.get_profile(profile)

        output_path = self._scratch.allocate(profile.name)
        cleanup = make_cleanup(output_path)
        command = self.build_command(input_path, output_path, profile)

        logger.info(
            "Transcoding",
            profile=profile.name,
            input=str(input_path),
            output=str(output_path),
        )
        result = await self._runner.run(command, timeout=self.config.timeout_seconds)

        error: str | None = None
        if result.timed_out:
            error = f"Encoder timed out after {self.config.timeout_seconds:.0f}s"
        elif result.returncode != 0:
            error = f"Encoder exited with code {result.returncode}: {result.stderr.strip()[-500:]}"
        elif not output_path.exists() or output_path.stat().st_size == 0:
            error = "Encoder produced no output"

        if error is not None:
            cleanup()
            logger.warning("Transcode failed", profile=profile.name, error=error)
            return TranscodeResult(success=False, profile=profile.name, error=error)

        size = output_path.stat().st_size
        logger.info("Transcode complete", profile=profile.name, size=size)
        return TranscodeResult(
            success=True,
            profile=profile.name,
            output_path=output_path,
            size_bytes=size,
            cleanup=cleanup,
        )


__all__ = ["Transcoder", "scale_filter"]
