"""Scheduled sweep of stale scratch files.

Ownership is inferred from file names only: anything with a video
extension or an in-progress work prefix is removed, whichever component
wrote it. Files that cannot be removed (for example because an upload is
still reading them on a platform that locks open files) are logged and
skipped.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path

from app.config.maintenance import JanitorConfig
from app.core.logging import get_logger
from app.services.janitor.monitor import DiskMonitor, DiskStatus

logger = get_logger(__name__)


@dataclass
class SweepReport:
    """Result of one sweep.

    Attributes:
        deleted: Names of removed files
        skipped: Names of matching files left in place
        bytes_freed: Total size of removed files
        disk: Disk usage after the sweep, None if it could not be read
        above_high_water: Usage is at or above the high-water mark
    """

    deleted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    bytes_freed: int = 0
    disk: DiskStatus | None = None
    above_high_water: bool = False


class DiskJanitor:
    """Delete scratch files left behind by earlier uploads."""

    def __init__(
        self,
        scratch_dir: Path | str,
        config: JanitorConfig | None = None,
        monitor: DiskMonitor | None = None,
    ) -> None:
        """Initialize DiskJanitor.

        Args:
            scratch_dir: Directory to sweep
            config: Extensions, prefixes and age threshold
            monitor: Disk monitor used for the post-sweep report
        """
        self.scratch_dir = Path(scratch_dir)
        self.config = config or JanitorConfig()
        self.monitor = monitor or DiskMonitor(self.scratch_dir)
        self._extensions = {ext.lower() for ext in self.config.video_extensions}
        self._prefixes = tuple(self.config.work_prefixes)

    def is_scratch_file(self, path: Path) -> bool:
        """Check a file name against the extension and prefix conventions."""
        return path.suffix.lower() in self._extensions or path.name.startswith(self._prefixes)

    def sweep(self) -> SweepReport:
        """Remove matching files from the scratch directory.

        Never raises; problems with individual files are logged.

        Returns:
            SweepReport
        """
        report = SweepReport()
        if not self.scratch_dir.is_dir():
            logger.info("Scratch directory missing, nothing to sweep", path=str(self.scratch_dir))
            return report

        cutoff = time.time() - self.config.min_age_seconds
        try:
            entries = list(self.scratch_dir.iterdir())
        except OSError as e:
            logger.error("Cannot list scratch directory", path=str(self.scratch_dir), error=str(e))
            return report

        for path in entries:
            try:
                if not path.is_file() or path.is_symlink() or not self.is_scratch_file(path):
                    continue
                stat = path.stat()
                if self.config.min_age_seconds and stat.st_mtime > cutoff:
                    report.skipped.append(path.name)
                    continue
                path.unlink()
            except FileNotFoundError:
                # Removed by its owner mid-sweep
                continue
            except OSError as e:
                logger.warning("Could not delete scratch file", file=path.name, error=str(e))
                report.skipped.append(path.name)
                continue
            report.deleted.append(path.name)
            report.bytes_freed += stat.st_size

        report.disk = self._disk_status()
        logger.info(
            "Scratch sweep complete",
            deleted=len(report.deleted),
            skipped=len(report.skipped),
            freed_mb=round(report.bytes_freed / (1024 * 1024), 1),
            usage_percent=report.disk.usage_percent if report.disk else None,
        )
        if report.disk and report.disk.usage_percent >= self.config.high_water_percent:
            report.above_high_water = True
            logger.warning(
                "Disk usage above high-water mark after sweep",
                usage_percent=report.disk.usage_percent,
                high_water_percent=self.config.high_water_percent,
            )
        return report

    def _disk_status(self) -> DiskStatus | None:
        try:
            return self.monitor.check()
        except OSError as e:
            logger.warning("Could not read disk usage", error=str(e))
            return None


__all__ = ["DiskJanitor", "SweepReport"]
