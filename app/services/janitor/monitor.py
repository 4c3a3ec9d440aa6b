"""Disk usage monitoring for the scratch volume."""

import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from app.config.maintenance import DiskMonitorConfig
from app.core.logging import get_logger

logger = get_logger(__name__)

MB = 1024 * 1024


class DiskLevel(str, Enum):
    """Disk usage severity."""

    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"
    EMERGENCY = "emergency"


@dataclass(frozen=True)
class DiskStatus:
    """Snapshot of a volume's usage.

    Attributes:
        total: Volume size in bytes
        used: Used bytes
        free: Free bytes
        usage_percent: Used share of the volume
        level: Severity for ``usage_percent``
    """

    total: int
    used: int
    free: int
    usage_percent: float
    level: DiskLevel

    @property
    def free_mb(self) -> float:
        return self.free / MB


class DiskMonitor:
    """Report disk usage of the scratch directory.

    Example:
        >>> monitor = DiskMonitor("/tmp/reelrelay")
        >>> monitor.is_safe_for_operation(expected_mb=200)
        True
    """

    def __init__(self, path: Path | str, config: DiskMonitorConfig | None = None) -> None:
        """Initialize DiskMonitor.

        Args:
            path: Any path on the monitored volume
            config: Usage thresholds
        """
        self.path = Path(path)
        self.config = config or DiskMonitorConfig()

    def level_for(self, usage_percent: float) -> DiskLevel:
        """Map a usage percentage to a severity."""
        if usage_percent >= self.config.emergency_percent:
            return DiskLevel.EMERGENCY
        if usage_percent >= self.config.critical_percent:
            return DiskLevel.CRITICAL
        if usage_percent >= self.config.warning_percent:
            return DiskLevel.WARNING
        return DiskLevel.NORMAL

    def check(self) -> DiskStatus:
        """Read current usage.

        Raises:
            OSError: If the volume cannot be inspected
        """
        path = self.path
        # The scratch directory may not exist yet; measure its volume
        while not path.exists() and path != path.parent:
            path = path.parent
        usage = shutil.disk_usage(path)
        percent = usage.used * 100 / usage.total if usage.total else 0.0
        return DiskStatus(
            total=usage.total,
            used=usage.used,
            free=usage.free,
            usage_percent=round(percent, 2),
            level=self.level_for(percent),
        )

    def is_safe_for_operation(self, expected_mb: float = 0.0) -> bool:
        """Check that an operation writing ``expected_mb`` fits comfortably.

        Twice the expected size is required, to leave room for a transcoded
        copy, plus the configured reserve. Usage must be below critical.
        """
        status = self.check()
        required_mb = expected_mb * 2 + self.config.min_free_mb
        safe = status.free_mb >= required_mb and status.usage_percent < self.config.critical_percent
        if not safe:
            logger.warning(
                "Disk not safe for operation",
                free_mb=round(status.free_mb, 1),
                required_mb=round(required_mb, 1),
                usage_percent=status.usage_percent,
                level=status.level.value,
            )
        return safe


__all__ = ["DiskLevel", "DiskMonitor", "DiskStatus"]
