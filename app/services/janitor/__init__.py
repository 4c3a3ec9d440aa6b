"""Scratch housekeeping: disk monitoring and scheduled sweeps."""

from app.services.janitor.janitor import DiskJanitor, SweepReport
from app.services.janitor.monitor import DiskLevel, DiskMonitor, DiskStatus

__all__ = ["DiskJanitor", "DiskLevel", "DiskMonitor", "DiskStatus", "SweepReport"]
