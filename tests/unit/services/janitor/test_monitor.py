"""Unit tests for DiskMonitor."""

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from app.config.maintenance import DiskMonitorConfig
from app.services.janitor import DiskLevel, DiskMonitor

MB = 1024 * 1024


def usage(total_mb: int, used_mb: int) -> SimpleNamespace:
    return SimpleNamespace(total=total_mb * MB, used=used_mb * MB, free=(total_mb - used_mb) * MB)


class TestLevels:
    """Tests for DiskMonitor.level_for."""

    @pytest.mark.parametrize(
        ("percent", "level"),
        [
            (10.0, DiskLevel.NORMAL),
            (80.0, DiskLevel.WARNING),
            (89.9, DiskLevel.WARNING),
            (90.0, DiskLevel.CRITICAL),
            (95.0, DiskLevel.EMERGENCY),
            (100.0, DiskLevel.EMERGENCY),
        ],
    )
    def test_default_thresholds(self, tmp_path, percent, level):
        """Test usage maps to the configured severity."""
        assert DiskMonitor(tmp_path).level_for(percent) == level

    def test_custom_thresholds(self, tmp_path):
        """Test thresholds come from config."""
        config = DiskMonitorConfig(warning_percent=50, critical_percent=60, emergency_percent=70)
        assert DiskMonitor(tmp_path, config).level_for(55) == DiskLevel.WARNING


class TestCheck:
    """Tests for DiskMonitor.check."""

    def test_real_volume(self, tmp_path):
        """Test the temporary directory's volume can be read."""
        status = DiskMonitor(tmp_path).check()

        assert status.total > 0
        assert 0 <= status.usage_percent <= 100

    def test_missing_path_uses_parent_volume(self, tmp_path):
        """Test a not yet created scratch directory is measured via its parent."""
        status = DiskMonitor(tmp_path / "not" / "created").check()

        assert status.total > 0

    def test_reported_values(self, tmp_path):
        """Test percent and level are derived from disk_usage."""
        with patch(
            "app.services.janitor.monitor.shutil.disk_usage", return_value=usage(1000, 850)
        ):
            status = DiskMonitor(tmp_path).check()

        assert status.usage_percent == 85.0
        assert status.level == DiskLevel.WARNING
        assert status.free_mb == 150


class TestIsSafeForOperation:
    """Tests for DiskMonitor.is_safe_for_operation."""

    def test_plenty_of_space(self, tmp_path):
        """Test a mostly empty disk is safe."""
        with patch(
            "app.services.janitor.monitor.shutil.disk_usage", return_value=usage(100_000, 10_000)
        ):
            assert DiskMonitor(tmp_path).is_safe_for_operation(expected_mb=1000)

    def test_reserve_is_required(self, tmp_path):
        """Test twice the expected size plus the reserve must be free."""
        with patch(
            "app.services.janitor.monitor.shutil.disk_usage", return_value=usage(100_000, 70_000)
        ):
            monitor = DiskMonitor(tmp_path)
            assert monitor.is_safe_for_operation(expected_mb=14_000)
            assert not monitor.is_safe_for_operation(expected_mb=15_000)

    def test_critical_usage_is_unsafe(self, tmp_path):
        """Test critical usage blocks operations even with free space left."""
        with patch(
            "app.services.janitor.monitor.shutil.disk_usage",
            return_value=usage(1_000_000, 910_000),
        ):
            assert not DiskMonitor(tmp_path).is_safe_for_operation()
