"""Pytest fixtures for uploader service tests."""

from collections.abc import Callable
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from app.infrastructure.facebook_graph import FacebookGraphAPI


@pytest.fixture
def graph() -> AsyncMock:
    """Graph API client double; set ``post``/``get`` side effects per test."""
    mock = AsyncMock(spec=FacebookGraphAPI)
    mock.app_id = "app-id"
    mock.app_secret = "app-secret"
    return mock


@pytest.fixture
def video_file(tmp_path: Path, mp4_bytes) -> Callable[[int, str], Path]:
    """Factory writing an MP4-signed file of the given size."""

    def factory(size: int, name: str = "source.mp4") -> Path:
        path = tmp_path / name
        path.write_bytes(mp4_bytes(size))
        return path

    return factory
