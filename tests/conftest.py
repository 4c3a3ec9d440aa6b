"""Pytest configuration and fixtures.

This module provides common fixtures used across all tests.
"""

from collections.abc import Callable

import httpx
import pytest

from app.core.logging import setup_logging
from app.infrastructure.http_client import HTTPClient
from app.services.scratch import ScratchSpace

# Setup logging for tests
setup_logging()

MP4_HEADER = b"\x00\x00\x00\x20ftypisom\x00\x00\x02\x00isomiso2avc1mp41"


def make_mp4_bytes(size: int) -> bytes:
    """Build a payload of ``size`` bytes that starts like an MP4 file.

    Args:
        size: Total payload length

    Returns:
        MP4-signed payload
    """
    if size <= len(MP4_HEADER):
        return MP4_HEADER[:size]
    return MP4_HEADER + b"\x00" * (size - len(MP4_HEADER))


@pytest.fixture
def mp4_bytes() -> Callable[[int], bytes]:
    """Factory for MP4-signed payloads."""
    return make_mp4_bytes


@pytest.fixture
def scratch(tmp_path) -> ScratchSpace:
    """Scratch space in a temporary directory."""
    return ScratchSpace(tmp_path / "scratch")


@pytest.fixture
def make_http_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], HTTPClient]:
    """Factory for HTTPClient instances backed by httpx.MockTransport."""

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> HTTPClient:
        return HTTPClient(transport=httpx.MockTransport(handler))

    return factory


@pytest.fixture
def anyio_backend() -> str:
    """Specify backend for anyio.

    Returns:
        Backend name
    """
    return "asyncio"
