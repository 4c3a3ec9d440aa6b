"""Unit tests for ProgressChannel."""

import pytest

from app.services.progress import ProgressChannel, ProgressPhase


class TestProgressChannel:
    """Tests for progress fan-out."""

    @pytest.mark.asyncio
    async def test_sync_and_async_subscribers(self):
        """Test both callback styles receive the event."""
        seen = []

        async def async_callback(event):
            seen.append(("async", event.phase))

        channel = ProgressChannel()
        channel.subscribe(lambda event: seen.append(("sync", event.phase)))
        channel.subscribe(async_callback)

        await channel.emit(ProgressPhase.FETCH, 10, "Downloading video")

        assert seen == [("sync", ProgressPhase.FETCH), ("async", ProgressPhase.FETCH)]

    @pytest.mark.asyncio
    async def test_percent_clamped(self):
        """Test percent stays within 0-100."""
        channel = ProgressChannel()
        assert (await channel.emit(ProgressPhase.UPLOAD, 140)).percent == 100.0
        assert (await channel.emit(ProgressPhase.UPLOAD, -5)).percent == 0.0
        assert (await channel.emit(ProgressPhase.UPLOAD)).percent is None

    @pytest.mark.asyncio
    async def test_extra_data(self):
        """Test keyword fields land in event.data."""
        channel = ProgressChannel()
        event = await channel.emit(ProgressPhase.UPLOAD, 50, bytes_sent=5, bytes_total=10)
        assert event.data == {"bytes_sent": 5, "bytes_total": 10}

    @pytest.mark.asyncio
    async def test_failing_subscriber_isolated(self):
        """Test a broken subscriber does not interrupt others."""
        seen = []

        def broken(event):
            raise ValueError("subscriber bug")

        channel = ProgressChannel()
        channel.subscribe(broken)
        channel.subscribe(seen.append)

        await channel.emit(ProgressPhase.DONE)

        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        """Test removed subscribers stop receiving events."""
        seen = []
        channel = ProgressChannel()
        unsubscribe = channel.subscribe(seen.append)
        unsubscribe()
        unsubscribe()

        await channel.emit(ProgressPhase.CLEANUP)

        assert seen == []
