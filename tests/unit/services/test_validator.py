"""Unit tests for video container sniffing."""

import pytest

from app.services.validator import VideoValidator, detect_container, looks_like_html


class TestDetectContainer:
    """Tests for signature detection."""

    @pytest.mark.parametrize(
        "data,expected",
        [
            (b"\x00\x00\x00\x20ftypisom\x00\x00\x02\x00", "mp4"),
            (b"\x00\x00\x00\x14ftypqt  \x00\x00\x00\x00", "quicktime"),
            (b"RIFF\x00\x10\x00\x00AVI LIST", "avi"),
            (b"\x1a\x45\xdf\xa3\x9f\x42\x86\x81", "webm"),
            (b"FLV\x01\x05\x00\x00\x00\x09", "flv"),
            (b"\x89PNG\r\n\x1a\n\x00\x00", None),
        ],
    )
    def test_signatures(self, data, expected):
        """Test each supported container is recognized."""
        assert detect_container(data) == expected

    def test_ftyp_with_absurd_box_size(self):
        """Test an ftyp marker with an impossible box size is rejected."""
        data = b"\x7f\xff\xff\xffftypisom"
        assert detect_container(data) is None

    def test_short_buffer(self):
        """Test buffers shorter than a box header."""
        assert detect_container(b"\x00\x00") is None


class TestVideoValidator:
    """Tests for VideoValidator."""

    def test_valid_mp4(self, mp4_bytes):
        """Test a real MP4 prefix passes."""
        assert VideoValidator.is_valid_video(mp4_bytes(512))

    def test_empty_buffer(self):
        """Test an empty buffer fails."""
        assert not VideoValidator.is_valid_video(b"")

    def test_html_rejected_even_with_signature(self, mp4_bytes):
        """Test HTML markers win over a later valid signature."""
        data = b"<!DOCTYPE html><html><body>" + mp4_bytes(64)
        assert looks_like_html(data)
        assert not VideoValidator.is_valid_video(data)

    def test_html_marker_case_insensitive(self):
        """Test upper-case markup is detected."""
        assert looks_like_html(b"\n\n<HTML><HEAD><title>Sign in</title>")

    def test_html_marker_after_sniff_window(self, mp4_bytes):
        """Test markup beyond the first 200 bytes does not reject a video."""
        data = mp4_bytes(300) + b"<html>"
        assert VideoValidator.is_valid_video(data)

    def test_validate_file(self, tmp_path, mp4_bytes):
        """Test file header validation."""
        good = tmp_path / "good.mp4"
        good.write_bytes(mp4_bytes(4096))
        bad = tmp_path / "bad.mp4"
        bad.write_bytes(b"<html><body>Access denied</body></html>")

        assert VideoValidator.validate_file(good)
        assert not VideoValidator.validate_file(bad)
        assert not VideoValidator.validate_file(tmp_path / "missing.mp4")
