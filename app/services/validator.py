"""Video container sniffing.

Distinguishes real video payloads from the HTML login/error pages that
file hosts return with a 200 status. The check is pure; callers read the
bytes and hand them over.
"""

from pathlib import Path

# Only the start of the buffer is inspected for markup
HTML_SNIFF_BYTES = 200
HTML_MARKERS = (b"<html", b"<!doctype", b"<head>")

# ISO-BMFF box sizes seen in front of 'ftyp' in real files
_MIN_BOX_SIZE = 8
_MAX_FTYP_BOX_SIZE = 1024


def looks_like_html(data: bytes) -> bool:
    """Check whether the leading bytes contain HTML markup.

    Args:
        data: Leading bytes of a payload

    Returns:
        True if an HTML marker appears in the first 200 bytes
    """
    head = data[:HTML_SNIFF_BYTES].lower()
    return any(marker in head for marker in HTML_MARKERS)


def detect_container(data: bytes) -> str | None:
    """Identify the container format from its leading signature.

    Args:
        data: Leading bytes of a payload

    Returns:
        "quicktime", "mp4", "avi", "webm" or "flv", None when unrecognized
    """
    if len(data) >= 8 and data[4:8] == b"ftyp":
        box_size = int.from_bytes(data[0:4], "big")
        if _MIN_BOX_SIZE <= box_size <= _MAX_FTYP_BOX_SIZE:
            if data[8:10] == b"qt":
                return "quicktime"
            return "mp4"
    if data[:4] == b"RIFF":
        return "avi"
    if data[:4] == b"\x1a\x45\xdf\xa3":
        return "webm"
    if data[:3] == b"FLV":
        return "flv"
    return None


class VideoValidator:
    """Confirms a byte buffer is genuine video content."""

    @staticmethod
    def is_valid_video(data: bytes) -> bool:
        """Check a payload prefix.

        HTML markers in the first 200 bytes always reject, even if a valid
        signature appears later in the buffer.

        Args:
            data: Leading bytes of a payload

        Returns:
            True if the prefix is a known video container signature
        """
        if not data or looks_like_html(data):
            return False
        return detect_container(data) is not None

    @classmethod
    def validate_file(cls, path: Path, sniff_bytes: int = 512) -> bool:
        """Read a file header and validate it.

        Args:
            path: File to check
            sniff_bytes: Number of leading bytes to read

        Returns:
            True if the file starts like a video
        """
        try:
            with open(path, "rb") as f:
                head = f.read(sniff_bytes)
        except OSError:
            return False
        return cls.is_valid_video(head)


__all__ = [
    "HTML_MARKERS",
    "HTML_SNIFF_BYTES",
    "VideoValidator",
    "detect_container",
    "looks_like_html",
]
