"""Video transcoding through a Facebook-compatible profile ladder."""

from app.services.transcoder.transcoder import Transcoder, scale_filter

__all__ = ["Transcoder", "scale_filter"]
