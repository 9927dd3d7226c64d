"""External transcoder integrations."""

from .ffmpeg_transcoder import FfmpegHlsTranscoder

__all__ = ["FfmpegHlsTranscoder"]
