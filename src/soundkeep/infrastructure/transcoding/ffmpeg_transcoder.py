"""ffmpeg-based HLS transcoder.

Hey future me - ffmpeg is the ONLY thing here that knows about audio codecs. We hand it a
source file and an empty directory, it writes ``index.m3u8`` plus ``seg_00000.ts`` ...
into that directory. Everything around it (temp dirs, atomic publish, job bookkeeping)
lives in TranscodeJobHandler.
"""

import asyncio
import logging
from pathlib import Path

from soundkeep.config import TranscodeSettings
from soundkeep.domain.exceptions import ProducerFailure
from soundkeep.domain.ports import IHlsTranscoder
from soundkeep.domain.value_objects.hls import MANIFEST_NAME, SEGMENT_PATTERN

logger = logging.getLogger(__name__)

# Job rows store the error text; ffmpeg can be very chatty on broken input
_MAX_STDERR_CHARS = 4000


class FfmpegHlsTranscoder(IHlsTranscoder):
    """Runs ffmpeg as a subprocess to produce a VOD HLS audio rendition (AAC)."""

    def __init__(self, settings: TranscodeSettings) -> None:
        self._settings = settings

    def build_command(self, source: Path, out_dir: Path) -> list[str]:
        """Build the ffmpeg argv for one transcode."""
        return [
            self._settings.ffmpeg_path,
            "-hide_banner",
            "-loglevel",
            "error",
            "-i",
            str(source),
            "-vn",
            "-c:a",
            "aac",
            "-b:a",
            self._settings.audio_bitrate,
            "-f",
            "hls",
            "-hls_time",
            str(self._settings.segment_seconds),
            "-hls_playlist_type",
            "vod",
            "-hls_segment_filename",
            str(out_dir / SEGMENT_PATTERN),
            str(out_dir / MANIFEST_NAME),
        ]

    async def transcode(self, source: Path, out_dir: Path) -> None:
        """Transcode ``source`` into ``out_dir``.

        Raises:
            ProducerFailure: If ffmpeg can't be started or exits non-zero
        """
        argv = self.build_command(source, out_dir)
        logger.debug(f"Running {' '.join(argv)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProducerFailure(f"{argv[0]} could not be started: {e}") from e

        try:
            _, stderr = await process.communicate()
        except BaseException:
            # Cancellation (worker shutdown) must not leave ffmpeg writing into a tmp dir
            # the handler is about to delete
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise
        if process.returncode != 0:
            err = stderr.decode("utf-8", errors="replace")[:_MAX_STDERR_CHARS]
            raise ProducerFailure(f"{argv[0]} exited {process.returncode}: {err}")
