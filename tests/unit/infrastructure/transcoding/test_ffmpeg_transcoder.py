"""Tests for FfmpegHlsTranscoder (subprocess mocked, except a shell script standing in for ffmpeg)."""

import asyncio
import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from soundkeep.config import TranscodeSettings
from soundkeep.domain.exceptions import ProducerFailure
from soundkeep.infrastructure.transcoding import FfmpegHlsTranscoder

_EXEC = "soundkeep.infrastructure.transcoding.ffmpeg_transcoder.asyncio.create_subprocess_exec"


def _process(returncode: int, stderr: bytes = b"") -> MagicMock:
    process = MagicMock()
    process.returncode = returncode
    process.communicate = AsyncMock(return_value=(b"", stderr))
    return process


class TestBuildCommand:
    def test_uses_settings(self, tmp_path: Path) -> None:
        transcoder = FfmpegHlsTranscoder(
            TranscodeSettings(ffmpeg_path="/opt/ffmpeg", audio_bitrate="128k", segment_seconds=4)
        )

        argv = transcoder.build_command(Path("/music/a.flac"), tmp_path)

        assert argv[0] == "/opt/ffmpeg"
        assert argv[argv.index("-i") + 1] == "/music/a.flac"
        assert argv[argv.index("-b:a") + 1] == "128k"
        assert argv[argv.index("-hls_time") + 1] == "4"
        assert argv[argv.index("-hls_playlist_type") + 1] == "vod"
        assert argv[argv.index("-hls_segment_filename") + 1] == str(tmp_path / "seg_%05d.ts")
        assert argv[-1] == str(tmp_path / "index.m3u8")


class TestTranscode:
    @pytest.mark.asyncio
    async def test_success(self, tmp_path: Path) -> None:
        transcoder = FfmpegHlsTranscoder(TranscodeSettings())

        with patch(_EXEC, AsyncMock(return_value=_process(0))) as exec_mock:
            await transcoder.transcode(Path("/music/a.flac"), tmp_path)

        assert exec_mock.await_args.args[0] == "ffmpeg"

    @pytest.mark.asyncio
    async def test_non_zero_exit_raises_with_truncated_stderr(self, tmp_path: Path) -> None:
        transcoder = FfmpegHlsTranscoder(TranscodeSettings())

        with patch(_EXEC, AsyncMock(return_value=_process(1, b"x" * 10_000))):
            with pytest.raises(ProducerFailure) as exc_info:
                await transcoder.transcode(Path("/music/a.flac"), tmp_path)

        assert "exited 1" in exc_info.value.message
        message = exc_info.value.message
        assert message.endswith("x" * 4000)
        assert len(message.split(": ", 1)[1]) == 4000

    @pytest.mark.asyncio
    async def test_missing_binary_raises(self, tmp_path: Path) -> None:
        transcoder = FfmpegHlsTranscoder(TranscodeSettings(ffmpeg_path="/nope/ffmpeg"))

        with patch(_EXEC, AsyncMock(side_effect=FileNotFoundError("no such file"))):
            with pytest.raises(ProducerFailure, match="could not be started"):
                await transcoder.transcode(Path("/music/a.flac"), tmp_path)


@pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell script as ffmpeg")
class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_transcode_kills_ffmpeg(self, tmp_path: Path) -> None:
        pid_file = tmp_path / "ffmpeg.pid"
        fake_ffmpeg = tmp_path / "ffmpeg"
        fake_ffmpeg.write_text(f'#!/bin/sh\necho $$ > "{pid_file}"\nexec sleep 30\n')
        fake_ffmpeg.chmod(0o755)
        out_dir = tmp_path / "out"
        out_dir.mkdir()
        transcoder = FfmpegHlsTranscoder(TranscodeSettings(ffmpeg_path=str(fake_ffmpeg)))

        task = asyncio.create_task(transcoder.transcode(Path("/music/a.flac"), out_dir))
        for _ in range(500):
            if pid_file.exists() and pid_file.read_text().strip():
                break
            await asyncio.sleep(0.01)
        pid = int(pid_file.read_text())

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        # Killed and reaped, so the pid no longer exists
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)
