"""
Tests for media info extraction.

ffprobe is replaced by canned JSON; see test_ffmpeg_integration.py for
tests against the real binary.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from meme_engine.exceptions import ProbeError
from meme_engine.utils.media_info import MediaProbe, parse_media_info

FFPROBE_VIDEO = {
    "format": {"duration": "50.733000", "format_name": "mov,mp4,m4a,3gp,3g2,mj2"},
    "streams": [
        {"codec_type": "audio", "codec_name": "aac"},
        {"codec_type": "video", "codec_name": "h264", "width": 1920, "height": 1080},
        {"codec_type": "video", "codec_name": "mjpeg", "width": 320, "height": 180},
    ],
}

FFPROBE_AUDIO_ONLY = {
    "format": {"duration": "183.2"},
    "streams": [{"codec_type": "audio", "codec_name": "mp3"}],
}


def _process(stdout: bytes, returncode: int = 0, stderr: bytes = b"") -> MagicMock:
    process = MagicMock()
    process.returncode = returncode
    process.communicate = AsyncMock(return_value=(stdout, stderr))
    return process


def _patch_ffprobe(data=None, *, raw: bytes | None = None, returncode: int = 0, stderr: bytes = b""):
    stdout = raw if raw is not None else json.dumps(data).encode()
    return patch(
        "asyncio.create_subprocess_exec",
        AsyncMock(return_value=_process(stdout, returncode, stderr)),
    )


class TestParseMediaInfo:
    def test_uses_first_video_stream(self):
        info = parse_media_info(FFPROBE_VIDEO)

        assert info.duration == pytest.approx(50.733)
        assert (info.width, info.height) == (1920, 1080)
        assert info.video_codec == "h264"
        assert info.has_audio is True
        assert info.audio_codec == "aac"

    def test_audio_only(self):
        info = parse_media_info(FFPROBE_AUDIO_ONLY)

        assert info.has_video is False
        assert info.width is None
        assert info.duration == pytest.approx(183.2)

    def test_unparsable_duration(self):
        info = parse_media_info({"format": {"duration": "N/A"}, "streams": []})

        assert info.duration is None


class TestMediaProbe:
    @pytest.mark.asyncio
    async def test_probe_duration_keeps_sub_second_precision(self, settings):
        with _patch_ffprobe(FFPROBE_VIDEO) as mock_exec:
            duration = await MediaProbe(settings).probe_duration("/tmp/video.mp4")

        assert duration == pytest.approx(50.733)
        cmd = mock_exec.call_args.args
        assert cmd[0] == settings.ffprobe_path
        assert "-show_format" in cmd
        assert cmd[-1] == "/tmp/video.mp4"

    @pytest.mark.asyncio
    async def test_probe_dimensions(self, settings):
        with _patch_ffprobe(FFPROBE_VIDEO):
            assert await MediaProbe(settings).probe_dimensions("/tmp/video.mp4") == (1920, 1080)

    @pytest.mark.asyncio
    async def test_probe_dimensions_without_video_stream(self, settings):
        with _patch_ffprobe(FFPROBE_AUDIO_ONLY):
            with pytest.raises(ProbeError, match="No video stream"):
                await MediaProbe(settings).probe_dimensions("/tmp/music.mp3")

    @pytest.mark.asyncio
    async def test_missing_duration_raises(self, settings):
        with _patch_ffprobe({"format": {}, "streams": []}):
            with pytest.raises(ProbeError, match="duration"):
                await MediaProbe(settings).probe_duration("/tmp/not-media.txt")

    @pytest.mark.asyncio
    async def test_zero_duration_raises(self, settings):
        with _patch_ffprobe({"format": {"duration": "0.000000"}, "streams": []}):
            with pytest.raises(ProbeError):
                await MediaProbe(settings).probe_duration("/tmp/empty.mp4")

    @pytest.mark.asyncio
    async def test_ffprobe_failure_raises(self, settings):
        with _patch_ffprobe(raw=b"", returncode=1, stderr=b"Invalid data found when processing input"):
            with pytest.raises(ProbeError, match="Invalid data"):
                await MediaProbe(settings).probe_duration("/tmp/corrupt.mp4")

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self, settings):
        with _patch_ffprobe(raw=b"not json"):
            with pytest.raises(ProbeError, match="parse"):
                await MediaProbe(settings).probe_duration("/tmp/video.mp4")

    @pytest.mark.asyncio
    async def test_missing_binary_raises(self, settings):
        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError())):
            with pytest.raises(ProbeError, match="not found"):
                await MediaProbe(settings).probe_duration("/tmp/video.mp4")
