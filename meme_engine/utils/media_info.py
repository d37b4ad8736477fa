"""Media file information using FFprobe."""

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path

from meme_engine.config import Settings, get_settings
from meme_engine.exceptions import ProbeError

logger = logging.getLogger(__name__)


@dataclass
class MediaInfo:
    """Container-level media information."""

    duration: float | None = None
    width: int | None = None
    height: int | None = None
    video_codec: str | None = None
    audio_codec: str | None = None
    has_video: bool = False
    has_audio: bool = False


def parse_media_info(data: dict) -> MediaInfo:
    """Build MediaInfo from ffprobe ``-show_format -show_streams`` JSON."""
    info = MediaInfo()

    duration = data.get("format", {}).get("duration")
    if duration is not None:
        try:
            info.duration = float(duration)
        except (TypeError, ValueError):
            info.duration = None

    for stream in data.get("streams", []):
        codec_type = stream.get("codec_type")
        if codec_type == "video" and not info.has_video:
            info.has_video = True
            info.width = stream.get("width")
            info.height = stream.get("height")
            info.video_codec = stream.get("codec_name")
        elif codec_type == "audio" and not info.has_audio:
            info.has_audio = True
            info.audio_codec = stream.get("codec_name")

    return info


class MediaProbe:
    """Reads duration and dimensions through ffprobe."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    async def _run_ffprobe(self, file_path: str | Path) -> dict:
        """Run ffprobe and return parsed JSON."""
        cmd = [
            self.settings.ffprobe_path,
            "-v", "error",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(file_path),
        ]

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise ProbeError(f"ffprobe binary not found: {self.settings.ffprobe_path}") from e

        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip() if stderr else ""
            raise ProbeError(f"ffprobe failed for {file_path}: {message}")

        try:
            return json.loads(stdout.decode())
        except json.JSONDecodeError as e:
            raise ProbeError(f"Failed to parse ffprobe output for {file_path}: {e}") from e

    async def probe(self, file_path: str | Path) -> MediaInfo:
        return parse_media_info(await self._run_ffprobe(file_path))

    async def probe_duration(self, file_path: str | Path) -> float:
        """
        Get media duration in seconds.

        Args:
            file_path: Path to media file

        Returns:
            Duration in (fractional) seconds

        Raises:
            ProbeError: If ffprobe fails or reports no usable duration
        """
        info = await self.probe(file_path)
        if info.duration is None or info.duration <= 0:
            raise ProbeError(f"Could not determine duration of {file_path}")
        logger.info("Probed duration %.3fs for %s", info.duration, file_path)
        return info.duration

    async def probe_dimensions(self, file_path: str | Path) -> tuple[int, int]:
        """
        Get width and height of the first video stream.

        Raises:
            ProbeError: If ffprobe fails or no video stream exists
        """
        info = await self.probe(file_path)
        if not info.has_video:
            raise ProbeError(f"No video stream found in: {file_path}")
        if info.width is None or info.height is None:
            raise ProbeError(f"Video dimensions not found in: {file_path}")
        return info.width, info.height
