"""Durable output area for finished artifacts.

Artifacts are named from the job id alone so concurrent jobs never write
the same file, and they outlive the job's working directory.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from meme_engine.config import Settings, get_settings
from meme_engine.exceptions import ArtifactNotFoundError, FilesystemError, RangeNotSatisfiableError

logger = logging.getLogger(__name__)

VIDEO_MEDIA_TYPE = "video/mp4"
IMAGE_MEDIA_TYPE = "image/png"

_RANGE_RE = re.compile(r"^\s*bytes\s*=\s*(\d*)\s*-\s*(\d*)\s*$")


def format_size_mb(size: int) -> str:
    return f"{size / (1024 * 1024):.2f}"


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int  # inclusive

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, size: int) -> str:
        return f"bytes {self.start}-{self.end}/{size}"


def parse_range(header: str | None, size: int) -> ByteRange | None:
    """Parse a single-range ``Range`` header against a file of ``size`` bytes.

    Returns None when the header is absent or malformed, in which case the
    whole file is served. Open-ended ranges run to the end of the file.

    Raises:
        RangeNotSatisfiableError: If the range starts at or past the end.
    """
    if not header:
        return None
    match = _RANGE_RE.match(header)
    if match is None:
        return None

    start_text, end_text = match.groups()
    if not start_text and not end_text:
        return None

    if not start_text:
        # bytes=-N: the last N bytes
        suffix = int(end_text)
        if suffix == 0 or size == 0:
            raise RangeNotSatisfiableError(size)
        return ByteRange(start=max(size - suffix, 0), end=size - 1)

    start = int(start_text)
    end = int(end_text) if end_text else size - 1
    if start >= size:
        raise RangeNotSatisfiableError(size)
    if end < start:
        return None
    return ByteRange(start=start, end=min(end, size - 1))


class ArtifactStore:
    """Local filesystem store keyed by job id."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.output_root = Path(self.settings.output_root)

    def video_path(self, job_id: str) -> Path:
        return self.output_root / f"final_video_{job_id}.mp4"

    def image_path(self, job_id: str) -> Path:
        return self.output_root / f"final_image_{job_id}.png"

    def partial_path(self, final_path: Path) -> Path:
        """Scratch name inside the output root, renamed into place on publish.

        The extension is kept so FFmpeg still picks the right muxer.
        """
        return final_path.with_name(f".partial_{final_path.name}")

    def publish(self, partial: Path, final_path: Path) -> Path:
        """Atomically move a finished file to its artifact name."""
        try:
            os.replace(partial, final_path)
        except OSError as e:
            raise FilesystemError(f"Could not publish artifact {final_path}: {e}") from e
        logger.info("Published artifact %s", final_path)
        return final_path

    def discard(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove %s: %s", path, e)

    def find_video(self, job_id: str) -> Path | None:
        path = self.video_path(job_id)
        return path if path.is_file() else None

    def find_image(self, job_id: str) -> Path | None:
        path = self.image_path(job_id)
        return path if path.is_file() else None

    def require_video(self, job_id: str) -> Path:
        path = self.find_video(job_id)
        if path is None:
            raise ArtifactNotFoundError(job_id, kind="Video")
        return path

    def require_image(self, job_id: str) -> Path:
        path = self.find_image(job_id)
        if path is None:
            raise ArtifactNotFoundError(job_id, kind="Image")
        return path

    def iter_range(self, path: Path, byte_range: ByteRange | None = None) -> Iterator[bytes]:
        """Yield the file (or one range of it) in ``stream_chunk_size`` chunks."""
        chunk_size = self.settings.stream_chunk_size
        with path.open("rb") as f:
            if byte_range is None:
                while chunk := f.read(chunk_size):
                    yield chunk
                return

            f.seek(byte_range.start)
            remaining = byte_range.length
            while remaining > 0:
                chunk = f.read(min(chunk_size, remaining))
                if not chunk:
                    break
                remaining -= len(chunk)
                yield chunk
