from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "Meme Engine"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"

    # Filesystem layout
    # Per-job working directories live under temp_root and are removed after each job.
    temp_root: Path = Path("/tmp/meme-engine/jobs")
    # Durable artifacts (final_video_<id>.mp4 / final_image_<id>.png)
    output_root: Path = Path("/tmp/meme-engine/output")

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Asset fetching
    fetch_timeout_seconds: float = 30.0
    fetch_chunk_size: int = 64 * 1024

    # Requests
    max_request_body_mb: int = 50
    cors_origins: list[str] = ["*"]

    # Overlay defaults
    default_overlay_size: int = 150
    default_overlay_margin: int = 20

    # Encoding (used whenever a stage cannot stream-copy)
    video_codec: str = "libx264"
    video_crf: int = 23
    video_preset: str = "medium"
    audio_codec: str = "aac"
    audio_bitrate: str = "192k"

    # Job registry
    job_retention_seconds: int = 3600

    # Output delivery
    stream_chunk_size: int = 1024 * 1024

    @property
    def max_request_body_bytes(self) -> int:
        return self.max_request_body_mb * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    return Settings()


def ensure_directories(settings: Settings) -> None:
    """Create the working and output roots.

    Called once from the application lifespan; nothing touches the
    filesystem at import time.
    """
    from meme_engine.exceptions import FilesystemError

    for directory in (settings.temp_root, settings.output_root):
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Could not create directory {directory}: {e}") from e
