"""
Pytest fixtures for meme engine tests.

Most tests replace the fetcher, probe and executor with in-memory fakes so
no network or FFmpeg binary is needed. Tests that drive the real engine are
marked with @pytest.mark.requires_ffmpeg and skipped when ffmpeg is missing.
"""

import io
import shutil
from pathlib import Path

import pytest
from PIL import Image

from meme_engine.config import Settings, ensure_directories
from meme_engine.exceptions import FetchError, TransformError
from meme_engine.render.filter_graph import FilterGraphSpec
from meme_engine.services.job_orchestrator import JobOrchestrator
from meme_engine.services.job_registry import JobRegistry


def pytest_configure(config):
    """Register custom markers for CI/CD test filtering."""
    config.addinivalue_line(
        "markers",
        "requires_ffmpeg: mark test as requiring the ffmpeg and ffprobe binaries on PATH"
    )


# Check if the engine binaries are available
def _ffmpeg_available() -> bool:
    return shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None


def pytest_collection_modifyitems(config, items):
    """Skip @pytest.mark.requires_ffmpeg tests when the binaries are missing."""
    if _ffmpeg_available():
        return
    skip = pytest.mark.skip(reason="ffmpeg/ffprobe not available on PATH")
    for item in items:
        if "requires_ffmpeg" in item.keywords:
            item.add_marker(skip)


def png_bytes(width: int = 64, height: int = 48, color: str = "red") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, "PNG")
    return buffer.getvalue()


def jpeg_bytes(width: int = 64, height: int = 48) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), "blue").save(buffer, "JPEG")
    return buffer.getvalue()


class FakeFetcher:
    """Writes canned bytes for known URLs; anything else is a FetchError."""

    def __init__(self, payloads: dict[str, bytes] | None = None):
        self.payloads = payloads or {}
        self.calls: list[tuple[str, Path]] = []

    async def fetch(self, url: str, dest_path) -> Path:
        dest = Path(dest_path)
        self.calls.append((url, dest))
        if url not in self.payloads:
            # Leave a partial file behind like an interrupted download.
            dest.write_bytes(b"partial")
            raise FetchError(f"Failed to fetch {url}: HTTP 404", url=url)
        dest.write_bytes(self.payloads[url])
        return dest

    @property
    def urls(self) -> list[str]:
        return [url for url, _ in self.calls]


class FakeProbe:
    def __init__(
        self,
        durations: dict[str, float] | None = None,
        default: float = 12.5,
        output: float | None = None,
    ):
        self.durations = durations or {}
        self.default = default
        # Duration reported for rendered output (the ".partial_" file).
        self.output = output
        self.calls: list[Path] = []

    async def probe_duration(self, file_path) -> float:
        path = Path(file_path)
        self.calls.append(path)
        if self.output is not None and path.name.startswith(".partial_"):
            return self.output
        return self.durations.get(path.name, self.default)

    async def probe_dimensions(self, file_path) -> tuple[int, int]:
        return 1920, 1080


class FakeExecutor:
    """Records every graph it is asked to run and writes a stand-in output."""

    def __init__(self, output_bytes: bytes = b"\x00" * 1000, fail_when=None):
        self.output_bytes = output_bytes
        self.fail_when = fail_when
        self.runs: list[tuple[FilterGraphSpec, list[Path], Path]] = []
        self.input_bytes: list[list[bytes]] = []

    async def run(self, graph: FilterGraphSpec, inputs, output) -> Path:
        inputs = [Path(p) for p in inputs]
        output = Path(output)
        self.runs.append((graph, inputs, output))
        for path in inputs:
            assert path.exists(), f"input {path} missing when graph ran"
        self.input_bytes.append([path.read_bytes() for path in inputs])
        if self.fail_when is not None and self.fail_when(graph):
            raise TransformError("FFmpeg exited with code 1", returncode=1, stderr="boom")
        output.write_bytes(self.output_bytes)
        return output


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    settings = Settings(
        temp_root=tmp_path / "jobs",
        output_root=tmp_path / "output",
        _env_file=None,
    )
    ensure_directories(settings)
    return settings


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher(
        {
            "https://cdn.example.com/video.mp4": b"video-bytes",
            "https://cdn.example.com/music.mp3": b"music-bytes",
            "https://cdn.example.com/logo.png": png_bytes(20, 10),
            "https://cdn.example.com/a.mp4": b"scene-a",
            "https://cdn.example.com/b.mp4": b"scene-b",
            "https://cdn.example.com/c.mp4": b"scene-c",
            "https://cdn.example.com/base.png": png_bytes(640, 480),
            "https://cdn.example.com/base.jpg": jpeg_bytes(320, 240),
        }
    )


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def orchestrator(settings, fetcher, probe, executor) -> JobOrchestrator:
    return JobOrchestrator(
        settings,
        fetcher=fetcher,
        probe=probe,
        executor=executor,
        registry=JobRegistry(settings.job_retention_seconds),
    )


@pytest.fixture
def make_png():
    return png_bytes


@pytest.fixture
def make_jpeg():
    return jpeg_bytes
