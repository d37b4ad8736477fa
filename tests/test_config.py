"""Tests for settings and directory setup."""

import pytest

from meme_engine.config import Settings, ensure_directories
from meme_engine.exceptions import FilesystemError


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.default_overlay_size == 150
        assert settings.default_overlay_margin == 20
        assert settings.max_request_body_bytes == 50 * 1024 * 1024

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("FETCH_TIMEOUT_SECONDS", "5")
        monkeypatch.setenv("VIDEO_PRESET", "veryfast")

        settings = Settings(_env_file=None)

        assert settings.fetch_timeout_seconds == 5.0
        assert settings.video_preset == "veryfast"

    def test_unused_keys_are_ignored(self, monkeypatch):
        monkeypatch.setenv("DEBUG", "false")

        settings = Settings(_env_file=None)

        assert "debug" not in Settings.model_fields
        assert not hasattr(settings, "debug")


class TestEnsureDirectories:
    def test_creates_roots(self, tmp_path):
        settings = Settings(temp_root=tmp_path / "a" / "jobs", output_root=tmp_path / "b" / "out", _env_file=None)

        ensure_directories(settings)

        assert settings.temp_root.is_dir()
        assert settings.output_root.is_dir()

    def test_blocked_path_raises(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        settings = Settings(temp_root=blocker / "jobs", output_root=tmp_path / "out", _env_file=None)

        with pytest.raises(FilesystemError, match="Could not create directory"):
            ensure_directories(settings)
