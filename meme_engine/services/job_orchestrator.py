"""Job pipeline: fetch, probe, transform and publish one deliverable.

Each job gets an isolated working directory under ``temp_root`` named by
its id. Stages run strictly in order because every stage consumes the
previous stage's output file. The working directory is removed on every
exit path; the artifact is published to the output area first so it
outlives the job.
"""

import logging
import shutil
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import AsyncIterator, Iterable
from urllib.parse import urlparse

from PIL import Image

from meme_engine.config import Settings, get_settings
from meme_engine.exceptions import FilesystemError, TransformError, ValidationError
from meme_engine.models.job import Asset, AssetKind, Job, JobStatus, JobVariant
from meme_engine.render import filter_graph
from meme_engine.render.executor import TransformExecutor
from meme_engine.render.filter_graph import EncodingProfile, OverlaySettings
from meme_engine.schemas.jobs import OverlayOptions
from meme_engine.services.artifact_store import ArtifactStore
from meme_engine.services.asset_fetcher import AssetFetcher
from meme_engine.services.job_registry import JobRegistry
from meme_engine.utils.media_info import MediaProbe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SceneEntry:
    scene_number: int | float
    video_url: str


@dataclass
class VideoJobResult:
    job: Job
    artifact: Path
    duration: float
    file_size: int
    overlay_applied: bool
    scene_order: list[int | float] = field(default_factory=list)

    @property
    def processed_videos(self) -> int:
        return len(self.scene_order)


@dataclass
class ImageJobResult:
    job: Job
    artifact: Path
    file_size: int
    width: int | None
    height: int | None
    overlay_applied: bool


def order_scenes(scenes: Iterable[SceneEntry]) -> list[SceneEntry]:
    """Sort scenes ascending by number.

    Duplicate scene numbers keep the first entry seen. A missing or
    non-numeric scene number is rejected.
    """
    seen: dict[float, SceneEntry] = {}
    for scene in scenes:
        try:
            key = float(scene.scene_number)
        except (TypeError, ValueError):
            raise ValidationError(
                f"scene_number must be numeric, got {scene.scene_number!r}",
                details={"field": "scene_number"},
            )
        if key != key:  # NaN
            raise ValidationError("scene_number must be numeric, got NaN", details={"field": "scene_number"})
        if key in seen:
            logger.warning("Duplicate scene_number %s, keeping the first entry", scene.scene_number)
            continue
        seen[key] = scene

    if not seen:
        raise ValidationError("At least one scene video is required", details={"field": "videos"})

    return [seen[key] for key in sorted(seen)]


def _suffix_for(url: str, default: str) -> str:
    suffix = PurePosixPath(urlparse(url).path).suffix.lower()
    if suffix and len(suffix) <= 5 and suffix[1:].isalnum():
        return suffix
    return default


class JobOrchestrator:
    """Runs the single, stitch and image-overlay job variants."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        fetcher: AssetFetcher | None = None,
        probe: MediaProbe | None = None,
        executor: TransformExecutor | None = None,
        store: ArtifactStore | None = None,
        registry: JobRegistry | None = None,
    ):
        self.settings = settings or get_settings()
        self.fetcher = fetcher or AssetFetcher(self.settings)
        self.probe = probe or MediaProbe(self.settings)
        self.executor = executor or TransformExecutor(self.settings)
        self.store = store or ArtifactStore(self.settings)
        self.registry = registry or JobRegistry(self.settings.job_retention_seconds)
        self.profile = EncodingProfile(
            video_codec=self.settings.video_codec,
            crf=self.settings.video_crf,
            preset=self.settings.video_preset,
            audio_codec=self.settings.audio_codec,
            audio_bitrate=self.settings.audio_bitrate,
        )

    # ------------------------------------------------------------------
    # Lifecycle helpers
    # ------------------------------------------------------------------

    def create_job(self, variant: JobVariant) -> Job:
        job = Job(variant=variant)
        self.registry.register(job)
        logger.info("[JOB %s] created (%s)", job.id, variant.value)
        return job

    def workspace_path(self, job_id: str) -> Path:
        return Path(self.settings.temp_root) / job_id

    @asynccontextmanager
    async def job_workspace(self, job: Job) -> AsyncIterator[Path]:
        """Provide the job's working directory and always remove it afterwards."""
        path = self.workspace_path(job.id)
        try:
            path.mkdir(parents=True, exist_ok=False)
        except OSError as e:
            raise FilesystemError(f"Could not create working directory {path}: {e}") from e
        job.working_dir = path

        try:
            yield path
        finally:
            self._remove_workspace(job, path)

    def _remove_workspace(self, job: Job, path: Path) -> None:
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            # Never replaces the job outcome.
            logger.warning("[JOB %s] failed to remove working directory %s: %s", job.id, path, e)
        else:
            logger.info("[JOB %s] removed working directory", job.id)

    def _advance(self, job: Job, status: JobStatus) -> None:
        job.transition(status)
        self.registry.update(job)
        logger.info("[JOB %s] %s", job.id, status.value)

    def _fail(self, job: Job, error: Exception) -> None:
        if job.status.is_terminal:
            return
        job.fail(str(error))
        self.registry.update(job)
        logger.error("[JOB %s] failed: %s", job.id, error)

    def overlay_settings(self, options: OverlayOptions | None) -> OverlaySettings:
        options = options or OverlayOptions()
        return OverlaySettings(
            position=options.position,
            width=options.size or self.settings.default_overlay_size,
            margin=self.settings.default_overlay_margin if options.margin is None else options.margin,
        )

    async def _fetch(self, kind: AssetKind, url: str, dest: Path) -> Asset:
        await self.fetcher.fetch(url, dest)
        return Asset(kind=kind, source_url=url, local_path=dest)

    async def _render_to_artifact(
        self,
        graph: filter_graph.FilterGraphSpec,
        inputs: list[Path],
        final_path: Path,
    ) -> Path:
        """Run the last stage into a scratch file next to the artifact."""
        partial = self.store.partial_path(final_path)
        try:
            await self.executor.run(graph, inputs, partial)
        except Exception:
            self.store.discard(partial)
            raise
        return partial

    def _publish(self, job: Job, partial: Path, final_path: Path) -> Path:
        try:
            artifact = self.store.publish(partial, final_path)
        finally:
            self.store.discard(partial)
        job.artifact_path = artifact
        return artifact

    async def _finalize_video(self, job: Job, partial: Path) -> tuple[Path, float]:
        """Probe the rendered video, then publish it.

        The returned duration is the output's own length, which the
        shortest policy can make shorter than the source video.
        """
        try:
            output_duration = await self.probe.probe_duration(partial)
        except Exception:
            self.store.discard(partial)
            raise
        artifact = self._publish(job, partial, self.store.video_path(job.id))
        logger.info("[JOB %s] output duration %.3fs", job.id, output_duration)
        return artifact, output_duration

    # ------------------------------------------------------------------
    # Shared audio stages
    # ------------------------------------------------------------------

    async def _trim_music(self, job: Job, music: Asset, duration: float, workdir: Path) -> Path:
        trimmed = workdir / "audio_trimmed.m4a"
        await self.executor.run(filter_graph.trim(duration, self.profile), [music.local_path], trimmed)
        logger.info("[JOB %s] trimmed music to %.3fs", job.id, duration)
        return trimmed

    async def _compose(
        self,
        job: Job,
        video: Path,
        audio: Path,
        overlay: Asset | None,
        overlay_options: OverlayOptions | None,
    ) -> Path:
        final_path = self.store.video_path(job.id)
        inputs = [video, audio]
        settings = None
        if overlay is not None:
            settings = self.overlay_settings(overlay_options)
            inputs.append(overlay.local_path)
        graph = filter_graph.compose_video(settings, self.profile)
        return await self._render_to_artifact(graph, inputs, final_path)

    # ------------------------------------------------------------------
    # Variants
    # ------------------------------------------------------------------

    async def run_single(
        self,
        job: Job,
        video_url: str,
        music_url: str,
        overlay_url: str | None = None,
        overlay_options: OverlayOptions | None = None,
    ) -> VideoJobResult:
        """One video plus music, with an optional overlay image."""
        try:
            async with self.job_workspace(job) as workdir:
                self._advance(job, JobStatus.FETCHING)
                video = await self._fetch(AssetKind.VIDEO, video_url, workdir / "input_video.mp4")
                music = await self._fetch(
                    AssetKind.AUDIO, music_url, workdir / f"audio{_suffix_for(music_url, '.mp3')}"
                )
                overlay = None
                if overlay_url:
                    overlay = await self._fetch(
                        AssetKind.OVERLAY_IMAGE, overlay_url, workdir / f"overlay{_suffix_for(overlay_url, '.png')}"
                    )

                self._advance(job, JobStatus.PROBING)
                duration = await self.probe.probe_duration(video.local_path)

                self._advance(job, JobStatus.TRANSFORMING)
                trimmed = await self._trim_music(job, music, duration, workdir)
                partial = await self._compose(job, video.local_path, trimmed, overlay, overlay_options)

                self._advance(job, JobStatus.FINALIZING)
                artifact, output_duration = await self._finalize_video(job, partial)
                result = VideoJobResult(
                    job=job,
                    artifact=artifact,
                    duration=output_duration,
                    file_size=artifact.stat().st_size,
                    overlay_applied=overlay is not None,
                )
        except Exception as e:
            self._fail(job, e)
            raise

        self._advance(job, JobStatus.COMPLETED)
        return result

    async def run_stitch(
        self,
        job: Job,
        scenes: Iterable[SceneEntry],
        music_url: str,
        overlay_url: str | None = None,
        overlay_options: OverlayOptions | None = None,
    ) -> VideoJobResult:
        """Concatenate scene clips in scene order, then add music and overlay."""
        try:
            ordered = order_scenes(scenes)
            async with self.job_workspace(job) as workdir:
                self._advance(job, JobStatus.FETCHING)
                music = await self._fetch(
                    AssetKind.AUDIO, music_url, workdir / f"audio{_suffix_for(music_url, '.mp3')}"
                )
                overlay = None
                if overlay_url:
                    overlay = await self._fetch(
                        AssetKind.OVERLAY_IMAGE, overlay_url, workdir / f"overlay{_suffix_for(overlay_url, '.png')}"
                    )

                # One at a time, in scene order.
                clips: list[Path] = []
                for position, scene in enumerate(ordered):
                    dest = workdir / f"scene_{position:03d}{_suffix_for(scene.video_url, '.mp4')}"
                    clips.append((await self._fetch(AssetKind.VIDEO, scene.video_url, dest)).local_path)

                self._advance(job, JobStatus.TRANSFORMING)
                stitched = workdir / "stitched.mp4"
                await self.executor.run(filter_graph.concat(len(clips), self.profile), clips, stitched)
                logger.info("[JOB %s] stitched %d scenes", job.id, len(clips))

                self._advance(job, JobStatus.PROBING)
                duration = await self.probe.probe_duration(stitched)

                self._advance(job, JobStatus.TRANSFORMING)
                trimmed = await self._trim_music(job, music, duration, workdir)
                partial = await self._compose(job, stitched, trimmed, overlay, overlay_options)

                self._advance(job, JobStatus.FINALIZING)
                artifact, output_duration = await self._finalize_video(job, partial)
                result = VideoJobResult(
                    job=job,
                    artifact=artifact,
                    duration=output_duration,
                    file_size=artifact.stat().st_size,
                    overlay_applied=overlay is not None,
                    scene_order=[scene.scene_number for scene in ordered],
                )
        except Exception as e:
            self._fail(job, e)
            raise

        self._advance(job, JobStatus.COMPLETED)
        return result

    async def run_image_overlay(
        self,
        job: Job,
        base_url: str,
        overlay_url: str,
        overlay_options: OverlayOptions | None = None,
    ) -> ImageJobResult:
        """Composite an overlay onto a still image.

        If the engine fails, the base image is published unmodified and the
        result reports ``overlay_applied=False``.
        """
        try:
            async with self.job_workspace(job) as workdir:
                self._advance(job, JobStatus.FETCHING)
                base = await self._fetch(
                    AssetKind.BASE_IMAGE, base_url, workdir / f"base_image{_suffix_for(base_url, '.png')}"
                )
                overlay = await self._fetch(
                    AssetKind.OVERLAY_IMAGE, overlay_url, workdir / f"overlay{_suffix_for(overlay_url, '.png')}"
                )

                self._advance(job, JobStatus.TRANSFORMING)
                final_path = self.store.image_path(job.id)
                graph = filter_graph.overlay_image(self.overlay_settings(overlay_options))
                overlay_applied = True
                try:
                    partial = await self._render_to_artifact(
                        graph, [base.local_path, overlay.local_path], final_path
                    )
                except TransformError as e:
                    logger.warning("[JOB %s] overlay failed, returning base image: %s", job.id, e)
                    overlay_applied = False
                    partial = self._copy_base_image(base.local_path, self.store.partial_path(final_path))

                self._advance(job, JobStatus.FINALIZING)
                artifact = self._publish(job, partial, final_path)
                width, height = self._image_size(artifact)
                result = ImageJobResult(
                    job=job,
                    artifact=artifact,
                    file_size=artifact.stat().st_size,
                    width=width,
                    height=height,
                    overlay_applied=overlay_applied,
                )
        except Exception as e:
            self._fail(job, e)
            raise

        self._advance(job, JobStatus.COMPLETED)
        return result

    def _copy_base_image(self, source: Path, dest: Path) -> Path:
        """Write the base image as PNG (artifacts are always .png)."""
        try:
            with Image.open(source) as image:
                if image.format == "PNG":
                    shutil.copyfile(source, dest)
                else:
                    image.save(dest, "PNG")
        except OSError as e:
            self.store.discard(dest)
            raise FilesystemError(f"Could not copy base image {source}: {e}") from e
        return dest

    def _image_size(self, path: Path) -> tuple[int | None, int | None]:
        try:
            with Image.open(path) as image:
                return image.size
        except OSError as e:
            logger.warning("Could not read image size of %s: %s", path, e)
            return None, None
