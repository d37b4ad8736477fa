"""Job endpoints: each request runs one job to completion before responding."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from meme_engine.api.deps import Orchestrator, absolute_url
from meme_engine.exceptions import MemeEngineError
from meme_engine.models.job import Job, JobVariant
from meme_engine.schemas.jobs import (
    AddAudioRequest,
    AddImageOverlayRequest,
    AddOverlayRequest,
    ImageJobResponse,
    ImageStats,
    StitchVideosRequest,
    StitchVideosResponse,
    VideoJobResponse,
    VideoStats,
)
from meme_engine.services.artifact_store import format_size_mb
from meme_engine.services.job_orchestrator import SceneEntry, VideoJobResult, order_scenes

router = APIRouter()
logger = logging.getLogger(__name__)


def _job_failed(job: Job, exc: Exception) -> JSONResponse:
    status_code = exc.status_code if isinstance(exc, MemeEngineError) else 500
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": str(exc), "jobId": job.id},
    )


def _video_fields(request: Request, result: VideoJobResult) -> dict:
    job_id = result.job.id
    return {
        "job_id": job_id,
        "download_url": f"/download/{job_id}",
        "final_video_url": absolute_url(request, f"/download/{job_id}"),
        "video_stats": VideoStats(
            duration=round(result.duration, 3),
            file_size=result.file_size,
            file_size_mb=format_size_mb(result.file_size),
        ),
        "overlay_applied": result.overlay_applied,
    }


@router.post("/add-overlay", response_model=VideoJobResponse)
async def add_overlay(body: AddOverlayRequest, request: Request, orchestrator: Orchestrator):
    """Replace a video's audio with a music track and optionally add an overlay."""
    job = orchestrator.create_job(JobVariant.SINGLE)
    try:
        result = await orchestrator.run_single(
            job,
            body.final_stitch_video,
            body.final_music_url,
            overlay_url=body.overlay_image_url,
            overlay_options=body.overlay_options,
        )
    except Exception as e:
        return _job_failed(job, e)

    message = "Music and overlay added to video successfully" if result.overlay_applied else "Music added to video successfully"
    return VideoJobResponse(**_video_fields(request, result), message=message)


@router.post("/add-audio", response_model=VideoJobResponse)
async def add_audio(body: AddAudioRequest, request: Request, orchestrator: Orchestrator):
    """Replace a video's audio with a music track."""
    job = orchestrator.create_job(JobVariant.SINGLE)
    try:
        result = await orchestrator.run_single(job, body.video_url, body.music_url)
    except Exception as e:
        return _job_failed(job, e)

    return VideoJobResponse(**_video_fields(request, result), message="Music added to video successfully")


@router.post("/stitch-videos", response_model=StitchVideosResponse)
async def stitch_videos(body: StitchVideosRequest, request: Request, orchestrator: Orchestrator):
    """Stitch scene clips in scene order and lay a music track under them."""
    # Validated before the job exists so a bad request never creates a workspace.
    scenes = order_scenes(
        SceneEntry(scene_number=video.scene_number, video_url=video.final_video_url) for video in body.videos
    )

    job = orchestrator.create_job(JobVariant.STITCH)
    try:
        result = await orchestrator.run_stitch(
            job,
            scenes,
            body.mv_audio,
            overlay_url=body.overlay_image_url,
            overlay_options=body.overlay_options,
        )
    except Exception as e:
        return _job_failed(job, e)

    return StitchVideosResponse(
        **_video_fields(request, result),
        processed_videos=result.processed_videos,
        scene_order=result.scene_order,
        message="Videos stitched with music successfully",
    )


@router.post("/add-image-overlay", response_model=ImageJobResponse)
async def add_image_overlay(body: AddImageOverlayRequest, request: Request, orchestrator: Orchestrator):
    """Composite an overlay image onto a base image."""
    job = orchestrator.create_job(JobVariant.IMAGE_OVERLAY)
    try:
        result = await orchestrator.run_image_overlay(
            job,
            body.final_image_url,
            body.overlay_image_url,
            overlay_options=body.overlay_options,
        )
    except Exception as e:
        return _job_failed(job, e)

    return ImageJobResponse(
        job_id=job.id,
        download_url=f"/download-image/{job.id}",
        final_image_url=absolute_url(request, f"/download-image/{job.id}"),
        image_stats=ImageStats(
            width=result.width,
            height=result.height,
            file_size=result.file_size,
            file_size_mb=format_size_mb(result.file_size),
        ),
        overlay_applied=result.overlay_applied,
        message="Overlay added to image successfully" if result.overlay_applied else "Overlay failed, original image returned",
    )
