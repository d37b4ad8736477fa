"""Artifact delivery: downloads, range streaming and status polling."""

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse, StreamingResponse

from meme_engine.api.deps import Registry, Store
from meme_engine.models.job import JobStatus, JobVariant
from meme_engine.schemas.jobs import JobStatusResponse
from meme_engine.services.artifact_store import (
    IMAGE_MEDIA_TYPE,
    VIDEO_MEDIA_TYPE,
    format_size_mb,
    parse_range,
)

router = APIRouter()


@router.get("/download/{job_id}")
async def download_video(job_id: str, store: Store):
    path = store.require_video(job_id)
    return FileResponse(path=str(path), media_type=VIDEO_MEDIA_TYPE, filename=path.name)


@router.get("/download-image/{job_id}")
async def download_image(job_id: str, store: Store):
    path = store.require_image(job_id)
    return FileResponse(path=str(path), media_type=IMAGE_MEDIA_TYPE, filename=path.name)


@router.get("/serve-image/{job_id}")
async def serve_image(job_id: str, store: Store):
    """Serve the image inline for direct embedding."""
    path = store.require_image(job_id)
    return FileResponse(path=str(path), media_type=IMAGE_MEDIA_TYPE)


@router.get("/stream/{job_id}")
async def stream_video(job_id: str, request: Request, store: Store):
    """Serve the video honoring a single ``Range: bytes=`` request."""
    path = store.require_video(job_id)
    size = path.stat().st_size
    byte_range = parse_range(request.headers.get("range"), size)

    if byte_range is None:
        return StreamingResponse(
            store.iter_range(path),
            media_type=VIDEO_MEDIA_TYPE,
            headers={"Accept-Ranges": "bytes", "Content-Length": str(size)},
        )

    return StreamingResponse(
        store.iter_range(path, byte_range),
        status_code=206,
        media_type=VIDEO_MEDIA_TYPE,
        headers={
            "Accept-Ranges": "bytes",
            "Content-Range": byte_range.content_range(size),
            "Content-Length": str(byte_range.length),
        },
    )


@router.get(
    "/api/status/{job_id}",
    response_model=JobStatusResponse,
    response_model_exclude_none=True,
)
async def job_status(job_id: str, store: Store, registry: Registry) -> JobStatusResponse:
    """Report job progress.

    Jobs known to this process report their stage. Unknown ids fall back to
    looking for the artifact; an id with no artifact reads as processing.
    """
    job = registry.get(job_id)
    if job is not None:
        if job.status is JobStatus.FAILED:
            return JobStatusResponse(
                job_id=job_id,
                status="failed",
                completed=False,
                variant=job.variant.value,
                stage=job.status.value,
                error=job.error,
            )
        if job.status is not JobStatus.COMPLETED:
            return JobStatusResponse(
                job_id=job_id,
                status="processing",
                completed=False,
                variant=job.variant.value,
                stage=job.status.value,
            )
        is_image = job.variant is JobVariant.IMAGE_OVERLAY
        path = store.find_image(job_id) if is_image else store.find_video(job_id)
        if path is not None:
            return _completed(job_id, path.stat().st_size, is_image, variant=job.variant.value)

    video = store.find_video(job_id)
    if video is not None:
        return _completed(job_id, video.stat().st_size, is_image=False)
    image = store.find_image(job_id)
    if image is not None:
        return _completed(job_id, image.stat().st_size, is_image=True)

    return JobStatusResponse(job_id=job_id, status="processing", completed=False)


def _completed(job_id: str, size: int, is_image: bool, variant: str | None = None) -> JobStatusResponse:
    return JobStatusResponse(
        job_id=job_id,
        status="completed",
        completed=True,
        variant=variant,
        stage=JobStatus.COMPLETED.value,
        download_url=f"/download-image/{job_id}" if is_image else f"/download/{job_id}",
        file_size=size,
        file_size_mb=format_size_mb(size),
    )
