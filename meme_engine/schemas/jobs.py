from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

OverlayPosition = Literal["top-left", "top-right", "bottom-left", "bottom-right"]


class OverlayOptions(BaseModel):
    position: OverlayPosition = "bottom-right"
    size: int | None = Field(default=None, gt=0)  # overlay width in pixels, height keeps aspect
    margin: int | None = Field(default=None, ge=0)  # pixels from the frame edge


class AddOverlayRequest(BaseModel):
    final_stitch_video: str = Field(min_length=1)
    final_music_url: str = Field(min_length=1)
    overlay_image_url: str | None = None
    overlay_options: OverlayOptions | None = None


class AddAudioRequest(BaseModel):
    video_url: str = Field(min_length=1)
    music_url: str = Field(min_length=1)


class AddImageOverlayRequest(BaseModel):
    final_image_url: str = Field(min_length=1)
    overlay_image_url: str = Field(min_length=1)
    overlay_options: OverlayOptions | None = None


class SceneVideo(BaseModel):
    scene_number: int | float
    final_video_url: str = Field(
        min_length=1,
        validation_alias=AliasChoices("final_video_url", "video_url"),
    )


class StitchVideosRequest(BaseModel):
    videos: list[SceneVideo] = Field(min_length=1)
    mv_audio: str = Field(min_length=1, validation_alias=AliasChoices("mv_audio", "music_url"))
    overlay_image_url: str | None = None
    overlay_options: OverlayOptions | None = None


# =============================================================================
# Responses (camelCase on the wire)
# =============================================================================


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VideoStats(CamelModel):
    duration: float
    file_size: int
    file_size_mb: str = Field(alias="fileSizeMB")


class ImageStats(CamelModel):
    width: int | None = None
    height: int | None = None
    file_size: int
    file_size_mb: str = Field(alias="fileSizeMB")


class VideoJobResponse(CamelModel):
    success: bool = True
    job_id: str
    download_url: str
    final_video_url: str
    video_stats: VideoStats
    overlay_applied: bool
    message: str


class StitchVideosResponse(VideoJobResponse):
    processed_videos: int
    scene_order: list[int | float]


class ImageJobResponse(CamelModel):
    success: bool = True
    job_id: str
    download_url: str
    final_image_url: str
    image_stats: ImageStats
    overlay_applied: bool
    message: str


class JobStatusResponse(CamelModel):
    job_id: str
    status: Literal["processing", "completed", "failed"]
    completed: bool
    variant: str | None = None
    stage: str | None = None
    error: str | None = None
    download_url: str | None = None
    file_size: int | None = None
    file_size_mb: str | None = Field(default=None, alias="fileSizeMB")


class ErrorInfo(BaseModel):
    code: str
    message: str
    retryable: bool = False
    suggested_fix: str | None = None
    details: Any | None = None
