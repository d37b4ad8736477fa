from meme_engine.render.executor import TransformExecutor, build_command, serialize_filter_complex
from meme_engine.render.filter_graph import (
    EncodingProfile,
    FilterGraphSpec,
    OverlayPlacement,
    OverlaySettings,
    compose_video,
    concat,
    overlay_image,
    overlay_position,
    trim,
)

__all__ = [
    "EncodingProfile",
    "FilterGraphSpec",
    "OverlayPlacement",
    "OverlaySettings",
    "TransformExecutor",
    "build_command",
    "compose_video",
    "concat",
    "overlay_image",
    "overlay_position",
    "serialize_filter_complex",
    "trim",
]
