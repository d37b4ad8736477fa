"""Declarative FFmpeg filter graphs.

A ``FilterGraphSpec`` is an immutable value: an ordered tuple of filter
nodes wired together by pad labels, the output mapping directives and the
per-stream codec directives. Builders in this module are pure; nothing
here touches the filesystem or spawns a process. The executor turns a graph
into an ``ffmpeg`` command line.

Input pads use FFmpeg stream specifiers (``0:v``, ``1:a``); node outputs
use plain labels (``outv``, ``music``).
"""

from dataclasses import dataclass
from typing import ClassVar, Literal

OverlayPosition = Literal["top-left", "top-right", "bottom-left", "bottom-right"]

DEFAULT_POSITION: OverlayPosition = "bottom-right"


# ============================================================================
# Nodes
# ============================================================================


@dataclass(frozen=True)
class FilterNode:
    """A single processing node: named input pads in, one labeled pad out."""

    inputs: tuple[str, ...]
    output: str

    op: ClassVar[str] = ""

    def args(self) -> list[tuple[str, object]]:
        return []


@dataclass(frozen=True)
class Scale(FilterNode):
    width: int = -1
    height: int = -1  # -1 keeps the aspect ratio

    op: ClassVar[str] = "scale"

    def args(self) -> list[tuple[str, object]]:
        return [("w", self.width), ("h", self.height)]


@dataclass(frozen=True)
class Overlay(FilterNode):
    x: str = "0"
    y: str = "0"

    op: ClassVar[str] = "overlay"

    def args(self) -> list[tuple[str, object]]:
        return [("x", self.x), ("y", self.y)]


@dataclass(frozen=True)
class Concat(FilterNode):
    segments: int = 1
    video_streams: int = 1
    audio_streams: int = 0

    op: ClassVar[str] = "concat"

    def args(self) -> list[tuple[str, object]]:
        return [("n", self.segments), ("v", self.video_streams), ("a", self.audio_streams)]


@dataclass(frozen=True)
class Volume(FilterNode):
    level: float = 1.0

    op: ClassVar[str] = "volume"

    def args(self) -> list[tuple[str, object]]:
        return [("volume", self.level)]


@dataclass(frozen=True)
class Format(FilterNode):
    pix_fmt: str = "yuv420p"

    op: ClassVar[str] = "format"

    def args(self) -> list[tuple[str, object]]:
        return [("pix_fmts", self.pix_fmt)]


@dataclass(frozen=True)
class ATrim(FilterNode):
    start: float = 0.0
    duration: float | None = None

    op: ClassVar[str] = "atrim"

    def args(self) -> list[tuple[str, object]]:
        args: list[tuple[str, object]] = [("start", self.start)]
        if self.duration is not None:
            args.append(("duration", self.duration))
        return args


# ============================================================================
# Output directives
# ============================================================================


@dataclass(frozen=True)
class OutputMap:
    """Selects what goes into the output file.

    ``source`` is either a node output label (``from_pad=True``) or an input
    stream specifier such as ``0:v:0`` that is mapped without filtering.
    """

    source: str
    from_pad: bool = True


def map_pad(label: str) -> OutputMap:
    return OutputMap(source=label, from_pad=True)


def map_stream(specifier: str) -> OutputMap:
    return OutputMap(source=specifier, from_pad=False)


@dataclass(frozen=True)
class CodecDirective:
    """Codec for one stream type of the output (``v`` or ``a``)."""

    stream: Literal["v", "a"]
    codec: str
    options: tuple[tuple[str, str], ...] = ()

    @property
    def is_copy(self) -> bool:
        return self.codec == "copy"


@dataclass(frozen=True)
class FilterGraphSpec:
    input_count: int
    nodes: tuple[FilterNode, ...]
    maps: tuple[OutputMap, ...]
    codecs: tuple[CodecDirective, ...] = ()
    shortest: bool = False
    frames: int | None = None

    def codec_for(self, stream: str) -> CodecDirective | None:
        for directive in self.codecs:
            if directive.stream == stream:
                return directive
        return None

    def node_for(self, label: str) -> FilterNode | None:
        """Return the node producing ``label``."""
        for node in self.nodes:
            if node.output == label:
                return node
        return None


# ============================================================================
# Builder inputs
# ============================================================================


@dataclass(frozen=True)
class EncodingProfile:
    """Codecs used whenever a stage has to re-encode."""

    video_codec: str = "libx264"
    crf: int = 23
    preset: str = "medium"
    audio_codec: str = "aac"
    audio_bitrate: str = "192k"

    def video_directive(self) -> CodecDirective:
        return CodecDirective(
            stream="v",
            codec=self.video_codec,
            options=(("crf", str(self.crf)), ("preset", self.preset)),
        )

    def audio_directive(self) -> CodecDirective:
        return CodecDirective(
            stream="a",
            codec=self.audio_codec,
            options=(("b:a", self.audio_bitrate),),
        )


@dataclass(frozen=True)
class OverlaySettings:
    position: OverlayPosition = DEFAULT_POSITION
    width: int = 150
    margin: int = 20


@dataclass(frozen=True)
class OverlayPlacement:
    """Overlay coordinates as FFmpeg expressions.

    ``W``/``H`` are the main frame size and ``w``/``h`` the overlay size
    after scaling.
    """

    x: str
    y: str


# ============================================================================
# Builders
# ============================================================================


def overlay_position(position: OverlayPosition = DEFAULT_POSITION, margin: int = 20) -> OverlayPlacement:
    """Placement of an overlay ``margin`` pixels from the requested corner."""
    if position == "top-left":
        return OverlayPlacement(x=f"{margin}", y=f"{margin}")
    if position == "top-right":
        return OverlayPlacement(x=f"W-w-{margin}", y=f"{margin}")
    if position == "bottom-left":
        return OverlayPlacement(x=f"{margin}", y=f"H-h-{margin}")
    if position == "bottom-right":
        return OverlayPlacement(x=f"W-w-{margin}", y=f"H-h-{margin}")
    raise ValueError(f"Unknown overlay position: {position}")


def trim(duration: float, profile: EncodingProfile = EncodingProfile()) -> FilterGraphSpec:
    """Cut a single audio input to ``[0, duration)``.

    A source shorter than ``duration`` is not padded; the output simply ends
    where the source ends.
    """
    if duration <= 0:
        raise ValueError(f"Trim duration must be positive, got {duration}")

    return FilterGraphSpec(
        input_count=1,
        nodes=(ATrim(inputs=("0:a",), output="trimmed", start=0.0, duration=duration),),
        maps=(map_pad("trimmed"),),
        codecs=(profile.audio_directive(),),
    )


def concat(video_count: int, profile: EncodingProfile = EncodingProfile()) -> FilterGraphSpec:
    """Join ``video_count`` inputs end to end, in input order, video only.

    The inputs must share codec parameters, resolution and frame rate; the
    engine reports mismatches when the graph is executed.
    """
    if video_count < 1:
        raise ValueError("Concatenation needs at least one input")

    node = Concat(
        inputs=tuple(f"{index}:v" for index in range(video_count)),
        output="outv",
        segments=video_count,
        video_streams=1,
        audio_streams=0,
    )
    return FilterGraphSpec(
        input_count=video_count,
        nodes=(node,),
        maps=(map_pad("outv"),),
        codecs=(profile.video_directive(),),
    )


def compose_video(
    overlay: OverlaySettings | None = None,
    profile: EncodingProfile = EncodingProfile(),
) -> FilterGraphSpec:
    """Replace a video's audio with a music track, optionally adding an overlay.

    Inputs: ``0`` video, ``1`` audio, ``2`` overlay image (only when
    ``overlay`` is given). Audio embedded in the video is never mapped.
    Output length follows the shorter of video and audio.
    """
    music = Volume(inputs=("1:a",), output="music", level=1.0)

    if overlay is None:
        return FilterGraphSpec(
            input_count=2,
            nodes=(music,),
            maps=(map_stream("0:v:0"), map_pad("music")),
            codecs=(CodecDirective(stream="v", codec="copy"), profile.audio_directive()),
            shortest=True,
        )

    placement = overlay_position(overlay.position, overlay.margin)
    nodes = (
        Scale(inputs=("2:v",), output="logo", width=overlay.width, height=-1),
        Overlay(inputs=("0:v", "logo"), output="overlaid", x=placement.x, y=placement.y),
        Format(inputs=("overlaid",), output="outv", pix_fmt="yuv420p"),
        music,
    )
    return FilterGraphSpec(
        input_count=3,
        nodes=nodes,
        maps=(map_pad("outv"), map_pad("music")),
        codecs=(profile.video_directive(), profile.audio_directive()),
        shortest=True,
    )


def overlay_image(overlay: OverlaySettings = OverlaySettings()) -> FilterGraphSpec:
    """Composite an overlay onto a still image, emitting exactly one frame.

    Inputs: ``0`` base image, ``1`` overlay image.
    """
    placement = overlay_position(overlay.position, overlay.margin)
    nodes = (
        Scale(inputs=("1:v",), output="logo", width=overlay.width, height=-1),
        Overlay(inputs=("0:v", "logo"), output="outv", x=placement.x, y=placement.y),
    )
    return FilterGraphSpec(
        input_count=2,
        nodes=nodes,
        maps=(map_pad("outv"),),
        frames=1,
    )
