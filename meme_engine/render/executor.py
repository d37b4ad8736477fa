"""Runs filter graphs through the FFmpeg binary."""

import asyncio
import logging
from pathlib import Path
from typing import Sequence

from meme_engine.config import Settings, get_settings
from meme_engine.exceptions import TransformError
from meme_engine.render.filter_graph import FilterGraphSpec, FilterNode

logger = logging.getLogger(__name__)

STDERR_TAIL_CHARS = 2000


def _format_value(value: object) -> str:
    if isinstance(value, float):
        text = f"{value:.6f}".rstrip("0").rstrip(".")
        return text or "0"
    return str(value)


def serialize_node(node: FilterNode) -> str:
    pads_in = "".join(f"[{pad}]" for pad in node.inputs)
    args = ":".join(f"{key}={_format_value(value)}" for key, value in node.args())
    body = f"{node.op}={args}" if args else node.op
    return f"{pads_in}{body}[{node.output}]"


def serialize_filter_complex(graph: FilterGraphSpec) -> str:
    """Render the graph's nodes in FFmpeg ``-filter_complex`` syntax."""
    return ";".join(serialize_node(node) for node in graph.nodes)


def build_command(
    graph: FilterGraphSpec,
    inputs: Sequence[str | Path],
    output: str | Path,
    ffmpeg_path: str = "ffmpeg",
) -> list[str]:
    """Build the full ``ffmpeg`` argument vector for a graph."""
    if len(inputs) != graph.input_count:
        raise ValueError(f"Graph expects {graph.input_count} inputs, got {len(inputs)}")

    cmd = [ffmpeg_path, "-y", "-hide_banner"]
    for input_path in inputs:
        cmd.extend(["-i", str(input_path)])

    if graph.nodes:
        cmd.extend(["-filter_complex", serialize_filter_complex(graph)])

    for mapping in graph.maps:
        cmd.extend(["-map", f"[{mapping.source}]" if mapping.from_pad else mapping.source])

    for directive in graph.codecs:
        cmd.extend([f"-c:{directive.stream}", directive.codec])
        for flag, value in directive.options:
            cmd.extend([f"-{flag}", value])

    if graph.frames is not None:
        cmd.extend(["-frames:v", str(graph.frames)])
    if graph.shortest:
        cmd.append("-shortest")

    cmd.append(str(output))
    return cmd


class TransformExecutor:
    """Hands filter graphs to FFmpeg and waits for the result."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    async def run(
        self,
        graph: FilterGraphSpec,
        inputs: Sequence[str | Path],
        output: str | Path,
    ) -> Path:
        """Execute ``graph`` over ``inputs`` writing ``output``.

        Raises:
            TransformError: If FFmpeg is missing, exits non-zero or leaves
                no output behind.
        """
        cmd = build_command(graph, inputs, output, self.settings.ffmpeg_path)
        logger.info("FFmpeg cmd: %s", " ".join(cmd))

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise TransformError(f"FFmpeg binary not found: {self.settings.ffmpeg_path}") from e

        _, stderr = await process.communicate()
        stderr_text = stderr.decode(errors="replace") if stderr else ""

        if process.returncode != 0:
            tail = stderr_text[-STDERR_TAIL_CHARS:]
            logger.error("FFmpeg failed (rc=%d). stderr (last %d): %s", process.returncode, STDERR_TAIL_CHARS, tail)
            raise TransformError(
                f"FFmpeg exited with code {process.returncode}",
                returncode=process.returncode,
                stderr=tail,
            )

        output_path = Path(output)
        if not output_path.exists() or output_path.stat().st_size == 0:
            raise TransformError(
                f"FFmpeg produced no output at {output_path}",
                returncode=process.returncode,
                stderr=stderr_text[-STDERR_TAIL_CHARS:],
            )

        return output_path
