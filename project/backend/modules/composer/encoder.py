"""
Scene encoding for composer module.

Runs FFmpeg over the composition filter graph and produces the final
H.264/AAC MP4, reporting encode progress as it goes.
"""
import asyncio
from pathlib import Path
from typing import Callable, List, Optional

from shared.errors import CompositionError
from shared.logging import get_logger
from .config import (
    FFMPEG_BINARY,
    FFMPEG_CRF,
    FFMPEG_PRESET,
    OUTPUT_AUDIO_BITRATE,
    OUTPUT_AUDIO_CODEC,
    OUTPUT_VIDEO_CODEC,
)
from .filter_graph import FilterGraph
from .utils import stderr_tail

logger = get_logger("composer.encoder")

# -progress reports out_time in microseconds under both keys
PROGRESS_TIME_KEYS = ("out_time_us", "out_time_ms")


def build_encode_command(graph: FilterGraph, output_path: Path) -> List[str]:
    """
    Build the FFmpeg command line for a composition graph.

    Args:
        graph: Composition graph (inputs are passed in graph order)
        output_path: Destination MP4

    Returns:
        FFmpeg command as list of strings
    """
    cmd = [FFMPEG_BINARY, "-hide_banner", "-nostats", "-y"]
    for input_path in graph.inputs:
        cmd += ["-i", str(input_path)]

    cmd += [
        "-filter_complex", graph.render(),
        "-map", f"[{graph.video_output}]",
        "-map", f"[{graph.audio_output}]",
        "-c:v", OUTPUT_VIDEO_CODEC,          # H.264 codec
        "-preset", FFMPEG_PRESET,            # Encoding preset
        "-crf", str(FFMPEG_CRF),
        "-c:a", OUTPUT_AUDIO_CODEC,          # AAC codec
        "-b:a", OUTPUT_AUDIO_BITRATE,        # Audio bitrate
        "-movflags", "+faststart",           # Playback can start before download finishes
        "-progress", "pipe:1",
        str(output_path)
    ]
    return cmd


def parse_progress_line(line: str, expected_duration_ms: float) -> Optional[float]:
    """
    Turn one `-progress` line into a raw encode percentage.

    Args:
        line: A "key=value" line from FFmpeg's progress output
        expected_duration_ms: Expected output duration

    Returns:
        Percentage (may exceed 100), or None if the line carries no position
    """
    key, _, value = line.strip().partition("=")
    if key not in PROGRESS_TIME_KEYS or expected_duration_ms <= 0:
        return None
    try:
        out_time_us = int(value)
    except ValueError:
        return None  # "N/A" before the first frame
    return out_time_us / 1000 / expected_duration_ms * 100


def scale_progress(percent: float, low: int, high: int) -> int:
    """
    Clamp a raw engine percentage to 0-100 and map it into [low, high].

    FFmpeg's position can run past the expected duration (audio padding,
    muxing), so values over 100 are clamped rather than overflowing the band.
    """
    bounded = min(100.0, max(0.0, percent))
    return low + round(bounded / 100 * (high - low))


async def encode_scene(
    graph: FilterGraph,
    output_path: Path,
    job_id: str,
    on_progress: Optional[Callable[[float], None]] = None
) -> Path:
    """
    Encode the composed scene.

    Args:
        graph: Composition graph
        output_path: Destination MP4
        job_id: Job ID for logging
        on_progress: Called with the raw encode percentage as FFmpeg advances

    Returns:
        output_path

    Raises:
        CompositionError: If FFmpeg cannot start, exits non-zero or writes nothing
    """
    cmd = build_encode_command(graph, output_path)

    logger.info(
        "Starting scene encode",
        extra={"job_id": job_id, "command": cmd, "expected_duration_ms": graph.expected_duration_ms}
    )

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
    except OSError as e:
        raise CompositionError(f"Failed to start FFmpeg: {e}", job_id=job_id) from e

    stdout_lines: List[str] = []

    async def _read_progress() -> None:
        while True:
            raw = await process.stdout.readline()
            if not raw:
                break
            line = raw.decode(errors="replace")
            stdout_lines.append(line)
            percent = parse_progress_line(line, graph.expected_duration_ms)
            if percent is not None and on_progress:
                on_progress(percent)

    # Drain stderr alongside stdout so neither pipe fills up and blocks FFmpeg
    _, stderr = await asyncio.gather(_read_progress(), process.stderr.read())
    returncode = await process.wait()
    stderr_text = stderr.decode(errors="replace") if stderr else ""

    if returncode != 0:
        logger.error(
            f"FFmpeg encode failed with exit code {returncode}",
            extra={
                "job_id": job_id,
                "command": cmd,
                "stdout": "".join(stdout_lines),
                "stderr": stderr_text,
            }
        )
        raise CompositionError(
            f"FFmpeg exited with code {returncode}: {stderr_tail(stderr_text) or 'Unknown FFmpeg error'}",
            job_id=job_id
        )

    if not output_path.exists() or output_path.stat().st_size == 0:
        raise CompositionError("Composed video not created", job_id=job_id)

    logger.info(
        f"Scene encoded ({output_path.stat().st_size / 1024 / 1024:.2f} MB)",
        extra={"job_id": job_id, "size_mb": output_path.stat().st_size / 1024 / 1024}
    )

    return output_path
