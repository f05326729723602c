"""
Filter graph construction for composer module.

Turns a CompositionRequest into a typed filter graph: per-shot
trim/fade/silence branches, video and audio concatenation, and positioned
audio tracks mixed over the shot audio. The graph is rendered to FFmpeg's
-filter_complex syntax only as the last step, so everything here is pure and
testable without FFmpeg.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

from shared.errors import ValidationError
from shared.logging import get_logger
from shared.models.composition import (
    CompositionRequest,
    Shot,
    active_audio_tracks,
    sorted_shots,
)
from .config import (
    AUDIO_CHANNEL_LAYOUT,
    AUDIO_SAMPLE_FORMAT,
    AUDIO_SAMPLE_RATE,
    OUTPUT_PIXEL_FORMAT,
)

logger = get_logger("composer.filter_graph")

OptionValue = Union[str, int, float]

VIDEO_OUTPUT_LABEL = "outv"
AUDIO_OUTPUT_LABEL = "outa"
CONCAT_AUDIO_LABEL = "concat_audio"
MIXED_AUDIO_LABEL = "mixed_audio"


def format_number(value: float) -> str:
    """
    Render a number for a filter option without float noise.

    4.5 -> "4.5", 2000.0 -> "2000", 0.1 + 0.2 -> "0.3"
    """
    if isinstance(value, int):
        return str(value)
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def ms_to_seconds(value_ms: float) -> float:
    return value_ms / 1000


@dataclass(frozen=True)
class Filter:
    """
    One FFmpeg filter with its options.

    Options are (key, value) pairs; a key of None renders the value alone,
    as in setpts=PTS-STARTPTS.
    """
    name: str
    options: Tuple[Tuple[Optional[str], OptionValue], ...] = ()

    @classmethod
    def of(cls, name: str, *positional: OptionValue, **named: OptionValue) -> "Filter":
        options = tuple((None, value) for value in positional)
        options += tuple(named.items())
        return cls(name=name, options=options)

    def option(self, key: str) -> Optional[OptionValue]:
        for option_key, value in self.options:
            if option_key == key:
                return value
        return None

    def render(self) -> str:
        if not self.options:
            return self.name
        parts = []
        for key, value in self.options:
            text = format_number(value) if isinstance(value, (int, float)) else str(value)
            parts.append(text if key is None else f"{key}={text}")
        return f"{self.name}=" + ":".join(parts)


@dataclass(frozen=True)
class FilterStage:
    """A linear chain of filters between labelled input and output pads."""
    inputs: Tuple[str, ...]
    filters: Tuple[Filter, ...]
    outputs: Tuple[str, ...]

    def filter_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.filters)

    def find(self, name: str) -> Optional[Filter]:
        return next((f for f in self.filters if f.name == name), None)

    def render(self) -> str:
        inputs = "".join(f"[{label}]" for label in self.inputs)
        outputs = "".join(f"[{label}]" for label in self.outputs)
        chain = ",".join(f.render() for f in self.filters)
        return f"{inputs}{chain}{outputs}"


@dataclass(frozen=True)
class ShotTiming:
    """Durations resolved for one shot, in milliseconds."""
    shot_id: str
    stored_duration_ms: int
    actual_duration_ms: int
    effective_duration_ms: int
    needs_trim: bool
    fade_out_start_ms: Optional[int] = None

    @property
    def output_duration_ms(self) -> int:
        """Length of the shot on the output timeline (untrimmed shots play in full)."""
        return self.stored_duration_ms if self.needs_trim else self.actual_duration_ms


@dataclass(frozen=True)
class FilterGraph:
    """Complete composition graph plus the input files it reads."""
    inputs: Tuple[Path, ...]
    stages: Tuple[FilterStage, ...]
    video_output: str
    audio_output: str
    shot_timings: Tuple[ShotTiming, ...] = field(default_factory=tuple)
    expected_duration_ms: float = 0

    def stage_for(self, output_label: str) -> Optional[FilterStage]:
        return next((s for s in self.stages if output_label in s.outputs), None)

    def render(self) -> str:
        """Serialize to FFmpeg -filter_complex syntax."""
        return ";".join(stage.render() for stage in self.stages)


def resolve_shot_timing(shot: Shot, actual_duration_ms: Optional[int]) -> ShotTiming:
    """
    Reconcile a shot's declared duration with its probed duration.

    Trimmed shots trust the declared (stored) duration. Untrimmed shots use
    the shorter of declared and probed, so a fade-out never lands past the
    real end of a clip whose declared duration is optimistic. A missing or
    zero probe falls back to the declared duration.

    The effective duration only places the fade-out; branch lengths follow
    output_duration_ms.
    """
    stored = shot.stored_duration_ms
    actual = actual_duration_ms or shot.duration_ms
    effective = stored if shot.needs_trim else min(stored, actual)

    fade_out_start = None
    if (shot.fade_out_type or "none") != "none":
        fade_out_start = max(0, effective - shot.fade_duration_ms)

    return ShotTiming(
        shot_id=shot.id,
        stored_duration_ms=stored,
        actual_duration_ms=actual,
        effective_duration_ms=effective,
        needs_trim=shot.needs_trim,
        fade_out_start_ms=fade_out_start,
    )


def _fade_filter(direction: str, start_ms: float, shot: Shot, fade_type: str) -> Filter:
    options = [("t", direction), ("st", ms_to_seconds(start_ms)), ("d", ms_to_seconds(shot.fade_duration_ms))]
    if fade_type == "white":
        options.append(("c", "white"))
    return Filter(name="fade", options=tuple(options))


def build_shot_video_stage(index: int, shot: Shot, timing: ShotTiming) -> FilterStage:
    filters = []
    if timing.needs_trim:
        filters.append(Filter.of(
            "trim",
            start=ms_to_seconds(shot.trim_start_ms),
            duration=ms_to_seconds(timing.stored_duration_ms),
        ))
    filters.append(Filter.of("setpts", "PTS-STARTPTS"))
    filters.append(Filter.of("format", OUTPUT_PIXEL_FORMAT))

    fade_in_type = shot.fade_in_type or "none"
    if fade_in_type != "none":
        filters.append(_fade_filter("in", 0, shot, fade_in_type))

    fade_out_type = shot.fade_out_type or "none"
    if fade_out_type != "none":
        filters.append(_fade_filter("out", timing.fade_out_start_ms, shot, fade_out_type))

    return FilterStage(inputs=(f"{index}:v",), filters=tuple(filters), outputs=(f"v{index}",))


def build_shot_audio_stage(index: int, shot: Shot, timing: ShotTiming) -> FilterStage:
    # Match the video branch length so the two concats stay aligned
    audio_duration = ms_to_seconds(timing.output_duration_ms)

    if shot.audio_muted:
        return FilterStage(
            inputs=(),
            filters=(
                Filter.of("anullsrc", channel_layout=AUDIO_CHANNEL_LAYOUT, sample_rate=AUDIO_SAMPLE_RATE),
                Filter.of("atrim", duration=audio_duration),
            ),
            outputs=(f"a{index}",),
        )

    return FilterStage(
        inputs=(f"{index}:a",),
        filters=(
            Filter.of("atrim", start=ms_to_seconds(shot.trim_start_ms), duration=audio_duration),
            Filter.of("asetpts", "PTS-STARTPTS"),
            Filter.of(
                "aformat",
                sample_fmts=AUDIO_SAMPLE_FORMAT,
                sample_rates=AUDIO_SAMPLE_RATE,
                channel_layouts=AUDIO_CHANNEL_LAYOUT,
            ),
        ),
        outputs=(f"a{index}",),
    )


def build_filter_graph(
    request: CompositionRequest,
    shot_paths: Sequence[Path],
    track_paths: Sequence[Path],
    actual_durations_ms: Sequence[Optional[int]],
) -> FilterGraph:
    """
    Build the composition graph for a request.

    Args:
        request: Composition request
        shot_paths: Downloaded shot files, in timeline order (see sorted_shots)
        track_paths: Downloaded audio files for the non-muted tracks, in request order
        actual_durations_ms: Probed duration per shot path (None when unknown)

    Returns:
        FilterGraph whose inputs are the shot files followed by the track files

    Raises:
        ValidationError: If there are no shots or the inputs don't line up
    """
    shots = sorted_shots(request)
    tracks = active_audio_tracks(request)

    if not shots:
        raise ValidationError("Cannot build a filter graph without shots", job_id=request.job_id)
    if len(shot_paths) != len(shots) or len(actual_durations_ms) != len(shots):
        raise ValidationError(
            f"Expected {len(shots)} shot files and durations, got "
            f"{len(shot_paths)} files and {len(actual_durations_ms)} durations",
            job_id=request.job_id
        )
    if len(track_paths) != len(tracks):
        raise ValidationError(
            f"Expected {len(tracks)} audio track files, got {len(track_paths)}",
            job_id=request.job_id
        )

    stages = []
    timings = []
    video_labels = []
    audio_labels = []

    for index, (shot, actual) in enumerate(zip(shots, actual_durations_ms)):
        timing = resolve_shot_timing(shot, actual)
        timings.append(timing)

        stages.append(build_shot_video_stage(index, shot, timing))
        stages.append(build_shot_audio_stage(index, shot, timing))
        video_labels.append(f"v{index}")
        audio_labels.append(f"a{index}")

    stages.append(FilterStage(
        inputs=tuple(video_labels),
        filters=(Filter.of("concat", n=len(shots), v=1, a=0),),
        outputs=(VIDEO_OUTPUT_LABEL,),
    ))
    stages.append(FilterStage(
        inputs=tuple(audio_labels),
        filters=(Filter.of("concat", n=len(shots), v=0, a=1),),
        outputs=(CONCAT_AUDIO_LABEL,),
    ))

    audio_label = CONCAT_AUDIO_LABEL
    track_end_ms = 0.0

    if tracks:
        mix_inputs = [CONCAT_AUDIO_LABEL]
        for i, track in enumerate(tracks):
            input_index = len(shots) + i
            # adelay takes milliseconds; pass the raw value so many tracks don't drift
            delay = format_number(track.start_time_ms)
            stages.append(FilterStage(
                inputs=(f"{input_index}:a",),
                filters=(
                    Filter.of(
                        "atrim",
                        start=ms_to_seconds(track.trim_start_ms),
                        duration=ms_to_seconds(track.duration_ms),
                    ),
                    Filter.of("asetpts", "PTS-STARTPTS"),
                    Filter.of("adelay", f"{delay}|{delay}"),
                    Filter.of("volume", track.volume),
                ),
                outputs=(f"at{i}",),
            ))
            mix_inputs.append(f"at{i}")
            track_end_ms = max(track_end_ms, track.start_time_ms + track.duration_ms)

        stages.append(FilterStage(
            inputs=tuple(mix_inputs),
            filters=(Filter.of(
                "amix",
                inputs=len(mix_inputs),
                duration="longest",
                dropout_transition=0,
                normalize=0,
            ),),
            outputs=(MIXED_AUDIO_LABEL,),
        ))
        audio_label = MIXED_AUDIO_LABEL

    if request.master_volume != 1.0:
        stages.append(FilterStage(
            inputs=(audio_label,),
            filters=(Filter.of("volume", request.master_volume),),
            outputs=(AUDIO_OUTPUT_LABEL,),
        ))
        audio_label = AUDIO_OUTPUT_LABEL

    shots_duration_ms = sum(t.output_duration_ms for t in timings)

    graph = FilterGraph(
        inputs=tuple(shot_paths) + tuple(track_paths),
        stages=tuple(stages),
        video_output=VIDEO_OUTPUT_LABEL,
        audio_output=audio_label,
        shot_timings=tuple(timings),
        expected_duration_ms=max(shots_duration_ms, track_end_ms),
    )

    logger.info(
        f"Built filter graph: {len(shots)} shots, {len(tracks)} audio tracks, {len(stages)} stages",
        extra={
            "job_id": request.job_id,
            "shot_count": len(shots),
            "track_count": len(tracks),
            "expected_duration_ms": graph.expected_duration_ms,
        }
    )

    return graph
