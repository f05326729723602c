"""
Unit tests for filter graph construction.
"""
import pytest
from pathlib import Path

from modules.composer.filter_graph import (
    Filter,
    FilterStage,
    build_filter_graph,
    format_number,
    resolve_shot_timing,
)
from shared.errors import ValidationError


def shot_paths(count: int):
    return [Path(f"/tmp/job/shot-{i}.mp4") for i in range(count)]


def track_paths(count: int):
    return [Path(f"/tmp/job/audio-{i}.mp3") for i in range(count)]


class TestFormatting:
    """Tests for filter option rendering."""

    def test_format_number(self):
        assert format_number(4.5) == "4.5"
        assert format_number(2000.0) == "2000"
        assert format_number(0.1 + 0.2) == "0.3"
        assert format_number(3) == "3"
        assert format_number(0.0) == "0"

    def test_filter_render_positional_and_named(self):
        assert Filter.of("setpts", "PTS-STARTPTS").render() == "setpts=PTS-STARTPTS"
        assert Filter.of("trim", start=1.0, duration=3.5).render() == "trim=start=1:duration=3.5"
        assert Filter.of("anull").render() == "anull"

    def test_stage_render(self):
        stage = FilterStage(
            inputs=("v0", "v1"),
            filters=(Filter.of("concat", n=2, v=1, a=0),),
            outputs=("outv",),
        )
        assert stage.render() == "[v0][v1]concat=n=2:v=1:a=0[outv]"


class TestResolveShotTiming:
    """Tests for declared vs probed duration reconciliation."""

    def test_trimmed_shot_uses_stored_duration(self, sample_shot):
        """Trimmed shots ignore the probe entirely."""
        shot = sample_shot(0, duration_ms=5000, trim_start_ms=1000)

        timing = resolve_shot_timing(shot, actual_duration_ms=2000)

        assert timing.needs_trim is True
        assert timing.effective_duration_ms == 4000

    def test_trim_end_only_counts_as_trimmed(self, sample_shot):
        shot = sample_shot(0, duration_ms=5000, trim_end_ms=500)

        timing = resolve_shot_timing(shot, actual_duration_ms=9000)

        assert timing.effective_duration_ms == 4500

    @pytest.mark.parametrize("stored,actual,expected", [
        (5000, 4800, 4800),
        (5000, 6000, 5000),
        (5000, 5000, 5000),
    ])
    def test_untrimmed_shot_uses_shorter_duration(self, sample_shot, stored, actual, expected):
        shot = sample_shot(0, duration_ms=stored)

        timing = resolve_shot_timing(shot, actual_duration_ms=actual)

        assert timing.effective_duration_ms == expected

    @pytest.mark.parametrize("actual", [None, 0])
    def test_missing_probe_falls_back_to_declared(self, sample_shot, actual):
        shot = sample_shot(0, duration_ms=5000)

        timing = resolve_shot_timing(shot, actual_duration_ms=actual)

        assert timing.actual_duration_ms == 5000
        assert timing.effective_duration_ms == 5000

    def test_fade_out_start(self, sample_shot):
        """Scenario: 5000ms shot, 500ms black fade-out starts at 4500ms."""
        shot = sample_shot(0, duration_ms=5000, fade_out_type="black", fade_duration_ms=500)

        timing = resolve_shot_timing(shot, actual_duration_ms=5000)

        assert timing.fade_out_start_ms == 4500

    def test_fade_out_start_never_negative(self, sample_shot):
        shot = sample_shot(0, duration_ms=300, fade_out_type="white", fade_duration_ms=1000)

        timing = resolve_shot_timing(shot, actual_duration_ms=300)

        assert timing.fade_out_start_ms == 0

    @pytest.mark.parametrize("fade_out_type", [None, "none"])
    def test_no_fade_out_start_without_fade(self, sample_shot, fade_out_type):
        shot = sample_shot(0, fade_out_type=fade_out_type)

        assert resolve_shot_timing(shot, 5000).fade_out_start_ms is None


class TestBuildFilterGraph:
    """Tests for build_filter_graph function."""

    def test_branch_counts(self, sample_request, sample_shot, sample_track):
        """N shots and M active tracks produce N video, N audio and M track branches."""
        request = sample_request(
            shots=[sample_shot(0), sample_shot(1, audio_muted=True), sample_shot(2)],
            audio_tracks=[sample_track(0), sample_track(1, muted=True), sample_track(2)],
        )

        graph = build_filter_graph(request, shot_paths(3), track_paths(2), [5000, 5000, 5000])

        outputs = [label for stage in graph.stages for label in stage.outputs]
        assert [o for o in outputs if o.startswith("v")] == ["v0", "v1", "v2"]
        assert [o for o in outputs if o.startswith("a") and not o.startswith("at")] == ["a0", "a1", "a2"]
        assert [o for o in outputs if o.startswith("at")] == ["at0", "at1"]

        video_concat = graph.stage_for("outv")
        assert video_concat.inputs == ("v0", "v1", "v2")
        assert video_concat.find("concat").option("n") == 3

        audio_concat = graph.stage_for("concat_audio")
        assert audio_concat.inputs == ("a0", "a1", "a2")

        mix = graph.stage_for("mixed_audio")
        assert mix.inputs == ("concat_audio", "at0", "at1")
        assert mix.find("amix").option("inputs") == 3

        assert len(graph.inputs) == 5
        assert graph.audio_output == "mixed_audio"

    def test_no_tracks_skips_mix(self, sample_request):
        graph = build_filter_graph(sample_request(), shot_paths(2), [], [5000, 5000])

        assert graph.stage_for("mixed_audio") is None
        assert graph.video_output == "outv"
        assert graph.audio_output == "concat_audio"

    def test_muted_shot_audio_is_silence(self, sample_request, sample_shot):
        request = sample_request(shots=[sample_shot(0, audio_muted=True, duration_ms=4000)])

        graph = build_filter_graph(request, shot_paths(1), [], [4000])

        stage = graph.stage_for("a0")
        assert stage.inputs == ()
        assert stage.filter_names() == ("anullsrc", "atrim")
        assert stage.find("atrim").option("duration") == 4.0
        assert "[0:a]" not in graph.render()

    def test_unmuted_shot_audio_matches_video_window(self, sample_request, sample_shot):
        request = sample_request(shots=[sample_shot(0, duration_ms=5000, trim_start_ms=1000)])

        graph = build_filter_graph(request, shot_paths(1), [], [5000])

        audio = graph.stage_for("a0")
        assert audio.inputs == ("0:a",)
        assert audio.find("atrim").option("start") == 1.0
        assert audio.find("atrim").option("duration") == 4.0

        video = graph.stage_for("v0")
        assert video.filter_names()[0] == "trim"
        assert video.find("trim").option("duration") == 4.0

    def test_untrimmed_shot_has_no_trim_filter(self, sample_request):
        graph = build_filter_graph(sample_request(), shot_paths(2), [], [5000, 5000])

        assert graph.stage_for("v0").filter_names() == ("setpts", "format")

    def test_fade_filters(self, sample_request, sample_shot):
        """Scenario: fade-out on a 5000ms shot renders st=4.5."""
        request = sample_request(shots=[
            sample_shot(0, duration_ms=5000, fade_in_type="white", fade_out_type="black", fade_duration_ms=500),
        ])

        graph = build_filter_graph(request, shot_paths(1), [], [5000])

        fades = [f for f in graph.stage_for("v0").filters if f.name == "fade"]
        assert [f.render() for f in fades] == [
            "fade=t=in:st=0:d=0.5:c=white",
            "fade=t=out:st=4.5:d=0.5",
        ]
        assert graph.shot_timings[0].fade_out_start_ms == 4500

    def test_fade_out_uses_probed_duration(self, sample_request, sample_shot):
        """An optimistic declared duration must not push the fade past the clip end."""
        request = sample_request(shots=[sample_shot(0, duration_ms=5000, fade_out_type="black")])

        graph = build_filter_graph(request, shot_paths(1), [], [4200])

        fade = graph.stage_for("v0").filters[-1]
        assert fade.option("st") == 3.7

    def test_positioned_track(self, sample_request, sample_shot, sample_track):
        """Scenario: muted shot with one track at 2000ms and volume 0.5."""
        request = sample_request(
            shots=[sample_shot(0, duration_ms=6000, audio_muted=True)],
            audio_tracks=[sample_track(0, start_time_ms=2000, duration_ms=3000, volume=0.5)],
        )

        graph = build_filter_graph(request, shot_paths(1), track_paths(1), [6000])
        rendered = graph.render()

        assert "[1:a]atrim=start=0:duration=3,asetpts=PTS-STARTPTS,adelay=2000|2000,volume=0.5[at0]" in rendered
        assert "[concat_audio][at0]amix=inputs=2:duration=longest:dropout_transition=0:normalize=0[mixed_audio]" in rendered
        assert "anullsrc" in graph.stage_for("a0").filter_names()

    def test_track_trim_start(self, sample_request, sample_track):
        request = sample_request(audio_tracks=[sample_track(0, trim_start_ms=1500, duration_ms=2500)])

        graph = build_filter_graph(request, shot_paths(2), track_paths(1), [5000, 5000])

        atrim = graph.stage_for("at0").find("atrim")
        assert atrim.option("start") == 1.5
        assert atrim.option("duration") == 2.5

    def test_master_volume(self, sample_request):
        graph = build_filter_graph(sample_request(master_volume=0.8), shot_paths(2), [], [5000, 5000])

        assert graph.audio_output == "outa"
        assert graph.stage_for("outa").render() == "[concat_audio]volume=0.8[outa]"

    def test_shots_ordered_by_order_field(self, sample_request, sample_shot):
        request = sample_request(shots=[
            sample_shot(0, id="late", order=5, duration_ms=2000),
            sample_shot(1, id="early", order=1, duration_ms=3000),
        ])

        graph = build_filter_graph(request, shot_paths(2), [], [None, None])

        assert [t.shot_id for t in graph.shot_timings] == ["early", "late"]
        assert graph.shot_timings[0].effective_duration_ms == 3000

    def test_expected_duration(self, sample_request, sample_shot, sample_track):
        """Scenario: 4000ms + 6000ms shots give a 10000ms timeline."""
        request = sample_request(shots=[sample_shot(0, duration_ms=4000), sample_shot(1, duration_ms=6000)])

        graph = build_filter_graph(request, shot_paths(2), [], [4000, 6000])
        assert graph.expected_duration_ms == 10000

        request = sample_request(
            shots=[sample_shot(0, duration_ms=4000)],
            audio_tracks=[sample_track(0, start_time_ms=3000, duration_ms=5000)],
        )
        graph = build_filter_graph(request, shot_paths(1), track_paths(1), [4000])
        assert graph.expected_duration_ms == 8000

    @pytest.mark.parametrize("audio_muted", [True, False])
    def test_audio_follows_clip_longer_than_declared(self, sample_request, sample_shot, audio_muted):
        """Untrimmed 3s clip declared as 2s: its audio runs 3s so the next shot stays in sync."""
        request = sample_request(shots=[
            sample_shot(0, duration_ms=2000, audio_muted=audio_muted, fade_out_type="black", fade_duration_ms=500),
            sample_shot(1, duration_ms=2000),
        ])

        graph = build_filter_graph(request, shot_paths(2), [], [3000, 2000])

        video = graph.stage_for("v0")
        audio = graph.stage_for("a0")
        assert video.find("trim") is None
        assert audio.find("atrim").option("duration") == 3.0
        # Fade still lands before the declared end
        assert graph.shot_timings[0].fade_out_start_ms == 1500
        assert graph.expected_duration_ms == 5000

    def test_audio_uses_declared_when_probe_missing(self, sample_request, sample_shot):
        request = sample_request(shots=[sample_shot(0, duration_ms=2000)])

        graph = build_filter_graph(request, shot_paths(1), [], [None])

        assert graph.stage_for("a0").find("atrim").option("duration") == 2.0

    def test_idempotent(self, sample_request, sample_shot, sample_track):
        """Building twice from the same request yields the same graph."""
        request = sample_request(
            shots=[sample_shot(0, fade_in_type="black"), sample_shot(1, trim_start_ms=500, audio_muted=True)],
            audio_tracks=[sample_track(0, start_time_ms=1234.5, volume=0.3)],
            master_volume=0.9,
        )
        args = (request, shot_paths(2), track_paths(1), [4800, 5000])

        first = build_filter_graph(*args)
        second = build_filter_graph(*args)

        assert first == second
        assert first.render() == second.render()

    def test_no_shots_raises(self, sample_request):
        with pytest.raises(ValidationError, match="without shots"):
            build_filter_graph(sample_request(shots=[]), [], [], [])

    def test_mismatched_inputs_raise(self, sample_request):
        with pytest.raises(ValidationError, match="Expected 2 shot files"):
            build_filter_graph(sample_request(), shot_paths(1), [], [5000])

    def test_mismatched_track_files_raise(self, sample_request, sample_track):
        request = sample_request(audio_tracks=[sample_track(0)])

        with pytest.raises(ValidationError, match="audio track files"):
            build_filter_graph(request, shot_paths(2), [], [5000, 5000])
