"""Tests for render plan assembly."""

import pytest

from conftest import make_photo, make_video
from slidecast.render.models import FadePosition, SlideshowSettings
from slidecast.render.plan import (
    AudioMapping,
    EncodingParameters,
    assemble_render_plan,
    select_audio_mapping,
)
from slidecast.render.timeline import resolve_timeline


def plan_for(media, settings, background_audio_file=None):
    timeline = resolve_timeline(media, settings)
    return assemble_render_plan(media, settings, timeline, background_audio_file=background_audio_file)


def value_after(args, flag):
    return args[args.index(flag) + 1]


class TestEncodingParameters:
    """Tests for the fixed encoding arguments."""

    def test_defaults(self):
        """Encoding is fixed regardless of content."""
        args = EncodingParameters().to_args(24)

        assert value_after(args, "-c:v") == "libx264"
        assert value_after(args, "-preset") == "ultrafast"
        assert value_after(args, "-tune") == "fastdecode"
        assert value_after(args, "-crf") == "23"
        assert value_after(args, "-pix_fmt") == "yuv420p"
        assert value_after(args, "-color_range") == "tv"
        assert value_after(args, "-colorspace") == "bt709"
        assert value_after(args, "-r") == "24"
        assert value_after(args, "-threads") == "0"
        assert value_after(args, "-movflags") == "+faststart"
        assert args[-1] == "-shortest"


class TestSelectAudioMapping:
    """Tests for the audio mapping rules."""

    @pytest.mark.parametrize(
        "keep, background, media_count, expected",
        [
            (True, True, 2, AudioMapping.MIXED),
            (False, True, 2, AudioMapping.BACKGROUND_ONLY),
            (True, False, 1, AudioMapping.NATIVE_DIRECT),
            (True, False, 2, AudioMapping.NATIVE_GRAPH),
            (False, False, 2, AudioMapping.NONE),
        ],
    )
    def test_rules(self, keep, background, media_count, expected):
        """Mapping depends on background audio, the keep flag and item count."""
        media = [make_video(i) for i in range(media_count)]
        settings = SlideshowSettings(keep_original_video_audio=keep)
        assert select_audio_mapping(media, settings, background) is expected

    def test_keep_flag_without_videos(self, photos):
        """Keeping native audio means nothing for photo-only timelines."""
        settings = SlideshowSettings(keep_original_video_audio=True)
        assert select_audio_mapping(photos(1), settings, False) is AudioMapping.NONE


class TestAssembleRenderPlan:
    """Tests for complete plans."""

    def test_three_photos_no_fade(self, photos):
        """Three 3s photos: 9s, four statements, no audio, 24 fps."""
        plan = plan_for(photos(3), SlideshowSettings(photo_duration=3))
        args = plan.to_args()

        assert plan.total_duration == 9
        assert len(plan.filter_graph) == 4
        assert len(plan.filter_graph.statements_using("concat")) == 1
        assert plan.filter_graph.statements_using("fade") == []
        assert plan.audio_mapping is AudioMapping.NONE
        assert "-an" in args
        assert plan.frame_rate == 24
        assert value_after(args, "-r") == "24"
        assert args[:6] == ["-loop", "1", "-t", "3", "-i", "media_0.jpg"]
        assert args[-1] == "output.mp4"

    def test_single_video_keep_audio(self):
        """One 12s video with kept audio maps its stream directly."""
        settings = SlideshowSettings(photo_duration=3, keep_original_video_audio=True)
        plan = plan_for([make_video(0, duration=12, name="trip.mov")], settings)
        args = plan.to_args()

        assert plan.total_duration == 12
        assert len(plan.filter_graph) == 1
        assert plan.filter_graph.statements_using("concat") == []
        assert plan.audio_mapping is AudioMapping.NATIVE_DIRECT
        assert args[:2] == ["-i", "media_0.mov"]
        assert plan.mappings == ["-map", "[outv]", "-map", "0:a?", "-c:a", "aac", "-b:a", "128k"]
        assert plan.frame_rate == 30

    def test_photos_with_background_audio(self, photos):
        """Background audio is mapped from the last input at 96k."""
        plan = plan_for(photos(2), SlideshowSettings(photo_duration=5), background_audio_file="audio.aac")
        args = plan.to_args()

        assert plan.total_duration == 10
        assert plan.audio_mapping is AudioMapping.BACKGROUND_ONLY
        assert [i.file_name for i in plan.inputs] == ["media_0.jpg", "media_1.jpg", "audio.aac"]
        assert plan.mappings[-6:] == ["-map", "2:a", "-c:a", "aac", "-b:a", "96k"]
        assert "-shortest" in args

    def test_mixed_audio(self):
        """Kept item audio and background audio are mixed into outa."""
        media = [make_photo(0), make_video(1, duration=4)]
        settings = SlideshowSettings(photo_duration=2, keep_original_video_audio=True)
        plan = plan_for(media, settings, background_audio_file="audio.aac")

        assert plan.audio_mapping is AudioMapping.MIXED
        assert plan.mappings == ["-map", "[outv]", "-map", "[outa]", "-c:a", "aac", "-b:a", "128k"]
        assert "[video_audio][2:a]amix=inputs=2:duration=shortest[outa]" in plan.filter_complex
        assert "duration=2[silence0]" in plan.filter_complex

    def test_native_graph(self):
        """Several items with kept audio map the concatenated outa."""
        media = [make_video(0, duration=3), make_video(1, duration=4)]
        plan = plan_for(media, SlideshowSettings(keep_original_video_audio=True))

        assert plan.audio_mapping is AudioMapping.NATIVE_GRAPH
        assert "[video_audio0][video_audio1]concat=n=2:v=0:a=1[outa]" in plan.filter_complex
        assert value_after(plan.mappings, "-b:a") == "128k"

    def test_videos_capped_with_input_trim(self):
        """Capped videos are also trimmed at the input."""
        settings = SlideshowSettings(photo_duration=2.5, apply_photo_duration_to_videos=True)
        plan = plan_for([make_video(0, duration=10, name="a.MP4"), make_photo(1)], settings)

        assert plan.inputs[0].to_args() == ["-t", "2.5", "-i", "media_0.mp4"]
        assert plan.inputs[1].to_args() == ["-loop", "1", "-t", "2.5", "-i", "media_1.jpg"]
        assert plan.total_duration == 5

    def test_filter_complex_is_single_argument(self, photos):
        """The whole graph is passed as one argument."""
        plan = plan_for(photos(2), SlideshowSettings())
        args = plan.to_args()

        assert value_after(args, "-filter_complex") == plan.filter_complex
        assert args.count("-filter_complex") == 1

    def test_short_photo_with_fade_keeps_negative_start(self, fade_settings):
        """A 0.3s faded photo yields a negative fade-out start."""
        settings = fade_settings(FadePosition.THROUGHOUT, photo_duration=0.3)
        plan = plan_for([make_photo(0), make_photo(1)], settings)

        assert "fade=t=out:st=-0.2:d=0.5[v0f]" in plan.filter_complex
        assert plan.filter_complex.endswith("fade=t=out:st=0.09999999999999998:d=0.5[outv]")

    def test_graph_is_validated(self):
        """Assembled plans always satisfy the pad discipline."""
        media = [make_photo(0), make_video(1), make_photo(2)]
        settings = SlideshowSettings(fade_in_out=True, keep_original_video_audio=True)
        plan = plan_for(media, settings, background_audio_file="audio.aac")
        plan.filter_graph.validate(terminals=["outv", "outa"], input_count=len(plan.inputs))
