"""Tests for background audio preparation.

Covers:
- Loop count and argument construction
- Every state machine path, driven by a fake engine that fails on demand
"""

import math

import pytest

from conftest import (
    FakeRenderEngine,
    is_demux,
    is_loop_or_trim,
    is_silence,
    make_audio,
)
from slidecast.exceptions import AudioPipelineFatal
from slidecast.render.audio_pipeline import (
    AudioStage,
    BackgroundAudioPipeline,
    audio_fade_filter,
    demux_args,
    loop_count_for,
    loop_or_trim_args,
    silence_args,
    usable_duration,
)
from slidecast.render.models import SlideshowSettings

S = AudioStage


class TestLoopCount:
    """Tests for loop count computation."""

    @pytest.mark.parametrize(
        "source, total, expected",
        [
            (4, 10, 2),
            (5, 10, 1),
            (3, 10, 3),
            (10, 10, 0),
            (30, 10, 0),
        ],
    )
    def test_loop_count(self, source, total, expected):
        """Extra repetitions cover the timeline."""
        assert loop_count_for(source, total) == expected

    def test_loops_cover_total(self):
        """(loops + 1) * source always reaches the timeline length."""
        for source, total in [(4, 10), (3, 10), (1, 60), (7, 6.5), (2.5, 11)]:
            assert (loop_count_for(source, total) + 1) * source >= total

    @pytest.mark.parametrize("duration", [None, 0, -2, math.inf, math.nan])
    def test_unusable_durations(self, duration):
        """Missing, zero, negative and non-finite durations are unusable."""
        assert not usable_duration(duration)


class TestAudioArgs:
    """Tests for the engine argument lists."""

    def test_demux(self):
        """Demux drops video and re-encodes to AAC."""
        args = demux_args("input_video_for_audio.mp4")
        assert args == [
            "-i", "input_video_for_audio.mp4",
            "-vn",
            "-acodec", "aac",
            "-ar", "44100",
            "-ac", "2",
            "-b:a", "96k",
            "-threads", "0",
            "extracted_audio.aac",
        ]

    def test_silence(self):
        """Silence is generated at the timeline length."""
        args = silence_args(10, "audio.aac")
        assert args[:4] == [
            "-f", "lavfi",
            "-i", "anullsrc=channel_layout=stereo:sample_rate=44100:duration=10",
        ]
        assert args[-1] == "audio.aac"

    def test_loop(self):
        """Short sources are looped."""
        args = loop_or_trim_args("input_audio.mp3", 4, 10, fade=False)
        assert args[:6] == ["-stream_loop", "2", "-i", "input_audio.mp3", "-t", "10"]
        assert "-af" not in args

    def test_trim_has_no_stream_loop(self):
        """Long sources are only cut."""
        args = loop_or_trim_args("input_audio.mp3", 30, 10, fade=False)
        assert "-stream_loop" not in args
        assert args[:4] == ["-i", "input_audio.mp3", "-t", "10"]

    def test_fade(self):
        """Audio fades are one second at each end."""
        assert audio_fade_filter(10) == "afade=t=in:st=0:d=1,afade=t=out:st=9:d=1"
        args = loop_or_trim_args("input_audio.mp3", 30, 7.5, fade=True)
        assert args[args.index("-af") + 1] == "afade=t=in:st=0:d=1,afade=t=out:st=6.5:d=1"


class TestBackgroundAudioPipeline:
    """Tests for the fallback state machine."""

    @pytest.mark.asyncio
    async def test_audio_file_loops(self):
        """A short audio file goes straight to looping."""
        engine = FakeRenderEngine()
        result = await BackgroundAudioPipeline(engine).run(make_audio(duration=4), 10, SlideshowSettings())

        assert result.file_name == "audio.aac"
        assert result.transitions == [S.LOOP_OR_TRIM, S.VERIFY, S.SUCCESS]
        assert result.loop_count == 2
        assert not result.used_silence
        assert engine.files["input_audio.mp3"] == b"audio"
        assert engine.exec_calls[0][:2] == ["-stream_loop", "2"]

    @pytest.mark.asyncio
    async def test_video_container_demuxed(self):
        """Video containers are demuxed first, then trimmed."""
        engine = FakeRenderEngine()
        audio = make_audio(duration=30, name="clip.mov", video_container=True)
        result = await BackgroundAudioPipeline(engine).run(audio, 10, SlideshowSettings())

        assert result.transitions == [S.DEMUX, S.LOOP_OR_TRIM, S.VERIFY, S.SUCCESS]
        assert "input_video_for_audio.mov" in engine.files
        assert engine.exec_calls[1][:4] == ["-i", "extracted_audio.aac", "-t", "10"]

    @pytest.mark.asyncio
    async def test_silent_video_container(self):
        """A container without audio falls back to generated silence."""
        engine = FakeRenderEngine(fail_when=is_demux)
        audio = make_audio(duration=8, name="silent.mp4", video_container=True)
        result = await BackgroundAudioPipeline(engine).run(audio, 10, SlideshowSettings())

        assert result.transitions == [
            S.DEMUX, S.DEMUX_FALLBACK, S.LOOP_OR_TRIM, S.VERIFY, S.SUCCESS,
        ]
        assert result.used_silence
        assert is_silence(engine.exec_calls[1])
        assert engine.exec_calls[1][-1] == "extracted_audio.aac"

    @pytest.mark.asyncio
    async def test_demux_without_output_uses_fallback(self):
        """A demux that produces nothing is treated as a failure."""
        engine = FakeRenderEngine(missing_when=is_demux)
        audio = make_audio(duration=8, video_container=True)
        result = await BackgroundAudioPipeline(engine).run(audio, 10, SlideshowSettings())

        assert S.DEMUX_FALLBACK in result.transitions

    @pytest.mark.asyncio
    async def test_demux_fallback_failure_is_fatal(self):
        """If even silence cannot be generated for a container, fail."""
        engine = FakeRenderEngine(fail_when=lambda args: is_demux(args) or is_silence(args))
        audio = make_audio(video_container=True)

        with pytest.raises(AudioPipelineFatal, match="video file"):
            await BackgroundAudioPipeline(engine).run(audio, 10, SlideshowSettings())

    @pytest.mark.asyncio
    async def test_unknown_duration_uses_silence(self):
        """Audio with no detectable duration is replaced by silence."""
        engine = FakeRenderEngine()
        result = await BackgroundAudioPipeline(engine).run(make_audio(duration=None), 10, SlideshowSettings())

        assert result.transitions == [S.LOOP_OR_TRIM, S.SILENT_FALLBACK, S.VERIFY, S.SUCCESS]
        assert result.used_silence
        assert len(engine.exec_calls) == 1
        assert engine.exec_calls[0][-1] == "audio.aac"

    @pytest.mark.asyncio
    async def test_loop_failure_uses_silence(self):
        """A corrupted audio file is replaced by silence."""
        engine = FakeRenderEngine(fail_when=is_loop_or_trim)
        result = await BackgroundAudioPipeline(engine).run(make_audio(duration=4), 10, SlideshowSettings())

        assert result.transitions == [S.LOOP_OR_TRIM, S.SILENT_FALLBACK, S.VERIFY, S.SUCCESS]
        assert result.loop_count == 0
        assert result.used_silence

    @pytest.mark.asyncio
    async def test_silent_fallback_failure_is_fatal(self):
        """When silence cannot be generated the pipeline gives up."""
        engine = FakeRenderEngine(fail_when=lambda args: True)

        with pytest.raises(AudioPipelineFatal, match="silent audio track"):
            await BackgroundAudioPipeline(engine).run(make_audio(duration=4), 10, SlideshowSettings())

    @pytest.mark.asyncio
    async def test_missing_artifact_is_fatal(self):
        """A run that reports success without audio.aac is fatal."""
        engine = FakeRenderEngine(missing_when=lambda args: args[-1] == "audio.aac")

        with pytest.raises(AudioPipelineFatal, match="was not created"):
            await BackgroundAudioPipeline(engine).run(make_audio(duration=4), 10, SlideshowSettings())

    @pytest.mark.asyncio
    async def test_audio_fade_applied(self):
        """audio_fade_in_out adds the afade chain."""
        engine = FakeRenderEngine()
        settings = SlideshowSettings(audio_fade_in_out=True)
        await BackgroundAudioPipeline(engine).run(make_audio(duration=60), 12, settings)

        args = engine.exec_calls[0]
        assert args[args.index("-af") + 1] == "afade=t=in:st=0:d=1,afade=t=out:st=11:d=1"
