"""
Background audio preparation.

Turns an uploaded soundtrack (an audio file or a video container) into
``audio.aac``: AAC, 44.1kHz stereo, exactly the timeline length, optionally
faded. Modeled as an explicit state machine so every fallback tier can be
exercised on its own:

    DEMUX ──fail──> DEMUX_FALLBACK ──fail──> fatal
      │                   │
      └──────┬────────────┘
             v
      LOOP_OR_TRIM ──fail/unknown duration──> SILENT_FALLBACK ──fail──> fatal
             │                                      │
             └──────────────> VERIFY <──────────────┘
                                │
                        SUCCESS / fatal

Only DEMUX is entered for video containers; plain audio starts at LOOP_OR_TRIM.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from slidecast.engine.base import RenderEngine
from slidecast.exceptions import AudioPipelineFatal, EngineExecutionFailure
from slidecast.render.filter_graph import format_number
from slidecast.render.models import BackgroundAudio, SlideshowSettings

logger = logging.getLogger(__name__)

EXTRACTED_AUDIO = "extracted_audio.aac"
PREPARED_AUDIO = "audio.aac"
AUDIO_SAMPLE_RATE = 44100
AUDIO_BITRATE = "96k"
AUDIO_FADE_DURATION = 1


class AudioStage(Enum):
    """States of the background audio pipeline."""

    DEMUX = "demux"
    DEMUX_FALLBACK = "demux_fallback"
    LOOP_OR_TRIM = "loop_or_trim"
    SILENT_FALLBACK = "silent_fallback"
    VERIFY = "verify"
    SUCCESS = "success"


@dataclass
class AudioJob:
    """Mutable context threaded through the state handlers."""

    audio: BackgroundAudio
    total_duration: float
    settings: SlideshowSettings
    source: str = ""
    transitions: list[AudioStage] = field(default_factory=list)
    used_silence: bool = False
    loop_count: int = 0


@dataclass
class PreparedAudio:
    """Result of a successful run."""

    file_name: str
    transitions: list[AudioStage]
    used_silence: bool = False
    loop_count: int = 0


def usable_duration(duration: Optional[float]) -> bool:
    return duration is not None and math.isfinite(duration) and duration > 0


def loop_count_for(source_duration: float, total_duration: float) -> int:
    """Extra repetitions needed so the looped source covers the timeline."""
    if source_duration >= total_duration:
        return 0
    return math.ceil(total_duration / source_duration) - 1


def aac_output_args(output: str) -> list[str]:
    return [
        "-c:a", "aac",
        "-ar", str(AUDIO_SAMPLE_RATE),
        "-ac", "2",
        "-b:a", AUDIO_BITRATE,
        output,
    ]


def demux_args(source: str, output: str = EXTRACTED_AUDIO) -> list[str]:
    return [
        "-i", source,
        "-vn",
        "-acodec", "aac",
        "-ar", str(AUDIO_SAMPLE_RATE),
        "-ac", "2",
        "-b:a", AUDIO_BITRATE,
        "-threads", "0",
        output,
    ]


def silence_args(total_duration: float, output: str) -> list[str]:
    return [
        "-f", "lavfi",
        "-i", f"anullsrc=channel_layout=stereo:sample_rate={AUDIO_SAMPLE_RATE}:duration={format_number(total_duration)}",
        *aac_output_args(output),
    ]


def audio_fade_filter(total_duration: float) -> str:
    fade_out_start = format_number(total_duration - AUDIO_FADE_DURATION)
    return (
        f"afade=t=in:st=0:d={AUDIO_FADE_DURATION},"
        f"afade=t=out:st={fade_out_start}:d={AUDIO_FADE_DURATION}"
    )


def loop_or_trim_args(
    source: str,
    source_duration: float,
    total_duration: float,
    fade: bool,
    output: str = PREPARED_AUDIO,
) -> list[str]:
    """Loop a short source or cut a long one to exactly ``total_duration``."""
    args: list[str] = []
    loops = loop_count_for(source_duration, total_duration)
    if loops > 0:
        args += ["-stream_loop", str(loops)]
    args += ["-i", source, "-t", format_number(total_duration)]
    if fade:
        args += ["-af", audio_fade_filter(total_duration)]
    args += aac_output_args(output)
    return args


class BackgroundAudioPipeline:
    """Prepares background audio inside one engine's file set."""

    def __init__(self, engine: RenderEngine):
        self.engine = engine
        self._handlers = {
            AudioStage.DEMUX: self._demux,
            AudioStage.DEMUX_FALLBACK: self._demux_fallback,
            AudioStage.LOOP_OR_TRIM: self._loop_or_trim,
            AudioStage.SILENT_FALLBACK: self._silent_fallback,
            AudioStage.VERIFY: self._verify,
        }

    async def run(
        self,
        audio: BackgroundAudio,
        total_duration: float,
        settings: SlideshowSettings,
    ) -> PreparedAudio:
        """
        Stage and prepare background audio.

        Args:
            audio: Uploaded soundtrack
            total_duration: Timeline length in seconds
            settings: Compositor settings (audio fade flag)

        Returns:
            PreparedAudio naming the artifact to feed the final encode

        Raises:
            AudioPipelineFatal: If the silent fallback itself fails or the
                prepared artifact is missing
        """
        job = AudioJob(audio=audio, total_duration=total_duration, settings=settings)
        job.source = audio.staged_name
        await self.engine.write_file(job.source, audio.source_bytes)
        logger.info(
            f"[AUDIO] Staged {audio.name or job.source} as {job.source} "
            f"({len(audio.source_bytes)} bytes, video container={audio.is_video_container})"
        )

        state = AudioStage.DEMUX if audio.is_video_container else AudioStage.LOOP_OR_TRIM
        while state is not AudioStage.SUCCESS:
            job.transitions.append(state)
            state = await self._handlers[state](job)
        job.transitions.append(AudioStage.SUCCESS)

        logger.info(f"[AUDIO] Prepared {PREPARED_AUDIO} via {' -> '.join(s.value for s in job.transitions)}")
        return PreparedAudio(
            file_name=PREPARED_AUDIO,
            transitions=job.transitions,
            used_silence=job.used_silence,
            loop_count=job.loop_count,
        )

    async def _exec_and_check(self, args: list[str], output: str) -> bool:
        """Run ``args`` and report whether ``output`` exists afterwards."""
        try:
            await self.engine.exec(args)
        except EngineExecutionFailure as e:
            logger.warning(f"[AUDIO] Engine failed producing {output}: {e}")
            return False
        return await self.engine.has_file(output)

    async def _demux(self, job: AudioJob) -> AudioStage:
        logger.info("[AUDIO] Extracting audio from video container")
        if await self._exec_and_check(demux_args(job.source), EXTRACTED_AUDIO):
            job.source = EXTRACTED_AUDIO
            return AudioStage.LOOP_OR_TRIM
        logger.warning("[AUDIO] No audio stream extracted (likely a silent video)")
        return AudioStage.DEMUX_FALLBACK

    async def _demux_fallback(self, job: AudioJob) -> AudioStage:
        if not await self._exec_and_check(silence_args(job.total_duration, EXTRACTED_AUDIO), EXTRACTED_AUDIO):
            raise AudioPipelineFatal("Failed to create silent audio track for video file")
        job.source = EXTRACTED_AUDIO
        job.used_silence = True
        return AudioStage.LOOP_OR_TRIM

    async def _loop_or_trim(self, job: AudioJob) -> AudioStage:
        source_duration = job.audio.declared_duration
        if not usable_duration(source_duration):
            logger.warning("[AUDIO] Audio file has no detectable duration or is silent")
            return AudioStage.SILENT_FALLBACK

        job.loop_count = loop_count_for(source_duration, job.total_duration)
        args = loop_or_trim_args(
            job.source,
            source_duration,
            job.total_duration,
            fade=job.settings.audio_fade_in_out,
        )
        logger.info(
            f"[AUDIO] source={source_duration}s, timeline={job.total_duration}s, "
            f"loops={job.loop_count}, fade={job.settings.audio_fade_in_out}"
        )
        try:
            await self.engine.exec(args)
        except EngineExecutionFailure as e:
            logger.warning(f"[AUDIO] Failed to process audio file (likely silent or corrupted): {e}")
            job.loop_count = 0
            return AudioStage.SILENT_FALLBACK
        return AudioStage.VERIFY

    async def _silent_fallback(self, job: AudioJob) -> AudioStage:
        logger.info("[AUDIO] Creating silent audio track as fallback")
        try:
            await self.engine.exec(silence_args(job.total_duration, PREPARED_AUDIO))
        except EngineExecutionFailure as e:
            raise AudioPipelineFatal(f"Failed to create silent audio track: {e}") from e
        job.used_silence = True
        return AudioStage.VERIFY

    async def _verify(self, job: AudioJob) -> AudioStage:
        if not await self.engine.has_file(PREPARED_AUDIO):
            raise AudioPipelineFatal(f"Failed to process audio: {PREPARED_AUDIO} file was not created")
        return AudioStage.SUCCESS
