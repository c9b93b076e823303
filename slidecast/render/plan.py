"""
Render plan assembly.

Combines the resolved timeline, both filter graph halves and the settings into
the one argument list the final encode runs.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from slidecast.render.audio_graph import build_audio_graph, needs_audio_graph
from slidecast.render.filter_graph import FilterGraph, format_number
from slidecast.render.models import MediaItem, SlideshowSettings, Timeline, staged_media_name
from slidecast.render.video_graph import build_video_graph, frame_rate_for

logger = logging.getLogger(__name__)

OUTPUT_FILE = "output.mp4"


class AudioMapping(Enum):
    """Which audio, if any, reaches the output container."""

    MIXED = "mixed"  # item audio timeline mixed with background audio
    BACKGROUND_ONLY = "background_only"
    NATIVE_DIRECT = "native_direct"  # single video, its own stream as-is
    NATIVE_GRAPH = "native_graph"
    NONE = "none"


@dataclass(frozen=True)
class EncodingParameters:
    """Fixed output encoding, independent of content."""

    video_codec: str = "libx264"
    preset: str = "ultrafast"
    tune: str = "fastdecode"
    crf: int = 23
    pix_fmt: str = "yuv420p"
    color_range: str = "tv"  # limited range 16-235
    colorspace: str = "bt709"
    threads: str = "0"
    movflags: str = "+faststart"
    audio_codec: str = "aac"
    mixed_audio_bitrate: str = "128k"
    background_audio_bitrate: str = "96k"

    def to_args(self, frame_rate: int) -> list[str]:
        return [
            "-c:v", self.video_codec,
            "-preset", self.preset,
            "-tune", self.tune,
            "-crf", str(self.crf),
            "-pix_fmt", self.pix_fmt,
            "-color_range", self.color_range,
            "-colorspace", self.colorspace,
            "-r", str(frame_rate),
            "-threads", self.threads,
            "-movflags", self.movflags,
            "-shortest",
        ]


@dataclass(frozen=True)
class PlanInput:
    """One ``-i`` entry with its input options."""

    file_name: str
    options: tuple[str, ...] = ()

    def to_args(self) -> list[str]:
        return [*self.options, "-i", self.file_name]


@dataclass
class RenderPlan:
    """Everything the final encode needs."""

    inputs: list[PlanInput]
    filter_graph: FilterGraph
    mappings: list[str]
    audio_mapping: AudioMapping
    frame_rate: int
    timeline: Timeline
    encoding: EncodingParameters = field(default_factory=EncodingParameters)
    output_name: str = OUTPUT_FILE

    @property
    def filter_complex(self) -> str:
        return self.filter_graph.serialize()

    @property
    def total_duration(self) -> float:
        return self.timeline.total_duration

    def to_args(self) -> list[str]:
        args: list[str] = []
        for plan_input in self.inputs:
            args += plan_input.to_args()
        args += ["-filter_complex", self.filter_complex]
        args += self.mappings
        args += self.encoding.to_args(self.frame_rate)
        args.append(self.output_name)
        return args


def media_input(item: MediaItem, index: int, duration: float, settings: SlideshowSettings) -> PlanInput:
    name = staged_media_name(item, index)
    if not item.is_video:
        return PlanInput(name, ("-loop", "1", "-t", format_number(duration)))
    if settings.apply_photo_duration_to_videos:
        return PlanInput(name, ("-t", format_number(settings.photo_duration)))
    return PlanInput(name)


def select_audio_mapping(
    media: list[MediaItem],
    settings: SlideshowSettings,
    has_background_audio: bool,
) -> AudioMapping:
    keep_native = needs_audio_graph(media, settings)
    if has_background_audio and keep_native:
        return AudioMapping.MIXED
    if has_background_audio:
        return AudioMapping.BACKGROUND_ONLY
    if keep_native and len(media) == 1:
        return AudioMapping.NATIVE_DIRECT
    if keep_native:
        return AudioMapping.NATIVE_GRAPH
    return AudioMapping.NONE


def assemble_render_plan(
    media: list[MediaItem],
    settings: SlideshowSettings,
    timeline: Timeline,
    background_audio_file: Optional[str] = None,
    encoding: Optional[EncodingParameters] = None,
) -> RenderPlan:
    """
    Build the final render plan.

    Args:
        media: Items in playback order
        settings: Compositor settings
        timeline: Resolved durations for ``media``
        background_audio_file: Prepared background audio artifact, if any
        encoding: Override for the fixed encoding parameters

    Returns:
        RenderPlan with a validated filter graph

    Raises:
        FilterGraphError: If the combined graph breaks the pad discipline
    """
    encoding = encoding or EncodingParameters()
    frame_rate = frame_rate_for(media)

    inputs = [media_input(item, i, timeline[i], settings) for i, item in enumerate(media)]
    background_index: Optional[int] = None
    if background_audio_file:
        background_index = len(inputs)
        inputs.append(PlanInput(background_audio_file))

    audio_mapping = select_audio_mapping(media, settings, background_index is not None)

    video = build_video_graph(media, settings, timeline)
    graph = FilterGraph(video.graph.statements)
    mappings = ["-map", f"[{video.output}]"]
    terminals = [video.output]

    if audio_mapping in (AudioMapping.MIXED, AudioMapping.NATIVE_GRAPH):
        audio = build_audio_graph(
            media,
            settings,
            timeline,
            background_input=background_index if audio_mapping is AudioMapping.MIXED else None,
        )
        graph.extend(audio.graph)
        terminals.append(audio.output)
        mappings += ["-map", f"[{audio.output}]", "-c:a", encoding.audio_codec, "-b:a", encoding.mixed_audio_bitrate]
    elif audio_mapping is AudioMapping.BACKGROUND_ONLY:
        mappings += ["-map", f"{background_index}:a", "-c:a", encoding.audio_codec, "-b:a", encoding.background_audio_bitrate]
    elif audio_mapping is AudioMapping.NATIVE_DIRECT:
        mappings += ["-map", "0:a?", "-c:a", encoding.audio_codec, "-b:a", encoding.mixed_audio_bitrate]
    else:
        mappings.append("-an")

    graph.validate(terminals=terminals, input_count=len(inputs))

    logger.info(
        f"[PLAN] {len(inputs)} inputs, {len(graph)} filter statements, "
        f"audio={audio_mapping.value}, fps={frame_rate}"
    )
    return RenderPlan(
        inputs=inputs,
        filter_graph=graph,
        mappings=mappings,
        audio_mapping=audio_mapping,
        frame_rate=frame_rate,
        timeline=timeline,
        encoding=encoding,
    )
