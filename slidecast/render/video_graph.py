"""
Video filter graph construction.

Each item is normalized onto a 1920x1080 black canvas at the timeline frame
rate, optionally faded, then concatenated into the terminal ``outv`` pad.
"""

import logging
from dataclasses import dataclass

from slidecast.render.filter_graph import FilterGraph, format_number
from slidecast.render.models import FadePosition, MediaItem, SlideshowSettings, Timeline, has_video

logger = logging.getLogger(__name__)

CANVAS_WIDTH = 1920
CANVAS_HEIGHT = 1080
VIDEO_FRAME_RATE = 30
PHOTO_FRAME_RATE = 24
FADE_DURATION = 0.5

VIDEO_OUTPUT = "outv"
CONCAT_OUTPUT = "concat_out"


@dataclass
class GraphFragment:
    """A filter graph plus the name of its terminal pad."""

    graph: FilterGraph
    output: str
    concatenated: bool = False


def frame_rate_for(media: list[MediaItem]) -> int:
    """Timeline-wide frame rate: 30 when any video is present, else 24."""
    return VIDEO_FRAME_RATE if has_video(media) else PHOTO_FRAME_RATE


def normalize_filters(item: MediaItem, frame_rate: int) -> list[str]:
    """Scale-to-fit, center-pad, retime and square the pixels of one item."""
    filters = [
        f"scale={CANVAS_WIDTH}:{CANVAS_HEIGHT}:force_original_aspect_ratio=decrease",
        f"pad={CANVAS_WIDTH}:{CANVAS_HEIGHT}:(ow-iw)/2:(oh-ih)/2:black",
    ]
    if not item.is_video:
        # Looped stills have no timeline of their own
        filters.append("setpts=PTS-STARTPTS")
    filters.append(f"fps={frame_rate}")
    filters.append("setsar=1")
    return filters


def fade_in(start: float = 0) -> str:
    return f"fade=t=in:st={format_number(start)}:d={format_number(FADE_DURATION)}"


def fade_out(end: float) -> str:
    # No clamping: items shorter than two fade windows yield a negative start
    return f"fade=t=out:st={format_number(end - FADE_DURATION)}:d={format_number(FADE_DURATION)}"


def build_video_graph(
    media: list[MediaItem],
    settings: SlideshowSettings,
    timeline: Timeline,
) -> GraphFragment:
    """
    Build the video half of the filter graph.

    Args:
        media: Items in playback order
        settings: Compositor settings (fade options)
        timeline: Resolved durations for ``media``

    Returns:
        GraphFragment whose output is ``outv``
    """
    frame_rate = frame_rate_for(media)
    count = len(media)
    graph = FilterGraph()
    single = count == 1

    for i, item in enumerate(media):
        # A single unfaded item needs nothing after normalization
        output = VIDEO_OUTPUT if single and not settings.fade_in_out else f"v{i}"
        graph.add(normalize_filters(item, frame_rate), inputs=[f"{i}:v"], outputs=[output])

    if single:
        if settings.fade_in_out:
            graph.add([fade_in(), fade_out(timeline[0])], inputs=["v0"], outputs=[VIDEO_OUTPUT])
        logger.info(f"[VIDEO GRAPH] single item, fade={settings.fade_in_out}, fps={frame_rate}")
        return GraphFragment(graph=graph, output=VIDEO_OUTPUT, concatenated=False)

    if not settings.fade_in_out:
        graph.add(
            f"concat=n={count}:v=1:a=0",
            inputs=[f"v{i}" for i in range(count)],
            outputs=[VIDEO_OUTPUT],
        )
        logger.info(f"[VIDEO GRAPH] {count} items, no fades, fps={frame_rate}")
        return GraphFragment(graph=graph, output=VIDEO_OUTPUT, concatenated=True)

    concat_inputs: list[str] = []
    if settings.fade_position is FadePosition.BEGINNING_END:
        graph.add(fade_in(), inputs=["v0"], outputs=["v0f"])
        concat_inputs.append("v0f")
        concat_inputs.extend(f"v{i}" for i in range(1, count))
    else:
        for i in range(count):
            graph.add([fade_in(), fade_out(timeline[i])], inputs=[f"v{i}"], outputs=[f"v{i}f"])
            concat_inputs.append(f"v{i}f")

    graph.add(f"concat=n={count}:v=1:a=0", inputs=concat_inputs, outputs=[CONCAT_OUTPUT])
    # Fade the whole timeline's tail to black
    graph.add(fade_out(timeline.total_duration), inputs=[CONCAT_OUTPUT], outputs=[VIDEO_OUTPUT])

    logger.info(
        f"[VIDEO GRAPH] {count} items, fade={settings.fade_position.value}, "
        f"fps={frame_rate}, total={timeline.total_duration}s"
    )
    return GraphFragment(graph=graph, output=VIDEO_OUTPUT, concatenated=True)
