"""
Audio filter graph for keeping video items' native sound.

The audio timeline mirrors the video concatenation: one pad per item in the
same order, videos contributing their resampled native audio and photos a
silent gap of their resolved duration.
"""

import logging
from typing import Optional

from slidecast.render.filter_graph import FilterGraph, format_number
from slidecast.render.models import MediaItem, SlideshowSettings, Timeline, has_video
from slidecast.render.video_graph import GraphFragment

logger = logging.getLogger(__name__)

SAMPLE_RATE = 44100
AUDIO_OUTPUT = "outa"
ITEM_TIMELINE = "video_audio"


def needs_audio_graph(media: list[MediaItem], settings: SlideshowSettings) -> bool:
    return settings.keep_original_video_audio and has_video(media)


def silence_source(duration: float) -> str:
    return f"anullsrc=channel_layout=stereo:sample_rate={SAMPLE_RATE}:duration={format_number(duration)}"


def build_audio_graph(
    media: list[MediaItem],
    settings: SlideshowSettings,
    timeline: Timeline,
    background_input: Optional[int] = None,
) -> Optional[GraphFragment]:
    """
    Build the audio half of the filter graph.

    Args:
        media: Items in playback order
        settings: Compositor settings
        timeline: Resolved durations, the same object the video graph used
        background_input: Engine input index of the prepared background
            audio, or None when there is none

    Returns:
        GraphFragment ending in ``outa``, or None when native audio is not kept
    """
    if not needs_audio_graph(media, settings):
        return None

    graph = FilterGraph()
    pads: list[str] = []

    for i, item in enumerate(media):
        if item.is_video:
            pad = f"video_audio{i}"
            graph.add(
                [f"aresample={SAMPLE_RATE}", "aformat=channel_layouts=stereo"],
                inputs=[f"{i}:a"],
                outputs=[pad],
            )
        else:
            pad = f"silence{i}"
            graph.add(silence_source(timeline[i]), outputs=[pad])
        pads.append(pad)

    mixing = background_input is not None
    timeline_pad = ITEM_TIMELINE if mixing else AUDIO_OUTPUT
    concatenated = len(pads) > 1

    if concatenated:
        graph.add(f"concat=n={len(pads)}:v=0:a=1", inputs=pads, outputs=[timeline_pad])
    elif not mixing:
        # Nothing to join or mix; pass the lone pad through to the terminal
        graph.add("anull", inputs=pads, outputs=[AUDIO_OUTPUT])
    else:
        timeline_pad = pads[0]

    if mixing:
        # Both inputs are already cut to the timeline length
        graph.add(
            "amix=inputs=2:duration=shortest",
            inputs=[timeline_pad, f"{background_input}:a"],
            outputs=[AUDIO_OUTPUT],
        )

    logger.info(
        f"[AUDIO GRAPH] {len(pads)} item tracks, background={'yes' if mixing else 'no'}"
    )
    return GraphFragment(graph=graph, output=AUDIO_OUTPUT, concatenated=concatenated)
