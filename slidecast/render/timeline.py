"""Duration resolution for the slideshow timeline."""

import logging
import math

from slidecast.exceptions import InvalidSettingsError, MissingNativeDuration, NoMediaProvided
from slidecast.render.models import MediaItem, SlideshowSettings, Timeline

logger = logging.getLogger(__name__)


def effective_duration(item: MediaItem, index: int, settings: SlideshowSettings) -> float:
    """On-screen duration of a single item.

    Photos always get ``photo_duration``. Videos keep their native duration,
    capped at ``photo_duration`` when ``apply_photo_duration_to_videos`` is set.

    Raises:
        MissingNativeDuration: If a video was not probed by the caller
    """
    if not item.is_video:
        return settings.photo_duration

    if item.native_duration is None or item.native_duration <= 0:
        raise MissingNativeDuration(index=index, name=item.name or None)

    if settings.apply_photo_duration_to_videos:
        return min(item.native_duration, settings.photo_duration)
    return item.native_duration


def resolve_timeline(media: list[MediaItem], settings: SlideshowSettings) -> Timeline:
    """
    Resolve every item's effective duration and the total timeline length.

    This is the only place durations are computed; the graph builders and the
    plan assembler all consume the returned Timeline.

    Args:
        media: Items in playback order
        settings: Compositor settings

    Returns:
        Timeline with per-item durations and their sum

    Raises:
        NoMediaProvided: If ``media`` is empty
        InvalidSettingsError: If ``photo_duration`` is not a positive number
        MissingNativeDuration: If any video lacks a native duration
    """
    if not media:
        raise NoMediaProvided()
    if not math.isfinite(settings.photo_duration) or settings.photo_duration <= 0:
        raise InvalidSettingsError("photo_duration", settings.photo_duration)

    durations = tuple(effective_duration(item, i, settings) for i, item in enumerate(media))
    total = sum(durations)

    logger.info(f"[TIMELINE] {len(durations)} items, total duration {total}s")
    return Timeline(per_item_duration=durations, total_duration=total)
