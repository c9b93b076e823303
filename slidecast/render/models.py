"""
Data model shared by the timeline compositor.

Everything here is immutable input to the pure render stages; the engine
adapter and orchestrator never mutate these objects.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


VIDEO_CONTAINER_PATTERN = re.compile(r"\.(mp4|mov|avi|mkv|webm|3gp)$", re.IGNORECASE)


class MediaKind(Enum):
    """Kind of a timeline item."""

    PHOTO = "photo"
    VIDEO = "video"


class FadePosition(Enum):
    """Where fade transitions are applied when fades are enabled."""

    THROUGHOUT = "throughout"
    BEGINNING_END = "beginning-end"


@dataclass(frozen=True)
class MediaItem:
    """One photo or video in playback order."""

    kind: MediaKind
    source_bytes: bytes = field(repr=False)
    name: str = ""
    native_duration: Optional[float] = None  # seconds, videos only
    display_index: int = 0

    @property
    def is_video(self) -> bool:
        return self.kind is MediaKind.VIDEO

    @property
    def extension(self) -> str:
        """File extension used when staging the item into the engine."""
        if not self.is_video:
            return "jpg"
        return file_extension(self.name, default="mp4")


@dataclass(frozen=True)
class BackgroundAudio:
    """Optional soundtrack that is not derived from any timeline item."""

    source_bytes: bytes = field(repr=False)
    name: str = ""
    declared_duration: Optional[float] = None  # None/0 = undetectable or silent
    is_video_container: bool = False

    @property
    def staged_name(self) -> str:
        if self.is_video_container:
            return f"input_video_for_audio.{file_extension(self.name, default='mp4')}"
        return f"input_audio.{file_extension(self.name, default='mp3')}"


@dataclass(frozen=True)
class SlideshowSettings:
    """Per-invocation compositor options."""

    photo_duration: float = 3.0
    apply_photo_duration_to_videos: bool = False
    fade_in_out: bool = False
    fade_position: FadePosition = FadePosition.THROUGHOUT
    audio_fade_in_out: bool = False
    keep_original_video_audio: bool = False


@dataclass(frozen=True)
class Timeline:
    """Resolved durations, parallel to the media list."""

    per_item_duration: tuple[float, ...]
    total_duration: float

    def __len__(self) -> int:
        return len(self.per_item_duration)

    def __getitem__(self, index: int) -> float:
        return self.per_item_duration[index]


@dataclass
class RenderedVideo:
    """Finished output payload."""

    data: bytes = field(repr=False)
    mime_type: str = "video/mp4"

    @property
    def size(self) -> int:
        return len(self.data)


def file_extension(name: str, default: str) -> str:
    """Lower-cased extension of ``name`` or ``default`` when it has none."""
    if "." not in name:
        return default
    ext = name.rsplit(".", 1)[-1].lower()
    return ext or default


def staged_media_name(item: MediaItem, index: int) -> str:
    """Name of a media item inside the engine's file set."""
    return f"media_{index}.{item.extension}"


def is_video_container(name: str, mime_type: Optional[str] = None) -> bool:
    """Whether a background-audio upload has to be demuxed first."""
    if mime_type and mime_type.startswith("video/"):
        return True
    return bool(VIDEO_CONTAINER_PATTERN.search(name or ""))


def has_video(media: list[MediaItem]) -> bool:
    return any(item.is_video for item in media)
