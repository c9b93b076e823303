from typing import Literal

from pydantic import BaseModel, Field

from slidecast.render.models import FadePosition, SlideshowSettings


class SlideshowSettingsSchema(BaseModel):
    photo_duration: float = Field(default=3.0, gt=0, allow_inf_nan=False)
    apply_photo_duration_to_videos: bool = False
    fade_in_out: bool = False
    fade_position: Literal["throughout", "beginning-end"] = "throughout"
    audio_fade_in_out: bool = False
    keep_original_video_audio: bool = False

    def to_settings(self) -> SlideshowSettings:
        return SlideshowSettings(
            photo_duration=self.photo_duration,
            apply_photo_duration_to_videos=self.apply_photo_duration_to_videos,
            fade_in_out=self.fade_in_out,
            fade_position=FadePosition(self.fade_position),
            audio_fade_in_out=self.audio_fade_in_out,
            keep_original_video_audio=self.keep_original_video_audio,
        )


class MediaEntry(BaseModel):
    # Optional overrides; otherwise derived from the uploaded file
    kind: Literal["photo", "video"] | None = None
    duration: float | None = Field(default=None, gt=0)  # seconds, videos only


class BackgroundAudioEntry(BaseModel):
    duration: float | None = None  # seconds; None/0 = unknown, probed when possible


class RenderManifest(BaseModel):
    """JSON carried in the ``manifest`` form field of a render request."""

    settings: SlideshowSettingsSchema = Field(default_factory=SlideshowSettingsSchema)
    media: list[MediaEntry] = Field(default_factory=list)  # parallel to uploaded files
    background_audio: BackgroundAudioEntry | None = None
