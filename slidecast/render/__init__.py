from slidecast.render.audio_pipeline import BackgroundAudioPipeline
from slidecast.render.models import (
    BackgroundAudio,
    FadePosition,
    MediaItem,
    MediaKind,
    RenderedVideo,
    SlideshowSettings,
    Timeline,
)
from slidecast.render.pipeline import SlideshowPipeline
from slidecast.render.plan import RenderPlan, assemble_render_plan
from slidecast.render.timeline import resolve_timeline

__all__ = [
    "SlideshowPipeline",
    "BackgroundAudioPipeline",
    "RenderPlan",
    "assemble_render_plan",
    "resolve_timeline",
    "BackgroundAudio",
    "FadePosition",
    "MediaItem",
    "MediaKind",
    "RenderedVideo",
    "SlideshowSettings",
    "Timeline",
]
