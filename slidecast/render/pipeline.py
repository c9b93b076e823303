"""
Slideshow render pipeline.

This module orchestrates one render invocation:
1. Resolve the timeline (fails fast on unprobed videos)
2. Load a rendering engine
3. Stage media into the engine (photos pre-optimized)
4. Prepare background audio (extract, loop/trim, fade, silent fallback)
5. Assemble the render plan and run the final encode
6. Verify and read back the MP4

The engine instance is always terminated, whatever the outcome.
"""

import logging
import math
from typing import Awaitable, Callable, Optional

from slidecast.config import get_settings
from slidecast.engine.base import RenderEngine
from slidecast.engine.ffmpeg_engine import FFmpegEngine
from slidecast.exceptions import NoMediaProvided, OutputMissingOrEmpty
from slidecast.render.audio_pipeline import BackgroundAudioPipeline
from slidecast.render.models import (
    BackgroundAudio,
    MediaItem,
    RenderedVideo,
    SlideshowSettings,
    staged_media_name,
)
from slidecast.render.plan import assemble_render_plan
from slidecast.render.timeline import resolve_timeline
from slidecast.utils.image_optimizer import create_video_optimized_image

logger = logging.getLogger(__name__)
engine_logger = logging.getLogger("slidecast.engine")

ProgressCallback = Callable[[int], None]
ImageOptimizer = Callable[[bytes, int], Awaitable[bytes]]

# Final encode progress is mapped onto this window
ENCODE_PROGRESS_START = 70
ENCODE_PROGRESS_SPAN = 25
ENCODE_PROGRESS_CAP = 95


def map_encode_progress(ratio: float) -> int:
    """Engine ratio (0..1) to overall percent, never above 95."""
    return min(math.floor(ENCODE_PROGRESS_START + ratio * ENCODE_PROGRESS_SPAN), ENCODE_PROGRESS_CAP)


class SlideshowPipeline:
    """
    Renders a photo/video slideshow to MP4.

    Handles:
    - Photo pre-optimization with raw fallback
    - Background audio preparation
    - Final encode with engine-driven progress
    """

    def __init__(
        self,
        engine_factory: Callable[[], RenderEngine] = FFmpegEngine,
        image_optimizer: ImageOptimizer = create_video_optimized_image,
        image_max_dimension: Optional[int] = None,
    ):
        self.engine_factory = engine_factory
        self.image_optimizer = image_optimizer
        self.image_max_dimension = image_max_dimension or get_settings().image_max_dimension
        self._progress_callback: Optional[ProgressCallback] = None
        self._encoding = False

    def set_progress_callback(self, callback: Optional[ProgressCallback]) -> None:
        """Set callback for progress updates."""
        self._progress_callback = callback

    def _update_progress(self, progress: int, stage: str) -> None:
        logger.info(f"[RENDER] {progress}% {stage}")
        if self._progress_callback:
            self._progress_callback(progress)

    def _on_engine_progress(self, ratio: float) -> None:
        # Only the final encode drives the fine-grained range
        if self._encoding and self._progress_callback:
            self._progress_callback(map_encode_progress(ratio))

    async def create_video(
        self,
        media: list[MediaItem],
        background_audio: Optional[BackgroundAudio],
        settings: SlideshowSettings,
        on_progress: Optional[ProgressCallback] = None,
    ) -> RenderedVideo:
        """
        Execute the full render pipeline.

        Args:
            media: Photos and videos in playback order
            background_audio: Optional soundtrack
            settings: Compositor settings
            on_progress: Receives integer percentages (overrides a callback
                set with :meth:`set_progress_callback`)

        Returns:
            RenderedVideo holding the MP4 payload

        Raises:
            NoMediaProvided: If ``media`` is empty
            MissingNativeDuration: If a video has no probed duration
            AudioPipelineFatal: If background audio cannot be prepared
            EngineExecutionFailure: If the final encode fails
            OutputMissingOrEmpty: If the engine produced no output
        """
        if on_progress is not None:
            self._progress_callback = on_progress
        if not media:
            raise NoMediaProvided()

        self._update_progress(0, "Starting")
        timeline = resolve_timeline(media, settings)

        engine = self.engine_factory()
        engine.on_progress(self._on_engine_progress)
        engine.on_log(engine_logger.debug)
        try:
            await engine.load()
            self._update_progress(10, "Engine loaded")

            await self._stage_media(engine, media)
            self._update_progress(30, "Media staged")

            background_file: Optional[str] = None
            if background_audio is not None:
                prepared = await BackgroundAudioPipeline(engine).run(
                    background_audio, timeline.total_duration, settings
                )
                background_file = prepared.file_name
                self._update_progress(50, "Background audio prepared")

            plan = assemble_render_plan(media, settings, timeline, background_audio_file=background_file)
            logger.info(f"[RENDER] filter_complex: {plan.filter_complex}")
            self._update_progress(60, "Render plan assembled")

            self._encoding = True
            try:
                await engine.exec(plan.to_args(), expected_duration=timeline.total_duration)
            finally:
                self._encoding = False
            self._update_progress(ENCODE_PROGRESS_CAP, "Encoding finished")

            data = await self._read_output(engine, plan.output_name)
            self._update_progress(100, "Complete")
            return RenderedVideo(data=data, mime_type="video/mp4")
        except Exception:
            logger.exception("[RENDER] Error in video processing")
            raise
        finally:
            try:
                engine.terminate()
            except Exception as e:
                logger.warning(f"[RENDER] Error terminating engine: {e}")

    async def _stage_media(self, engine: RenderEngine, media: list[MediaItem]) -> None:
        """Write every item into the engine, falling back to the raw payload."""
        for i, item in enumerate(media):
            name = staged_media_name(item, i)
            try:
                if item.is_video:
                    data = item.source_bytes
                else:
                    data = await self.image_optimizer(item.source_bytes, self.image_max_dimension)
                    logger.info(f"[RENDER] Optimized photo {i}: {len(data)} bytes (was {len(item.source_bytes)})")
                await engine.write_file(name, data)
            except Exception as e:
                logger.warning(f"[RENDER] Processing failed for {item.kind.value} {i}, using original: {e}")
                await engine.write_file(name, item.source_bytes)

    async def _read_output(self, engine: RenderEngine, output_name: str) -> bytes:
        if not await engine.has_file(output_name):
            raise OutputMissingOrEmpty(f"Failed to generate video: {output_name} file was not created")

        data = await engine.read_file(output_name)
        if not data:
            raise OutputMissingOrEmpty("Failed to generate video: Output file is empty (0 bytes)")

        logger.info(f"[RENDER] Generated video size: {len(data)} bytes, header {data[:8].hex(' ')}")
        return data
