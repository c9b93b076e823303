"""Photo pre-optimization before staging into the render engine.

Large camera images cost FFmpeg far more decode time than the 1080p canvas
needs, so photos are downscaled and recompressed to JPEG first.
"""

import asyncio
import io
import logging
from typing import Optional

from PIL import Image, ImageOps

from slidecast.config import get_settings

logger = logging.getLogger(__name__)


def optimize_image(data: bytes, max_dimension: int, quality: Optional[int] = None) -> bytes:
    """
    Downscale an image so its longest side is at most ``max_dimension``.

    EXIF orientation is applied, transparency is flattened onto black (the
    canvas color) and the result is encoded as baseline JPEG.

    Args:
        data: Raw image payload
        max_dimension: Longest side in pixels
        quality: JPEG quality, defaults to ``Settings.image_jpeg_quality``

    Returns:
        JPEG payload

    Raises:
        PIL.UnidentifiedImageError: If ``data`` is not a readable image
    """
    quality = quality or get_settings().image_jpeg_quality

    with Image.open(io.BytesIO(data)) as img:
        img = ImageOps.exif_transpose(img)
        if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
            rgba = img.convert("RGBA")
            background = Image.new("RGB", rgba.size, (0, 0, 0))
            background.paste(rgba, mask=rgba.getchannel("A"))
            img = background
        elif img.mode != "RGB":
            img = img.convert("RGB")

        if max(img.size) > max_dimension:
            img.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

        out = io.BytesIO()
        img.save(out, format="JPEG", quality=quality, optimize=True)
        return out.getvalue()


async def create_video_optimized_image(data: bytes, max_dimension: Optional[int] = None) -> bytes:
    """Async wrapper running :func:`optimize_image` off the event loop."""
    max_dimension = max_dimension or get_settings().image_max_dimension
    result = await asyncio.to_thread(optimize_image, data, max_dimension)
    logger.debug(f"[IMAGE] Optimized {len(data)} -> {len(result)} bytes (max {max_dimension}px)")
    return result
