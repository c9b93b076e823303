from slidecast.engine.base import EngineFile, RenderEngine
from slidecast.engine.ffmpeg_engine import FFmpegEngine

__all__ = [
    "EngineFile",
    "RenderEngine",
    "FFmpegEngine",
]
