"""
Pytest fixtures for slidecast tests.

Most tests run against FakeRenderEngine, an in-memory stand-in for FFmpeg that
records every argument list and "produces" the output file named by the last
argument. Tests that need the real binary are marked ``requires_ffmpeg`` and
skipped when ffmpeg is not on PATH.
"""

import io
import shutil
from typing import Callable, Optional

import pytest
from PIL import Image

from slidecast.engine.base import EngineFile, RenderEngine
from slidecast.exceptions import EngineExecutionFailure
from slidecast.render.models import (
    BackgroundAudio,
    FadePosition,
    MediaItem,
    MediaKind,
    SlideshowSettings,
)

FAKE_MP4 = b"\x00\x00\x00\x18ftypmp42\x00\x00\x00\x00mp42isom"

requires_ffmpeg = pytest.mark.skipif(
    shutil.which("ffmpeg") is None,
    reason="ffmpeg not available",
)


class FakeRenderEngine(RenderEngine):
    """In-memory rendering engine.

    Args:
        fail_when: Predicate on an argument list; matching calls raise
            EngineExecutionFailure
        missing_when: Predicate on an argument list; matching calls succeed
            without producing their output file
        progress: Ratios emitted on every exec call
        output_data: Bytes written for ``output.mp4``
    """

    def __init__(
        self,
        fail_when: Optional[Callable[[list[str]], bool]] = None,
        missing_when: Optional[Callable[[list[str]], bool]] = None,
        progress: tuple[float, ...] = (),
        output_data: bytes = FAKE_MP4,
        fail_writes: tuple[str, ...] = (),
    ):
        super().__init__()
        self.fail_when = fail_when or (lambda args: False)
        self.missing_when = missing_when or (lambda args: False)
        self.progress = progress
        self.output_data = output_data
        self.fail_writes = set(fail_writes)
        self.files: dict[str, bytes] = {}
        self.write_log: list[tuple[str, bytes]] = []
        self.exec_calls: list[list[str]] = []
        self.loaded = False
        self.terminated = False

    async def load(self) -> None:
        self.loaded = True

    async def write_file(self, name: str, data: bytes) -> None:
        self.write_log.append((name, data))
        if name in self.fail_writes:
            self.fail_writes.discard(name)
            raise OSError(f"write failed: {name}")
        self.files[name] = data

    async def exec(self, args: list[str], *, expected_duration: Optional[float] = None) -> None:
        args = list(args)
        self.exec_calls.append(args)
        output = args[-1]
        self._emit_log(f"exec -> {output}")
        for ratio in self.progress:
            self._emit_progress(ratio)
        if self.fail_when(args):
            raise EngineExecutionFailure(returncode=1, stderr="Invalid data found when processing input", args=args)
        if not self.missing_when(args):
            self.files[output] = self.output_data if output == "output.mp4" else b"aac"

    async def list_dir(self, path: str = "/") -> list[EngineFile]:
        return [EngineFile(name=name, size=len(data)) for name, data in self.files.items()]

    async def read_file(self, name: str) -> bytes:
        return self.files[name]

    def terminate(self) -> None:
        self.terminated = True


def is_demux(args: list[str]) -> bool:
    return "-vn" in args


def is_silence(args: list[str]) -> bool:
    return "lavfi" in args


def is_loop_or_trim(args: list[str]) -> bool:
    return args[-1] == "audio.aac" and "lavfi" not in args


def is_final_encode(args: list[str]) -> bool:
    return args[-1] == "output.mp4"


@pytest.fixture
def fake_engine() -> FakeRenderEngine:
    return FakeRenderEngine()


def make_photo(index: int = 0, name: Optional[str] = None) -> MediaItem:
    return MediaItem(
        kind=MediaKind.PHOTO,
        source_bytes=b"photo-%d" % index,
        name=name or f"photo{index}.png",
        display_index=index,
    )


def make_video(index: int = 0, duration: Optional[float] = 12.0, name: Optional[str] = None) -> MediaItem:
    return MediaItem(
        kind=MediaKind.VIDEO,
        source_bytes=b"video-%d" % index,
        name=name or f"clip{index}.mov",
        native_duration=duration,
        display_index=index,
    )


def make_audio(duration: Optional[float] = 4.0, name: str = "song.mp3", video_container: bool = False) -> BackgroundAudio:
    return BackgroundAudio(
        source_bytes=b"audio",
        name=name,
        declared_duration=duration,
        is_video_container=video_container,
    )


@pytest.fixture
def photos() -> Callable[[int], list[MediaItem]]:
    def _photos(count: int) -> list[MediaItem]:
        return [make_photo(i) for i in range(count)]
    return _photos


@pytest.fixture
def default_settings() -> SlideshowSettings:
    return SlideshowSettings(photo_duration=3.0)


@pytest.fixture
def fade_settings() -> Callable[..., SlideshowSettings]:
    def _settings(position: FadePosition = FadePosition.THROUGHOUT, **kwargs) -> SlideshowSettings:
        return SlideshowSettings(fade_in_out=True, fade_position=position, **kwargs)
    return _settings


@pytest.fixture
def jpeg_bytes() -> Callable[..., bytes]:
    """Encode a solid-color test image."""
    def _image(width: int = 64, height: int = 48, mode: str = "RGB", fmt: str = "JPEG") -> bytes:
        color = (200, 30, 30, 128) if mode == "RGBA" else (200, 30, 30)
        img = Image.new(mode, (width, height), color)
        out = io.BytesIO()
        img.save(out, format=fmt)
        return out.getvalue()
    return _image


async def passthrough_optimizer(data: bytes, max_dimension: int) -> bytes:
    return data
