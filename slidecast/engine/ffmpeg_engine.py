"""
Local FFmpeg engine.

Backs the engine file set with a private temporary directory and runs the
FFmpeg binary from ``Settings.ffmpeg_path`` inside it, so argument lists can
refer to staged files by bare name.
"""

import asyncio
import logging
import os
import shutil
import tempfile
from typing import Optional

from slidecast.config import get_settings
from slidecast.engine.base import EngineFile, RenderEngine
from slidecast.exceptions import EngineExecutionFailure, EngineUnavailableError

logger = logging.getLogger(__name__)

# Keep the tail of stderr for error reports
STDERR_TAIL_LINES = 40


def parse_progress_line(line: str, expected_duration: Optional[float]) -> Optional[float]:
    """Turn one ``-progress`` line into a 0..1 ratio, or None if it carries none."""
    if not expected_duration or expected_duration <= 0:
        return None
    if not line.startswith("out_time_us="):
        return None
    try:
        time_us = int(line.split("=", 1)[1])
    except ValueError:
        # FFmpeg prints N/A before the first frame is muxed
        return None
    ratio = time_us / 1_000_000 / expected_duration
    return max(0.0, min(1.0, ratio))


class FFmpegEngine(RenderEngine):
    """Runs FFmpeg as a subprocess against a temporary working directory."""

    def __init__(self, ffmpeg_path: Optional[str] = None, work_dir_prefix: Optional[str] = None):
        super().__init__()
        settings = get_settings()
        self.ffmpeg_path = ffmpeg_path or settings.ffmpeg_path
        self.work_dir_prefix = work_dir_prefix or settings.render_work_dir_prefix
        self.work_dir = ""
        self._process: Optional[asyncio.subprocess.Process] = None

    async def load(self) -> None:
        if not shutil.which(self.ffmpeg_path):
            raise EngineUnavailableError(
                f"ffmpeg not found: {self.ffmpeg_path}; set FFMPEG_PATH or install ffmpeg"
            )
        try:
            proc = await asyncio.create_subprocess_exec(
                self.ffmpeg_path,
                "-hide_banner",
                "-version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise EngineUnavailableError(f"ffmpeg could not be started: {e}") from e
        await proc.communicate()
        if proc.returncode != 0:
            raise EngineUnavailableError(f"ffmpeg check failed with code {proc.returncode}")

        self.work_dir = tempfile.mkdtemp(prefix=self.work_dir_prefix)
        logger.info(f"[ENGINE] Loaded {self.ffmpeg_path}, work dir {self.work_dir}")

    def _path(self, name: str) -> str:
        if not self.work_dir:
            raise RuntimeError("Engine is not loaded")
        # The file set is flat; never let a name escape it
        base = os.path.basename(name.strip("/"))
        if not base or base in (".", ".."):
            raise ValueError(f"Invalid engine file name: {name!r}")
        return os.path.join(self.work_dir, base)

    async def write_file(self, name: str, data: bytes) -> None:
        path = self._path(name)
        await asyncio.to_thread(_write_bytes, path, data)
        logger.debug(f"[ENGINE] Wrote {name} ({len(data)} bytes)")

    async def exec(self, args: list[str], *, expected_duration: Optional[float] = None) -> None:
        if not self.work_dir:
            raise RuntimeError("Engine is not loaded")

        cmd = [
            self.ffmpeg_path,
            "-hide_banner",
            "-y",
            "-nostats",
            "-progress",
            "pipe:1",
            *args,
        ]
        logger.info("[ENGINE] " + " ".join(f'"{a}"' if " " in a else a for a in cmd))

        self._process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=self.work_dir,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        proc = self._process
        stderr_tail: list[str] = []

        async def read_progress() -> None:
            assert proc.stdout is not None
            async for raw_line in proc.stdout:
                line = raw_line.decode("utf-8", errors="replace").strip()
                ratio = parse_progress_line(line, expected_duration)
                if ratio is not None:
                    self._emit_progress(ratio)
                elif line == "progress=end" and expected_duration:
                    self._emit_progress(1.0)

        async def read_log() -> None:
            assert proc.stderr is not None
            async for raw_line in proc.stderr:
                line = raw_line.decode("utf-8", errors="replace").rstrip()
                if not line:
                    continue
                stderr_tail.append(line)
                del stderr_tail[:-STDERR_TAIL_LINES]
                self._emit_log(line)

        try:
            await asyncio.gather(read_progress(), read_log())
            returncode = await proc.wait()
        except BaseException:
            # Cancelled or failed mid-run: never leave ffmpeg behind
            if proc.returncode is None:
                logger.warning("[ENGINE] Killing ffmpeg after interrupted exec")
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
                await proc.wait()
            raise
        finally:
            if proc.returncode is not None:
                self._process = None

        if returncode != 0:
            stderr_text = "\n".join(stderr_tail)
            logger.error(f"[ENGINE] ffmpeg exited with {returncode}:\n{stderr_text}")
            raise EngineExecutionFailure(returncode=returncode, stderr=stderr_text, args=args)

    async def list_dir(self, path: str = "/") -> list[EngineFile]:
        if not self.work_dir:
            raise RuntimeError("Engine is not loaded")
        return await asyncio.to_thread(_scan, self.work_dir)

    async def read_file(self, name: str) -> bytes:
        path = self._path(name)
        return await asyncio.to_thread(_read_bytes, path)

    def terminate(self) -> None:
        if self._process is not None and self._process.returncode is None:
            logger.warning("[ENGINE] Killing running ffmpeg process")
            self._process.kill()
        self._process = None
        if self.work_dir:
            shutil.rmtree(self.work_dir, ignore_errors=True)
            logger.debug(f"[ENGINE] Removed {self.work_dir}")
            self.work_dir = ""


def _write_bytes(path: str, data: bytes) -> None:
    with open(path, "wb") as f:
        f.write(data)


def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _scan(directory: str) -> list[EngineFile]:
    with os.scandir(directory) as entries:
        return [
            EngineFile(
                name=entry.name,
                size=0 if entry.is_dir() else entry.stat().st_size,
                is_dir=entry.is_dir(),
            )
            for entry in entries
        ]
