"""Media duration probing with FFprobe.

The compositor never probes media itself; callers (the HTTP layer) use these
helpers to fill in video durations before invoking it.
"""

import asyncio
import json
import logging
import os
import tempfile
from typing import Optional

from slidecast.config import get_settings

logger = logging.getLogger(__name__)


def _get_settings():
    """Get settings lazily to avoid import issues in tests."""
    return get_settings()


def _probe_command(file_path: str) -> list[str]:
    return [
        _get_settings().ffprobe_path,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        file_path,
    ]


def _parse_duration(stdout: str, file_path: str) -> float:
    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Failed to parse ffprobe output: {e}")

    format_info = data.get("format", {})
    if "duration" not in format_info:
        raise RuntimeError(f"Duration not found in: {file_path}")

    try:
        return float(format_info["duration"])
    except (TypeError, ValueError):
        raise RuntimeError(f"Invalid duration in: {file_path}")


async def probe_duration_from_bytes(data: bytes, name: str = "") -> Optional[float]:
    """
    Probe the duration of an in-memory payload.

    Returns:
        Duration in seconds, or None when ffprobe cannot determine one
    """
    suffix = os.path.splitext(name)[1] if name else ""
    with tempfile.TemporaryDirectory(prefix="slidecast_probe_") as tmpdir:
        path = os.path.join(tmpdir, f"probe{suffix}")
        with open(path, "wb") as f:
            f.write(data)

        try:
            process = await asyncio.create_subprocess_exec(
                *_probe_command(path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.warning(f"[PROBE] ffprobe could not be started: {e}")
            return None
        stdout, _ = await process.communicate()

    if process.returncode != 0:
        return None
    try:
        duration = _parse_duration(stdout.decode("utf-8", errors="replace"), name or path)
    except RuntimeError:
        return None
    return duration if duration > 0 else None
