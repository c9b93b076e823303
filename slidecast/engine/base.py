"""
Rendering engine boundary.

The compositor only talks to FFmpeg through this interface: a private file
set that arguments refer to by bare name, an ``exec`` that runs one argument
list against it, and listener hooks for progress ratios and log lines.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional


ProgressListener = Callable[[float], None]
LogListener = Callable[[str], None]


@dataclass(frozen=True)
class EngineFile:
    """Entry of the engine's file set."""

    name: str
    size: int = 0
    is_dir: bool = False


class RenderEngine(ABC):
    """One engine instance serves exactly one render invocation."""

    def __init__(self) -> None:
        self._progress_listeners: list[ProgressListener] = []
        self._log_listeners: list[LogListener] = []

    def on_progress(self, listener: ProgressListener) -> None:
        """Register a listener for 0..1 progress ratios emitted during ``exec``."""
        self._progress_listeners.append(listener)

    def on_log(self, listener: LogListener) -> None:
        """Register a listener for engine log lines."""
        self._log_listeners.append(listener)

    def _emit_progress(self, ratio: float) -> None:
        for listener in self._progress_listeners:
            listener(ratio)

    def _emit_log(self, message: str) -> None:
        for listener in self._log_listeners:
            listener(message)

    @abstractmethod
    async def load(self) -> None:
        """Prepare the engine; must be awaited before any other call."""

    @abstractmethod
    async def write_file(self, name: str, data: bytes) -> None:
        """Place ``data`` in the file set under ``name``."""

    @abstractmethod
    async def exec(self, args: list[str], *, expected_duration: Optional[float] = None) -> None:
        """Run one argument list.

        Args:
            args: Engine arguments, without the executable
            expected_duration: Output length in seconds, used to turn engine
                time stamps into progress ratios

        Raises:
            EngineExecutionFailure: If the engine rejects the arguments
        """

    @abstractmethod
    async def list_dir(self, path: str = "/") -> list[EngineFile]:
        """List the file set."""

    @abstractmethod
    async def read_file(self, name: str) -> bytes:
        """Read a file back from the file set."""

    @abstractmethod
    def terminate(self) -> None:
        """Release the engine and everything it holds."""

    async def has_file(self, name: str) -> bool:
        files = await self.list_dir("/")
        return any(f.name == name for f in files)
