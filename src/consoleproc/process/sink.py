"""Output sinks — where a console's output history is stored.

Modal consoles embed their output in the persisted session record.
Terminal tabs append to a log file named after the handle inside the
scratch directory. Storage failures are logged and swallowed: output
capture is best-effort telemetry, never a reason to fail an operation.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from consoleproc.process.info import ProcessSessionInfo

logger = logging.getLogger(__name__)


class OutputSink(ABC):
    """Append-only output storage for one session."""

    @abstractmethod
    def append(self, text: str) -> None:
        """Append ``text``. Never raises."""
        ...

    @abstractmethod
    def read(self) -> str:
        """Return everything stored so far, or ``""`` if unreadable."""
        ...

    @abstractmethod
    def erase(self) -> None:
        """Drop all stored output. Never raises."""
        ...


class EmbeddedOutputSink(OutputSink):
    """Output kept in the session's own (persisted) ring buffer."""

    def __init__(self, info: ProcessSessionInfo) -> None:
        self._info = info

    def append(self, text: str) -> None:
        self._info.append_to_output_buffer(text)

    def read(self) -> str:
        return self._info.buffered_output()

    def erase(self) -> None:
        self._info.clear_output_buffer()


class FileOutputSink(OutputSink):
    """Output appended to ``<directory>/<handle>``.

    The directory is created lazily on first use.
    """

    def __init__(self, info: ProcessSessionInfo, directory: Path) -> None:
        self._info = info
        self._directory = Path(directory)

    @property
    def path(self) -> Path:
        return self._directory / self._info.handle

    def _ensure_path(self) -> Path | None:
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Cannot create output directory %s: %s", self._directory, e)
            return None
        return self.path

    def append(self, text: str) -> None:
        if not text:
            return
        path = self._ensure_path()
        if path is None:
            return
        try:
            with open(path, "a", encoding="utf-8", newline="") as f:
                f.write(text)
        except OSError as e:
            logger.error("Failed to append output for %s: %s", self._info.handle, e)

    def read(self) -> str:
        path = self._ensure_path()
        if path is None or not path.exists():
            return ""
        try:
            with open(path, encoding="utf-8", errors="replace", newline="") as f:
                return f.read()
        except OSError as e:
            logger.error("Failed to read output for %s: %s", self._info.handle, e)
            return ""

    def erase(self) -> None:
        path = self._ensure_path()
        if path is None:
            return
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("Failed to delete output for %s: %s", self._info.handle, e)


def create_output_sink(info: ProcessSessionInfo, directory: Path) -> OutputSink:
    """Pick the backend for ``info``: embedded for modal consoles, file otherwise."""
    if info.is_modal:
        return EmbeddedOutputSink(info)
    return FileOutputSink(info, directory)
