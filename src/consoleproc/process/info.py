"""Persisted metadata for one console process."""

from __future__ import annotations

import uuid
from collections.abc import Container
from dataclasses import dataclass, field
from typing import Any

from consoleproc.process.buffer import DEFAULT_CAPACITY, OutputRing
from consoleproc.process.options import InteractionMode
from consoleproc.process.text import DEFAULT_MAX_OUTPUT_LINES

NO_TERMINAL = 0  # terminal_sequence of a modal console


def new_handle() -> str:
    return uuid.uuid4().hex[:8]


@dataclass
class ProcessSessionInfo:
    """Mutable, persisted description of a console session.

    Survives suspend/resume through :meth:`to_json` / :meth:`from_json`.
    Live-process state (``started``) is never persisted.
    """

    handle: str = ""
    caption: str = ""
    title: str = ""
    terminal_sequence: int = NO_TERMINAL
    allow_restart: bool = False
    interaction_mode: InteractionMode = InteractionMode.POSSIBLE
    max_output_lines: int = DEFAULT_MAX_OUTPUT_LINES
    has_child_procs: bool = True
    exit_code: int | None = None
    buffer_capacity: int = DEFAULT_CAPACITY

    started: bool = field(default=False, init=False, compare=False)
    _output: OutputRing = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._output = OutputRing(self.buffer_capacity)

    def ensure_handle(self, taken: Container[str] = ()) -> str:
        """Generate a handle if none is set yet, avoiding ``taken`` ones."""
        if not self.handle:
            candidate = new_handle()
            while candidate in taken:
                candidate = new_handle()
            self.handle = candidate
        return self.handle

    @property
    def is_modal(self) -> bool:
        """Modal consoles keep their output embedded in this record."""
        return self.terminal_sequence == NO_TERMINAL

    def append_to_output_buffer(self, text: str) -> None:
        self._output.append(text)

    def buffered_output(self) -> str:
        return self._output.read()

    def clear_output_buffer(self) -> None:
        self._output.clear()

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "handle": self.handle,
            "caption": self.caption,
            "title": self.title,
            "terminal_sequence": self.terminal_sequence,
            "allow_restart": self.allow_restart,
            "interaction_mode": self.interaction_mode.value,
            "max_output_lines": self.max_output_lines,
            "has_child_procs": self.has_child_procs,
            "exit_code": self.exit_code,
        }
        if self.is_modal:
            data["buffered_output"] = self._output.read()
        return data

    @classmethod
    def from_json(
        cls, data: dict[str, Any], buffer_capacity: int = DEFAULT_CAPACITY
    ) -> ProcessSessionInfo:
        exit_code = data.get("exit_code")
        info = cls(
            handle=str(data.get("handle", "")),
            caption=str(data.get("caption", "")),
            title=str(data.get("title", "")),
            terminal_sequence=int(data.get("terminal_sequence", NO_TERMINAL)),
            allow_restart=bool(data.get("allow_restart", False)),
            interaction_mode=InteractionMode(
                data.get("interaction_mode", InteractionMode.POSSIBLE.value)
            ),
            max_output_lines=int(
                data.get("max_output_lines", DEFAULT_MAX_OUTPUT_LINES)
            ),
            has_child_procs=bool(data.get("has_child_procs", True)),
            exit_code=int(exit_code) if exit_code is not None else None,
            buffer_capacity=buffer_capacity,
        )
        buffered = data.get("buffered_output")
        if buffered and info.is_modal:
            info.append_to_output_buffer(str(buffered))
        return info
