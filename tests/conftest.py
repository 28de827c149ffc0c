"""Shared fixtures: fake process operations and a fake process runner."""

from __future__ import annotations

from pathlib import Path

import pytest

from consoleproc.config import ConsoleProcConfig
from consoleproc.errors import LaunchError
from consoleproc.process.events import EventBus
from consoleproc.process.options import ProcessOptions
from consoleproc.process.registry import SessionRegistry
from consoleproc.process.supervisor import ProcessCallbacks


class FakeOps:
    """Records every ProcessOperations call."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def write_to_stdin(self, text: str, eof: bool = False) -> None:
        self.calls.append(("write", text))

    def pty_interrupt(self) -> None:
        self.calls.append(("interrupt",))

    def pty_set_size(self, cols: int, rows: int) -> None:
        self.calls.append(("resize", cols, rows))

    def terminate(self) -> None:
        self.calls.append(("terminate",))

    @property
    def writes(self) -> list[str]:
        return [c[1] for c in self.calls if c[0] == "write"]


class FakeSupervisor:
    """Records launches instead of forking; can be told to fail."""

    def __init__(self) -> None:
        self.launches: list[tuple[str, object, ProcessOptions]] = []
        self.callbacks: list[ProcessCallbacks] = []
        self.fail = False

    def _launch(self, kind: str, what: object, options, callbacks) -> None:
        if self.fail:
            raise LaunchError(f"cannot start {what}")
        self.launches.append((kind, what, options))
        self.callbacks.append(callbacks)

    def run_command(self, command, options, callbacks) -> None:
        self._launch("command", command, options, callbacks)

    def run_program(self, program, args, options, callbacks) -> None:
        self._launch("program", [program, *args], options, callbacks)

    def run_terminal(self, options, callbacks) -> None:
        self._launch("terminal", None, options, callbacks)


@pytest.fixture
def ops() -> FakeOps:
    return FakeOps()


@pytest.fixture
def supervisor() -> FakeSupervisor:
    return FakeSupervisor()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def scratch_dir(tmp_path: Path) -> Path:
    return tmp_path / "console"


@pytest.fixture
def config(scratch_dir: Path) -> ConsoleProcConfig:
    return ConsoleProcConfig(scratch_dir=str(scratch_dir))


@pytest.fixture
def registry(config: ConsoleProcConfig, supervisor: FakeSupervisor) -> SessionRegistry:
    return SessionRegistry(config, supervisor=supervisor)
