"""Launch descriptions and input units for console processes."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace

SMART_TERM = "xterm-256color"
DUMB_TERM = "dumb"


class InteractionMode(enum.Enum):
    """Whether a session is expected to talk to a human."""

    NEVER = "never"
    POSSIBLE = "possible"
    ALWAYS = "always"


@dataclass(frozen=True)
class Pseudoterminal:
    cols: int = 80
    rows: int = 25


@dataclass
class ProcessOptions:
    """Options handed to the process runner."""

    environment: dict[str, str] | None = None
    working_dir: str | None = None
    cols: int = 80
    rows: int = 25
    smart_terminal: bool = False  # child echoes its own input
    redirect_stderr_to_stdout: bool = False
    report_has_subprocs: bool = False
    terminate_children: bool = False
    pseudoterminal: Pseudoterminal | None = None

    def copy(self, **changes) -> ProcessOptions:
        if "environment" not in changes and self.environment is not None:
            changes["environment"] = dict(self.environment)
        return replace(self, **changes)


@dataclass(frozen=True)
class ProcessSpec:
    """Immutable launch description.

    Exactly one of ``command`` (a shell command line) or ``program`` (+
    ``args``) is normally set. When neither is, the runner starts the
    user's interactive terminal shell.
    """

    command: str = ""
    program: str = ""
    args: tuple[str, ...] = ()
    options: ProcessOptions = field(default_factory=ProcessOptions)

    @classmethod
    def shell(cls, command: str, options: ProcessOptions | None = None) -> ProcessSpec:
        return cls(command=command, options=options or ProcessOptions())

    @classmethod
    def exec(
        cls,
        program: str,
        args: list[str] | tuple[str, ...] = (),
        options: ProcessOptions | None = None,
    ) -> ProcessSpec:
        return cls(program=program, args=tuple(args), options=options or ProcessOptions())

    @classmethod
    def terminal(cls, options: ProcessOptions | None = None) -> ProcessSpec:
        return cls(options=options or ProcessOptions())

    @property
    def is_terminal(self) -> bool:
        return not self.command and not self.program

    def describe(self) -> str:
        if self.command:
            return self.command
        if self.program:
            return " ".join([self.program, *self.args])
        return "<terminal>"

    def with_options(self, options: ProcessOptions) -> ProcessSpec:
        return replace(self, options=options)


@dataclass(frozen=True)
class Input:
    """One queued unit of interactive input."""

    text: str = ""
    echo_input: bool = False
    interrupt: bool = False

    @classmethod
    def interrupt_signal(cls, echo_input: bool = False) -> Input:
        return cls(interrupt=True, echo_input=echo_input)

    @property
    def empty(self) -> bool:
        return not self.interrupt and not self.text
