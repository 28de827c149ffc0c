"""Process session — one logical interactive console process.

A session owns a launch spec, a queue of pending input, the routing of
output into its :class:`~consoleproc.process.sink.OutputSink`, and the
prompt-detection state machine. It implements the callback side of the
:class:`~consoleproc.process.supervisor.ProcessSupervisor` contract.

Lifecycle: ``CREATED -> STARTED -> EXITED``. Nothing leaves ``EXITED``;
running again means creating a new session under the same handle.

Threading: the ``on_*`` callbacks run on the driver thread only.
``enqueue_input``, ``interrupt`` and ``resize`` may be called from any
thread.
"""

from __future__ import annotations

import enum
import logging
import os
import threading
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Protocol

from consoleproc.errors import LaunchError
from consoleproc.process.events import EventBus
from consoleproc.process.info import ProcessSessionInfo
from consoleproc.process.options import (
    DUMB_TERM,
    SMART_TERM,
    Input,
    InteractionMode,
    ProcessOptions,
    ProcessSpec,
    Pseudoterminal,
)
from consoleproc.process.sink import OutputSink, create_output_sink
from consoleproc.process.supervisor import (
    ProcessCallbacks,
    ProcessOperations,
    ProcessSupervisor,
)
from consoleproc.process.text import (
    is_prompt_candidate,
    to_posix_line_endings,
    trim_leading_lines,
)

logger = logging.getLogger(__name__)

ExitObserver = Callable[[str, int], None]


class SessionStatus(enum.Enum):
    CREATED = "created"
    STARTED = "started"
    EXITED = "exited"


@dataclass(frozen=True)
class PromptResolution:
    """A prompt handler's decision.

    ``input`` is fed to the process; ``None`` means terminate it.
    """

    input: Input | None = None

    @classmethod
    def reply(cls, text: str, echo_input: bool = False) -> PromptResolution:
        return cls(input=Input(text=text, echo_input=echo_input))

    @classmethod
    def terminate(cls) -> PromptResolution:
        return cls(input=None)

    @property
    def terminates(self) -> bool:
        return self.input is None or self.input.empty


class PromptHandler(Protocol):
    """Optional per-session prompt interception.

    ``decide`` returns ``None`` to decline, letting the session surface
    the prompt to clients as usual.
    """

    def decide(self, prompt: str) -> PromptResolution | None: ...


class ProcessSession:
    """Supervisor-facing wrapper around one interactive process."""

    def __init__(
        self,
        spec: ProcessSpec,
        info: ProcessSessionInfo,
        *,
        scratch_dir: Path,
        bus: EventBus | None = None,
        supervisor: ProcessSupervisor | None = None,
    ) -> None:
        self.info = info
        self.info.ensure_handle()
        self.spec = spec.with_options(self._prepare_options(spec, info))
        self.bus = bus or EventBus()
        self.supervisor = supervisor
        self.sink: OutputSink = create_output_sink(info, scratch_dir)

        self._status = SessionStatus.CREATED
        self._lock = threading.Lock()
        self._input_queue: deque[Input] = deque()
        self._interrupt = False
        self._new_size: tuple[int, int] | None = None
        self._child_procs_sent = False
        self._prompt_handler: PromptHandler | None = None
        self._exit_observers: list[ExitObserver] = []

    @staticmethod
    def _prepare_options(
        spec: ProcessSpec, info: ProcessSessionInfo
    ) -> ProcessOptions:
        options = spec.options.copy(redirect_stderr_to_stdout=True)

        if info.interaction_mode != InteractionMode.NEVER:
            options.pseudoterminal = Pseudoterminal(options.cols, options.rows)
            env = (
                dict(options.environment)
                if options.environment is not None
                else dict(os.environ)
            )
            env["TERM"] = SMART_TERM if options.smart_terminal else DUMB_TERM
            options.environment = env
        return options

    # -- identity ----------------------------------------------------------

    @property
    def handle(self) -> str:
        return self.info.handle

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def started(self) -> bool:
        return self.info.started

    @property
    def smart_terminal(self) -> bool:
        return self.spec.options.smart_terminal

    def set_caption(self, caption: str) -> None:
        self.info.caption = caption

    def set_title(self, title: str) -> None:
        self.info.title = title

    # -- wiring ------------------------------------------------------------

    def set_prompt_handler(self, handler: PromptHandler | None) -> None:
        self._prompt_handler = handler

    def add_exit_observer(self, observer: ExitObserver) -> None:
        self._exit_observers.append(observer)

    def remove_exit_observer(self, observer: ExitObserver) -> None:
        if observer in self._exit_observers:
            self._exit_observers.remove(observer)

    # -- inbound operations (any thread) -----------------------------------

    def start(self) -> None:
        """Launch the process. A no-op if it has already been started.

        Raises:
            LaunchError: the runner could not start the program.
        """
        if self.info.started:
            return
        if self.supervisor is None:
            raise LaunchError(
                f"Session {self.handle} has no process runner",
                hint="reattach the session before starting it",
            )

        callbacks = self._create_callbacks()
        options = self.spec.options
        try:
            if self.spec.command:
                self.supervisor.run_command(self.spec.command, options, callbacks)
            elif self.spec.program:
                self.supervisor.run_program(
                    self.spec.program, list(self.spec.args), options, callbacks
                )
            else:
                self.supervisor.run_terminal(options, callbacks)
        except OSError as e:
            raise LaunchError(f"Cannot start {self.spec.describe()}: {e}") from e

        self.info.started = True
        self._status = SessionStatus.STARTED
        logger.info("Session %s started: %s", self.handle, self.spec.describe())

    def enqueue_input(self, item: Input) -> None:
        with self._lock:
            self._input_queue.append(item)

    def interrupt(self) -> None:
        with self._lock:
            self._interrupt = True

    def resize(self, cols: int, rows: int) -> None:
        with self._lock:
            self._new_size = (cols, rows)

    @property
    def pending_input(self) -> int:
        with self._lock:
            return len(self._input_queue)

    # -- driver callbacks --------------------------------------------------

    def _create_callbacks(self) -> ProcessCallbacks:
        return ProcessCallbacks(
            on_continue=self.on_continue,
            on_stdout=self.on_stdout,
            on_exit=self.on_exit,
            on_has_subprocs=(
                self.on_has_subprocs if self.spec.options.report_has_subprocs else None
            ),
        )

    def on_continue(self, ops: ProcessOperations) -> bool:
        """One scheduling tick. Returns False to have the process terminated."""
        with self._lock:
            if self._interrupt:
                self._interrupt = False
                return False
            pending = list(self._input_queue)
            self._input_queue.clear()
            new_size, self._new_size = self._new_size, None

        for item in pending:
            self._deliver_input(ops, item)

        if new_size is not None:
            cols, rows = new_size
            try:
                ops.pty_set_size(cols, rows)
            except OSError as e:
                logger.error("Resize failed for %s: %s", self.handle, e)

        return True

    def _deliver_input(self, ops: ProcessOperations, item: Input) -> None:
        if item.interrupt:
            try:
                ops.pty_interrupt()
            except OSError as e:
                logger.error("Interrupt failed for %s: %s", self.handle, e)
            if item.echo_input:
                self.sink.append("^C")
            return

        try:
            ops.write_to_stdin(item.text, False)
        except OSError as e:
            logger.error("Write to stdin failed for %s: %s", self.handle, e)

        # Smart terminals echo through the pty themselves
        if not self.smart_terminal:
            self.sink.append(item.text if item.echo_input else "\n")

    def on_stdout(self, ops: ProcessOperations, output: str) -> None:
        if self.smart_terminal:
            self._emit_output(output)
            return

        posix_output = to_posix_line_endings(output)
        if posix_output.endswith("\n"):
            self._emit_output(posix_output)
            return

        # Whatever follows the last line break may be a prompt
        last = max(posix_output.rfind("\n"), posix_output.rfind("\f"))
        if last >= 0:
            self._emit_output(posix_output[: last + 1])
            candidate = posix_output[last + 1 :]
        else:
            candidate = posix_output
        if candidate:
            self._maybe_prompt(ops, candidate)

    def _maybe_prompt(self, ops: ProcessOperations, output: str) -> None:
        # Control characters show up in redraws, not in real prompts
        if not is_prompt_candidate(output):
            self._emit_output(output)
        else:
            self._handle_prompt(ops, output)

    def _handle_prompt(self, ops: ProcessOperations, prompt: str) -> None:
        self.sink.append(prompt)

        if self._prompt_handler is not None:
            resolution = self._prompt_handler.decide(prompt)
            if resolution is not None:
                if resolution.terminates:
                    try:
                        ops.terminate()
                    except OSError as e:
                        logger.error("Terminate failed for %s: %s", self.handle, e)
                else:
                    assert resolution.input is not None
                    self.enqueue_input(resolution.input)
                return

        self.bus.send_prompt(self.handle, prompt)

    def _emit_output(self, output: str, error: bool = False) -> None:
        self.sink.append(output)
        # Bound what a single event forwards; the sink keeps everything
        trimmed = trim_leading_lines(output, self.info.max_output_lines)
        self.bus.send_output(self.handle, trimmed, error)

    def on_exit(self, exit_code: int) -> None:
        self.info.exit_code = exit_code
        self._status = SessionStatus.EXITED
        logger.info("Session %s exited (code=%d)", self.handle, exit_code)
        self.bus.send_exit(self.handle, exit_code)

        for observer in list(self._exit_observers):
            try:
                observer(self.handle, exit_code)
            except Exception:
                logger.exception("Error in exit observer for session %s", self.handle)

    def on_has_subprocs(self, has_subprocs: bool) -> None:
        if has_subprocs != self.info.has_child_procs or not self._child_procs_sent:
            self.info.has_child_procs = has_subprocs
            self.bus.send_subprocs(self.handle, has_subprocs)
            self._child_procs_sent = True

    # -- output storage ----------------------------------------------------

    def buffered_output(self) -> str:
        """Output replayed to a client attaching to a running session.

        Empty for smart terminals, which repaint through the pty.
        """
        if self.smart_terminal:
            return ""
        return self.sink.read()

    def saved_buffer(self) -> str:
        return self.sink.read()

    def erase_buffer(self) -> None:
        self.sink.erase()

    # -- persistence -------------------------------------------------------

    def to_json(self) -> dict[str, Any]:
        return self.info.to_json()

    @classmethod
    def from_json(
        cls,
        data: dict[str, Any],
        *,
        scratch_dir: Path,
        bus: EventBus | None = None,
        supervisor: ProcessSupervisor | None = None,
        buffer_capacity: int | None = None,
    ) -> ProcessSession:
        """Rebuild an inert session (no live process) from JSON.

        Starting it later launches a fresh terminal under the saved handle.
        """
        if buffer_capacity is None:
            info = ProcessSessionInfo.from_json(data)
        else:
            info = ProcessSessionInfo.from_json(data, buffer_capacity=buffer_capacity)
        return cls(
            ProcessSpec.terminal(),
            info,
            scratch_dir=scratch_dir,
            bus=bus,
            supervisor=supervisor,
        )

    def __repr__(self) -> str:
        return (
            f"ProcessSession(handle={self.handle!r}, status={self._status.value}, "
            f"spec={self.spec.describe()!r})"
        )
