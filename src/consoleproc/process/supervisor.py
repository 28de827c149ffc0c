"""Process runner — the driver loop that owns child process I/O.

Sessions never touch file descriptors themselves. They hand a set of
:class:`ProcessCallbacks` to a :class:`ProcessSupervisor`, which forks the
child and then, once per scheduling cycle, calls back into the session:
``on_continue`` (drain input), ``on_stdout`` (deliver output),
``on_has_subprocs`` and finally ``on_exit``. All callbacks for one child
are made sequentially from the thread running :meth:`PtyProcessSupervisor.poll`.
"""

from __future__ import annotations

import codecs
import fcntl
import logging
import os
import pty
import select
import signal
import struct
import subprocess
import termios
import time
from dataclasses import dataclass, field
from typing import Callable, Protocol

from consoleproc.errors import LaunchError
from consoleproc.process.options import ProcessOptions

logger = logging.getLogger(__name__)

READ_CHUNK = 4096
SUBPROCS_INTERVAL = 1.0  # seconds between child-process presence checks


class ProcessOperations(Protocol):
    """Operations a session may perform on its live child during a callback."""

    def write_to_stdin(self, text: str, eof: bool = False) -> None: ...

    def pty_interrupt(self) -> None: ...

    def pty_set_size(self, cols: int, rows: int) -> None: ...

    def terminate(self) -> None: ...


@dataclass
class ProcessCallbacks:
    on_continue: Callable[[ProcessOperations], bool]
    on_stdout: Callable[[ProcessOperations, str], None]
    on_exit: Callable[[int], None]
    on_has_subprocs: Callable[[bool], None] | None = None


class ProcessSupervisor(Protocol):
    """Launches children and drives their callbacks.

    Each ``run_*`` method raises :class:`~consoleproc.errors.LaunchError`
    when the child cannot be started.
    """

    def run_command(
        self, command: str, options: ProcessOptions, callbacks: ProcessCallbacks
    ) -> None: ...

    def run_program(
        self,
        program: str,
        args: list[str],
        options: ProcessOptions,
        callbacks: ProcessCallbacks,
    ) -> None: ...

    def run_terminal(
        self, options: ProcessOptions, callbacks: ProcessCallbacks
    ) -> None: ...


@dataclass
class _Child:
    proc: subprocess.Popen
    read_fd: int
    write_fd: int
    pgid: int
    options: ProcessOptions
    callbacks: ProcessCallbacks
    is_pty: bool
    decoder: codecs.IncrementalDecoder = field(
        default_factory=lambda: codecs.getincrementaldecoder("utf-8")(errors="replace")
    )
    eof: bool = False
    terminated: bool = False
    last_subprocs_check: float = 0.0


class _ChildOperations:
    """ProcessOperations bound to one child."""

    def __init__(self, supervisor: PtyProcessSupervisor, child: _Child) -> None:
        self._supervisor = supervisor
        self._child = child

    def write_to_stdin(self, text: str, eof: bool = False) -> None:
        data = text.encode("utf-8")
        if data:
            os.write(self._child.write_fd, data)
        if eof:
            if self._child.is_pty:
                os.write(self._child.write_fd, b"\x04")
            elif self._child.proc.stdin is not None:
                self._child.proc.stdin.close()

    def pty_interrupt(self) -> None:
        if self._child.is_pty:
            # The line discipline turns ^C into SIGINT for the foreground group
            os.write(self._child.write_fd, b"\x03")
        else:
            os.killpg(self._child.pgid, signal.SIGINT)

    def pty_set_size(self, cols: int, rows: int) -> None:
        if not self._child.is_pty:
            return
        winsize = struct.pack("HHHH", rows, cols, 0, 0)
        fcntl.ioctl(self._child.read_fd, termios.TIOCSWINSZ, winsize)

    def terminate(self) -> None:
        self._supervisor._terminate(self._child)


def _exit_status(returncode: int) -> int:
    """Map Popen's negative signal codes onto the shell convention."""
    if returncode < 0:
        return 128 - returncode
    return returncode


def _has_subprocesses(pid: int) -> bool | None:
    """True if ``pid`` has child processes, None if that cannot be determined."""
    try:
        result = subprocess.run(
            ["pgrep", "-P", str(pid)],
            capture_output=True,
            text=True,
        )
    except OSError:
        return None
    if result.returncode not in (0, 1):
        return None
    return bool(result.stdout.strip())


class PtyProcessSupervisor:
    """Single-threaded POSIX process runner.

    Children get a pseudoterminal when their options request one, plain
    pipes otherwise. Each child runs in its own session/process group so
    ``terminate_children`` can take down the whole tree. Call :meth:`poll`
    repeatedly (or :meth:`run_until_idle`) from one thread to drive them.
    """

    def __init__(self, shell: str | None = None) -> None:
        self._shell = shell or os.environ.get("SHELL") or "/bin/sh"
        self._children: list[_Child] = []

    # -- launching ---------------------------------------------------------

    def run_command(
        self, command: str, options: ProcessOptions, callbacks: ProcessCallbacks
    ) -> None:
        self._spawn(["/bin/sh", "-c", command], options, callbacks)

    def run_program(
        self,
        program: str,
        args: list[str],
        options: ProcessOptions,
        callbacks: ProcessCallbacks,
    ) -> None:
        self._spawn([program, *args], options, callbacks)

    def run_terminal(self, options: ProcessOptions, callbacks: ProcessCallbacks) -> None:
        self._spawn([self._shell, "-i"], options, callbacks)

    def _spawn(
        self, argv: list[str], options: ProcessOptions, callbacks: ProcessCallbacks
    ) -> None:
        env = dict(options.environment) if options.environment is not None else None
        cwd = options.working_dir or None
        stderr_target = subprocess.STDOUT if options.redirect_stderr_to_stdout else None

        if options.pseudoterminal is not None:
            master_fd, slave_fd = pty.openpty()
            winsize = struct.pack(
                "HHHH", options.pseudoterminal.rows, options.pseudoterminal.cols, 0, 0
            )
            fcntl.ioctl(master_fd, termios.TIOCSWINSZ, winsize)
            try:
                proc = subprocess.Popen(
                    argv,
                    stdin=slave_fd,
                    stdout=slave_fd,
                    stderr=slave_fd,
                    start_new_session=True,
                    env=env,
                    cwd=cwd,
                )
            except OSError as e:
                os.close(master_fd)
                raise LaunchError(f"Cannot start {argv[0]}: {e}") from e
            finally:
                # Parent always closes slave fd
                os.close(slave_fd)
            read_fd = write_fd = master_fd
            is_pty = True
        else:
            try:
                proc = subprocess.Popen(
                    argv,
                    stdin=subprocess.PIPE,
                    stdout=subprocess.PIPE,
                    stderr=stderr_target,
                    start_new_session=True,
                    env=env,
                    cwd=cwd,
                )
            except OSError as e:
                raise LaunchError(f"Cannot start {argv[0]}: {e}") from e
            assert proc.stdin is not None and proc.stdout is not None
            read_fd = proc.stdout.fileno()
            write_fd = proc.stdin.fileno()
            is_pty = False

        try:
            pgid = os.getpgid(proc.pid)
        except ProcessLookupError:
            pgid = proc.pid

        self._children.append(
            _Child(
                proc=proc,
                read_fd=read_fd,
                write_fd=write_fd,
                pgid=pgid,
                options=options,
                callbacks=callbacks,
                is_pty=is_pty,
            )
        )
        logger.info(
            "Started pid=%d pgid=%d pty=%s cmd=%s", proc.pid, pgid, is_pty, " ".join(argv)
        )

    # -- driving -----------------------------------------------------------

    @property
    def active(self) -> int:
        return len(self._children)

    def poll(self, timeout: float = 0.05) -> None:
        """Run one scheduling cycle for every child."""
        for child in list(self._children):
            ops = _ChildOperations(self, child)
            try:
                keep_running = child.callbacks.on_continue(ops)
            except Exception:
                logger.exception("on_continue failed for pid %d", child.proc.pid)
                keep_running = True
            if not keep_running:
                self._terminate(child)

        readable_fds = [c.read_fd for c in self._children if not c.eof]
        ready: list[int] = []
        if readable_fds:
            ready, _, _ = select.select(readable_fds, [], [], timeout)

        for child in list(self._children):
            if child.read_fd in ready:
                self._read(child)
            self._check_subprocs(child)
            self._check_exit(child)

    def run_until_idle(self, timeout: float | None = None, interval: float = 0.05) -> bool:
        """Poll until every child has exited. Returns False on timeout."""
        deadline = time.monotonic() + timeout if timeout is not None else None
        while self._children:
            if deadline is not None and time.monotonic() >= deadline:
                return False
            self.poll(interval)
        return True

    def shutdown(self) -> None:
        """Kill every child and deliver its exit."""
        for child in list(self._children):
            self._terminate(child)
            try:
                child.proc.wait(timeout=2)
            except subprocess.TimeoutExpired:
                logger.warning("pid %d did not exit after kill", child.proc.pid)
            self._check_exit(child)

    def _read(self, child: _Child) -> None:
        try:
            data = os.read(child.read_fd, READ_CHUNK)
        except OSError:
            # EIO on the master side once the slave is closed
            data = b""
        if not data:
            child.eof = True
            text = child.decoder.decode(b"", final=True)
        else:
            text = child.decoder.decode(data)
        if text:
            try:
                child.callbacks.on_stdout(_ChildOperations(self, child), text)
            except Exception:
                logger.exception("on_stdout failed for pid %d", child.proc.pid)

    def _check_subprocs(self, child: _Child) -> None:
        callback = child.callbacks.on_has_subprocs
        if callback is None or child.proc.poll() is not None:
            return
        now = time.monotonic()
        if now - child.last_subprocs_check < SUBPROCS_INTERVAL:
            return
        child.last_subprocs_check = now
        has_subprocs = _has_subprocesses(child.proc.pid)
        if has_subprocs is not None:
            try:
                callback(has_subprocs)
            except Exception:
                logger.exception("on_has_subprocs failed for pid %d", child.proc.pid)

    def _check_exit(self, child: _Child) -> None:
        if child not in self._children:
            return
        returncode = child.proc.poll()
        if returncode is None:
            return
        # Drain whatever the child wrote before exiting
        while not child.eof:
            ready, _, _ = select.select([child.read_fd], [], [], 0)
            if not ready:
                break
            self._read(child)

        self._children.remove(child)
        self._close(child)
        code = _exit_status(returncode)
        logger.info("pid %d exited (code=%d)", child.proc.pid, code)
        try:
            child.callbacks.on_exit(code)
        except Exception:
            logger.exception("on_exit failed for pid %d", child.proc.pid)

    def _terminate(self, child: _Child) -> None:
        if child.terminated:
            return
        child.terminated = True
        try:
            if child.options.terminate_children:
                os.killpg(child.pgid, signal.SIGKILL)
            else:
                child.proc.kill()
            logger.info("Killed pid %d (pgid=%d)", child.proc.pid, child.pgid)
        except ProcessLookupError:
            logger.debug("Process already gone: %d", child.proc.pid)

    def _close(self, child: _Child) -> None:
        if child.is_pty:
            try:
                os.close(child.read_fd)
            except OSError:
                pass
            return
        for stream in (child.proc.stdin, child.proc.stdout):
            if stream is None:
                continue
            try:
                stream.close()
            except OSError:
                pass
