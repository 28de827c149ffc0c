"""Session registry — the table of live and persisted console sessions.

One registry is constructed at startup and shared by the boundary layer
and the driver loop. It owns handle -> session lookup, creation and
reattachment, removal, and persistence of the table to the ``INDEX`` file
in the scratch directory so sessions survive suspend/resume.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any

from consoleproc.config import ConsoleProcConfig
from consoleproc.errors import handle_not_found
from consoleproc.process.events import EventBus
from consoleproc.process.info import ProcessSessionInfo
from consoleproc.process.options import ProcessSpec
from consoleproc.process.session import ProcessSession, SessionStatus
from consoleproc.process.supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)

INDEX_FILENAME = "INDEX"


class SessionRegistry:
    """Tracks console sessions by handle and persists their metadata.

    Table mutations and index writes are serialized by a re-entrant lock so
    boundary requests can arrive from any thread.
    """

    def __init__(
        self,
        config: ConsoleProcConfig | None = None,
        *,
        supervisor: ProcessSupervisor | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.config = config or ConsoleProcConfig()
        self.supervisor = supervisor
        self.bus = bus or EventBus()
        self._sessions: dict[str, ProcessSession] = {}
        self._lock = threading.RLock()

    @property
    def scratch_dir(self) -> Path:
        return self.config.scratch_path

    @property
    def index_path(self) -> Path:
        return self.scratch_dir / INDEX_FILENAME

    # -- creation ----------------------------------------------------------

    def _new_session(self, spec: ProcessSpec, info: ProcessSessionInfo) -> ProcessSession:
        # Children must never outlive their session
        options = spec.options.copy(terminate_children=True)
        return ProcessSession(
            spec.with_options(options),
            info,
            scratch_dir=self.scratch_dir,
            bus=self.bus,
            supervisor=self.supervisor,
        )

    def create(self, spec: ProcessSpec, info: ProcessSessionInfo) -> ProcessSession:
        """Register a new, not yet started session and persist the table."""
        with self._lock:
            info.ensure_handle(taken=self._sessions)
            session = self._new_session(spec, info)
            self._sessions[session.handle] = session
            self.save()
        logger.info("Created session %s: %s", session.handle, spec.describe())
        return session

    def create_or_reattach(
        self, spec: ProcessSpec, info: ProcessSessionInfo
    ) -> ProcessSession:
        """Return the running session for ``info.handle`` or create one.

        Only restartable sessions with a handle can be reattached. A
        running session is nudged with a tiny resize so the attaching
        client repaints when it resizes back to its real size. A session
        whose process has exited is replaced by a new one.
        """
        with self._lock:
            if info.allow_restart and info.handle:
                existing = self._sessions.get(info.handle)
                if existing is not None and existing.status is SessionStatus.STARTED:
                    existing.resize(
                        self.config.terminal.reattach_cols,
                        self.config.terminal.reattach_rows,
                    )
                    logger.info("Reattached to running session %s", info.handle)
                    return existing
            return self.create(spec, info)

    # -- lookup ------------------------------------------------------------

    def get(self, handle: str) -> ProcessSession | None:
        with self._lock:
            return self._sessions.get(handle)

    def require(self, handle: str) -> ProcessSession:
        """Like :meth:`get` but raises ``HandleNotFoundError``."""
        session = self.get(handle)
        if session is None:
            raise handle_not_found(handle)
        return session

    def handles(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def __contains__(self, handle: object) -> bool:
        with self._lock:
            return handle in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    # -- removal -----------------------------------------------------------

    def remove(self, handle: str) -> None:
        """Reap a session: delete its output, drop it, persist the table."""
        with self._lock:
            session = self._sessions.get(handle)
            if session is None:
                raise handle_not_found(handle)
            session.erase_buffer()
            del self._sessions[handle]
            self.save()
        logger.info("Reaped session %s", handle)

    # -- persistence -------------------------------------------------------

    def processes_as_json(self) -> list[dict[str, Any]]:
        with self._lock:
            return [s.to_json() for s in self._sessions.values()]

    def serialize(self) -> str:
        return json.dumps(self.processes_as_json())

    def deserialize(self, text: str) -> int:
        """Load inert sessions from an index string. Returns how many.

        A malformed index is logged and ignored.
        """
        if not text.strip():
            return 0
        try:
            entries = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("Invalid console process index: %s", e)
            return 0
        if not isinstance(entries, list):
            logger.warning("Invalid console process index: expected a list")
            return 0

        loaded = 0
        with self._lock:
            for entry in entries:
                if not isinstance(entry, dict) or not entry.get("handle"):
                    logger.warning("Skipping malformed index entry: %r", entry)
                    continue
                try:
                    session = ProcessSession.from_json(
                        entry,
                        scratch_dir=self.scratch_dir,
                        bus=self.bus,
                        supervisor=self.supervisor,
                        buffer_capacity=self.config.output.embedded_buffer_size,
                    )
                except (TypeError, ValueError) as e:
                    logger.warning("Skipping malformed index entry: %s", e)
                    continue
                self._sessions[session.handle] = session
                loaded += 1
        return loaded

    def save(self, terminated_normally: bool = True) -> None:
        """Write the index file. Skipped after an abnormal termination."""
        if not terminated_normally:
            return
        with self._lock:
            contents = self.serialize()
            try:
                self.scratch_dir.mkdir(parents=True, exist_ok=True)
                self.index_path.write_text(contents, encoding="utf-8")
            except OSError as e:
                logger.error("Failed to write console process index: %s", e)

    def load(self) -> int:
        """Restore sessions from the index, then drop orphaned output files."""
        if not self.index_path.exists():
            return 0
        try:
            contents = self.index_path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error("Failed to read console process index: %s", e)
            return 0
        except UnicodeDecodeError as e:
            logger.warning("Invalid console process index: %s", e)
            return 0
        loaded = self.deserialize(contents)
        self.reconcile_orphans()
        logger.info("Restored %d console session(s)", loaded)
        return loaded

    def reconcile_orphans(self) -> list[str]:
        """Delete output files whose handle is no longer registered."""
        removed: list[str] = []
        try:
            children = list(self.scratch_dir.iterdir())
        except OSError as e:
            logger.error("Cannot scan %s: %s", self.scratch_dir, e)
            return removed

        with self._lock:
            known = set(self._sessions)
        for child in children:
            # Never touch the index or subdirectories
            if child.name == INDEX_FILENAME or child.is_dir():
                continue
            if child.name in known:
                continue
            try:
                child.unlink()
                removed.append(child.name)
            except OSError as e:
                logger.error("Failed to remove orphaned buffer %s: %s", child, e)
        if removed:
            logger.info("Removed %d orphaned output file(s)", len(removed))
        return removed

    def on_suspend(self) -> None:
        self.save()

    def shutdown(self, terminated_normally: bool = True) -> None:
        self.save(terminated_normally)
        logger.info("Console session registry saved (%d sessions)", len(self))

    def list_sessions(self) -> list[dict[str, Any]]:
        """Summaries for display."""
        with self._lock:
            return [
                {
                    "handle": s.handle,
                    "caption": s.info.caption,
                    "title": s.info.title,
                    "status": s.status.value,
                    "command": s.spec.describe(),
                    "exit_code": s.info.exit_code,
                    "pending_input": s.pending_input,
                    "terminal": not s.info.is_modal,
                }
                for s in self._sessions.values()
            ]
