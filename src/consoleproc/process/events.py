"""Event bus — decouples console processes from whoever renders them.

Sessions publish output, prompt, exit and child-process events while the
driver loop runs them. Boundary code (an RPC layer, the CLI) subscribes to
the bus and forwards events to clients.
"""

from __future__ import annotations

import enum
import queue
from dataclasses import dataclass, field
from typing import Any


class EventType(enum.Enum):
    OUTPUT = "output"
    PROMPT = "prompt"
    EXIT = "exit"
    SUBPROCS = "subprocs"


@dataclass
class ProcessEvent:
    """An event on the bus."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def handle(self) -> str:
        return self.data.get("handle", "")


class EventBus:
    """Broadcast bus: sessions -> subscribers.

    Events are produced on the driver thread and may be consumed from any
    other thread, so subscriber queues are ``queue.Queue`` instances.
    """

    def __init__(self) -> None:
        self._subscribers: list[queue.Queue[ProcessEvent | None]] = []
        self._closed: bool = False

    def send(self, event: ProcessEvent) -> None:
        """Send an event to all subscribers.

        Silently drops events after ``close()`` has been called.
        """
        if self._closed:
            return
        for q in list(self._subscribers):
            q.put_nowait(event)

    def send_output(self, handle: str, output: str, error: bool = False) -> None:
        self.send(
            ProcessEvent(
                type=EventType.OUTPUT,
                data={"handle": handle, "error": error, "output": output},
            )
        )

    def send_prompt(self, handle: str, prompt: str) -> None:
        self.send(
            ProcessEvent(type=EventType.PROMPT, data={"handle": handle, "prompt": prompt})
        )

    def send_exit(self, handle: str, exit_code: int) -> None:
        self.send(
            ProcessEvent(
                type=EventType.EXIT, data={"handle": handle, "exitCode": exit_code}
            )
        )

    def send_subprocs(self, handle: str, subprocs: bool) -> None:
        self.send(
            ProcessEvent(
                type=EventType.SUBPROCS, data={"handle": handle, "subprocs": subprocs}
            )
        )

    def subscribe(self) -> queue.Queue[ProcessEvent | None]:
        """Subscribe to events. Returns a queue to read from."""
        q: queue.Queue[ProcessEvent | None] = queue.Queue()
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: queue.Queue) -> None:
        if q in self._subscribers:
            self._subscribers.remove(q)

    def close(self) -> None:
        """Signal all subscribers that the bus is closing."""
        self._closed = True
        for q in self._subscribers:
            q.put_nowait(None)

    @property
    def closed(self) -> bool:
        return self._closed


def drain(q: queue.Queue[ProcessEvent | None]) -> list[ProcessEvent]:
    """Pop every event currently queued, without blocking."""
    events: list[ProcessEvent] = []
    while True:
        try:
            event = q.get_nowait()
        except queue.Empty:
            return events
        if event is not None:
            events.append(event)
