"""Tests for consoleproc.process.events (EventBus, ProcessEvent, EventType)."""

from __future__ import annotations

import queue

from consoleproc.process.events import EventBus, EventType, ProcessEvent, drain


class TestEventType:
    def test_all_variants_exist(self) -> None:
        assert {e.name for e in EventType} == {"OUTPUT", "PROMPT", "EXIT", "SUBPROCS"}

    def test_values_are_lowercase(self) -> None:
        for e in EventType:
            assert e.value == e.name.lower()


class TestProcessEvent:
    def test_defaults(self) -> None:
        event = ProcessEvent(type=EventType.OUTPUT)
        assert event.data == {}
        assert event.handle == ""

    def test_handle(self) -> None:
        event = ProcessEvent(type=EventType.EXIT, data={"handle": "abc"})
        assert event.handle == "abc"


class TestEventBus:
    def test_send_to_multiple_subscribers(self) -> None:
        bus = EventBus()
        q1 = bus.subscribe()
        q2 = bus.subscribe()
        bus.send_exit("h1", 3)
        e1 = q1.get_nowait()
        e2 = q2.get_nowait()
        assert e1 is not None and e2 is not None
        assert e1.type == e2.type == EventType.EXIT
        assert e1.data == {"handle": "h1", "exitCode": 3}

    def test_payload_shapes(self) -> None:
        bus = EventBus()
        q = bus.subscribe()
        bus.send_output("h", "text\n")
        bus.send_prompt("h", "Password: ")
        bus.send_subprocs("h", True)
        events = drain(q)
        assert [e.type for e in events] == [
            EventType.OUTPUT,
            EventType.PROMPT,
            EventType.SUBPROCS,
        ]
        assert events[0].data == {"handle": "h", "error": False, "output": "text\n"}
        assert events[1].data == {"handle": "h", "prompt": "Password: "}
        assert events[2].data == {"handle": "h", "subprocs": True}

    def test_unsubscribe(self) -> None:
        bus = EventBus()
        q = bus.subscribe()
        bus.unsubscribe(q)
        bus.send_exit("h", 0)
        assert q.empty()

    def test_unsubscribe_nonexistent_is_safe(self) -> None:
        bus = EventBus()
        bus.unsubscribe(queue.Queue())


class TestEventBusClosed:
    def test_close_sends_sentinel(self) -> None:
        bus = EventBus()
        q = bus.subscribe()
        bus.close()
        assert q.get_nowait() is None
        assert bus.closed

    def test_send_after_close_is_dropped(self) -> None:
        bus = EventBus()
        q = bus.subscribe()
        bus.close()
        q.get_nowait()
        bus.send_exit("h", 0)
        assert q.empty()

    def test_drain_skips_sentinel(self) -> None:
        bus = EventBus()
        q = bus.subscribe()
        bus.send_exit("h", 0)
        bus.close()
        assert [e.type for e in drain(q)] == [EventType.EXIT]
