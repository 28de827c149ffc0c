"""Tests for consoleproc.process.buffer.OutputRing."""

from __future__ import annotations

from consoleproc.process.buffer import OutputRing


class TestOutputRingBasics:
    def test_empty(self) -> None:
        ring = OutputRing()
        assert len(ring) == 0
        assert ring.total_chars == 0
        assert ring.read() == ""

    def test_append(self) -> None:
        ring = OutputRing()
        ring.append("hello\n")
        ring.append("world\n")
        assert ring.read() == "hello\nworld\n"
        assert ring.total_chars == 12

    def test_initial_text(self) -> None:
        ring = OutputRing(text="abc\n")
        assert ring.read() == "abc\n"

    def test_partial_line_kept_without_overflow(self) -> None:
        ring = OutputRing()
        ring.append("Password: ")
        assert ring.read() == "Password: "


class TestOutputRingOverflow:
    def test_capacity_enforced(self) -> None:
        ring = OutputRing(capacity=10)
        ring.append("0123456789abcdef")
        assert len(ring) == 10
        assert ring.total_chars == 16
        # Only a partial line survives the overflow
        assert ring.read() == ""

    def test_read_skips_partial_first_line(self) -> None:
        ring = OutputRing(capacity=12)
        ring.append("line one\nline two\n")
        # Raw tail is "ne\nline two\n"; the fragment before the newline is dropped
        assert ring.read() == "line two\n"

    def test_read_without_newline_after_overflow(self) -> None:
        ring = OutputRing(capacity=4)
        ring.append("abcdefgh")
        assert ring.read() == ""


class TestOutputRingClear:
    def test_clear(self) -> None:
        ring = OutputRing(capacity=4)
        ring.append("abcdefgh")
        ring.clear()
        assert len(ring) == 0
        assert ring.total_chars == 0
        assert ring.read() == ""
        ring.append("x\n")
        assert ring.read() == "x\n"
