"""Tests for consoleproc.process.info.ProcessSessionInfo."""

from __future__ import annotations

import json

from consoleproc.process.info import NO_TERMINAL, ProcessSessionInfo
from consoleproc.process.options import InteractionMode


class TestHandles:
    def test_generated_once(self) -> None:
        info = ProcessSessionInfo()
        handle = info.ensure_handle()
        assert handle
        assert info.ensure_handle() == handle

    def test_existing_handle_kept(self) -> None:
        info = ProcessSessionInfo(handle="fixed")
        assert info.ensure_handle(taken={"fixed"}) == "fixed"

    def test_unique(self) -> None:
        handles = {ProcessSessionInfo().ensure_handle() for _ in range(200)}
        assert len(handles) == 200

    def test_avoids_taken(self) -> None:
        taken: set[str] = set()
        for _ in range(50):
            taken.add(ProcessSessionInfo().ensure_handle(taken=taken))
        assert len(taken) == 50


class TestModal:
    def test_default_is_modal(self) -> None:
        assert ProcessSessionInfo().is_modal

    def test_terminal_tab(self) -> None:
        assert not ProcessSessionInfo(terminal_sequence=3).is_modal


class TestJson:
    def test_fields(self) -> None:
        info = ProcessSessionInfo(
            handle="abc",
            caption="R",
            title="console",
            terminal_sequence=NO_TERMINAL,
            allow_restart=True,
            interaction_mode=InteractionMode.ALWAYS,
            max_output_lines=42,
            has_child_procs=False,
            exit_code=2,
        )
        info.append_to_output_buffer("> 1 + 1\n[1] 2\n")
        data = info.to_json()
        assert data["handle"] == "abc"
        assert data["allow_restart"] is True
        assert data["has_child_procs"] is False
        assert data["exit_code"] == 2
        assert data["interaction_mode"] == "always"
        assert data["buffered_output"] == "> 1 + 1\n[1] 2\n"

    def test_round_trip(self) -> None:
        info = ProcessSessionInfo(
            handle="abc", caption="c", title="t", allow_restart=True, exit_code=1
        )
        info.append_to_output_buffer("out\n")
        restored = ProcessSessionInfo.from_json(json.loads(json.dumps(info.to_json())))
        assert restored == info
        assert restored.buffered_output() == "out\n"
        assert restored.started is False

    def test_terminal_has_no_embedded_output(self) -> None:
        info = ProcessSessionInfo(handle="t", terminal_sequence=1)
        info.append_to_output_buffer("ignored")
        assert "buffered_output" not in info.to_json()

    def test_missing_exit_code(self) -> None:
        restored = ProcessSessionInfo.from_json({"handle": "x"})
        assert restored.exit_code is None
        assert restored.interaction_mode == InteractionMode.POSSIBLE
