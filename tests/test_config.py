"""Tests for consoleproc.config."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from consoleproc.config import ConsoleProcConfig


class TestDefaults:
    def test_defaults(self) -> None:
        config = ConsoleProcConfig()
        assert config.output.max_output_lines == 500
        assert config.output.embedded_buffer_size == 8192
        assert (config.terminal.reattach_cols, config.terminal.reattach_rows) == (25, 5)

    def test_scratch_path_expands_user(self) -> None:
        config = ConsoleProcConfig(scratch_dir="~/x")
        assert not str(config.scratch_path).startswith("~")


class TestLoad:
    @pytest.fixture(autouse=True)
    def _clean_env(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.chdir(tmp_path)  # no stray .env
        for var in (
            "CONSOLEPROC_SCRATCH_DIR",
            "CONSOLEPROC_MAX_OUTPUT_LINES",
            "CONSOLEPROC_PASSWORD_PATTERN",
        ):
            monkeypatch.delenv(var, raising=False)

    def test_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"output": {"max_output_lines": 10}}))
        config = ConsoleProcConfig.load(str(path))
        assert config.output.max_output_lines == 10

    def test_env_overrides_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"output": {"max_output_lines": 10}}))
        monkeypatch.setenv("CONSOLEPROC_MAX_OUTPUT_LINES", "20")
        monkeypatch.setenv("CONSOLEPROC_SCRATCH_DIR", str(tmp_path / "scratch"))
        config = ConsoleProcConfig.load(str(path))
        assert config.output.max_output_lines == 20
        assert config.scratch_path == tmp_path / "scratch"

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        config = ConsoleProcConfig.load(str(tmp_path / "nope.json"))
        assert config == ConsoleProcConfig()
