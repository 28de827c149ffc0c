"""Configuration — Pydantic models for consoleproc settings."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_PASSWORD_PATTERN = r"^.*(?:[Pp]ass(?:word|phrase)|PIN)[^\n]*: *$"


class OutputConfig(BaseModel):
    """Output capture limits."""

    max_output_lines: int = Field(
        default=500, description="Max lines forwarded per output event"
    )
    embedded_buffer_size: int = Field(
        default=8192,
        description="Ring capacity (characters) for modal console output",
    )


class TerminalConfig(BaseModel):
    """Pseudoterminal geometry."""

    cols: int = Field(default=80)
    rows: int = Field(default=25)
    reattach_cols: int = Field(
        default=25, description="Size forced on reattach so the client redraws"
    )
    reattach_rows: int = Field(default=5)


class PasswordConfig(BaseModel):
    prompt_pattern: str = Field(
        default=DEFAULT_PASSWORD_PATTERN,
        description="Regex a prompt must fully match to be answered from the cache",
    )


class ConsoleProcConfig(BaseModel):
    """Top-level consoleproc configuration."""

    scratch_dir: str = Field(
        default="~/.consoleproc/console",
        description="Directory for per-handle output logs and the INDEX file",
    )
    output: OutputConfig = Field(default_factory=OutputConfig)
    terminal: TerminalConfig = Field(default_factory=TerminalConfig)
    password: PasswordConfig = Field(default_factory=PasswordConfig)

    @property
    def scratch_path(self) -> Path:
        return Path(os.path.expanduser(self.scratch_dir))

    @classmethod
    def load(cls, config_path: str | None = None) -> ConsoleProcConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults.

        Env vars:
            CONSOLEPROC_SCRATCH_DIR       - Override the output/index directory
            CONSOLEPROC_MAX_OUTPUT_LINES  - Override lines forwarded per event
            CONSOLEPROC_PASSWORD_PATTERN  - Override the password prompt regex
        """
        load_dotenv(override=True)

        config_data: dict[str, Any] = {}

        if config_path and os.path.exists(config_path):
            with open(config_path) as f:
                config_data = json.load(f)

        env_scratch = os.environ.get("CONSOLEPROC_SCRATCH_DIR")
        if env_scratch:
            config_data["scratch_dir"] = env_scratch

        env_max_lines = os.environ.get("CONSOLEPROC_MAX_OUTPUT_LINES")
        if env_max_lines:
            output = config_data.setdefault("output", {})
            output["max_output_lines"] = int(env_max_lines)

        env_pattern = os.environ.get("CONSOLEPROC_PASSWORD_PATTERN")
        if env_pattern:
            password = config_data.setdefault("password", {})
            password["prompt_pattern"] = env_pattern

        return cls.model_validate(config_data)
