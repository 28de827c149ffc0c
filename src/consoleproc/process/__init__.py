"""Console process supervision — interactive child processes on behalf of a host.

Sessions wrap shells, language consoles and terminal tabs: they queue
input, capture and buffer output, detect password-style prompts, and
persist their metadata across suspend/resume through the registry.
"""

from consoleproc.process.events import EventBus, EventType, ProcessEvent
from consoleproc.process.info import NO_TERMINAL, ProcessSessionInfo
from consoleproc.process.options import (
    Input,
    InteractionMode,
    ProcessOptions,
    ProcessSpec,
)
from consoleproc.process.password import CachedPassword, PasswordCache
from consoleproc.process.registry import SessionRegistry
from consoleproc.process.session import (
    ProcessSession,
    PromptHandler,
    PromptResolution,
    SessionStatus,
)
from consoleproc.process.sink import EmbeddedOutputSink, FileOutputSink, OutputSink
from consoleproc.process.supervisor import (
    ProcessCallbacks,
    ProcessOperations,
    ProcessSupervisor,
    PtyProcessSupervisor,
)

__all__ = [
    "CachedPassword",
    "EmbeddedOutputSink",
    "EventBus",
    "EventType",
    "FileOutputSink",
    "Input",
    "InteractionMode",
    "NO_TERMINAL",
    "OutputSink",
    "PasswordCache",
    "ProcessCallbacks",
    "ProcessEvent",
    "ProcessOperations",
    "ProcessOptions",
    "ProcessSession",
    "ProcessSessionInfo",
    "ProcessSpec",
    "ProcessSupervisor",
    "PromptHandler",
    "PromptResolution",
    "PtyProcessSupervisor",
    "SessionRegistry",
    "SessionStatus",
]
