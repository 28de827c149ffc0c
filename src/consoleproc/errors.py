"""Error model for console process operations."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ConsoleProcError(Exception):
    message: str
    hint: str = ""

    kind = "error"

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message, "hint": self.hint}


@dataclass
class HandleNotFoundError(ConsoleProcError):
    """No session is registered under the requested handle."""

    kind = "invalid_handle"


@dataclass
class LaunchError(ConsoleProcError):
    """The process runner could not start the child."""

    kind = "launch_failed"


@dataclass
class DecryptionError(ConsoleProcError):
    """Transport-level decryption of stdin text failed."""

    kind = "decryption_failed"


@dataclass
class InvalidParamsError(ConsoleProcError):
    kind = "invalid_params"


def handle_not_found(handle: str) -> HandleNotFoundError:
    return HandleNotFoundError(
        f"Unknown process handle: {handle!r}",
        hint="the session may have been reaped",
    )
