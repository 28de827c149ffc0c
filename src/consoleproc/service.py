"""Boundary operations — what a transport layer exposes to clients.

Every operation takes a handle and raises
:class:`~consoleproc.errors.HandleNotFoundError` if it is unknown.
:meth:`ConsoleProcService.dispatch` maps the ``process_*`` RPC method
names onto these operations and turns errors into result dicts.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from pydantic import BaseModel, Field, ValidationError

from consoleproc.errors import ConsoleProcError, DecryptionError, InvalidParamsError
from consoleproc.process.options import Input
from consoleproc.process.registry import SessionRegistry

logger = logging.getLogger(__name__)

Decryptor = Callable[[str], str]


class HandleParams(BaseModel):
    handle: str


class WriteStdinParams(HandleParams):
    text: str = ""
    interrupt: bool = False
    echo_input: bool = False


class SetSizeParams(HandleParams):
    cols: int = Field(gt=0)
    rows: int = Field(gt=0)


class SetCaptionParams(HandleParams):
    caption: str


class SetTitleParams(HandleParams):
    title: str


class ConsoleProcService:
    """Handle-keyed operations over a :class:`SessionRegistry`."""

    def __init__(
        self, registry: SessionRegistry, decrypt: Decryptor | None = None
    ) -> None:
        self.registry = registry
        self._decrypt = decrypt
        self._methods: dict[str, tuple[type[BaseModel], Callable[[Any], Any]]] = {
            "process_start": (HandleParams, lambda p: self.start(p.handle)),
            "process_interrupt": (HandleParams, lambda p: self.interrupt(p.handle)),
            "process_reap": (HandleParams, lambda p: self.reap(p.handle)),
            "process_write_stdin": (
                WriteStdinParams,
                lambda p: self.write_stdin(
                    p.handle, p.text, interrupt=p.interrupt, echo_input=p.echo_input
                ),
            ),
            "process_set_size": (
                SetSizeParams,
                lambda p: self.set_size(p.handle, p.cols, p.rows),
            ),
            "process_set_caption": (
                SetCaptionParams,
                lambda p: self.set_caption(p.handle, p.caption),
            ),
            "process_set_title": (
                SetTitleParams,
                lambda p: self.set_title(p.handle, p.title),
            ),
            "process_erase_buffer": (HandleParams, lambda p: self.erase_buffer(p.handle)),
            "process_get_buffer": (HandleParams, lambda p: self.get_buffer(p.handle)),
        }

    def start(self, handle: str) -> None:
        self.registry.require(handle).start()

    def interrupt(self, handle: str) -> None:
        self.registry.require(handle).interrupt()

    def reap(self, handle: str) -> None:
        self.registry.remove(handle)

    def write_stdin(
        self,
        handle: str,
        text: str,
        *,
        interrupt: bool = False,
        echo_input: bool = False,
    ) -> None:
        session = self.registry.require(handle)
        if interrupt:
            session.enqueue_input(Input.interrupt_signal(echo_input=echo_input))
            return
        if self._decrypt is not None:
            try:
                text = self._decrypt(text)
            except Exception as e:
                raise DecryptionError(
                    f"Could not decrypt input for {handle}: {e}"
                ) from e
        session.enqueue_input(Input(text=text, echo_input=echo_input))

    def set_size(self, handle: str, cols: int, rows: int) -> None:
        self.registry.require(handle).resize(cols, rows)

    def set_caption(self, handle: str, caption: str) -> None:
        self.registry.require(handle).set_caption(caption)
        self.registry.save()

    def set_title(self, handle: str, title: str) -> None:
        self.registry.require(handle).set_title(title)

    def erase_buffer(self, handle: str) -> None:
        self.registry.require(handle).erase_buffer()

    def get_buffer(self, handle: str) -> str:
        # TODO: chunk large buffers so one call cannot flood the client
        return self.registry.require(handle).saved_buffer()

    # -- RPC dispatch ------------------------------------------------------

    @property
    def method_names(self) -> list[str]:
        return list(self._methods)

    def dispatch(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        """Run an RPC method. Returns ``{"result": ...}`` or ``{"error": {...}}``."""
        entry = self._methods.get(method)
        if entry is None:
            error = InvalidParamsError(f"Unknown method: {method}")
            return {"error": error.to_dict()}

        param_model, call = entry
        try:
            parsed = param_model.model_validate(params)
        except ValidationError as e:
            return {"error": InvalidParamsError(f"Invalid parameters: {e}").to_dict()}

        try:
            result = call(parsed)
        except ConsoleProcError as e:
            logger.debug("%s failed: %s", method, e)
            return {"error": e.to_dict()}
        return {"result": result}
