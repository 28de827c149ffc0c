"""Password cache — answers password prompts on behalf of the user.

Attached to a session, the cache intercepts prompts that look like
password requests. A password previously entered for the same prompt by
the same session is replayed; otherwise an interactive callback asks the
user. Entries are dropped when their session exits: all of them after a
failing exit, only the un-remembered ones after a clean exit.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from typing import Callable

from consoleproc.config import DEFAULT_PASSWORD_PATTERN
from consoleproc.process.session import ProcessSession, PromptResolution

logger = logging.getLogger(__name__)

# (prompt, allow_remember) -> (password, remember), or None if cancelled
PasswordPrompter = Callable[[str, bool], "tuple[str, bool] | None"]


@dataclass
class CachedPassword:
    handle: str
    prompt: str
    password: str
    remember: bool = False


class _SessionPromptHandler:
    """Prompt handler bound to one session's handle."""

    def __init__(self, cache: PasswordCache, handle: str, allow_remember: bool) -> None:
        self._cache = cache
        self._handle = handle
        self._allow_remember = allow_remember

    def decide(self, prompt: str) -> PromptResolution | None:
        return self._cache.handle_prompt(self._handle, prompt, self._allow_remember)


class PasswordCache:
    """Caches passwords per (handle, prompt) and answers password prompts."""

    def __init__(
        self,
        prompter: PasswordPrompter,
        prompt_pattern: str = DEFAULT_PASSWORD_PATTERN,
    ) -> None:
        self._prompter = prompter
        self._pattern = re.compile(prompt_pattern)
        self._passwords: list[CachedPassword] = []
        self._lock = threading.Lock()

    def attach(self, session: ProcessSession, allow_remember: bool = True) -> None:
        """Intercept ``session``'s prompts and forget its passwords on exit."""
        session.set_prompt_handler(
            _SessionPromptHandler(self, session.handle, allow_remember)
        )
        session.add_exit_observer(self.on_exit)

    def is_password_prompt(self, prompt: str) -> bool:
        return self._pattern.fullmatch(prompt) is not None

    def lookup(self, handle: str, prompt: str) -> CachedPassword | None:
        with self._lock:
            for cached in self._passwords:
                if cached.handle == handle and cached.prompt == prompt:
                    return cached
        return None

    def handle_prompt(
        self, handle: str, prompt: str, allow_remember: bool
    ) -> PromptResolution | None:
        """Resolve a password prompt, or return None to decline it."""
        if not self.is_password_prompt(prompt):
            return None

        cached = self.lookup(handle, prompt)
        if cached is not None:
            logger.debug("Answering prompt %r for %s from cache", prompt, handle)
            return PromptResolution.reply(cached.password + "\n")

        answer = self._prompter(prompt, allow_remember)
        if answer is None:
            logger.info("Password prompt cancelled for %s", handle)
            return PromptResolution.terminate()

        password, remember = answer
        with self._lock:
            self._passwords.append(
                CachedPassword(
                    handle=handle,
                    prompt=prompt,
                    password=password,
                    remember=remember and allow_remember,
                )
            )
        return PromptResolution.reply(password + "\n")

    def on_exit(self, handle: str, exit_code: int) -> None:
        """Purge cache entries owned by ``handle`` after its process exits."""
        with self._lock:
            before = len(self._passwords)
            if exit_code != 0:
                self._passwords = [p for p in self._passwords if p.handle != handle]
            else:
                self._passwords = [
                    p for p in self._passwords if p.handle != handle or p.remember
                ]
            purged = before - len(self._passwords)
        if purged:
            logger.debug("Forgot %d cached password(s) for %s", purged, handle)

    def __len__(self) -> int:
        with self._lock:
            return len(self._passwords)
