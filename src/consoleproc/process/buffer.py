"""Bounded in-memory output ring for modal consoles."""

from __future__ import annotations

import threading
from collections import deque

DEFAULT_CAPACITY = 8192


class OutputRing:
    """Thread-safe character ring holding the tail of a console's output.

    Once more than ``capacity`` characters have been appended the oldest
    ones are dropped. Reads after an overflow skip the (probably partial)
    first line so callers only ever see complete lines.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, text: str = "") -> None:
        self._chars: deque[str] = deque(maxlen=capacity)
        self._total_chars: int = 0  # Total characters ever appended
        self._lock = threading.Lock()
        if text:
            self.append(text)

    def append(self, text: str) -> None:
        with self._lock:
            self._chars.extend(text)
            self._total_chars += len(text)

    def read(self) -> str:
        """Return the buffered text, trimmed to whole lines after an overflow."""
        with self._lock:
            text = "".join(self._chars)
            overflowed = self._total_chars > len(self._chars)
        if overflowed:
            newline = text.find("\n")
            return "" if newline < 0 else text[newline + 1 :]
        return text

    def clear(self) -> None:
        with self._lock:
            self._chars.clear()
            self._total_chars = 0

    @property
    def capacity(self) -> int:
        return self._chars.maxlen or 0

    @property
    def total_chars(self) -> int:
        with self._lock:
            return self._total_chars

    def __len__(self) -> int:
        with self._lock:
            return len(self._chars)
