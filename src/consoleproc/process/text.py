"""Text helpers for console output: line endings, truncation, prompt heuristics."""

from __future__ import annotations

import re

DEFAULT_MAX_OUTPUT_LINES = 500

_CONTROL_CHARS = re.compile(r"[\r\b]")
# One or more characters, one non-word character, a run of trailing spaces.
_PROMPT = re.compile(r"^(.+)[\W_]( +)\Z")


def to_posix_line_endings(text: str) -> str:
    """Convert CRLF line endings to LF.

    A lone carriage return is left alone: progress meters and shells use it
    to redraw the current line.
    """
    return text.replace("\r\n", "\n")


def count_lines(text: str) -> int:
    if not text:
        return 0
    body = text[:-1] if text.endswith("\n") else text
    return body.count("\n") + 1


def trim_leading_lines(text: str, max_lines: int = DEFAULT_MAX_OUTPUT_LINES) -> str:
    """Keep only the last ``max_lines`` lines of ``text``.

    A trailing newline terminates the last line rather than starting a new
    one, so ``"a\\nb\\n"`` counts as two lines.
    """
    if max_lines <= 0:
        return ""
    if count_lines(text) <= max_lines:
        return text

    body = text[:-1] if text.endswith("\n") else text
    # Walk back from the end to the newline that starts the kept tail
    cut = len(body)
    for _ in range(max_lines):
        cut = body.rfind("\n", 0, cut)
    return text[cut + 1 :]


def has_control_chars(text: str) -> bool:
    """True if ``text`` contains a carriage return or backspace."""
    return _CONTROL_CHARS.search(text) is not None


def is_prompt(text: str) -> bool:
    """Heuristic match for ``"Password: "``-style prompts.

    Pure predicate; callers are expected to rule out control characters
    first with :func:`has_control_chars`.
    """
    return _PROMPT.match(text) is not None


def is_prompt_candidate(text: str) -> bool:
    return bool(text) and not has_control_chars(text) and is_prompt(text)
