"""Tests for consoleproc.process.text."""

from __future__ import annotations

from consoleproc.process.text import (
    count_lines,
    has_control_chars,
    is_prompt,
    is_prompt_candidate,
    to_posix_line_endings,
    trim_leading_lines,
)


# ---------------------------------------------------------------------------
# Line endings
# ---------------------------------------------------------------------------


class TestLineEndings:
    def test_crlf_converted(self) -> None:
        assert to_posix_line_endings("a\r\nb\r\n") == "a\nb\n"

    def test_lone_cr_kept(self) -> None:
        assert to_posix_line_endings("50%\r60%") == "50%\r60%"

    def test_posix_untouched(self) -> None:
        assert to_posix_line_endings("a\nb") == "a\nb"


# ---------------------------------------------------------------------------
# trim_leading_lines
# ---------------------------------------------------------------------------


class TestTrimLeadingLines:
    def test_within_limit(self) -> None:
        assert trim_leading_lines("a\nb\n", 5) == "a\nb\n"

    def test_exact_limit(self) -> None:
        assert trim_leading_lines("a\nb\nc", 3) == "a\nb\nc"

    def test_keeps_tail(self) -> None:
        assert trim_leading_lines("a\nb\nc\nd", 2) == "c\nd"

    def test_trailing_newline_not_a_line(self) -> None:
        assert trim_leading_lines("a\nb\nc\n", 2) == "b\nc\n"

    def test_single_line(self) -> None:
        assert trim_leading_lines("only", 1) == "only"

    def test_zero_limit(self) -> None:
        assert trim_leading_lines("a\nb", 0) == ""

    def test_empty(self) -> None:
        assert trim_leading_lines("", 3) == ""

    def test_result_never_exceeds_limit(self) -> None:
        text = "".join(f"line {i}\n" for i in range(100))
        for n in (1, 7, 50, 99, 100, 150):
            trimmed = trim_leading_lines(text, n)
            assert count_lines(trimmed) <= n
            assert text.endswith(trimmed)


class TestCountLines:
    def test_counts(self) -> None:
        assert count_lines("") == 0
        assert count_lines("a") == 1
        assert count_lines("a\n") == 1
        assert count_lines("a\nb") == 2


# ---------------------------------------------------------------------------
# Prompt heuristics
# ---------------------------------------------------------------------------


class TestPromptDetection:
    def test_password_prompt(self) -> None:
        assert is_prompt("Password: ")

    def test_multiple_trailing_spaces(self) -> None:
        assert is_prompt("Enter value>   ")

    def test_underscore_counts_as_separator(self) -> None:
        assert is_prompt("name_ ")

    def test_no_trailing_space(self) -> None:
        assert not is_prompt("Password:")

    def test_word_char_before_space(self) -> None:
        assert not is_prompt("hello world ")

    def test_needs_leading_text(self) -> None:
        assert not is_prompt(": ")

    def test_control_chars(self) -> None:
        assert has_control_chars("Password: \r")
        assert has_control_chars("abc\b")
        assert not has_control_chars("Password: ")

    def test_candidate_excludes_control_chars(self) -> None:
        assert is_prompt_candidate("Password: ")
        assert not is_prompt_candidate("Password: \r")
        assert not is_prompt_candidate("")
