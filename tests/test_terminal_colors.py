"""Tests for terminal color helpers used by ``format_compact``."""

import pytest

from sluice import ParseError, TemplateError
from sluice.environment import terminal
from sluice.environment.exceptions import SourceSnippet, build_source_snippet


class TestColorDetection:
    """Test terminal color detection logic."""

    def test_supports_color_respects_no_color(self, monkeypatch):
        """NO_COLOR disables colors."""
        monkeypatch.setenv("NO_COLOR", "1")
        monkeypatch.delenv("FORCE_COLOR", raising=False)
        assert terminal._should_use_colors() is False

    def test_supports_color_respects_force_color(self, monkeypatch):
        """FORCE_COLOR overrides NO_COLOR."""
        monkeypatch.setenv("NO_COLOR", "1")
        monkeypatch.setenv("FORCE_COLOR", "1")
        assert terminal._should_use_colors() is True

    def test_colorize_returns_plain_when_disabled(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", False)
        result = terminal.colorize("Error", "bright_red", "bold")
        assert result == "Error"
        assert "\033[" not in result

    def test_colorize_adds_codes_when_enabled(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", True)
        result = terminal.colorize("Error", "bright_red", "bold")
        assert "\033[91m" in result
        assert "\033[1m" in result
        assert result.endswith("\033[0m")

    def test_strip_colors_removes_ansi_codes(self):
        colored = "\033[91m\033[1mError\033[0m"
        assert terminal.strip_colors(colored) == "Error"


class TestSemanticHelpers:
    """Semantic helpers map to fixed colors."""

    def test_error_code_formatting(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", True)
        result = terminal.error_code("S-RUN-001")
        assert "S-RUN-001" in result
        assert "\033[91m" in result

    def test_location_formatting(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", True)
        assert "\033[36m" in terminal.location("page.liquid:4")

    def test_hint_formatting(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", True)
        assert "\033[32m" in terminal.hint("Caused by:")

    def test_format_error_header_with_code(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", False)
        assert terminal.format_error_header("S-PAR-001", "boom") == "S-PAR-001: boom"

    def test_format_error_header_without_code(self):
        assert terminal.format_error_header(None, "boom") == "boom"


class TestSourceSnippet:
    """Excerpts around an error line."""

    def test_snippet_window_is_two_lines(self):
        source = "\n".join(f"line {i}" for i in range(1, 10))
        snippet = build_source_snippet(source, 5, column=3)
        assert [n for n, _ in snippet.lines] == [3, 4, 5, 6, 7]
        assert snippet.error_line == 5

    def test_snippet_clamps_at_start(self):
        snippet = build_source_snippet("a\nb\nc", 1)
        assert [n for n, _ in snippet.lines] == [1, 2, 3]

    def test_render_marks_error_line_and_column(self):
        snippet = SourceSnippet(lines=((1, "abc"), (2, "{{ x }}")), error_line=2, column=4)
        lines = snippet.render().split("\n")
        assert lines[0] == "   1| abc"
        assert lines[1] == ">> 2| {{ x }}"
        assert lines[2] == " " * (len(">> 2| ") + 3) + "^"

    def test_plain_message_has_no_color_codes(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", True)
        error = TemplateError("plain")
        assert "\033[" not in str(error)

    def test_format_compact_plain(self, monkeypatch, env):
        monkeypatch.setattr(terminal, "_USE_COLORS", False)
        with pytest.raises(ParseError) as exc_info:
            env.parse("one\n{% nope %}", "page.liquid")
        compact = exc_info.value.format_compact()
        assert compact.startswith('S-PAR-001: tag "nope" not found')
        assert "--> page.liquid:2:1" in compact
        assert ">>   2 | {% nope %}" in compact
