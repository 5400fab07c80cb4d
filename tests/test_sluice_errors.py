"""Tests for error reporting: positions, excerpts, aggregation and limits."""

from __future__ import annotations

import pytest

from sluice import (
    AggregateError,
    Environment,
    ErrorCode,
    LexError,
    LimitExceededError,
    ParseError,
    RenderError,
    TemplateError,
    UndefinedVariableError,
    build_source_snippet,
)
from sluice.environment.terminal import strip_colors


def boom(value):
    raise ValueError(f"bad {value}")


@pytest.fixture
def env_boom():
    env = Environment()
    env.register_filter("boom", boom)
    return env


class TestPositions:
    """Errors report the file, line and column of the offending token."""

    def test_undefined_variable(self, env_strict):
        with pytest.raises(UndefinedVariableError) as exc_info:
            env_strict.parse_and_render("a\n{{ missing }}")
        error = exc_info.value
        assert (error.line, error.column) == (2, 4)
        assert str(error) == "undefined variable: missing, line:2, col:4"
        assert error.code == ErrorCode.UNDEFINED_VARIABLE

    def test_file_is_reported(self):
        env = Environment(templates={"page": "line1\n{{ missing }}"}, strict_variables=True)
        with pytest.raises(UndefinedVariableError) as exc_info:
            env.render_file("page")
        assert exc_info.value.file == "page"
        assert "file:page, line:2, col:4" in str(exc_info.value)

    def test_error_inside_partial_points_at_partial(self):
        env = Environment(templates={"bad": "x\n{{ 1 | boom }}"})
        env.register_filter("boom", boom)
        with pytest.raises(RenderError) as exc_info:
            env.parse_and_render("top {% include 'bad' %}")
        assert exc_info.value.file == "bad"
        assert exc_info.value.line == 2

    def test_message_without_token(self):
        error = TemplateError("plain")
        assert str(error) == "plain"
        assert error.line is None
        assert error.context == ""


class TestParseErrors:
    def test_unknown_tag(self, env):
        with pytest.raises(ParseError) as exc_info:
            env.parse("ok\n  {% nope %}")
        error = exc_info.value
        assert error.code == ErrorCode.UNKNOWN_TAG
        assert str(error) == 'tag "nope" not found, line:2, col:3'

    def test_unclosed_block(self, env):
        with pytest.raises(ParseError) as exc_info:
            env.parse("{% if true %}x")
        assert exc_info.value.code == ErrorCode.UNCLOSED_BLOCK
        assert str(exc_info.value).startswith("tag {% if true %} not closed")

    def test_unclosed_output(self, env):
        with pytest.raises(LexError) as exc_info:
            env.parse("{{ x")
        assert exc_info.value.code == ErrorCode.UNCLOSED_OUTPUT
        assert str(exc_info.value) == 'output "{{ x" not closed, line:1, col:1'

    def test_strict_filters(self, env_strict):
        with pytest.raises(ParseError) as exc_info:
            env_strict.parse("{{ x | nope }}")
        assert exc_info.value.code == ErrorCode.UNKNOWN_FILTER
        assert exc_info.value.message == "undefined filter: nope"

    def test_unknown_filter_is_identity_by_default(self, env):
        assert env.parse_and_render("{{ 'x' | nope }}") == "x"

    def test_error_code_category(self):
        assert ErrorCode.UNKNOWN_TAG.category == "parser"
        assert ErrorCode.ASYNC_IN_SYNC.category == "runtime"
        assert ErrorCode.TEMPLATE_NOT_FOUND.category == "template"


class TestRenderErrors:
    def test_wraps_original(self, env_boom):
        with pytest.raises(RenderError) as exc_info:
            env_boom.parse_and_render("{{ 1 | boom }}")
        error = exc_info.value
        assert isinstance(error.original_error, ValueError)
        assert error.__cause__ is error.original_error
        assert str(error) == "bad 1, line:1, col:1"
        assert error.code == ErrorCode.RENDER_ERROR

    def test_error_in_loop_body(self, env_boom):
        with pytest.raises(RenderError) as exc_info:
            env_boom.parse_and_render("{% for i in (1..2) %}\n{{ i | boom }}{% endfor %}")
        assert exc_info.value.line == 2


class TestExcerpt:
    def test_context_marks_line_and_column(self, env_strict):
        with pytest.raises(UndefinedVariableError) as exc_info:
            env_strict.parse_and_render("a\n{{ missing }}\nc")
        assert exc_info.value.context == (
            "   1| a\n"
            ">> 2| {{ missing }}\n"
            "         ^\n"
            "   3| c"
        )

    def test_context_is_cached(self, env_strict):
        with pytest.raises(UndefinedVariableError) as exc_info:
            env_strict.parse_and_render("{{ missing }}")
        assert exc_info.value.context is exc_info.value.context

    def test_snippet_window(self):
        source = "\n".join(f"line {i}" for i in range(1, 11))
        snippet = build_source_snippet(source, 5)
        assert [n for n, _ in snippet.lines] == [3, 4, 5, 6, 7]

    def test_format_compact(self, env_strict):
        with pytest.raises(UndefinedVariableError) as exc_info:
            env_strict.parse_and_render("a\n{{ missing }}")
        text = strip_colors(exc_info.value.format_compact())
        assert text.startswith("S-RUN-001: undefined variable: missing")
        assert "--> <template>:2:4" in text
        assert "{{ missing }}" in text

    def test_format_compact_names_cause(self, env_boom):
        with pytest.raises(RenderError) as exc_info:
            env_boom.parse_and_render("{{ 1 | boom }}")
        assert "Caused by: ValueError" in strip_colors(exc_info.value.format_compact())


class TestCatchAllErrors:
    """``catch_all_errors`` collects every per-node failure."""

    def test_render_errors_aggregated(self):
        env = Environment(catch_all_errors=True)
        env.register_filter("boom", boom)
        with pytest.raises(AggregateError) as exc_info:
            env.parse_and_render("{{ 1 | boom }}ok{{ 2 | boom }}")
        error = exc_info.value
        assert error.message == "2 errors found"
        assert [e.column for e in error.errors] == [1, 17]
        assert all(isinstance(e.original_error, ValueError) for e in error.errors)
        assert error.original_error is error.errors[0]

    def test_single_error_message(self):
        env = Environment(catch_all_errors=True)
        env.register_filter("boom", boom)
        with pytest.raises(AggregateError) as exc_info:
            env.parse_and_render("fine {{ 1 | boom }}")
        assert exc_info.value.message == "1 error found"

    def test_nested_block_errors_are_flattened(self):
        env = Environment(catch_all_errors=True)
        env.register_filter("boom", boom)
        source = "{% if true %}{{ 1 | boom }}{{ 2 | boom }}{% endif %}{{ 3 | boom }}"
        with pytest.raises(AggregateError) as exc_info:
            env.parse_and_render(source)
        error = exc_info.value
        assert error.message == "3 errors found"
        assert [e.column for e in error.errors] == [14, 28, 53]
        assert not any(isinstance(e, AggregateError) for e in error.errors)

    def test_parse_errors_aggregated(self):
        env = Environment(catch_all_errors=True)
        with pytest.raises(AggregateError) as exc_info:
            env.parse("{% nope %}text{% also %}")
        names = [e.message for e in exc_info.value.errors]
        assert names == ['tag "nope" not found', 'tag "also" not found']

    def test_limit_errors_are_not_aggregated(self):
        env = Environment(catch_all_errors=True, memory_limit=10)
        env.register_filter("boom", boom)
        with pytest.raises(LimitExceededError):
            env.parse_and_render("{{ 1 | boom }}{{ (1..100) }}")


class TestLimits:
    def test_memory_limit(self, env):
        with pytest.raises(LimitExceededError) as exc_info:
            env.parse_and_render("{% for i in (1..50) %}{% endfor %}", memory_limit=20)
        assert exc_info.value.resource == "memory alloc"
        assert exc_info.value.code == ErrorCode.LIMIT_EXCEEDED

    def test_render_limit(self, env):
        with pytest.raises(LimitExceededError) as exc_info:
            env.parse_and_render("x{{ y }}", render_limit=-1)
        assert str(exc_info.value) == "template render limit exceeded, line:1, col:1"

    def test_parse_limit(self):
        env = Environment(parse_limit=5)
        with pytest.raises(LimitExceededError) as exc_info:
            env.parse("0123456789")
        assert exc_info.value.resource == "parse length"

    def test_parse_limit_is_per_parse(self):
        env = Environment(parse_limit=6)
        assert env.parse_and_render("abcdef") == "abcdef"
        assert env.parse_and_render("abcdef") == "abcdef"

    def test_render_limit_not_wrapped(self):
        env = Environment(render_limit=-1, catch_all_errors=True)
        with pytest.raises(LimitExceededError):
            env.parse_and_render("a{{ b }}")
