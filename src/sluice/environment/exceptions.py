"""Exceptions for the sluice template engine.

Exception Hierarchy:
TemplateError (base)
├── TemplateNotFoundError     # Partial/layout/file lookup failed
├── TemplateSyntaxError       # Template rejected before rendering
│   ├── LexError              # Unterminated tag, output, raw block or quote
│   └── ParseError            # Unknown tag, malformed arguments, unclosed block
├── TemplateRuntimeError      # Raised while rendering
│   ├── RenderError           # Any failure inside a node, wrapped with its token
│   ├── AggregateError        # catch_all_errors: every per-node failure at once
│   └── LimitExceededError    # memory / render time / parse length budget exhausted
└── UndefinedError
    └── UndefinedVariableError  # strict_variables lookup failure

Errors that carry a token report ``file``, ``line`` and ``column`` and
append them to the message::

    undefined variable: user.nmae, line:3, col:4

The ``context`` attribute holds a source excerpt of two lines around the
failure with a caret under the offending column. It is computed on
first access, so the happy path never pays for it::

       1| <ul>
       2| {% for item in items %}
    >> 3|   {{ user.nmae }}
            ^
       4| {% endfor %}
       5| </ul>

"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from sluice.environment import terminal

if TYPE_CHECKING:
    from sluice._types import Token


class ErrorCode(Enum):
    """Searchable error codes.

    Format: S-{CATEGORY}-{NUMBER}
    Categories: LEX (lexer), PAR (parser), RUN (runtime), TPL (template loading)
    """

    # Lexer errors (S-LEX-xxx)
    UNCLOSED_TAG = "S-LEX-001"
    UNCLOSED_OUTPUT = "S-LEX-002"
    UNCLOSED_RAW = "S-LEX-003"
    INVALID_TOKEN = "S-LEX-004"

    # Parser errors (S-PAR-xxx)
    UNKNOWN_TAG = "S-PAR-001"
    UNCLOSED_BLOCK = "S-PAR-002"
    INVALID_EXPRESSION = "S-PAR-003"
    UNKNOWN_FILTER = "S-PAR-004"
    INVALID_TAG_SYNTAX = "S-PAR-005"

    # Runtime errors (S-RUN-xxx)
    UNDEFINED_VARIABLE = "S-RUN-001"
    RENDER_ERROR = "S-RUN-002"
    MULTIPLE_ERRORS = "S-RUN-003"
    LIMIT_EXCEEDED = "S-RUN-004"
    ASYNC_IN_SYNC = "S-RUN-005"

    # Template loading errors (S-TPL-xxx)
    TEMPLATE_NOT_FOUND = "S-TPL-001"

    @property
    def category(self) -> str:
        """Error category (e.g., 'runtime', 'lexer', 'parser', 'template')."""
        prefix = self.value.split("-")[1]
        return {
            "LEX": "lexer",
            "PAR": "parser",
            "RUN": "runtime",
            "TPL": "template",
        }.get(prefix, "unknown")


# ---------------------------------------------------------------------------
# Source snippets
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SourceSnippet:
    """Template source around an error line.

    Attributes:
        lines: Tuple of (line_number, line_content) pairs around the error.
        error_line: The 1-based line number where the error occurred.
        column: Optional 1-based column for the caret pointer.
    """

    lines: tuple[tuple[int, str], ...]
    error_line: int
    column: int | None = None

    def render(self) -> str:
        """Plain-text excerpt: ``>> `` marks the error line, ``^`` the column."""
        width = len(str(self.lines[-1][0])) if self.lines else 1
        parts: list[str] = []
        for lineno, content in self.lines:
            is_error = lineno == self.error_line
            prefix = f"{'>> ' if is_error else '   '}{lineno:>{width}}| "
            parts.append(prefix + content)
            if is_error and self.column is not None:
                parts.append(" " * (len(prefix) + self.column - 1) + "^")
        return "\n".join(parts)

    def format(self) -> str:
        """Colored variant of ``render`` for terminal display."""
        parts: list[str] = []
        for lineno, content in self.lines:
            is_error = lineno == self.error_line
            marker = ">>" if is_error else "  "
            number = terminal.line_number(f"{marker}{lineno:>4}")
            text = terminal.error_line(content) if is_error else terminal.dim_text(content)
            parts.append(f"{number} | {text}")
            if is_error and self.column is not None:
                parts.append(f"{' ' * 7}| {terminal.error_line(' ' * (self.column - 1) + '^')}")
        return "\n".join(parts)


def build_source_snippet(
    source: str,
    error_line: int,
    *,
    context_lines: int = 2,
    column: int | None = None,
) -> SourceSnippet:
    """Build a SourceSnippet from template source.

    Args:
        source: Full template source text.
        error_line: 1-based line number of the error.
        context_lines: Number of lines to show before/after the error line.
        column: Optional 1-based column for the caret pointer.
    """
    all_lines = source.split("\n")
    start = max(0, error_line - 1 - context_lines)
    end = min(len(all_lines), error_line + context_lines)
    lines = tuple((i + 1, all_lines[i]) for i in range(start, end))
    return SourceSnippet(lines=lines, error_line=error_line, column=column)


class TemplateError(Exception):
    """Base exception for all template errors.

    Accepts either a message or another exception (kept as
    ``original_error``) and an optional token locating the failure.
    The location suffix and the source excerpt are derived from the
    token only when asked for.

    Attributes:
        code: Optional ErrorCode for searchable error identification.
        token: Token the error is attributed to, if any.
        original_error: Wrapped exception, if this error wraps one.
    """

    code: ErrorCode | None = None

    def __init__(
        self,
        error: str | BaseException,
        token: Token | None = None,
        *,
        code: ErrorCode | None = None,
    ):
        if isinstance(error, BaseException):
            self.original_error: BaseException | None = error
            self.message = _describe(error)
        else:
            self.original_error = None
            self.message = error
        self.token = token
        if code is not None:
            self.code = code
        self._context: str | None = None
        super().__init__(self.message)

    def __str__(self) -> str:
        return self._format_message()

    def _format_message(self) -> str:
        if self.token is None:
            return self.message
        parts = [self.message]
        if self.token.file:
            parts.append(f"file:{self.token.file}")
        line, column = self.token.get_position()
        parts.append(f"line:{line}")
        parts.append(f"col:{column}")
        return ", ".join(parts)

    @property
    def file(self) -> str | None:
        return self.token.file if self.token is not None else None

    @property
    def line(self) -> int | None:
        return self.token.get_position()[0] if self.token is not None else None

    @property
    def column(self) -> int | None:
        return self.token.get_position()[1] if self.token is not None else None

    @property
    def source_snippet(self) -> SourceSnippet | None:
        if self.token is None:
            return None
        line, column = self.token.get_position()
        return build_source_snippet(self.token.input, line, column=column)

    @property
    def context(self) -> str:
        """Source excerpt around the failure, built on first access."""
        if self._context is None:
            snippet = self.source_snippet
            self._context = snippet.render() if snippet is not None else ""
        return self._context

    def format_compact(self) -> str:
        """Format error as a structured, human-readable summary.

        Format::

            S-RUN-001: undefined variable: usernme
              --> base.html:42:8
              >>  42 | <h1>{{ usernme }}</h1>
                     |        ^
        """
        header = terminal.format_error_header(self.code.value if self.code else None, self.message)
        parts = [header]
        if self.token is not None:
            line, column = self.token.get_position()
            where = f"{self.token.file or '<template>'}:{line}:{column}"
            parts.append(f"  --> {terminal.location(where)}")
            snippet = self.source_snippet
            if snippet is not None:
                parts.append(snippet.format())
        if self.original_error is not None and not isinstance(self.original_error, TemplateError):
            parts.append(f"  {terminal.hint('Caused by:')} {type(self.original_error).__name__}")
        return "\n".join(parts)


def _describe(error: BaseException) -> str:
    if isinstance(error, TemplateError):
        return error.message
    if isinstance(error, KeyError) and error.args:
        return str(error.args[0])
    return str(error) or type(error).__name__


class TemplateNotFoundError(TemplateError):
    """A partial, layout or file could not be found in any search root.

    Example:
        >>> env.render_file("missing")
        TemplateNotFoundError: Failed to lookup "missing" in "./views"
    """

    code: ErrorCode | None = ErrorCode.TEMPLATE_NOT_FOUND

    def __init__(self, name: str, roots: list[str] | tuple[str, ...] = ()):
        self.name = name
        self.roots = list(roots)
        super().__init__(f'Failed to lookup "{name}" in "{",".join(self.roots)}"')


class TemplateSyntaxError(TemplateError):
    """Template source rejected before rendering."""

    code: ErrorCode | None = ErrorCode.INVALID_TAG_SYNTAX


class LexError(TemplateSyntaxError):
    """Unterminated tag, output, raw block or quote."""

    code: ErrorCode | None = ErrorCode.INVALID_TOKEN


class ParseError(TemplateSyntaxError):
    """Unknown tag, malformed tag arguments, or a block that is never closed."""


class TemplateRuntimeError(TemplateError):
    """Raised while rendering."""

    code: ErrorCode | None = ErrorCode.RENDER_ERROR


class RenderError(TemplateRuntimeError):
    """Failure inside one node, wrapped with the node's token.

    The underlying exception is kept in ``original_error``.
    """


class LimitExceededError(TemplateRuntimeError):
    """A resource budget would be exceeded.

    Always fatal: rendering stops even under ``catch_all_errors``.
    """

    code: ErrorCode | None = ErrorCode.LIMIT_EXCEEDED

    def __init__(self, resource: str, limit: float):
        self.resource = resource
        self.limit = limit
        super().__init__(f"{resource} limit exceeded")


class AggregateError(TemplateRuntimeError):
    """Every per-node error of a render under ``catch_all_errors``.

    The first error's token locates the aggregate; all of them are in
    ``errors``.
    """

    code: ErrorCode | None = ErrorCode.MULTIPLE_ERRORS

    def __init__(self, errors: list[TemplateError]):
        self.errors = errors
        suffix = "s" if len(errors) > 1 else ""
        super().__init__(f"{len(errors)} error{suffix} found", errors[0].token if errors else None)
        self.original_error = errors[0] if errors else None


class UndefinedError(TemplateError):
    """Base for undefined-variable failures."""

    code: ErrorCode | None = ErrorCode.UNDEFINED_VARIABLE


class UndefinedVariableError(UndefinedError):
    """Strict-mode lookup failure.

    Attributes:
        path: The exact path prefix that failed to resolve, e.g. ``"user.nmae"``.
    """

    def __init__(self, error: str | BaseException, token: Token | None = None):
        super().__init__(error, token)
        self.path: str | None = getattr(error, "path", None)


class InternalUndefinedVariableError(Exception):
    """Raised by context lookups; converted to ``UndefinedVariableError``
    once the evaluator knows which token was being resolved."""

    def __init__(self, path: str):
        super().__init__(f"undefined variable: {path}")
        self.path = path
