"""Lexer for Liquid template source.

Two modes share one cursor-based scanner:

Top level:
    ``read_top_level_tokens`` splits source into ``HTMLToken``,
    ``TagToken`` and ``OutputToken`` runs, then applies whitespace
    trimming around ``-`` markers as a post-pass.

Expressions:
    The ``read_*`` methods read values, operators, filters and hashes out
    of a tag's or output's content range. Every tag token owns a
    sub-lexer positioned right after its name.

Raw blocks:
    After ``{% raw %}`` everything up to the matching ``{% endraw %}`` is
    returned as a single HTML token, even if it contains delimiters.

Errors are ``LexError`` carrying a zero-width token at the failing
position, so they report line and column like any other template error.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Iterator
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from sluice._types import (
    FilteredValueToken,
    FilterToken,
    HashToken,
    HTMLToken,
    LiquidTagToken,
    LiteralToken,
    NumberToken,
    OperatorToken,
    OutputToken,
    PropertyAccessToken,
    QuotedToken,
    RangeToken,
    TagToken,
    Token,
    TokenKind,
    WordToken,
)
from sluice.drops import LITERALS
from sluice.environment.exceptions import ErrorCode, LexError
from sluice.utils.chars import (
    BLANK,
    INLINE_BLANK,
    NUMBER,
    QUOTE,
    SIGN,
    TrieNode,
    char_type,
    create_trie,
    is_word,
)

if TYPE_CHECKING:
    from sluice.environment.options import Options
    from sluice.expressions import Expression

_SNAPSHOT_LENGTH = 32


@lru_cache(maxsize=32)
def _compile_trie(names: tuple[str, ...]) -> TrieNode:
    return create_trie(dict.fromkeys(names, True))


def _default_options() -> Options:
    from sluice.environment.options import Options

    return Options()


class Lexer:
    """Cursor over ``input[p:N]``.

    Args:
        input: Full template source (tokens keep a reference to it).
        operators: Operator table; only its keys matter to the lexer.
        file: File name reported in diagnostics.
        content_range: Optional ``(begin, end)`` restricting the scan.
    """

    __slots__ = ("N", "file", "input", "literal_trie", "op_trie", "p", "raw_begin_at")

    def __init__(
        self,
        input: str,
        operators: Iterable[str] | None = None,
        file: str | None = None,
        content_range: tuple[int, int] | None = None,
    ):
        if operators is None:
            from sluice.expressions import DEFAULT_OPERATORS

            operators = DEFAULT_OPERATORS
        self.input = input
        self.file = file
        self.raw_begin_at = -1
        self.p = content_range[0] if content_range else 0
        self.N = content_range[1] if content_range else len(input)
        self.op_trie = _compile_trie(tuple(operators))
        self.literal_trie = _compile_trie(tuple(LITERALS))

    # ------------------------------------------------------------------
    # Top level
    # ------------------------------------------------------------------

    def read_top_level_tokens(self, options: Options | None = None) -> list[Token]:
        options = options or _default_options()
        tokens: list[Token] = []
        while self.p < self.N:
            tokens.append(self.read_top_level_token(options))
        _apply_trims(tokens, options.greedy)
        return tokens

    def read_top_level_token(self, options: Options) -> Token:
        if self.raw_begin_at > -1:
            return self.read_endraw_or_raw_content(options)
        if self.match(options.tag_delimiter_left):
            return self.read_tag_token(options)
        if self.match(options.output_delimiter_left):
            return self.read_output_token(options)
        return self.read_html_token((options.tag_delimiter_left, options.output_delimiter_left))

    def read_html_token(self, stops: Iterable[str]) -> HTMLToken:
        begin = self.p
        stop_at = self.N
        for stop in stops:
            found = self.input.find(stop, self.p, self.N)
            if found != -1 and found < stop_at:
                stop_at = found
        self.p = stop_at
        return HTMLToken(self.input, begin, self.p, self.file)

    def read_tag_token(self, options: Options) -> TagToken:
        begin = self.p
        if self.read_to_delimiter(options.tag_delimiter_right) == -1:
            raise self.error(
                f"tag {self.snapshot(begin)} not closed", begin, code=ErrorCode.UNCLOSED_TAG
            )
        token = TagToken(self.input, begin, self.p, options, self.file)
        if token.name == "raw":
            self.raw_begin_at = begin
        return token

    def read_to_delimiter(self, delimiter: str, respect_quoted: bool = False) -> int:
        self.skip_blank()
        while self.p < self.N:
            if respect_quoted and self.peek_type() & QUOTE:
                # An open quote runs to the end, so the delimiter is reported unclosed.
                self.skip_quoted()
                continue
            self.p += 1
            if self.rmatch(delimiter):
                return self.p
        return -1

    def read_output_token(self, options: Options | None = None) -> OutputToken:
        options = options or _default_options()
        begin = self.p
        if self.read_to_delimiter(options.output_delimiter_right, True) == -1:
            raise self.error(
                f"output {self.snapshot(begin)} not closed", begin, code=ErrorCode.UNCLOSED_OUTPUT
            )
        return OutputToken(self.input, begin, self.p, options, self.file)

    def read_endraw_or_raw_content(self, options: Options) -> Token:
        left, right = options.tag_delimiter_left, options.tag_delimiter_right
        begin = self.p
        close_at = self.read_to(left) - len(left)
        while self.p < self.N:
            self.skip_blank()
            if self.peek() == "-":
                self.p += 1
            if self.read_identifier().get_text() == "endraw":
                while self.p <= self.N:
                    if self.rmatch(right):
                        end = self.p
                        if begin == close_at:
                            self.raw_begin_at = -1
                            return TagToken(self.input, begin, end, options, self.file)
                        self.p = close_at
                        return HTMLToken(self.input, begin, close_at, self.file)
                    if self.rmatch(left):
                        break
                    self.p += 1
            else:
                close_at = self.read_to(left) - len(left)
        raise self.error(
            f"raw {self.snapshot(self.raw_begin_at)} not closed", begin, code=ErrorCode.UNCLOSED_RAW
        )

    def read_liquid_tag_tokens(self, options: Options | None = None) -> list[LiquidTagToken]:
        """Read the body of ``{% liquid %}``: one tag per line."""
        options = options or _default_options()
        tokens: list[LiquidTagToken] = []
        while self.p < self.N:
            token = self.read_liquid_tag_token(options)
            if token is not None:
                tokens.append(token)
        return tokens

    def read_liquid_tag_token(self, options: Options) -> LiquidTagToken | None:
        self.skip_blank()
        if self.end():
            return None
        begin = self.p
        self.read_to_delimiter("\n")
        return LiquidTagToken(self.input, begin, self.p, options, self.file)

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def read_expression(self) -> Expression:
        from sluice.expressions import Expression

        return Expression(self.read_expression_tokens())

    def read_expression_tokens(self) -> Iterator[Token]:
        while self.p < self.N:
            operator = self.read_operator()
            if operator is not None:
                yield operator
                continue
            value = self.read_value()
            if value is None:
                return
            yield value

    def read_operator(self) -> OperatorToken | None:
        self.skip_blank()
        end = self.match_trie(self.op_trie)
        if end == -1:
            return None
        token = OperatorToken(self.input, self.p, end, self.file)
        self.p = end
        return token

    def match_trie(self, trie: TrieNode) -> int:
        """End offset of the longest keyword at the cursor, or -1.

        Keywords that end in an identifier character only match when the
        next character is not one, so ``contains`` never matches the
        start of ``containsX``.
        """
        node = trie
        i = self.p
        matched: TrieNode | None = None
        matched_end = -1
        while i < self.N:
            child = node.children.get(self.input[i])
            if child is None:
                break
            node = child
            i += 1
            if node.end:
                matched, matched_end = node, i
        if matched is None:
            return -1
        if matched.need_boundary and matched_end < self.N and is_word(self.input[matched_end]):
            return -1
        return matched_end

    def read_filtered_value(self) -> FilteredValueToken:
        begin = self.p
        initial = self.read_expression()
        self.assert_(initial.valid(), lambda: f"invalid value expression: {self.snapshot()}")
        filters = self.read_filters()
        return FilteredValueToken(initial, filters, self.input, begin, self.p, self.file)

    def read_filters(self) -> list[FilterToken]:
        filters: list[FilterToken] = []
        while True:
            token = self.read_filter()
            if token is None:
                return filters
            filters.append(token)

    def read_filter(self) -> FilterToken | None:
        self.skip_blank()
        if self.end():
            return None
        self.assert_(self.read() == "|", 'expected "|" before filter')
        name = self.read_identifier()
        if not name.size():
            self.assert_(self.end(), "expected filter name")
            return None
        args: list[Token | tuple[str, Token | None]] = []
        self.skip_blank()
        if self.peek() == ":":
            while True:
                self.p += 1
                arg = self.read_filter_arg()
                if arg is not None:
                    args.append(arg)
                self.skip_blank()
                self.assert_(
                    self.end() or self.peek() in (",", "|"),
                    lambda: f"unexpected character {self.snapshot()}",
                )
                if self.peek() != ",":
                    break
        elif self.peek() != "|" and not self.end():
            raise self.error('expected ":" after filter name')
        return FilterToken(name.get_text(), args, self.input, name.begin, self.p, self.file)

    def read_filter_arg(self) -> Token | tuple[str, Token | None] | None:
        key = self.read_value()
        if key is None:
            return None
        self.skip_blank()
        if self.peek() != ":":
            return key
        self.p += 1
        return key.get_text(), self.read_value()

    def read_hashes(self, separator: str | bool | None = None) -> list[HashToken]:
        hashes: list[HashToken] = []
        while True:
            token = self.read_hash(separator)
            if token is None:
                return hashes
            hashes.append(token)

    def read_hash(self, separator: str | bool | None = None) -> HashToken | None:
        """Read ``name: value`` (or ``name=value`` when ``separator`` is True).

        A bare ``name`` yields a hash with no value, which renders as True.
        """
        self.skip_blank()
        if self.peek() == ",":
            self.p += 1
        begin = self.p
        name = self.read_non_empty_identifier()
        if name is None:
            return None
        value: Token | None = None
        self.skip_blank()
        if isinstance(separator, str):
            sep = separator
        else:
            sep = "=" if separator else ":"
        if self.peek() == sep:
            self.p += 1
            value = self.read_value()
        return HashToken(self.input, begin, self.p, name, value, self.file)

    def read_value(self) -> Token | None:
        self.skip_blank()
        begin = self.p
        variable = (
            self.read_literal() or self.read_quoted() or self.read_range() or self.read_number()
        )
        props = self.read_properties(variable is None)
        if props:
            return PropertyAccessToken(variable, props, self.input, begin, self.p, self.file)
        return variable

    def read_value_or_throw(self) -> Token:
        value = self.read_value()
        self.assert_(
            value is not None, lambda: f"unexpected token {self.snapshot()}, value expected"
        )
        return value  # type: ignore[return-value]

    def read_scope_value(self) -> PropertyAccessToken | None:
        self.skip_blank()
        begin = self.p
        props = self.read_properties()
        if props:
            return PropertyAccessToken(None, props, self.input, begin, self.p, self.file)
        return None

    def read_properties(self, read_first: bool = True) -> list[Token]:
        props: list[Token] = []
        while True:
            if self.peek() == "[":
                self.p += 1
                prop = self.read_value() or WordToken(self.input, self.p, self.p, self.file)
                self.assert_(self.read_to("]") != -1, "[ not closed")
                props.append(prop)
                continue
            if read_first and not props:
                ident = self.read_non_empty_identifier()
                if ident is not None:
                    props.append(ident)
                    continue
            if self.peek() != "." or self.peek(1) == ".":
                return props
            self.p += 1
            ident = self.read_non_empty_identifier()
            if ident is None:
                return props
            props.append(ident)

    def read_number(self) -> NumberToken | None:
        self.skip_blank()
        seen_dot = False
        seen_digit = False
        n = 1 if self.peek_type() & SIGN else 0
        while self.p + n <= self.N:
            if self.peek_type(n) & NUMBER:
                seen_digit = True
                n += 1
            elif self.peek(n) == "." and self.peek(n + 1) != ".":
                if seen_dot or not seen_digit:
                    return None
                seen_dot = True
                n += 1
            else:
                break
        if seen_digit and not is_word(self.peek(n)):
            token = NumberToken(self.input, self.p, self.p + n, self.file)
            self.advance(n)
            return token
        return None

    def read_literal(self) -> LiteralToken | None:
        self.skip_blank()
        end = self.match_trie(self.literal_trie)
        if end == -1:
            return None
        token = LiteralToken(self.input, self.p, end, self.file)
        self.p = end
        return token

    def read_range(self) -> RangeToken | None:
        self.skip_blank()
        begin = self.p
        if self.peek() != "(":
            return None
        self.p += 1
        lhs = self.read_value_or_throw()
        self.skip_blank()
        self.assert_(self.read() == "." and self.read() == ".", "invalid range syntax")
        rhs = self.read_value_or_throw()
        self.skip_blank()
        self.assert_(self.read() == ")", "invalid range syntax")
        return RangeToken(self.input, begin, self.p, lhs, rhs, self.file)

    def read_quoted(self) -> QuotedToken | None:
        self.skip_blank()
        begin = self.p
        if not self.peek_type() & QUOTE:
            return None
        if not self.skip_quoted():
            raise self.error(f"quoted {self.snapshot(begin)} not closed", begin)
        return QuotedToken(self.input, begin, self.p, self.file)

    def skip_quoted(self) -> bool:
        """Advance past the string literal at ``p``; False when it runs to the end."""
        quote = self.input[self.p]
        self.p += 1
        escaped = False
        while self.p < self.N:
            self.p += 1
            ch = self.input[self.p - 1]
            if ch == quote and not escaped:
                return True
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
        return False

    def read_file_name_template(self, options: Options) -> Iterator[Token]:
        """Tokens of an unquoted partial name such as ``header.html`` or ``{{ name }}.html``."""
        stops = (",", " ", options.output_delimiter_left)
        while self.p < self.N and self.peek() not in (",", " "):
            if self.match(options.output_delimiter_left):
                yield self.read_output_token(options)
            else:
                yield self.read_html_token(stops)

    def read_identifier(self) -> WordToken:
        self.skip_blank()
        begin = self.p
        while not self.end() and is_word(self.peek()):
            self.p += 1
        return WordToken(self.input, begin, self.p, self.file)

    read_word = read_identifier

    def read_non_empty_identifier(self) -> WordToken | None:
        token = self.read_identifier()
        return token if token.size() else None

    def read_tag_name(self) -> str:
        self.skip_blank()
        if self.p < self.N and self.input[self.p] == "#":
            self.p += 1
            return "#"
        return self.read_identifier().get_text()

    # ------------------------------------------------------------------
    # Cursor primitives
    # ------------------------------------------------------------------

    def remaining(self) -> str:
        return self.input[self.p : self.N]

    def advance(self, step: int = 1) -> None:
        self.p += step

    def end(self) -> bool:
        return self.p >= self.N

    def read(self) -> str:
        ch = self.input[self.p] if self.p < self.N else ""
        self.p += 1
        return ch

    def read_to(self, target: str) -> int:
        while self.p < self.N:
            self.p += 1
            if self.rmatch(target):
                return self.p
        return -1

    def match(self, word: str) -> bool:
        return self.input.startswith(word, self.p)

    def rmatch(self, word: str) -> bool:
        start = self.p - len(word)
        if start < 0 or self.p > len(self.input):
            return False
        return self.input.startswith(word, start)

    def peek_type(self, offset: int = 0) -> int:
        if self.p + offset >= self.N:
            return 0
        return char_type(self.input[self.p + offset])

    def peek(self, offset: int = 0) -> str:
        if self.p + offset >= self.N:
            return ""
        return self.input[self.p + offset]

    def skip_blank(self) -> None:
        while self.peek_type() & BLANK:
            self.p += 1

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def error(
        self, message: str, pos: int | None = None, *, code: ErrorCode | None = None
    ) -> LexError:
        at = self.p if pos is None else pos
        return LexError(message, WordToken(self.input, at, self.N, self.file), code=code)

    def assert_(
        self, condition: Any, message: str | Callable[[], str], pos: int | None = None
    ) -> None:
        if not condition:
            raise self.error(message() if callable(message) else message, pos)

    def snapshot(self, begin: int | None = None) -> str:
        text = self.input[self.p if begin is None else begin : self.N]
        if len(text) > _SNAPSHOT_LENGTH:
            text = text[: _SNAPSHOT_LENGTH - 3] + "..."
        return json.dumps(text, ensure_ascii=False)


# ----------------------------------------------------------------------
# Whitespace control
# ----------------------------------------------------------------------


def _apply_trims(tokens: list[Token], greedy: bool) -> None:
    """Trim HTML neighbours of tags/outputs that request it.

    Content between ``{% raw %}`` and ``{% endraw %}`` is never trimmed.
    """
    in_raw = False
    for i, token in enumerate(tokens):
        if not token.kind & TokenKind.DELIMITED:
            continue
        if not in_raw and token.trim_left and i > 0:  # type: ignore[attr-defined]
            _trim_html_end(tokens[i - 1], greedy)
        if token.kind == TokenKind.TAG:
            if token.name == "raw":  # type: ignore[attr-defined]
                in_raw = True
            elif token.name == "endraw":  # type: ignore[attr-defined]
                in_raw = False
        if not in_raw and token.trim_right and i + 1 < len(tokens):  # type: ignore[attr-defined]
            _trim_html_start(tokens[i + 1], greedy)


def _trim_html_end(token: Token, greedy: bool) -> None:
    if not isinstance(token, HTMLToken):
        return
    mask = BLANK if greedy else INLINE_BLANK
    limit = token.begin + token.trim_left
    while (
        token.end - 1 - token.trim_right >= limit
        and char_type(token.input[token.end - 1 - token.trim_right]) & mask
    ):
        token.trim_right += 1


def _trim_html_start(token: Token, greedy: bool) -> None:
    if not isinstance(token, HTMLToken):
        return
    mask = BLANK if greedy else INLINE_BLANK
    while (
        token.begin + token.trim_left < token.end
        and char_type(token.input[token.begin + token.trim_left]) & mask
    ):
        token.trim_left += 1
    start = token.begin + token.trim_left
    if start < token.end and token.input[start] == "\n":
        token.trim_left += 1


def tokenize(source: str, options: Options | None = None, file: str | None = None) -> list[Token]:
    """Convenience wrapper: top-level tokens for ``source``."""
    options = options or _default_options()
    return Lexer(source, options.operators, file).read_top_level_tokens(options)
