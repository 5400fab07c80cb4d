"""Token types produced by the lexer.

Every token remembers the full source buffer, its ``[begin, end)`` slice
of it and the file it came from, so diagnostics can recover the exact
source text and a 1-based line/column on demand.

Top-level tokens are ``HTMLToken``, ``TagToken`` and ``OutputToken``.
Expression tokens (``NumberToken``, ``PropertyAccessToken``,
``FilteredValueToken`` ...) are produced by the lexer's ``read_*``
methods while parsing a tag's arguments.
"""

from __future__ import annotations

from enum import IntFlag
from typing import TYPE_CHECKING, Any

from sluice.drops import LITERALS
from sluice.utils.chars import BLANK, char_type

if TYPE_CHECKING:
    from sluice.environment.options import Options
    from sluice.expressions import Expression
    from sluice.lexer import Lexer


class TokenKind(IntFlag):
    NUMBER = 1
    LITERAL = 2
    TAG = 4
    OUTPUT = 8
    HTML = 16
    FILTER = 32
    HASH = 64
    PROPERTY_ACCESS = 128
    WORD = 256
    RANGE = 512
    QUOTED = 1024
    OPERATOR = 2048
    FILTERED_VALUE = 4096
    DELIMITED = TAG | OUTPUT


class Token:
    """A typed slice of template source."""

    __slots__ = ("begin", "end", "file", "input", "kind")

    def __init__(self, kind: TokenKind, input: str, begin: int, end: int, file: str | None = None):
        self.kind = kind
        self.input = input
        self.begin = begin
        self.end = end
        self.file = file

    def get_text(self) -> str:
        return self.input[self.begin : self.end]

    def get_position(self) -> tuple[int, int]:
        """1-based ``(line, column)`` of the token's first character."""
        line = self.input.count("\n", 0, self.begin) + 1
        column = self.begin - self.input.rfind("\n", 0, self.begin)
        return line, column

    def size(self) -> int:
        return self.end - self.begin

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.get_text()!r}>"


class HTMLToken(Token):
    """Literal text between delimiters; trim amounts set by the lexer post-pass."""

    __slots__ = ("trim_left", "trim_right")

    def __init__(self, input: str, begin: int, end: int, file: str | None = None):
        super().__init__(TokenKind.HTML, input, begin, end, file)
        self.trim_left = 0
        self.trim_right = 0

    def get_content(self) -> str:
        return self.input[self.begin + self.trim_left : self.end - self.trim_right]


class DelimitedToken(Token):
    """Common part of ``{% ... %}`` and ``{{ ... }}`` tokens.

    ``content_range`` excludes the delimiters, any ``-`` trim markers and
    surrounding blanks.
    """

    __slots__ = ("content_range", "trim_left", "trim_right")

    def __init__(
        self,
        kind: TokenKind,
        content_range: tuple[int, int],
        input: str,
        begin: int,
        end: int,
        trim_left: bool,
        trim_right: bool,
        file: str | None = None,
    ):
        super().__init__(kind, input, begin, end, file)
        left, right = content_range
        marked_left = left < len(input) and input[left] == "-"
        marked_right = right > 0 and input[right - 1] == "-"
        start = left + 1 if marked_left else left
        stop = right - 1 if marked_right else right
        while start < stop and char_type(input[start]) & BLANK:
            start += 1
        while stop > start and char_type(input[stop - 1]) & BLANK:
            stop -= 1
        self.content_range = (start, stop)
        self.trim_left = marked_left or trim_left
        self.trim_right = marked_right or trim_right

    @property
    def content(self) -> str:
        return self.input[self.content_range[0] : self.content_range[1]]


class TagToken(DelimitedToken):
    """``{% name args %}``; owns a sub-lexer positioned after the name."""

    __slots__ = ("args", "name", "tokenizer")

    def __init__(
        self, input: str, begin: int, end: int, options: Options, file: str | None = None
    ):
        inner = (begin + len(options.tag_delimiter_left), end - len(options.tag_delimiter_right))
        super().__init__(
            TokenKind.TAG,
            inner,
            input,
            begin,
            end,
            options.trim_tag_left,
            options.trim_tag_right,
            file,
        )
        self.tokenizer = _sub_lexer(input, options, file, self.content_range)
        self.name = self.tokenizer.read_tag_name()
        self.tokenizer.assert_(self.name, "illegal tag syntax, tag name expected")
        self.tokenizer.skip_blank()
        self.args = input[self.tokenizer.p : self.content_range[1]]


class LiquidTagToken(DelimitedToken):
    """One line inside ``{% liquid %}``: a tag without delimiters."""

    __slots__ = ("name", "tokenizer")

    def __init__(
        self, input: str, begin: int, end: int, options: Options, file: str | None = None
    ):
        super().__init__(TokenKind.TAG, (begin, end), input, begin, end, False, False, file)
        self.tokenizer = _sub_lexer(input, options, file, self.content_range)
        self.name = self.tokenizer.read_tag_name()
        self.tokenizer.assert_(self.name, "illegal liquid tag syntax")
        self.tokenizer.skip_blank()

    @property
    def args(self) -> str:
        return self.input[self.tokenizer.p : self.content_range[1]]


class OutputToken(DelimitedToken):
    """``{{ value | filters }}``."""

    __slots__ = ()

    def __init__(
        self, input: str, begin: int, end: int, options: Options, file: str | None = None
    ):
        inner = (
            begin + len(options.output_delimiter_left),
            end - len(options.output_delimiter_right),
        )
        super().__init__(
            TokenKind.OUTPUT,
            inner,
            input,
            begin,
            end,
            options.trim_output_left,
            options.trim_output_right,
            file,
        )


class WordToken(Token):
    __slots__ = ("content",)

    def __init__(self, input: str, begin: int, end: int, file: str | None = None):
        super().__init__(TokenKind.WORD, input, begin, end, file)
        self.content = self.get_text()


class NumberToken(Token):
    __slots__ = ("content",)

    def __init__(self, input: str, begin: int, end: int, file: str | None = None):
        super().__init__(TokenKind.NUMBER, input, begin, end, file)
        text = self.get_text()
        self.content: int | float = float(text) if "." in text else int(text)


class LiteralToken(Token):
    """``true``, ``false``, ``nil``, ``null``, ``empty`` or ``blank``."""

    __slots__ = ("content", "literal")

    def __init__(self, input: str, begin: int, end: int, file: str | None = None):
        super().__init__(TokenKind.LITERAL, input, begin, end, file)
        self.literal = self.get_text()
        self.content = LITERALS[self.literal]


_ESCAPES = {"b": "\b", "f": "\f", "n": "\n", "r": "\r", "t": "\t", "v": "\v"}
_HEX = frozenset("0123456789abcdefABCDEF")
_OCT = frozenset("01234567")


def parse_string_literal(text: str) -> str:
    """Decode the body of a quoted token (quotes included in ``text``)."""
    out: list[str] = []
    i = 1
    last = len(text) - 1
    while i < last:
        ch = text[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue
        nxt = text[i + 1] if i + 1 < len(text) else ""
        if nxt in _ESCAPES:
            out.append(_ESCAPES[nxt])
            i += 2
        elif nxt == "u":
            j = i + 2
            while j <= i + 5 and j < len(text) and text[j] in _HEX:
                j += 1
            out.append(chr(int(text[i + 2 : j], 16)) if j > i + 2 else "\x00")
            i = j
        elif nxt in _OCT:
            j = i + 1
            while j <= i + 3 and j < len(text) and text[j] in _OCT:
                j += 1
            out.append(chr(int(text[i + 1 : j], 8)))
            i = j
        else:
            out.append(nxt)
            i += 2
    return "".join(out)


class QuotedToken(Token):
    __slots__ = ("content",)

    def __init__(self, input: str, begin: int, end: int, file: str | None = None):
        super().__init__(TokenKind.QUOTED, input, begin, end, file)
        self.content = parse_string_literal(self.get_text())


class OperatorToken(Token):
    __slots__ = ("operator",)

    PRECEDENCE = {
        "==": 2,
        "!=": 2,
        ">": 2,
        "<": 2,
        ">=": 2,
        "<=": 2,
        "contains": 2,
        "not": 1,
        "and": 0,
        "or": 0,
    }
    UNARY = frozenset({"not"})

    def __init__(self, input: str, begin: int, end: int, file: str | None = None):
        super().__init__(TokenKind.OPERATOR, input, begin, end, file)
        self.operator = self.get_text()

    def get_precedence(self) -> int:
        return self.PRECEDENCE.get(self.operator, 1)

    @property
    def unary(self) -> bool:
        return self.operator in self.UNARY


class PropertyAccessToken(Token):
    """``variable.props[0]``; ``variable`` is set only for literal roots."""

    __slots__ = ("props", "variable")

    def __init__(
        self,
        variable: Token | None,
        props: list[Token],
        input: str,
        begin: int,
        end: int,
        file: str | None = None,
    ):
        super().__init__(TokenKind.PROPERTY_ACCESS, input, begin, end, file)
        self.variable = variable
        self.props = props


class RangeToken(Token):
    __slots__ = ("lhs", "rhs")

    def __init__(
        self, input: str, begin: int, end: int, lhs: Token, rhs: Token, file: str | None = None
    ):
        super().__init__(TokenKind.RANGE, input, begin, end, file)
        self.lhs = lhs
        self.rhs = rhs


class FilterToken(Token):
    """``| name: arg, key: value``; named args are ``(name, token)`` pairs."""

    __slots__ = ("args", "name")

    def __init__(
        self,
        name: str,
        args: list[Token | tuple[str, Token | None]],
        input: str,
        begin: int,
        end: int,
        file: str | None = None,
    ):
        super().__init__(TokenKind.FILTER, input, begin, end, file)
        self.name = name
        self.args = args


class HashToken(Token):
    __slots__ = ("name", "value")

    def __init__(
        self,
        input: str,
        begin: int,
        end: int,
        name: WordToken,
        value: Token | None,
        file: str | None = None,
    ):
        super().__init__(TokenKind.HASH, input, begin, end, file)
        self.name = name
        self.value = value


class FilteredValueToken(Token):
    __slots__ = ("filters", "initial")

    def __init__(
        self,
        initial: Expression,
        filters: list[FilterToken],
        input: str,
        begin: int,
        end: int,
        file: str | None = None,
    ):
        super().__init__(TokenKind.FILTERED_VALUE, input, begin, end, file)
        self.initial = initial
        self.filters = filters


def _sub_lexer(
    input: str, options: Options, file: str | None, content_range: tuple[int, int]
) -> Lexer:
    from sluice.lexer import Lexer

    return Lexer(input, options.operators, file, content_range)


def is_tag(token: Any) -> bool:
    return isinstance(token, Token) and token.kind == TokenKind.TAG


def is_output(token: Any) -> bool:
    return isinstance(token, Token) and token.kind == TokenKind.OUTPUT


def is_property_access(token: Any) -> bool:
    return isinstance(token, Token) and token.kind == TokenKind.PROPERTY_ACCESS


def is_range(token: Any) -> bool:
    return isinstance(token, Token) and token.kind == TokenKind.RANGE


def is_word(token: Any) -> bool:
    return isinstance(token, Token) and token.kind == TokenKind.WORD


def is_quoted(token: Any) -> bool:
    return isinstance(token, Token) and token.kind == TokenKind.QUOTED


def is_value_token(token: Any) -> bool:
    """Tokens that evaluate straight to their parsed ``content``."""
    return isinstance(token, Token) and bool(
        token.kind & (TokenKind.WORD | TokenKind.NUMBER | TokenKind.LITERAL | TokenKind.QUOTED)
    )
