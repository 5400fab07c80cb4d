"""Base class and helpers shared by tag implementations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sluice.environment.exceptions import ErrorCode, ParseError
from sluice.template.nodes import Node

if TYPE_CHECKING:
    from collections import deque

    from sluice._types import TagToken, Token
    from sluice.environment.core import Environment
    from sluice.parser import Parser


class Tag(Node):
    """A ``{% name args %}`` node.

    Subclasses parse their arguments in ``__init__`` from
    ``self.tokenizer`` and, for block tags, consume their body from
    ``remaining`` up to the matching end tag.

    Args:
        token: The opening tag token.
        remaining: Tokens after ``token``; block tags pop their body off it.
        env: Owning environment (options, filters, tags).
        parser: The parser driving this parse, for nested bodies.
    """

    token: TagToken

    def __init__(
        self,
        token: TagToken,
        remaining: deque[Token],
        env: Environment,
        parser: Parser,
    ):
        super().__init__(token)
        self.name = token.name
        self.env = env
        self.tokenizer = token.tokenizer

    def render(self, ctx: Any, emitter: Any) -> Any:
        return None

    def not_closed(self) -> ParseError:
        return ParseError(
            f"tag {self.token.get_text()} not closed", self.token, code=ErrorCode.UNCLOSED_BLOCK
        )

    def illegal(self, message: str | None = None) -> ParseError:
        return ParseError(
            message or f"illegal tag: {self.token.get_text()}",
            self.token,
            code=ErrorCode.INVALID_TAG_SYNTAX,
        )


def expect_no_args(token: Any) -> None:
    """``{% else %}``/``{% endfor %}`` and friends take no arguments."""
    args = getattr(token, "args", "")
    if args:
        raise ParseError(f"unexpected {args!r}", token, code=ErrorCode.INVALID_TAG_SYNTAX)
