"""Tags whose bodies are not ordinary template code: raw, comment, #, liquid."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from sluice._types import is_tag
from sluice.tags.base import Tag
from sluice.template.renderer import render_templates

if TYPE_CHECKING:
    from collections import deque
    from collections.abc import Generator

    from sluice._types import TagToken, Token
    from sluice.context import Context
    from sluice.environment.core import Environment
    from sluice.parser import Parser
    from sluice.template.nodes import Node

_UNCOMMENTED_LINE = re.compile(r"\n\s*[^#\s]")


def _consume_until(tag: Tag, remaining: deque[Token], end_name: str) -> list[Token]:
    body: list[Token] = []
    while remaining:
        token = remaining.popleft()
        if is_tag(token) and token.name == end_name:  # type: ignore[attr-defined]
            return body
        body.append(token)
    raise tag.not_closed()


class RawTag(Tag):
    """``{% raw %}...{% endraw %}``: the body is output verbatim."""

    def __init__(self, token: TagToken, remaining: deque[Token], env: Environment, parser: Parser):
        super().__init__(token, remaining, env, parser)
        self.tokens = _consume_until(self, remaining, "endraw")

    def render(self, ctx: Context, emitter: Any) -> str:
        return "".join(token.get_text() for token in self.tokens)


class CommentTag(Tag):
    def __init__(self, token: TagToken, remaining: deque[Token], env: Environment, parser: Parser):
        super().__init__(token, remaining, env, parser)
        _consume_until(self, remaining, "endcomment")


class InlineCommentTag(Tag):
    """``{% # note %}``; in a multi-line tag every line must start with ``#``."""

    def __init__(self, token: TagToken, remaining: deque[Token], env: Environment, parser: Parser):
        super().__init__(token, remaining, env, parser)
        if _UNCOMMENTED_LINE.search(token.args):
            raise self.illegal("every line of an inline comment must start with a '#' character")


class LiquidTag(Tag):
    """``{% liquid %}``: one tag per line, without delimiters.

    Example:
        {% liquid
          assign greeting = "hi"
          if user
            echo greeting | append: user.name
          endif
        %}
    """

    def __init__(self, token: TagToken, remaining: deque[Token], env: Environment, parser: Parser):
        super().__init__(token, remaining, env, parser)
        tokens = self.tokenizer.read_liquid_tag_tokens(env.options)
        self.nodes = parser.parse_tokens(tokens)

    def render(self, ctx: Context, emitter: Any) -> Generator[Any, Any, None]:
        yield render_templates(self.nodes, ctx, emitter)

    def children(self, partials: bool, sync: bool) -> Generator[Any, Any, list[Node]]:
        return list(self.nodes)
        yield
