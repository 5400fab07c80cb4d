"""Renderable nodes.

A parsed template is a ``list[Node]``. Every node renders by writing to
an emitter and may return a value the renderer writes for it. ``render``
is usually a generator run by ``sluice.template.drivers``.

The analysis hooks (``arguments``, ``children``, ``block_scope``,
``local_scope``, ``partial_scope``) let the static analyzer walk a tree
without rendering it; the defaults describe a node with none of them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sluice.lexer import Lexer
from sluice.template.value import FilterCall, Value

if TYPE_CHECKING:
    from collections.abc import Generator, Iterable

    from sluice._types import HTMLToken, OutputToken, Token
    from sluice.context import Context
    from sluice.environment.core import Environment
    from sluice.template.emitter import SimpleEmitter


class Node:
    """Base of everything the renderer can render."""

    token: Token

    def __init__(self, token: Token):
        self.token = token

    def render(self, ctx: Context, emitter: SimpleEmitter) -> Any:
        raise NotImplementedError

    # -- static analysis --------------------------------------------------

    def arguments(self) -> Iterable[Any]:
        """Values and expressions this node evaluates."""
        return ()

    def children(self, partials: bool, sync: bool) -> Generator[Any, Any, list[Node]]:
        """Nested nodes, including parsed partials when ``partials`` is set."""
        return []
        yield

    def block_scope(self) -> Iterable[Any]:
        """Names bound only while rendering this node's children."""
        return ()

    def local_scope(self) -> Iterable[Any]:
        """Names this node assigns in the enclosing template scope."""
        return ()

    def partial_scope(self) -> PartialScope | None:
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.token.get_text()[:40]!r}>"


class HTML(Node):
    """Literal text (already trimmed by the lexer)."""

    __slots__ = ("text",)

    def __init__(self, token: HTMLToken):
        super().__init__(token)
        self.text = token.get_content()

    def render(self, ctx: Context, emitter: SimpleEmitter) -> None:
        emitter.write(self.text)


class Output(Node):
    """``{{ value | filters }}`` with ``output_escape`` appended."""

    __slots__ = ("value",)

    def __init__(self, token: OutputToken, env: Environment):
        super().__init__(token)
        lexer = Lexer(token.input, env.options.operators, token.file, token.content_range)
        self.value = Value(lexer, env)
        escape = env.options.output_escape
        filters = self.value.filters
        if escape is not None and not (filters and filters[-1].raw):
            filters.append(FilterCall(escape.name, escape.definition, [], env))

    def render(self, ctx: Context, emitter: SimpleEmitter) -> Generator[Any, Any, None]:
        value = yield self.value.value(ctx, False)
        emitter.write(value)

    def arguments(self) -> Iterable[Any]:
        yield self.value


class PartialScope:
    """What a partial-rendering tag exposes to the analyzer.

    Attributes:
        name: Partial file name (only static names are analyzed).
        isolated: True for ``render`` (fresh scope), False for ``include``.
        scope: Names bound for the partial; a ``(name, value)`` pair
            binds ``name`` to an expression evaluated in the caller.
    """

    __slots__ = ("isolated", "name", "scope")

    def __init__(self, name: str, isolated: bool, scope: list[Any]):
        self.name = name
        self.isolated = isolated
        self.scope = scope

    def __repr__(self) -> str:
        return f"PartialScope({self.name!r}, isolated={self.isolated})"
