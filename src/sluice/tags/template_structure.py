"""Composition tags: include, render, layout, block.

Layout inheritance is expressed through two session registers:

``block_mode``
    ``STORE`` while a child template runs ahead of its layout, so its
    ``{% block %}`` tags only record themselves; ``OUTPUT`` otherwise.
``blocks``
    ``name -> chain``. A chain lists the overrides of one block from
    the most derived template to the least, ending with the block
    currently rendering. Entries are ``BlockTag`` nodes, or a
    pre-rendered string for the anonymous block that carries the
    child's non-block output.

Rendering a chain renders its head with ``block.super`` bound to the
rest of the chain.
"""

from __future__ import annotations

import re
from enum import IntEnum
from typing import TYPE_CHECKING, Any

from sluice._types import Token, is_quoted, is_tag
from sluice.drops import Drop
from sluice.environment.exceptions import TemplateRuntimeError
from sluice.expressions import evaluate_token
from sluice.tags.base import Tag
from sluice.template.emitter import SimpleEmitter
from sluice.template.loop_context import ForLoop
from sluice.template.nodes import HTML, PartialScope
from sluice.template.renderer import render_templates
from sluice.template.value import Hash
from sluice.utils.values import to_enumerable

if TYPE_CHECKING:
    from collections import deque
    from collections.abc import Generator, Iterable

    from sluice._types import TagToken
    from sluice.context import Context
    from sluice.environment.core import Environment
    from sluice.lexer import Lexer
    from sluice.parser import Parser
    from sluice.template.nodes import Node

FileName = str | list["Node"] | Token | None

_BLOCK_NAME = re.compile(r"\w+")


class BlockMode(IntEnum):
    OUTPUT = 0
    STORE = 1


def parse_file_name(lexer: Lexer, env: Environment, parser: Parser) -> FileName:
    """Read the partial name of include/render/layout.

    Returns a plain string for static names, a node list for quoted names
    with ``{{ }}`` inside, a value token for variables and None for
    ``none``.
    """
    if env.options.dynamic_partials:
        token = lexer.read_value()
        lexer.assert_(token is not None, "illegal file path")
        if token.get_text() == "none":  # type: ignore[union-attr]
            return None
        if is_quoted(token):
            return _static_name(parser.parse(token.content))  # type: ignore[union-attr]
        return token
    name = _static_name(parser.parse_tokens(list(lexer.read_file_name_template(env.options))))
    return None if name == "none" else name


def _static_name(nodes: list[Node]) -> str | list[Node]:
    if len(nodes) == 1 and isinstance(nodes[0], HTML):
        return nodes[0].text
    return nodes


def render_file_name(file: FileName, ctx: Context) -> Generator[Any, Any, str]:
    if isinstance(file, str):
        name: Any = file
    elif isinstance(file, list):
        name = yield render_templates(file, ctx)
    else:
        name = yield evaluate_token(file, ctx)
    if not name or not isinstance(name, str):
        raise TemplateRuntimeError(f'illegal file path "{name}"')
    return name


def _static_arguments(file: FileName) -> Iterable[Any]:
    if isinstance(file, Token):
        yield file


class IncludeTag(Tag):
    """``{% include "file" with value key: value %}``; shares the caller's scope.

    Under ``jekyll_include`` arguments use ``key=value`` and are exposed
    to the partial as ``include.key``.
    """

    def __init__(self, token: TagToken, remaining: deque[Token], env: Environment, parser: Parser):
        super().__init__(token, remaining, env, parser)
        lexer = self.tokenizer
        self.file = parse_file_name(lexer, env, parser)
        self.current_file = token.file
        self.with_value: Token | None = None
        begin = lexer.p
        if lexer.read_identifier().content == "with":
            lexer.skip_blank()
            if lexer.peek() != ":":
                self.with_value = lexer.read_value()
            else:
                lexer.p = begin
        else:
            lexer.p = begin
        self.hash = Hash(lexer, env.options.jekyll_include or env.options.key_value_separator, env)

    def render(self, ctx: Context, emitter: Any) -> Generator[Any, Any, None]:
        name = yield render_file_name(self.file, ctx)
        saved = ctx.save_register("blocks", "block_mode")
        ctx.set_register("blocks", {})
        ctx.set_register("block_mode", BlockMode.OUTPUT)
        try:
            scope = yield self.hash.render(ctx)
            if self.with_value is not None:
                scope[name] = yield evaluate_token(self.with_value, ctx)
            nodes = yield self.env.parse_partial(name, ctx.sync, self.current_file)
            ctx.push({"include": scope} if ctx.opts.jekyll_include else scope)
            try:
                yield render_templates(nodes, ctx, emitter)
            finally:
                ctx.pop()
        finally:
            ctx.restore_register(saved)

    def children(self, partials: bool, sync: bool) -> Generator[Any, Any, list[Node]]:
        if partials and isinstance(self.file, str):
            return (yield self.env.parse_partial(self.file, sync, self.current_file))
        return []

    def partial_scope(self) -> PartialScope | None:
        if not isinstance(self.file, str):
            return None
        if self.env.options.jekyll_include:
            scope: list[Any] = ["include"]
        else:
            scope = list(self.hash.hash)
            if self.with_value is not None:
                scope.append((self.file, self.with_value))
        return PartialScope(self.file, False, scope)

    def arguments(self) -> Iterable[Any]:
        yield from (value for value in self.hash.hash.values() if value is not None)
        yield from _static_arguments(self.file)
        if self.with_value is not None:
            yield self.with_value


class RenderTag(Tag):
    """``{% render "file", key: value %}`` in an isolated scope.

    ``with value as alias`` binds one value; ``for collection as item``
    renders the partial once per item with ``forloop`` set. Without
    ``as`` the partial's name is used as the variable name.
    """

    def __init__(self, token: TagToken, remaining: deque[Token], env: Environment, parser: Parser):
        super().__init__(token, remaining, env, parser)
        lexer = self.tokenizer
        self.file = parse_file_name(lexer, env, parser)
        self.current_file = token.file
        self.with_clause: tuple[Token, str | None] | None = None
        self.for_clause: tuple[Token, str | None] | None = None
        while not lexer.end():
            lexer.skip_blank()
            begin = lexer.p
            keyword = lexer.read_identifier().content
            if keyword in ("with", "for"):
                lexer.skip_blank()
                if lexer.peek() != ":":
                    value = lexer.read_value()
                    if value is not None:
                        before_alias = lexer.p
                        alias: str | None = None
                        if lexer.read_identifier().content == "as":
                            alias = lexer.read_identifier().content
                        else:
                            lexer.p = before_alias
                        if keyword == "with":
                            self.with_clause = (value, alias)
                        else:
                            self.for_clause = (value, alias)
                        lexer.skip_blank()
                        if lexer.peek() == ",":
                            lexer.advance()
                        continue
            lexer.p = begin
            break
        self.hash = Hash(lexer, env.options.key_value_separator, env)

    def render(self, ctx: Context, emitter: Any) -> Generator[Any, Any, None]:
        name = yield render_file_name(self.file, ctx)
        child = ctx.spawn()
        scope = child.bottom()
        scope.update((yield self.hash.render(ctx)))
        if self.with_clause is not None:
            value, alias = self.with_clause
            scope[alias or name] = yield evaluate_token(value, ctx)
        if self.for_clause is None:
            nodes = yield self.env.parse_partial(name, child.sync, self.current_file)
            yield render_templates(nodes, child, emitter)
            return
        value, alias = self.for_clause
        alias = alias or name
        items = to_enumerable((yield evaluate_token(value, ctx)))
        forloop = ForLoop(len(items), value.get_text(), alias)
        scope["forloop"] = forloop
        for item in items:
            scope[alias] = item
            nodes = yield self.env.parse_partial(name, child.sync, self.current_file)
            yield render_templates(nodes, child, emitter)
            forloop.next()

    def children(self, partials: bool, sync: bool) -> Generator[Any, Any, list[Node]]:
        if partials and isinstance(self.file, str):
            return (yield self.env.parse_partial(self.file, sync, self.current_file))
        return []

    def partial_scope(self) -> PartialScope | None:
        if not isinstance(self.file, str):
            return None
        scope: list[Any] = list(self.hash.hash)
        for clause in (self.with_clause, self.for_clause):
            if clause is not None:
                value, alias = clause
                scope.append((alias or self.file, value))
        if self.for_clause is not None:
            scope.append("forloop")
        return PartialScope(self.file, True, scope)

    def arguments(self) -> Iterable[Any]:
        yield from (value for value in self.hash.hash.values() if value is not None)
        for clause in (self.with_clause, self.for_clause):
            if clause is not None:
                yield clause[0]


class LayoutTag(Tag):
    """``{% layout "file" key: value %}``: the rest of the template fills the layout.

    ``{% layout none %}`` renders the rest of the template as is.
    """

    def __init__(self, token: TagToken, remaining: deque[Token], env: Environment, parser: Parser):
        super().__init__(token, remaining, env, parser)
        self.file = parse_file_name(self.tokenizer, env, parser)
        self.current_file = token.file
        self.args = Hash(self.tokenizer, env.options.key_value_separator, env)
        self.nodes = parser.parse_tokens(remaining)

    def render(self, ctx: Context, emitter: Any) -> Generator[Any, Any, None]:
        if self.file is None:
            ctx.set_register("block_mode", BlockMode.OUTPUT)
            yield render_templates(self.nodes, ctx, emitter)
            return
        name = yield render_file_name(self.file, ctx)
        layout = yield self.env.parse_layout(name, ctx.sync, self.current_file)
        ctx.set_register("block_mode", BlockMode.STORE)
        body = yield render_templates(self.nodes, ctx)
        blocks = ctx.get_register("blocks")
        blocks.setdefault("", [body])
        ctx.set_register("block_mode", BlockMode.OUTPUT)
        ctx.push((yield self.args.render(ctx)))
        try:
            yield render_templates(layout, ctx, emitter)
        finally:
            ctx.pop()

    def children(self, partials: bool, sync: bool) -> Generator[Any, Any, list[Node]]:
        nodes = list(self.nodes)
        if partials and isinstance(self.file, str):
            nodes.extend((yield self.env.parse_layout(self.file, sync, self.current_file)))
        return nodes

    def arguments(self) -> Iterable[Any]:
        yield from (value for value in self.args.hash.values() if value is not None)
        yield from _static_arguments(self.file)

    def partial_scope(self) -> PartialScope | None:
        if not isinstance(self.file, str):
            return None
        return PartialScope(self.file, False, list(self.args.hash))


class BlockDrop(Drop):
    """``block`` inside ``{% block %}``; ``block.super`` renders the parent block."""

    def __init__(self, chain: list[Any], ctx: Context):
        self._chain = chain
        self._ctx = ctx

    def super(self) -> Generator[Any, Any, str]:
        emitter = SimpleEmitter()
        if self._chain:
            yield render_block_chain(self._chain, self._ctx, emitter)
        return emitter.buffer


def render_block_chain(chain: list[Any], ctx: Context, emitter: Any) -> Generator[Any, Any, None]:
    head, rest = chain[0], chain[1:]
    if not isinstance(head, BlockTag):
        emitter.write(head)
        return
    ctx.push({"block": BlockDrop(rest, ctx)})
    try:
        yield render_templates(head.nodes, ctx, emitter)
    finally:
        ctx.pop()


class BlockTag(Tag):
    """``{% block name %}default{% endblock %}``."""

    def __init__(self, token: TagToken, remaining: deque[Token], env: Environment, parser: Parser):
        super().__init__(token, remaining, env, parser)
        match = _BLOCK_NAME.search(token.args)
        self.block = match.group(0) if match else ""
        self.nodes: list[Node] = []
        while remaining:
            next_token = remaining.popleft()
            if is_tag(next_token) and next_token.name == "endblock":  # type: ignore[attr-defined]
                return
            self.nodes.append(parser.parse_token(next_token, remaining))
        raise self.not_closed()

    def render(self, ctx: Context, emitter: Any) -> Generator[Any, Any, None]:
        blocks = ctx.get_register("blocks")
        chain = [*blocks.get(self.block, ()), self]
        if ctx.session.registers.get("block_mode") == BlockMode.STORE:
            blocks[self.block] = chain
            return
        yield render_block_chain(chain, ctx, emitter)

    def children(self, partials: bool, sync: bool) -> Generator[Any, Any, list[Node]]:
        return list(self.nodes)
        yield

    def block_scope(self) -> Iterable[Any]:
        return ["block"]
