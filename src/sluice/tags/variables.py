"""Tags that bind or print values: assign, capture, increment, decrement, cycle, echo."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from sluice._types import is_tag
from sluice.expressions import evaluate_token
from sluice.tags.base import Tag
from sluice.template.renderer import render_templates
from sluice.template.value import Value

if TYPE_CHECKING:
    from collections import deque
    from collections.abc import Generator, Iterable

    from sluice._types import TagToken, Token
    from sluice.context import Context
    from sluice.environment.core import Environment
    from sluice.parser import Parser
    from sluice.template.nodes import Node


class AssignTag(Tag):
    """``{% assign name = value | filters %}``; always binds in the bottom scope."""

    def __init__(self, token: TagToken, remaining: deque[Token], env: Environment, parser: Parser):
        super().__init__(token, remaining, env, parser)
        self.identifier = self.tokenizer.read_identifier()
        self.key = self.identifier.content
        self.tokenizer.assert_(self.key, "expected variable name")
        self.tokenizer.skip_blank()
        self.tokenizer.assert_(self.tokenizer.peek() == "=", 'expected "="')
        self.tokenizer.advance()
        self.value = Value(self.tokenizer, env)

    def render(self, ctx: Context, emitter: Any) -> Generator[Any, Any, None]:
        ctx.bottom()[self.key] = yield self.value.value(ctx, ctx.opts.lenient_if)

    def arguments(self) -> Iterable[Any]:
        yield self.value

    def local_scope(self) -> Iterable[Any]:
        yield self.identifier


class CaptureTag(Tag):
    """``{% capture name %}...{% endcapture %}``; ``name`` may be quoted."""

    def __init__(self, token: TagToken, remaining: deque[Token], env: Environment, parser: Parser):
        super().__init__(token, remaining, env, parser)
        self.identifier = self._read_variable()
        self.variable = self.identifier.content  # type: ignore[attr-defined]
        self.nodes: list[Node] = []
        while remaining:
            next_token = remaining.popleft()
            if is_tag(next_token) and next_token.name == "endcapture":  # type: ignore[attr-defined]
                return
            self.nodes.append(parser.parse_token(next_token, remaining))
        raise self.not_closed()

    def _read_variable(self) -> Token:
        ident = self.tokenizer.read_identifier()
        if ident.content:
            return ident
        quoted = self.tokenizer.read_quoted()
        if quoted is not None:
            return quoted
        raise self.tokenizer.error("invalid capture name")

    def render(self, ctx: Context, emitter: Any) -> Generator[Any, Any, None]:
        ctx.bottom()[self.variable] = yield render_templates(self.nodes, ctx)

    def children(self, partials: bool, sync: bool) -> Generator[Any, Any, list[Node]]:
        return list(self.nodes)
        yield

    def local_scope(self) -> Iterable[Any]:
        yield self.identifier


def _counter(ctx: Context, name: str) -> int | float:
    if name in ctx.counters:
        return ctx.counters[name]
    env = ctx.environments
    start = env.get(name) if isinstance(env, Mapping) else None
    if isinstance(start, (int, float)) and not isinstance(start, bool):
        return start
    return 0


class IncrementTag(Tag):
    """``{% increment name %}``: print the counter, then add one.

    Counters live in the render context, apart from ``assign``ed variables;
    the first use starts from a numeric input value of the same name or 0.
    """

    def __init__(self, token: TagToken, remaining: deque[Token], env: Environment, parser: Parser):
        super().__init__(token, remaining, env, parser)
        self.identifier = self.tokenizer.read_identifier()
        self.variable = self.identifier.content

    def render(self, ctx: Context, emitter: Any) -> None:
        value = _counter(ctx, self.variable)
        ctx.counters[self.variable] = value + 1
        emitter.write(value)

    def local_scope(self) -> Iterable[Any]:
        yield self.identifier


class DecrementTag(IncrementTag):
    """``{% decrement name %}``: subtract one, then print the counter."""

    def render(self, ctx: Context, emitter: Any) -> None:
        value = _counter(ctx, self.variable) - 1
        ctx.counters[self.variable] = value
        emitter.write(value)


class CycleTag(Tag):
    """``{% cycle "group": a, b, c %}``.

    Position is tracked per render, keyed by group and candidate source
    text, so two identical cycle tags advance the same counter.
    """

    def __init__(self, token: TagToken, remaining: deque[Token], env: Environment, parser: Parser):
        super().__init__(token, remaining, env, parser)
        self.group: Token | None = None
        self.candidates: list[Token] = []
        first = self.tokenizer.read_value()
        self.tokenizer.skip_blank()
        if first is not None:
            if self.tokenizer.peek() == ":":
                self.group = first
                self.tokenizer.advance()
            else:
                self.candidates.append(first)
        while not self.tokenizer.end():
            value = self.tokenizer.read_value()
            if value is not None:
                self.candidates.append(value)
            self.tokenizer.read_to(",")
        self.tokenizer.assert_(
            self.candidates, lambda: f'empty candidates: "{token.get_text()}"'
        )

    def render(self, ctx: Context, emitter: Any) -> Generator[Any, Any, None]:
        group = yield evaluate_token(self.group, ctx)
        texts = ",".join(candidate.get_text() for candidate in self.candidates)
        key = f"cycle:{'' if group is None else group}:{texts}"
        positions = ctx.get_register("cycle")
        index = positions.get(key, 0)
        positions[key] = (index + 1) % len(self.candidates)
        emitter.write((yield evaluate_token(self.candidates[index], ctx)))

    def arguments(self) -> Iterable[Any]:
        yield from self.candidates
        if self.group is not None:
            yield self.group


class EchoTag(Tag):
    """``{% echo value | filters %}``; the tag form of ``{{ }}``, without escaping."""

    def __init__(self, token: TagToken, remaining: deque[Token], env: Environment, parser: Parser):
        super().__init__(token, remaining, env, parser)
        self.tokenizer.skip_blank()
        self.value = None if self.tokenizer.end() else Value(self.tokenizer, env)

    def render(self, ctx: Context, emitter: Any) -> Generator[Any, Any, None]:
        if self.value is None:
            return
        emitter.write((yield self.value.value(ctx, False)))

    def arguments(self) -> Iterable[Any]:
        if self.value is not None:
            yield self.value
