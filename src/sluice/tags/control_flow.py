"""Conditionals and loops: if, unless, case, for, tablerow, break, continue."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sluice.expressions import evaluate_token
from sluice.tags.base import Tag, expect_no_args
from sluice.template.loop_context import ForLoop, TablerowLoop
from sluice.template.renderer import render_templates
from sluice.template.value import Hash, Value
from sluice.utils.values import equals, is_falsy, is_truthy, to_enumerable, to_integer, to_value

if TYPE_CHECKING:
    from collections import deque
    from collections.abc import Generator, Iterable

    from sluice._types import TagToken, Token
    from sluice.context import Context
    from sluice.environment.core import Environment
    from sluice.parser import Parser
    from sluice.template.nodes import Node


def _truthy(value: Any, ctx: Context) -> bool:
    return is_truthy(value, ctx.opts.js_truthy)


def _falsy(value: Any, ctx: Context) -> bool:
    return is_falsy(value, ctx.opts.js_truthy)


class Branch:
    __slots__ = ("nodes", "test", "value")

    def __init__(self, value: Value, nodes: list[Node], test: Any = _truthy):
        self.value = value
        self.nodes = nodes
        self.test = test


class IfTag(Tag):
    """``{% if %}`` / ``{% elsif %}`` / ``{% else %}`` / ``{% endif %}``."""

    def __init__(self, token: TagToken, remaining: deque[Token], env: Environment, parser: Parser):
        super().__init__(token, remaining, env, parser)
        self.branches: list[Branch] = []
        self.else_nodes: list[Node] | None = None
        current: list[Node] = []

        def on_start(_: Any) -> None:
            nonlocal current
            current = []
            self.branches.append(Branch(Value(token.tokenizer, env), current))

        def on_elsif(tag: TagToken) -> None:
            nonlocal current
            if self.else_nodes is not None:
                raise self.illegal("unexpected elsif after else")
            current = []
            self.branches.append(Branch(Value(tag.tokenizer, env), current))

        def on_else(tag: TagToken) -> None:
            nonlocal current
            expect_no_args(tag)
            if self.else_nodes is not None:
                raise self.illegal("duplicated else")
            current = self.else_nodes = []

        def on_endif(tag: TagToken) -> None:
            expect_no_args(tag)
            stream.stop()

        def on_end(_: Any) -> None:
            raise self.not_closed()

        stream = (
            parser.parse_stream(remaining)
            .on("start", on_start)
            .on("tag:elsif", on_elsif)
            .on("tag:else", on_else)
            .on("tag:endif", on_endif)
            .on("template", lambda node: current.append(node))
            .on("end", on_end)
        )
        stream.start()

    def render(self, ctx: Context, emitter: Any) -> Generator[Any, Any, None]:
        for branch in self.branches:
            value = yield branch.value.value(ctx, ctx.opts.lenient_if)
            if branch.test(value, ctx):
                yield render_templates(branch.nodes, ctx, emitter)
                return
        yield render_templates(self.else_nodes or [], ctx, emitter)

    def children(self, partials: bool, sync: bool) -> Generator[Any, Any, list[Node]]:
        nodes = [node for branch in self.branches for node in branch.nodes]
        nodes.extend(self.else_nodes or [])
        return nodes
        yield

    def arguments(self) -> Iterable[Any]:
        return [branch.value for branch in self.branches]


class UnlessTag(IfTag):
    """``{% unless %}``: the first branch renders when its condition is falsy.

    ``elsif`` branches behave as in ``if``; tags after ``else`` are ignored.
    """

    def __init__(self, token: TagToken, remaining: deque[Token], env: Environment, parser: Parser):
        Tag.__init__(self, token, remaining, env, parser)
        self.branches = []
        self.else_nodes = []
        current: list[Node] = []
        else_count = 0

        def on_start(_: Any) -> None:
            nonlocal current
            current = []
            self.branches.append(Branch(Value(token.tokenizer, env), current, _falsy))

        def on_elsif(tag: TagToken) -> None:
            nonlocal current
            current = []
            if else_count == 0:
                self.branches.append(Branch(Value(tag.tokenizer, env), current))

        def on_else(_: Any) -> None:
            nonlocal current, else_count
            else_count += 1
            current = self.else_nodes

        def on_template(node: Node) -> None:
            if current is not self.else_nodes or else_count == 1:
                current.append(node)

        def on_end(_: Any) -> None:
            raise self.not_closed()

        stream = (
            parser.parse_stream(remaining)
            .on("start", on_start)
            .on("tag:elsif", on_elsif)
            .on("tag:else", on_else)
            .on("tag:endunless", lambda _: stream.stop())
            .on("template", on_template)
            .on("end", on_end)
        )
        stream.start()


class CaseTag(Tag):
    """``{% case value %}{% when a, b or c %}...{% else %}...{% endcase %}``.

    Every ``when`` with a matching value renders; ``else`` renders only
    when none matched.
    """

    def __init__(self, token: TagToken, remaining: deque[Token], env: Environment, parser: Parser):
        super().__init__(token, remaining, env, parser)
        self.value = Value(self.tokenizer, env)
        self.branches: list[tuple[list[Token], list[Node]]] = []
        self.else_nodes: list[Node] = []
        current: list[Node] = []
        else_count = 0

        def on_when(tag: TagToken) -> None:
            nonlocal current
            if else_count > 0:
                return
            current = []
            values: list[Token] = []
            lexer = tag.tokenizer
            while not lexer.end():
                values.append(lexer.read_value_or_throw())
                lexer.skip_blank()
                if lexer.peek() == ",":
                    lexer.read_to(",")
                else:
                    lexer.read_to("or")
            self.branches.append((values, current))

        def on_else(_: Any) -> None:
            nonlocal current, else_count
            else_count += 1
            current = self.else_nodes

        def on_template(node: Node) -> None:
            if current is not self.else_nodes or else_count == 1:
                current.append(node)

        def on_end(_: Any) -> None:
            raise self.not_closed()

        stream = (
            parser.parse_stream(remaining)
            .on("tag:when", on_when)
            .on("tag:else", on_else)
            .on("tag:endcase", lambda _: stream.stop())
            .on("template", on_template)
            .on("end", on_end)
        )
        stream.start()

    def render(self, ctx: Context, emitter: Any) -> Generator[Any, Any, None]:
        target = to_value((yield self.value.value(ctx, ctx.opts.lenient_if)))
        matched = False
        for values, nodes in self.branches:
            for token in values:
                candidate = yield evaluate_token(token, ctx, ctx.opts.lenient_if)
                if equals(target, candidate):
                    yield render_templates(nodes, ctx, emitter)
                    matched = True
                    break
        if not matched:
            yield render_templates(self.else_nodes, ctx, emitter)

    def arguments(self) -> Iterable[Any]:
        yield self.value
        for values, _ in self.branches:
            yield from values

    def children(self, partials: bool, sync: bool) -> Generator[Any, Any, list[Node]]:
        nodes = [node for _, branch in self.branches for node in branch]
        nodes.extend(self.else_nodes)
        return nodes
        yield


_LOOP_MODIFIERS = ("offset", "limit", "reversed")


class ForTag(Tag):
    """``{% for item in collection offset:n limit:n reversed %}``.

    Modifiers always apply in the order offset, limit, reversed.
    ``offset: continue`` resumes where the previous loop over the same
    variable and collection stopped.
    """

    def __init__(self, token: TagToken, remaining: deque[Token], env: Environment, parser: Parser):
        super().__init__(token, remaining, env, parser)
        variable = self.tokenizer.read_identifier()
        keyword = self.tokenizer.read_identifier()
        collection = self.tokenizer.read_value()
        if not variable.size() or keyword.content != "in" or collection is None:
            raise self.illegal()
        self.variable = variable.content
        self.collection = collection
        self.hash = Hash(self.tokenizer, env.options.key_value_separator, env)
        self.nodes: list[Node] = []
        self.else_nodes: list[Node] = []
        current = self.nodes

        def on_else(tag: TagToken) -> None:
            nonlocal current
            expect_no_args(tag)
            current = self.else_nodes

        def on_endfor(tag: TagToken) -> None:
            expect_no_args(tag)
            stream.stop()

        def on_end(_: Any) -> None:
            raise self.not_closed()

        stream = (
            parser.parse_stream(remaining)
            .on("tag:else", on_else)
            .on("tag:endfor", on_endfor)
            .on("template", lambda node: current.append(node))
            .on("end", on_end)
        )
        stream.start()

    @property
    def continue_key(self) -> str:
        return f"continue-{self.variable}-{self.collection.get_text()}"

    def render(self, ctx: Context, emitter: Any) -> Generator[Any, Any, None]:
        items = to_enumerable((yield evaluate_token(self.collection, ctx)))
        if not items:
            yield render_templates(self.else_nodes, ctx, emitter)
            return

        key = self.continue_key
        ctx.push({"continue": ctx.session.registers.get(key, 0)})
        try:
            args = yield self.hash.render(ctx)
        finally:
            ctx.pop()

        offset = 0
        for modifier in _LOOP_MODIFIERS:
            if modifier not in args:
                continue
            if modifier == "offset":
                offset = to_integer(args["offset"])
                items = items[offset:]
            elif modifier == "limit":
                items = items[: max(0, to_integer(args["limit"]))]
            else:
                items = list(reversed(items))
        ctx.set_register(key, offset + len(items))

        forloop = ForLoop(len(items), self.collection.get_text(), self.variable)
        scope: dict[str, Any] = {"forloop": forloop}
        ctx.push(scope)
        try:
            for item in items:
                scope[self.variable] = item
                ctx.break_called = ctx.continue_called = False
                yield render_templates(self.nodes, ctx, emitter)
                if ctx.break_called:
                    break
                forloop.next()
        finally:
            ctx.break_called = ctx.continue_called = False
            ctx.pop()

    def children(self, partials: bool, sync: bool) -> Generator[Any, Any, list[Node]]:
        return [*self.nodes, *self.else_nodes]
        yield

    def arguments(self) -> Iterable[Any]:
        yield self.collection
        for value in self.hash.hash.values():
            if value is not None:
                yield value

    def block_scope(self) -> Iterable[Any]:
        return [self.variable, "forloop"]


class TablerowTag(Tag):
    """``{% tablerow item in collection cols:n limit:n offset:n %}``."""

    def __init__(self, token: TagToken, remaining: deque[Token], env: Environment, parser: Parser):
        super().__init__(token, remaining, env, parser)
        variable = self.tokenizer.read_identifier()
        self.tokenizer.skip_blank()
        keyword = self.tokenizer.read_identifier()
        collection = self.tokenizer.read_value()
        if not variable.size() or keyword.content != "in" or collection is None:
            raise self.illegal()
        self.variable = variable.content
        self.collection = collection
        self.args = Hash(self.tokenizer, env.options.key_value_separator, env)
        self.nodes: list[Node] = []

        def on_end(_: Any) -> None:
            raise self.not_closed()

        stream = (
            parser.parse_stream(remaining)
            .on("tag:endtablerow", lambda _: stream.stop())
            .on("template", self.nodes.append)
            .on("end", on_end)
        )
        stream.start()

    def render(self, ctx: Context, emitter: Any) -> Generator[Any, Any, None]:
        items = to_enumerable((yield evaluate_token(self.collection, ctx)))
        args = yield self.args.render(ctx)
        offset = max(0, to_integer(args.get("offset")))
        limit = args.get("limit")
        stop = len(items) if limit is None else offset + max(0, to_integer(limit))
        items = items[offset:stop]
        cols = to_integer(args.get("cols"))
        if cols <= 0:
            cols = len(items)

        loop = TablerowLoop(len(items), cols, self.collection.get_text(), self.variable)
        scope: dict[str, Any] = {"tablerowloop": loop}
        ctx.push(scope)
        try:
            for item in items:
                scope[self.variable] = item
                if loop.col0 == 0:
                    if loop.row != 1:
                        emitter.write("</tr>")
                    emitter.write(f'<tr class="row{loop.row}">')
                emitter.write(f'<td class="col{loop.col}">')
                yield render_templates(self.nodes, ctx, emitter)
                emitter.write("</td>")
                loop.next()
            if items:
                emitter.write("</tr>")
        finally:
            ctx.pop()

    def children(self, partials: bool, sync: bool) -> Generator[Any, Any, list[Node]]:
        return list(self.nodes)
        yield

    def arguments(self) -> Iterable[Any]:
        yield self.collection
        for value in self.args.hash.values():
            if value is not None:
                yield value

    def block_scope(self) -> Iterable[Any]:
        return [self.variable, "tablerowloop"]


class BreakTag(Tag):
    def render(self, ctx: Context, emitter: Any) -> None:
        ctx.break_called = True


class ContinueTag(Tag):
    def render(self, ctx: Context, emitter: Any) -> None:
        ctx.continue_called = True
