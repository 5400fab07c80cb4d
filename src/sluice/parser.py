"""Parser: token stream to node tree.

Each top-level token becomes a node. Tag tokens are looked up in the
environment's tag registry and the tag class is constructed with the
deque of *remaining* tokens, so block tags consume their own bodies
(usually through a ``ParseStream``) before the parser moves on.

Partial and layout files go through ``parse_file``, which resolves the
name, reads the source and, when the environment has a cache, stores
the parsed node list. Async lookups cache the in-flight task so
concurrent renders of the same partial share one parse.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from time import perf_counter
from typing import TYPE_CHECKING, Any

from sluice._types import is_output, is_tag
from sluice.context import Limiter
from sluice.environment.exceptions import (
    AggregateError,
    ErrorCode,
    ParseError,
    TemplateError,
)
from sluice.environment.resolver import LookupType
from sluice.lexer import Lexer
from sluice.template.drivers import to_async
from sluice.template.nodes import HTML, Node, Output

if TYPE_CHECKING:
    from collections.abc import Generator, Iterable

    from sluice._types import Token
    from sluice.environment.core import Environment

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]


class Parser:
    """Parses template source for one environment.

    The ``parse_limit`` budget belongs to the parser instance: every
    ``parse`` call charges it with the length of the source.
    """

    __slots__ = ("env", "parse_limit")

    def __init__(self, env: Environment):
        self.env = env
        self.parse_limit = Limiter("parse length", env.options.parse_limit)

    def parse(self, source: str, file: str | None = None) -> list[Node]:
        source = str(source)
        self.parse_limit.use(len(source))
        start = perf_counter()
        lexer = Lexer(source, self.env.options.operators, file)
        tokens = lexer.read_top_level_tokens(self.env.options)
        nodes = self.parse_tokens(tokens)
        logger.debug(
            f"Parsed {file or '<string>'}: {len(nodes)} nodes in "
            f"{(perf_counter() - start) * 1000:.2f}ms"
        )
        return nodes

    def parse_tokens(self, tokens: Iterable[Token]) -> list[Node]:
        remaining = tokens if isinstance(tokens, deque) else deque(tokens)
        nodes: list[Node] = []
        errors: list[TemplateError] = []
        while remaining:
            token = remaining.popleft()
            try:
                nodes.append(self.parse_token(token, remaining))
            except TemplateError as exc:
                if not self.env.options.catch_all_errors:
                    raise
                errors.extend(exc.errors if isinstance(exc, AggregateError) else [exc])
        if errors:
            raise AggregateError(errors)
        return nodes

    def parse_token(self, token: Token, remaining: deque[Token]) -> Node:
        try:
            if is_tag(token):
                tag_class = self.env.tags.get(token.name)  # type: ignore[attr-defined]
                if tag_class is None:
                    raise ParseError(
                        f'tag "{token.name}" not found',  # type: ignore[attr-defined]
                        token,
                        code=ErrorCode.UNKNOWN_TAG,
                    )
                return tag_class(token, remaining, self.env, self)
            if is_output(token):
                return Output(token, self.env)  # type: ignore[arg-type]
            return HTML(token)  # type: ignore[arg-type]
        except TemplateError as exc:
            if exc.token is None:
                exc.token = token
            raise
        except Exception as exc:
            raise ParseError(exc, token) from exc

    def parse_stream(self, tokens: deque[Token]) -> ParseStream:
        return ParseStream(tokens, self.parse_token)

    # -- files -----------------------------------------------------------

    def parse_file(
        self,
        name: str,
        sync: bool,
        lookup_type: LookupType = LookupType.ROOT,
        current_file: str | None = None,
    ) -> Generator[Any, Any, list[Node]]:
        """Resolve, read and parse ``name``; cached when the environment has a cache."""
        cache = self.env.options.cache
        if cache is None:
            return (yield self._parse_file(name, sync, lookup_type, current_file))

        resolver = self.env.resolver
        if resolver.should_load_relative(name):
            key = f"{current_file},{name}"
        else:
            key = f"{lookup_type.value}:{name}"

        cached = cache.read(key)
        if sync and isinstance(cached, asyncio.Future):
            # An async parse still in flight cannot be awaited here.
            cached = cached.result() if cached.done() else None
            if cached is not None:
                cache.write(key, cached)
        if cached is not None:
            logger.debug(f"Cache hit: {key}")
            return (yield cached)

        logger.debug(f"Cache miss: {key}")
        task = self._parse_file(name, sync, lookup_type, current_file)
        if sync:
            try:
                nodes = yield task
            except Exception:
                cache.remove(key)
                raise
            cache.write(key, nodes)
            return nodes

        pending = asyncio.ensure_future(to_async(task))
        cache.write(key, pending)
        try:
            nodes = yield pending
        except Exception:
            cache.remove(key)
            raise
        return nodes

    def _parse_file(
        self,
        name: str,
        sync: bool,
        lookup_type: LookupType,
        current_file: str | None,
    ) -> Generator[Any, Any, list[Node]]:
        filepath = yield self.env.resolver.lookup(name, lookup_type, sync, current_file)
        loader = self.env.options.loader
        if sync:
            source = loader.read_file(filepath)
        else:
            source = yield loader.read_file_async(filepath)
        return self.parse(source, filepath)


class ParseStream:
    """Event-driven consumption of a tag's body.

    Handlers are registered with ``on(event, handler)``:

    - ``start``: before the first token
    - ``token``: every token; returning normally consumes it
    - ``tag:<name>``: a tag token with that name (``tag:endif``)
    - ``template``: every node parsed from a token no handler claimed
    - ``end``: tokens ran out before ``stop()`` was called

    Example:
        >>> stream = parser.parse_stream(remaining)
        >>> stream.on("tag:endif", lambda token: stream.stop())
        >>> stream.on("template", branch.append)
        >>> stream.on("end", lambda _: fail())
        >>> stream.start()
    """

    __slots__ = ("_parse_token", "handlers", "stop_requested", "tokens")

    def __init__(self, tokens: deque[Token], parse_token: Callable[[Token, deque[Token]], Node]):
        self.tokens = tokens
        self.handlers: dict[str, Handler] = {}
        self.stop_requested = False
        self._parse_token = parse_token

    def on(self, name: str, handler: Handler) -> ParseStream:
        self.handlers[name] = handler
        return self

    def trigger(self, event: str, arg: Any = None) -> bool:
        handler = self.handlers.get(event)
        if handler is None:
            return False
        handler(arg)
        return True

    def start(self) -> ParseStream:
        self.trigger("start")
        while not self.stop_requested and self.tokens:
            token = self.tokens.popleft()
            if self.trigger("token", token):
                continue
            name = getattr(token, "name", None)
            if is_tag(token) and self.trigger(f"tag:{name}", token):
                continue
            node = self._parse_token(token, self.tokens)
            self.trigger("template", node)
        if not self.stop_requested:
            self.trigger("end")
        return self

    def stop(self) -> ParseStream:
        self.stop_requested = True
        return self
