"""Filtered values: ``expression | filter: arg, key: value | ...``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sluice.environment.exceptions import ErrorCode, ParseError
from sluice.environment.registry import FilterDefinition
from sluice.expressions import evaluate_token
from sluice.lexer import Lexer

if TYPE_CHECKING:
    from collections.abc import Generator

    from sluice._types import FilterToken, Token
    from sluice.context import Context
    from sluice.environment.core import Environment
    from sluice.expressions import Expression


@dataclass(frozen=True, slots=True)
class FilterContext:
    """First argument of filters registered with ``pass_context=True``."""

    context: Context
    token: Token | None
    env: Environment


def _identity(value: Any, *args: Any, **kwargs: Any) -> Any:
    return value


class FilterCall:
    """One ``| name: args`` step of a value pipeline."""

    __slots__ = ("args", "definition", "env", "name", "token")

    def __init__(
        self,
        name: str,
        definition: FilterDefinition,
        args: list[Token | tuple[str, Token | None]],
        env: Environment,
        token: FilterToken | None = None,
    ):
        self.name = name
        self.definition = definition
        self.args = args
        self.env = env
        self.token = token

    @classmethod
    def from_token(cls, token: FilterToken, env: Environment) -> FilterCall:
        definition = env.filters.get(token.name)
        if definition is None:
            if env.options.strict_filters:
                raise ParseError(
                    f"undefined filter: {token.name}", token, code=ErrorCode.UNKNOWN_FILTER
                )
            definition = FilterDefinition(_identity)
        return cls(token.name, definition, token.args, env, token)

    @property
    def raw(self) -> bool:
        return self.definition.raw

    def render(self, value: Any, ctx: Context) -> Generator[Any, Any, Any]:
        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        for arg in self.args:
            if isinstance(arg, tuple):
                key, token = arg
                kwargs[key] = yield evaluate_token(token, ctx)
            else:
                args.append((yield evaluate_token(arg, ctx)))
        handler = self.definition.handler
        if self.definition.pass_context:
            result = handler(FilterContext(ctx, self.token, self.env), value, *args, **kwargs)
        else:
            result = handler(value, *args, **kwargs)
        return (yield result)

    def __repr__(self) -> str:
        return f"<FilterCall {self.name}>"


class Value:
    """An initial expression followed by zero or more filters.

    Args:
        source: Text to parse, or a lexer positioned at the value.
        env: Owning environment; supplies operators and filters.
    """

    __slots__ = ("filters", "initial", "token")

    def __init__(self, source: str | Lexer, env: Environment):
        lexer = source if isinstance(source, Lexer) else Lexer(source, env.options.operators)
        self.token = lexer.read_filtered_value()
        self.initial: Expression = self.token.initial
        self.filters = [FilterCall.from_token(f, env) for f in self.token.filters]

    def value(self, ctx: Context, lenient: bool = False) -> Generator[Any, Any, Any]:
        lenient = lenient or (
            ctx.opts.lenient_if and bool(self.filters) and self.filters[0].name == "default"
        )
        result = yield self.initial.evaluate(ctx, lenient)
        for call in self.filters:
            result = yield call.render(result, ctx)
        return result

    def __repr__(self) -> str:
        return f"<Value {self.token.get_text()!r}>"


class Hash:
    """``key: value`` argument lists; a bare key evaluates to True."""

    __slots__ = ("hash",)

    def __init__(
        self,
        source: str | Lexer,
        separator: str | bool | None = None,
        env: Environment | None = None,
    ):
        if isinstance(source, Lexer):
            lexer = source
        else:
            lexer = Lexer(source, env.options.operators if env is not None else None)
        self.hash: dict[str, Token | None] = {
            token.name.content: token.value for token in lexer.read_hashes(separator)
        }

    def render(self, ctx: Context) -> Generator[Any, Any, dict[str, Any]]:
        result: dict[str, Any] = {}
        for key, token in self.hash.items():
            result[key] = True if token is None else (yield evaluate_token(token, ctx))
        return result
