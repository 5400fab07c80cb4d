"""Expression evaluation.

An ``Expression`` is built from the infix token stream of a tag or
output (``a.b > 3 and not c contains "x"``). The constructor converts
it to postfix with a shunting-yard pass; ``evaluate`` runs the postfix
sequence on a small stack machine.

Precedence (higher binds tighter):
    2  ==  !=  <  >  <=  >=  contains
    1  not (unary, prefix)
    0  and  or

Binary operators are left-associative. Both operands of ``and``/``or``
are always evaluated.

Evaluation functions are generators driven by ``sluice.template.drivers``
so property lookups that resolve to deferred values work in both the
synchronous and the asynchronous renderer.
"""

from __future__ import annotations

import operator as _op
from collections.abc import Callable, Generator, Iterable, Mapping
from typing import TYPE_CHECKING, Any

from sluice._types import (
    OperatorToken,
    PropertyAccessToken,
    RangeToken,
    Token,
    is_property_access,
    is_range,
    is_value_token,
)
from sluice.drops import is_comparable
from sluice.environment.exceptions import InternalUndefinedVariableError, UndefinedVariableError
from sluice.utils.values import (
    UNDEFINED,
    equals,
    is_falsy,
    is_truthy,
    to_integer,
    to_str,
    to_value,
)

if TYPE_CHECKING:
    from sluice.context import Context

Evaluation = Generator[Any, Any, Any]


def _order(lhs: Any, rhs: Any, compare: Callable[[Any, Any], Any]) -> bool:
    try:
        return bool(compare(to_value(lhs), to_value(rhs)))
    except TypeError:
        return False


def _equal(lhs: Any, rhs: Any, ctx: Context | None = None) -> bool:
    return equals(lhs, rhs)


def _not_equal(lhs: Any, rhs: Any, ctx: Context | None = None) -> bool:
    return not equals(lhs, rhs)


def _greater(lhs: Any, rhs: Any, ctx: Context | None = None) -> bool:
    if is_comparable(lhs):
        return lhs.gt(rhs)
    if is_comparable(rhs):
        return rhs.lt(lhs)
    return _order(lhs, rhs, _op.gt)


def _less(lhs: Any, rhs: Any, ctx: Context | None = None) -> bool:
    if is_comparable(lhs):
        return lhs.lt(rhs)
    if is_comparable(rhs):
        return rhs.gt(lhs)
    return _order(lhs, rhs, _op.lt)


def _greater_equal(lhs: Any, rhs: Any, ctx: Context | None = None) -> bool:
    if is_comparable(lhs):
        return lhs.geq(rhs)
    if is_comparable(rhs):
        return rhs.leq(lhs)
    return _order(lhs, rhs, _op.ge)


def _less_equal(lhs: Any, rhs: Any, ctx: Context | None = None) -> bool:
    if is_comparable(lhs):
        return lhs.leq(rhs)
    if is_comparable(rhs):
        return rhs.geq(lhs)
    return _order(lhs, rhs, _op.le)


def _contains(lhs: Any, rhs: Any, ctx: Context | None = None) -> bool:
    lhs = to_value(lhs)
    if isinstance(lhs, (list, tuple)):
        return any(equals(item, rhs) for item in lhs)
    if isinstance(lhs, str):
        rhs = to_value(rhs)
        if rhs is None or rhs is UNDEFINED:
            return False
        return to_str(rhs) in lhs
    if isinstance(lhs, Mapping):
        return to_value(rhs) in lhs
    return False


def _js_truthy(ctx: Context | None) -> bool:
    return bool(ctx is not None and ctx.opts.js_truthy)


def _not(value: Any, ctx: Context | None = None) -> bool:
    return is_falsy(value, _js_truthy(ctx))


def _and(lhs: Any, rhs: Any, ctx: Context | None = None) -> bool:
    js = _js_truthy(ctx)
    return is_truthy(lhs, js) and is_truthy(rhs, js)


def _or(lhs: Any, rhs: Any, ctx: Context | None = None) -> bool:
    js = _js_truthy(ctx)
    return is_truthy(lhs, js) or is_truthy(rhs, js)


DEFAULT_OPERATORS: dict[str, Callable[..., Any]] = {
    "==": _equal,
    "!=": _not_equal,
    ">": _greater,
    "<": _less,
    ">=": _greater_equal,
    "<=": _less_equal,
    "contains": _contains,
    "not": _not,
    "and": _and,
    "or": _or,
}


def to_postfix(tokens: Iterable[Token]) -> Generator[Token, None, None]:
    """Shunting-yard: reorder infix value/operator tokens into postfix."""
    pending: list[OperatorToken] = []
    for token in tokens:
        if isinstance(token, OperatorToken):
            if not token.unary:
                while pending and pending[-1].get_precedence() >= token.get_precedence():
                    yield pending.pop()
            pending.append(token)
        else:
            yield token
    while pending:
        yield pending.pop()


class Expression:
    """A parsed operator expression in postfix order."""

    __slots__ = ("postfix",)

    def __init__(self, tokens: Iterable[Token]):
        self.postfix: list[Token] = list(to_postfix(tokens))

    def valid(self) -> bool:
        return bool(self.postfix)

    def evaluate(self, ctx: Context, lenient: bool = False) -> Evaluation:
        operands: list[Any] = []
        for token in self.postfix:
            if isinstance(token, OperatorToken):
                handler = ctx.opts.operators[token.operator]
                if token.unary:
                    result = yield handler(_pop(operands), ctx)
                else:
                    rhs = _pop(operands)
                    lhs = _pop(operands)
                    result = yield handler(lhs, rhs, ctx)
                operands.append(result)
            else:
                operands.append((yield evaluate_token(token, ctx, lenient)))
        return operands[0] if operands else None

    def __repr__(self) -> str:
        return f"<Expression {' '.join(t.get_text() for t in self.postfix)}>"


def _pop(operands: list[Any]) -> Any:
    return operands.pop() if operands else UNDEFINED


def evaluate_token(token: Token | None, ctx: Context, lenient: bool = False) -> Evaluation:
    """Resolve one value token: literal content, property chain or range."""
    if token is None:
        return None
    if is_value_token(token):
        return token.content  # type: ignore[attr-defined]
    if is_property_access(token):
        return (yield _evaluate_property_access(token, ctx, lenient))  # type: ignore[arg-type]
    if is_range(token):
        return (yield _evaluate_range(token, ctx))  # type: ignore[arg-type]
    return None


def _evaluate_property_access(
    token: PropertyAccessToken, ctx: Context, lenient: bool
) -> Evaluation:
    props: list[Any] = []
    for prop in token.props:
        props.append((yield evaluate_token(prop, ctx, False)))
    try:
        if token.variable is not None:
            root = yield evaluate_token(token.variable, ctx, lenient)
            return (yield ctx.lookup_in(root, props))
        return (yield ctx.lookup(props))
    except InternalUndefinedVariableError as exc:
        if lenient:
            return None
        raise UndefinedVariableError(exc, token) from exc


def _evaluate_range(token: RangeToken, ctx: Context) -> Evaluation:
    low = yield evaluate_token(token.lhs, ctx)
    high = yield evaluate_token(token.rhs, ctx)
    low, high = to_integer(low), to_integer(high)
    ctx.memory_limit.use(max(0, high - low + 1))
    return list(range(low, high + 1))
