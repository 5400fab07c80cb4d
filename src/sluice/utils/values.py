"""Value coercion shared by the evaluator, tags and emitters."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any

from sluice.drops import Drop


class _Undefined:
    """Sentinel for a lookup that found nothing.

    Distinct from ``None`` (``nil``): strict mode only fails on this.
    Prints as the empty string and is falsy.
    """

    __slots__ = ()

    def __str__(self) -> str:
        return ""

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNDEFINED"


UNDEFINED: Any = _Undefined()


def to_liquid(value: Any) -> Any:
    """Let objects swap themselves for a template-facing representation."""
    hook = getattr(value, "to_liquid", None)
    if hook is not None and callable(hook) and not isinstance(value, type):
        return hook()
    return value


def to_value(value: Any) -> Any:
    if isinstance(value, Drop):
        return value.value_of()
    return value


def to_number(value: Any) -> int | float:
    """Coerce to a number the way arithmetic on template values expects."""
    value = to_value(value)
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if value is None or value is UNDEFINED:
        return 0
    text = str(value).strip()
    if not text:
        return 0
    try:
        return int(text)
    except ValueError:
        return float(text)


def to_integer(value: Any, default: int = 0) -> int:
    """Integer form of a range bound or loop modifier; non-numeric values give ``default``."""
    try:
        number = to_number(value)
    except ValueError:
        return default
    if isinstance(number, float) and not math.isfinite(number):
        return default
    return int(number)


def format_number(value: int | float) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    return str(value)


def to_str(value: Any) -> str:
    """Stringify a rendered value.

    Lists are concatenated, booleans print lowercase, nil and undefined
    print nothing, integral floats drop their fractional part.
    """
    value = to_value(value)
    if isinstance(value, str):
        return value
    if value is None or value is UNDEFINED:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(value)
    if isinstance(value, (list, tuple)):
        return "".join(to_str(item) for item in value)
    return str(value)


def to_enumerable(value: Any) -> list[Any]:
    """Materialize anything a ``for`` loop can iterate.

    Strings iterate as a single element; mappings as ``[key, value]`` pairs.
    """
    value = to_value(to_liquid(value))
    if value is None or value is UNDEFINED:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, Mapping):
        return [[key, item] for key, item in value.items()]
    if isinstance(value, Iterable):
        return list(value)
    return []


def is_falsy(value: Any, js_truthy: bool = False) -> bool:
    value = to_value(value)
    if js_truthy:
        return not value
    return value is False or value is None or value is UNDEFINED


def is_truthy(value: Any, js_truthy: bool = False) -> bool:
    return not is_falsy(value, js_truthy)


def equals(lhs: Any, rhs: Any) -> bool:
    """Template ``==``: comparable hooks, then elementwise lists, then raw."""
    from sluice.drops import is_comparable

    if is_comparable(lhs):
        return bool(lhs.equals(rhs))
    if is_comparable(rhs):
        return bool(rhs.equals(lhs))
    lhs = to_value(lhs)
    rhs = to_value(rhs)
    if isinstance(lhs, (list, tuple)):
        if not isinstance(rhs, (list, tuple)) or len(lhs) != len(rhs):
            return False
        return all(equals(a, b) for a, b in zip(lhs, rhs, strict=True))
    if lhs is UNDEFINED or rhs is UNDEFINED:
        return lhs is rhs
    if isinstance(lhs, bool) != isinstance(rhs, bool):
        return False
    return bool(lhs == rhs)
