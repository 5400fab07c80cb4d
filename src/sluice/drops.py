"""Drops: objects that expose a controlled interface to templates.

A ``Drop`` may implement ``liquid_method_missing`` to answer lookups for
unknown keys and ``value_of`` to stand in for a plain value when
compared or printed. Drops that define ``equals``/``gt``/``geq``/``lt``/
``leq`` take part in comparisons through those hooks.

The literal drops back the reserved words ``nil``, ``empty`` and ``blank``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class Drop:
    """Base class for template-visible objects."""

    def liquid_method_missing(self, key: Any) -> Any:
        from sluice.utils.values import UNDEFINED

        return UNDEFINED

    def value_of(self) -> Any:
        return self


def is_comparable(value: Any) -> bool:
    """True if ``value`` supplies its own comparison hooks."""
    return all(
        callable(getattr(value, name, None)) for name in ("equals", "gt", "geq", "lt", "leq")
    )


class NullDrop(Drop):
    """``nil`` / ``null``: equal to None, undefined values and other nils."""

    def equals(self, value: Any) -> bool:
        from sluice.utils.values import UNDEFINED

        return value is None or value is UNDEFINED or isinstance(value, NullDrop)

    def gt(self, value: Any) -> bool:
        return False

    def geq(self, value: Any) -> bool:
        return False

    def lt(self, value: Any) -> bool:
        return False

    def leq(self, value: Any) -> bool:
        return False

    def value_of(self) -> None:
        return None

    def __repr__(self) -> str:
        return "nil"


class EmptyDrop(Drop):
    """``empty``: equal to empty strings, sequences and mappings."""

    def equals(self, value: Any) -> bool:
        from sluice.utils.values import to_value

        if isinstance(value, EmptyDrop):
            return False
        value = to_value(value)
        if isinstance(value, (str, list, tuple)):
            return len(value) == 0
        if isinstance(value, Mapping):
            return len(value) == 0
        return False

    def gt(self, value: Any) -> bool:
        return False

    def geq(self, value: Any) -> bool:
        return False

    def lt(self, value: Any) -> bool:
        return False

    def leq(self, value: Any) -> bool:
        return False

    def value_of(self) -> str:
        return ""

    def __repr__(self) -> str:
        return "empty"


class BlankDrop(EmptyDrop):
    """``blank``: like ``empty`` but also matches false, nil and whitespace."""

    def equals(self, value: Any) -> bool:
        from sluice.utils.values import UNDEFINED, to_value

        if value is False or value is None or value is UNDEFINED:
            return True
        value = to_value(value)
        if value is None:
            return True
        if isinstance(value, str):
            return not value.strip()
        return super().equals(value)

    def __repr__(self) -> str:
        return "blank"


LITERALS: dict[str, Any] = {
    "true": True,
    "false": False,
    "nil": NullDrop(),
    "null": NullDrop(),
    "empty": EmptyDrop(),
    "blank": BlankDrop(),
}
