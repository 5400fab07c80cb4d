"""Tag and filter registries for the sluice environment.

Both are dict-like views over a plain dict stored on the environment:

    env.filters["upcase"] = str.upper
    env.tags.update({"shout": ShoutTag})
    "upcase" in env.filters

Mutations copy the underlying dict and swap it in, so a parse already
iterating the old mapping never observes a half-applied update.
"""

from __future__ import annotations

from collections.abc import Callable, ItemsView, KeysView, ValuesView
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sluice.environment.core import Environment


@dataclass(frozen=True, slots=True)
class FilterDefinition:
    """A registered filter.

    Attributes:
        handler: ``handler(value, *args, **kwargs)``.
        raw: Output of this filter is not passed through ``output_escape``.
        pass_context: Call as ``handler(filter_context, value, ...)``.
    """

    handler: Callable[..., Any]
    raw: bool = False
    pass_context: bool = False


def as_filter(value: FilterDefinition | Callable[..., Any]) -> FilterDefinition:
    if isinstance(value, FilterDefinition):
        return value
    return FilterDefinition(value)


class Registry:
    """Dict-like access to one of the environment's name tables."""

    __slots__ = ("_attr", "_env")

    def __init__(self, env: Environment, attr: str):
        self._env = env
        self._attr = attr

    def _get_dict(self) -> dict[str, Any]:
        return getattr(self._env, self._attr)

    def _set_dict(self, d: dict[str, Any]) -> None:
        setattr(self._env, self._attr, d)

    def _coerce(self, value: Any) -> Any:
        return value

    def __getitem__(self, name: str) -> Any:
        return self._get_dict()[name]

    def __setitem__(self, name: str, value: Any) -> None:
        new = self._get_dict().copy()
        new[name] = self._coerce(value)
        self._set_dict(new)

    def __delitem__(self, name: str) -> None:
        new = self._get_dict().copy()
        del new[name]
        self._set_dict(new)

    def __contains__(self, name: object) -> bool:
        return name in self._get_dict()

    def __iter__(self):
        return iter(self._get_dict())

    def __len__(self) -> int:
        return len(self._get_dict())

    def get(self, name: str, default: Any = None) -> Any:
        return self._get_dict().get(name, default)

    def update(self, mapping: dict[str, Any]) -> None:
        new = self._get_dict().copy()
        new.update({name: self._coerce(value) for name, value in mapping.items()})
        self._set_dict(new)

    def copy(self) -> dict[str, Any]:
        return self._get_dict().copy()

    def keys(self) -> KeysView[str]:
        return self._get_dict().keys()

    def values(self) -> ValuesView[Any]:
        return self._get_dict().values()

    def items(self) -> ItemsView[str, Any]:
        return self._get_dict().items()


class TagRegistry(Registry):
    """``name -> Tag subclass``; consulted only while parsing."""

    __slots__ = ()


class FilterRegistry(Registry):
    """``name -> FilterDefinition``; plain callables are wrapped on insert."""

    __slots__ = ()

    def _coerce(self, value: Any) -> FilterDefinition:
        return as_filter(value)
