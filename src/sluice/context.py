"""Render-time state: scopes, registers and resource limiters.

A ``Context`` is created once per top-level render call. Variables
resolve through, in order:

1. the innermost local scope that holds the root name (``assign``,
   ``capture``, loop variables, ``include`` arguments ...)
2. ``increment``/``decrement`` counters
3. the environment (the data passed to ``render``)
4. globals

Stateful tags (``cycle``, ``for ... offset:continue``, layout blocks)
keep their bookkeeping in a ``RenderSession`` that lives exactly as long
as the context that owns it.

``spawn()`` creates an isolated child for ``{% render %}``: fresh scopes,
session and counters, but the *same* limiter objects, so a runaway
partial still trips the parent's budgets.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from time import perf_counter
from typing import TYPE_CHECKING, Any

from sluice.drops import Drop
from sluice.environment.exceptions import InternalUndefinedVariableError, LimitExceededError
from sluice.utils.values import UNDEFINED, to_liquid, to_number, to_value

if TYPE_CHECKING:
    from collections.abc import Generator

    from sluice.environment.options import Options

logger = logging.getLogger(__name__)


def now_ms() -> float:
    return perf_counter() * 1000


class Limiter:
    """A budget that raises ``LimitExceededError`` when crossed.

    ``use(n)`` charges a cumulative counter (memory, parse length);
    ``check(n)`` compares a single reading against the bound (render
    deadline). Neither ever resets.
    """

    __slots__ = ("base", "limit", "resource")

    def __init__(self, resource: str, limit: float):
        self.resource = resource
        self.limit = limit
        self.base: float = 0

    def use(self, count: Any) -> None:
        count = to_number(count)
        if self.base + count > self.limit:
            raise LimitExceededError(self.resource, self.limit)
        self.base += count

    def check(self, value: Any) -> None:
        if to_number(value) > self.limit:
            raise LimitExceededError(self.resource, self.limit)

    def __repr__(self) -> str:
        return f"<Limiter {self.resource} {self.base}/{self.limit}>"


@dataclass
class RenderSession:
    """Register bag for one render invocation.

    Attributes:
        registers: Named slots owned by stateful tags (``cycle``,
            ``blocks``, ``block_mode``, ``for`` continuation offsets).
    """

    registers: dict[str, Any] = field(default_factory=dict)

    def get_register(self, name: str) -> Any:
        return self.registers.setdefault(name, {})

    def set_register(self, name: str, value: Any) -> Any:
        self.registers[name] = value
        return value

    def save_register(self, *names: str) -> list[tuple[str, Any]]:
        return [(name, self.get_register(name)) for name in names]

    def restore_register(self, saved: list[tuple[str, Any]]) -> None:
        for name, value in saved:
            self.set_register(name, value)


class Context:
    """Variable resolution and per-render state.

    Args:
        environments: The data passed to ``render`` (mapping or object).
        opts: Normalized engine options.
        sync: True when driven by the synchronous renderer; loaders use
            it to choose between blocking and awaitable file access.
        globals: Overrides ``opts.globals`` for this render.
        strict_variables: Overrides ``opts.strict_variables``.
        own_property_only: Overrides ``opts.own_property_only``.
        memory_limit: Overrides ``opts.memory_limit``.
        render_limit: Overrides ``opts.render_limit`` (milliseconds).
    """

    def __init__(
        self,
        environments: Any = None,
        opts: Options | None = None,
        *,
        sync: bool = False,
        globals: Mapping[str, Any] | None = None,
        strict_variables: bool | None = None,
        own_property_only: bool | None = None,
        memory_limit: float | None = None,
        render_limit: float | None = None,
    ):
        if opts is None:
            from sluice.environment.options import Options

            opts = Options()
        self.opts = opts
        self.sync = sync
        self.environments: Any = environments if environments is not None else {}
        self.globals: Mapping[str, Any] = globals if globals is not None else opts.globals
        self.strict_variables = (
            strict_variables if strict_variables is not None else opts.strict_variables
        )
        self.own_property_only = (
            own_property_only if own_property_only is not None else opts.own_property_only
        )
        self.memory_limit = Limiter(
            "memory alloc", memory_limit if memory_limit is not None else opts.memory_limit
        )
        self.render_limit = Limiter(
            "template render",
            now_ms() + (render_limit if render_limit is not None else opts.render_limit),
        )
        self.scopes: list[dict[str, Any]] = [{}]
        self.counters: dict[str, Any] = {}
        self.session = RenderSession()
        self.break_called = False
        self.continue_called = False

    # -- registers -------------------------------------------------------

    def get_register(self, name: str) -> Any:
        return self.session.get_register(name)

    def set_register(self, name: str, value: Any) -> Any:
        return self.session.set_register(name, value)

    def save_register(self, *names: str) -> list[tuple[str, Any]]:
        return self.session.save_register(*names)

    def restore_register(self, saved: list[tuple[str, Any]]) -> None:
        self.session.restore_register(saved)

    # -- scopes ----------------------------------------------------------

    def push(self, scope: dict[str, Any]) -> None:
        self.scopes.append(scope)

    def pop(self) -> dict[str, Any]:
        return self.scopes.pop()

    def bottom(self) -> dict[str, Any]:
        return self.scopes[0]

    def spawn(self, environments: Any = None) -> Context:
        """Isolated child sharing limiters, globals and options."""
        child = Context(
            environments if environments is not None else {},
            self.opts,
            sync=self.sync,
            globals=self.globals,
            strict_variables=self.strict_variables,
            own_property_only=self.own_property_only,
        )
        child.memory_limit = self.memory_limit
        child.render_limit = self.render_limit
        return child

    def get_all(self) -> dict[str, Any]:
        """Flattened view of every visible binding (inner scopes win)."""
        merged: dict[str, Any] = {}
        for layer in (self.globals, self.environments, self.counters, *self.scopes):
            if isinstance(layer, Mapping):
                merged.update(layer)
        return merged

    def find_scope(self, key: Any) -> Any:
        for scope in reversed(self.scopes):
            if key in scope:
                return scope
        if key in self.counters:
            return self.counters
        if _has_key(self.environments, key):
            return self.environments
        return self.globals

    # -- resolution ------------------------------------------------------

    def lookup(self, paths: Sequence[Any]) -> Generator[Any, Any, Any]:
        """Resolve a property chain from the scope holding its root."""
        scope = self.find_scope(paths[0]) if paths else self.bottom()
        return (yield self.lookup_in(scope, paths))

    def lookup_in(
        self, scope: Any, paths: Sequence[Any] | str, strict: bool | None = None
    ) -> Generator[Any, Any, Any]:
        """Resolve ``paths`` against ``scope``, each step against the last result.

        Raises:
            InternalUndefinedVariableError: In strict mode, naming the
                path prefix that resolved to nothing.
        """
        if isinstance(paths, str):
            paths = paths.split(".")
        strict = self.strict_variables if strict is None else strict
        value = scope
        for i, path in enumerate(paths):
            value, called = read_property(value, path, self.own_property_only)
            if called:
                value = yield value
            if strict and value is UNDEFINED:
                raise InternalUndefinedVariableError(".".join(str(p) for p in paths[: i + 1]))
        return value

    def get(self, paths: Sequence[Any] | str) -> Any:
        """Synchronous convenience wrapper around ``lookup``."""
        from sluice.template.drivers import to_sync

        if isinstance(paths, str):
            paths = paths.split(".")
        return to_sync(self.lookup(paths))

    def __repr__(self) -> str:
        return f"<Context scopes={len(self.scopes)} sync={self.sync}>"


def _has_key(obj: Any, key: Any) -> bool:
    if isinstance(obj, Mapping):
        return key in obj
    if isinstance(key, str) and not key.startswith("_"):
        return hasattr(obj, key)
    return False


def _own_value(obj: Any, key: Any, own_property_only: bool) -> Any:
    if isinstance(obj, Mapping):
        try:
            return obj[key]
        except (KeyError, TypeError):
            return UNDEFINED
    if isinstance(obj, (list, tuple, str)):
        if isinstance(key, int) and not isinstance(key, bool) and -len(obj) <= key < len(obj):
            return obj[key]
        return UNDEFINED
    if not isinstance(key, str) or key.startswith("_"):
        return UNDEFINED
    if own_property_only and not isinstance(obj, Drop):
        own = getattr(obj, "__dict__", None)
        if own is not None and key in own:
            return own[key]
        if key in getattr(type(obj), "__dataclass_fields__", ()):
            return getattr(obj, key, UNDEFINED)
        return UNDEFINED
    return getattr(obj, key, UNDEFINED)


def read_property(obj: Any, key: Any, own_property_only: bool = True) -> tuple[Any, bool]:
    """Read one segment of a property chain.

    Returns ``(value, called)``; ``called`` is True when the value came
    from invoking a method or ``liquid_method_missing`` and may therefore
    be a generator or awaitable the driver has to resolve.

    Virtual ``size``/``first``/``last`` apply only when ``obj`` has no
    explicit member of that name.
    """
    obj = to_liquid(obj)
    key = to_value(key)
    if obj is None or obj is UNDEFINED:
        return obj, False
    value = _own_value(obj, key, own_property_only)
    if value is UNDEFINED and isinstance(obj, Drop):
        return obj.liquid_method_missing(key), True
    if value is not UNDEFINED and callable(value) and not isinstance(value, type):
        return value(), True
    if value is UNDEFINED:
        if key == "size":
            return _size(obj), False
        if key == "first":
            return _first(obj), False
        if key == "last":
            return _last(obj), False
    return value, False


def _size(obj: Any) -> Any:
    if isinstance(obj, (list, tuple, str, Mapping)):
        return len(obj)
    try:
        return len(obj)
    except TypeError:
        return UNDEFINED


def _first(obj: Any) -> Any:
    if isinstance(obj, (list, tuple)):
        return obj[0] if obj else UNDEFINED
    return UNDEFINED


def _last(obj: Any) -> Any:
    if isinstance(obj, (list, tuple)):
        return obj[-1] if obj else UNDEFINED
    return UNDEFINED
