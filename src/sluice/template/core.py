"""Template: a parsed node list bound to its environment.

Memory Safety:
Uses ``weakref.ref(env)`` to break the cycle
``Template -> Environment -> cache -> nodes``; the nodes themselves
only hold strong references to the environment through their tags.

Thread-Safety:
Templates are immutable after construction. Every ``render()`` builds
its own ``Context`` so concurrent renders share nothing mutable.
"""

from __future__ import annotations

import weakref
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sluice.analysis.analyzer import StaticAnalysis
    from sluice.environment.core import Environment
    from sluice.template.nodes import Node


class Template:
    """Parsed template ready for rendering.

    Obtain one from ``Environment.from_string`` or ``get_template``.

    Example:
        >>> t = env.from_string("Hello, {{ name }}!")
        >>> t.render(name="World")
        'Hello, World!'
        >>> t.render({"name": "World"})
        'Hello, World!'
    """

    __slots__ = ("_env_ref", "_name", "nodes")

    def __init__(self, env: Environment, nodes: list[Node], name: str | None = None):
        self._env_ref: weakref.ref[Environment] = weakref.ref(env)
        self._name = name
        self.nodes = nodes

    @property
    def _env(self) -> Environment:
        env = self._env_ref()
        if env is None:
            raise RuntimeError(
                f"Environment has been garbage collected (template: {self._name or 'unknown'})"
            )
        return env

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def env(self) -> Environment:
        return self._env

    def _data(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if args:
            if len(args) == 1 and isinstance(args[0], dict):
                data.update(args[0])
            else:
                raise TypeError(
                    f"render() takes at most 1 positional argument (a dict), got {len(args)}"
                )
        data.update(kwargs)
        return data

    def render(self, *args: Any, **kwargs: Any) -> Any:
        """Render with a single dict of variables and/or keyword variables."""
        return self._env.render(self.nodes, self._data(args, kwargs))

    async def render_async(self, *args: Any, **kwargs: Any) -> Any:
        return await self._env.render_async(self.nodes, self._data(args, kwargs))

    async def render_stream_async(self, *args: Any, **kwargs: Any) -> AsyncIterator[str]:
        async for chunk in self._env.render_stream_async(self.nodes, self._data(args, kwargs)):
            yield chunk

    def analyze(self, partials: bool = True) -> StaticAnalysis:
        return self._env.analyze(self.nodes, partials)

    def variables(self, partials: bool = True) -> list[str]:
        """Root names of every variable this template reads."""
        return self._env.variables(self.nodes, partials)

    def __repr__(self) -> str:
        return f"<Template {self._name or '(inline)'} nodes={len(self.nodes)}>"
