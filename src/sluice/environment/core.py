"""The ``Environment``: configuration, registries and the public render API.

An environment owns one ``Options`` snapshot, the tag and filter
registries and the partial resolver. Everything that parses or renders
goes through it::

    env = Environment(root="views", extname=".liquid", cache=True)
    env.register_filter("upcase", str.upper)

    html = env.parse_and_render("Hi {{ name | upcase }}", {"name": "ada"})
    page = env.render_file("index", {"user": user})

    template = env.get_template("index")
    html = await template.render_async(user=user)

Each synchronous method has an ``_async`` twin. They share every render
step; the async one additionally awaits deferred values (coroutines
returned by drops or filters) and reads files through the loader's
async API.

Per-call overrides (``globals``, ``strict_variables``,
``own_property_only``, ``memory_limit``, ``render_limit``) apply to a
single render without touching the environment's options.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sluice.context import Context
from sluice.environment.options import normalize_options
from sluice.environment.registry import FilterDefinition, FilterRegistry, TagRegistry
from sluice.environment.resolver import LookupType, PartialResolver
from sluice.parser import Parser
from sluice.tags import BUILTIN_TAGS
from sluice.template.drivers import to_async, to_sync
from sluice.template.emitter import SimpleEmitter
from sluice.template.renderer import render_templates
from sluice.template.value import Value

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Generator

    from sluice.analysis.analyzer import StaticAnalysis
    from sluice.analysis.dependencies import Variable
    from sluice.tags.base import Tag
    from sluice.template.core import Template
    from sluice.template.nodes import Node

logger = logging.getLogger(__name__)


class Environment:
    """Central configuration and render entry point.

    Args:
        **options: See ``sluice.environment.options.Options``. Unknown
            names raise ``TypeError``.

    Attributes:
        options: Normalized, immutable options.
        tags: Tag registry (``name -> Tag`` subclass).
        filters: Filter registry (``name -> FilterDefinition``).
        resolver: Resolves partial, layout and file names to paths.
    """

    def __init__(self, **options: Any):
        self.options = normalize_options(**options)
        self._tags: dict[str, type[Tag]] = dict(BUILTIN_TAGS)
        self._filters: dict[str, FilterDefinition] = {}
        self.resolver = PartialResolver(self.options)

    @property
    def tags(self) -> TagRegistry:
        return TagRegistry(self, "_tags")

    @property
    def filters(self) -> FilterRegistry:
        return FilterRegistry(self, "_filters")

    # -- registration ----------------------------------------------------

    def register_filter(
        self,
        name: str,
        func: Callable[..., Any],
        *,
        raw: bool = False,
        pass_context: bool = False,
    ) -> None:
        """Register ``func`` as filter ``name``.

        Args:
            raw: Output of this filter skips ``output_escape``.
            pass_context: Call ``func(filter_context, value, *args)``.
        """
        self.filters[name] = FilterDefinition(func, raw=raw, pass_context=pass_context)

    def register_tag(self, name: str, tag: type[Tag]) -> None:
        self.tags[name] = tag

    def plugin(self, fn: Callable[[Environment], Any]) -> Any:
        """Apply a plugin: ``fn(env)`` registers its tags and filters."""
        return fn(self)

    def clear_template_cache(self) -> None:
        cache = self.options.cache
        if cache is not None and callable(getattr(cache, "clear", None)):
            cache.clear()
            logger.debug("Template cache cleared")

    # -- parsing ---------------------------------------------------------

    def parse(self, source: str, file: str | None = None) -> list[Node]:
        return Parser(self).parse(source, file)

    def parse_file(self, name: str, lookup_type: LookupType = LookupType.ROOT) -> list[Node]:
        return to_sync(Parser(self).parse_file(name, True, lookup_type))

    async def parse_file_async(
        self, name: str, lookup_type: LookupType = LookupType.ROOT
    ) -> list[Node]:
        return await to_async(Parser(self).parse_file(name, False, lookup_type))

    def parse_partial(
        self, name: str, sync: bool, current_file: str | None = None
    ) -> Generator[Any, Any, list[Node]]:
        return Parser(self).parse_file(name, sync, LookupType.PARTIALS, current_file)

    def parse_layout(
        self, name: str, sync: bool, current_file: str | None = None
    ) -> Generator[Any, Any, list[Node]]:
        return Parser(self).parse_file(name, sync, LookupType.LAYOUTS, current_file)

    # -- templates -------------------------------------------------------

    def from_string(self, source: str, name: str | None = None) -> Template:
        from sluice.template.core import Template

        return Template(self, self.parse(source, name), name)

    def get_template(self, name: str) -> Template:
        from sluice.template.core import Template

        return Template(self, self.parse_file(name), name)

    async def get_template_async(self, name: str) -> Template:
        from sluice.template.core import Template

        return Template(self, await self.parse_file_async(name), name)

    # -- rendering -------------------------------------------------------

    def _context(self, data: Any, sync: bool, overrides: dict[str, Any]) -> Context:
        if isinstance(data, Context):
            return data
        return Context(data, self.options, sync=sync, **overrides)

    def render(self, nodes: list[Node], data: Any = None, **overrides: Any) -> Any:
        """Render parsed ``nodes`` with ``data`` and return the output."""
        ctx = self._context(data, True, overrides)
        return to_sync(render_templates(nodes, ctx))

    async def render_async(self, nodes: list[Node], data: Any = None, **overrides: Any) -> Any:
        ctx = self._context(data, False, overrides)
        return await to_async(render_templates(nodes, ctx))

    async def render_stream_async(
        self, nodes: list[Node], data: Any = None, **overrides: Any
    ) -> AsyncIterator[str]:
        """Yield the output of each top-level node as soon as it is rendered."""
        ctx = self._context(data, False, overrides)
        for node in nodes:
            emitter = SimpleEmitter()
            await to_async(render_templates([node], ctx, emitter))
            yield emitter.buffer

    def parse_and_render(self, source: str, data: Any = None, **overrides: Any) -> Any:
        return self.render(self.parse(source), data, **overrides)

    async def parse_and_render_async(self, source: str, data: Any = None, **overrides: Any) -> Any:
        return await self.render_async(self.parse(source), data, **overrides)

    def render_file(
        self,
        name: str,
        data: Any = None,
        lookup_type: LookupType = LookupType.ROOT,
        **overrides: Any,
    ) -> Any:
        return self.render(self.parse_file(name, lookup_type), data, **overrides)

    async def render_file_async(
        self,
        name: str,
        data: Any = None,
        lookup_type: LookupType = LookupType.ROOT,
        **overrides: Any,
    ) -> Any:
        nodes = await self.parse_file_async(name, lookup_type)
        return await self.render_async(nodes, data, **overrides)

    def evaluate(self, expression: str, data: Any = None, **overrides: Any) -> Any:
        """Evaluate one filtered value, e.g. ``"user.name | upcase"``."""
        ctx = self._context(data, True, overrides)
        return to_sync(Value(expression, self).value(ctx))

    async def evaluate_async(self, expression: str, data: Any = None, **overrides: Any) -> Any:
        ctx = self._context(data, False, overrides)
        return await to_async(Value(expression, self).value(ctx))

    # -- static analysis -------------------------------------------------

    def _nodes(self, template: Any) -> list[Node]:
        if isinstance(template, str):
            return self.parse(template)
        return list(getattr(template, "nodes", template))

    def analyze(self, template: Any, partials: bool = True) -> StaticAnalysis:
        from sluice.analysis.analyzer import analyze

        return analyze(self._nodes(template), partials)

    async def analyze_async(self, template: Any, partials: bool = True) -> StaticAnalysis:
        from sluice.analysis.analyzer import analyze_async

        return await analyze_async(self._nodes(template), partials)

    def variables(self, template: Any, partials: bool = True) -> list[str]:
        """Root names of every variable ``template`` reads."""
        return list(self.analyze(template, partials).variables)

    async def variables_async(self, template: Any, partials: bool = True) -> list[str]:
        return list((await self.analyze_async(template, partials)).variables)

    def global_variables(self, template: Any, partials: bool = True) -> list[str]:
        """Root names ``template`` needs from the caller."""
        return list(self.analyze(template, partials).globals)

    async def global_variables_async(self, template: Any, partials: bool = True) -> list[str]:
        return list((await self.analyze_async(template, partials)).globals)

    def full_variables(self, template: Any, partials: bool = True) -> list[str]:
        """Distinct full paths, e.g. ``["user.name", "posts[0].title"]``."""
        return _full_paths(self.analyze(template, partials).variables)

    async def full_variables_async(self, template: Any, partials: bool = True) -> list[str]:
        return _full_paths((await self.analyze_async(template, partials)).variables)

    def global_full_variables(self, template: Any, partials: bool = True) -> list[str]:
        return _full_paths(self.analyze(template, partials).globals)

    async def global_full_variables_async(
        self, template: Any, partials: bool = True
    ) -> list[str]:
        return _full_paths((await self.analyze_async(template, partials)).globals)

    def variable_segments(self, template: Any, partials: bool = True) -> list[list[Any]]:
        """Distinct paths as segment lists, e.g. ``[["user", "name"]]``."""
        return _segment_lists(self.analyze(template, partials).variables)

    async def variable_segments_async(
        self, template: Any, partials: bool = True
    ) -> list[list[Any]]:
        return _segment_lists((await self.analyze_async(template, partials)).variables)

    def global_variable_segments(self, template: Any, partials: bool = True) -> list[list[Any]]:
        return _segment_lists(self.analyze(template, partials).globals)

    async def global_variable_segments_async(
        self, template: Any, partials: bool = True
    ) -> list[list[Any]]:
        return _segment_lists((await self.analyze_async(template, partials)).globals)

    def __repr__(self) -> str:
        loader = type(self.options.loader).__name__
        return f"<Environment loader={loader} tags={len(self._tags)} filters={len(self._filters)}>"


def _full_paths(groups: dict[str, list[Variable]]) -> list[str]:
    return list(dict.fromkeys(str(v) for refs in groups.values() for v in refs))


def _segment_lists(groups: dict[str, list[Variable]]) -> list[list[Any]]:
    from sluice.analysis.dependencies import segments_to_string

    unique: dict[str, list[Any]] = {}
    for refs in groups.values():
        for variable in refs:
            unique.setdefault(segments_to_string(variable.segments), variable.to_array())
    return list(unique.values())
