"""Static variable analysis of parsed templates.

Walks a node list without rendering it and reports which context
paths it reads. Each node describes itself through the analysis hooks
on ``sluice.template.nodes.Node``:

- ``arguments()``: values and expressions it evaluates
- ``local_scope()``: names it assigns in the template scope
- ``block_scope()``: names bound only for its children (``forloop``)
- ``partial_scope()``: the partial it renders and the names passed in
- ``children(partials, sync)``: nested nodes, parsed partials included

Results are split three ways:

- ``variables``: every reference
- ``globals``: references whose root is never bound in the template,
  i.e. what the caller has to provide
- ``locals``: names the template assigns

Partials are loaded through the environment's resolver, so the async
variant works with loaders that only offer async reads.

Example:
    >>> env = Environment(templates={"card": "{{ product.title }}"})
    >>> nodes = env.parse("{% assign n = 1 %}{% include 'card' %}{{ n }}")
    >>> analyze(nodes).globals.keys()
    dict_keys(['product'])
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sluice.analysis.dependencies import (
    Location,
    ScopeStack,
    Variable,
    VariableMap,
    extract_variables,
)
from sluice.template.drivers import to_async, to_sync

if TYPE_CHECKING:
    from collections.abc import Generator, Iterable

    from sluice.template.nodes import Node

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StaticAnalysis:
    """Analysis result; every mapping is ``root name -> [Variable]``."""

    variables: dict[str, list[Variable]]
    globals: dict[str, list[Variable]]
    locals: dict[str, list[Variable]]


class VariableWalker:
    """Collect variable references from a node tree.

    Thread-safe: creates new state for each ``walk()`` call. Each partial
    is visited at most once per (name, isolated) pair, which also stops
    self-including partials from recursing forever.
    """

    __slots__ = ("_globals", "_locals", "_root", "_seen", "_variables", "partials", "sync")

    def __init__(self, partials: bool = True, sync: bool = True):
        self.partials = partials
        self.sync = sync

    def walk(self, nodes: Iterable[Node]) -> Generator[Any, Any, StaticAnalysis]:
        self._variables = VariableMap()
        self._globals = VariableMap()
        self._locals = VariableMap()
        self._root = ScopeStack()
        self._seen: set[tuple[str, bool]] = set()
        for node in nodes:
            yield self._visit(node, self._root)
        return StaticAnalysis(
            variables=self._variables.as_dict(),
            globals=self._globals.as_dict(),
            locals=self._locals.as_dict(),
        )

    def _reference(self, variable: Variable, scope: ScopeStack) -> None:
        self._variables.push(variable)
        aliased = scope.alias(variable)
        if aliased is not None:
            root = aliased.root
            if isinstance(root, str) and not self._root.has(root):
                self._globals.push(aliased)
        elif isinstance(variable.root, str) and not scope.has(variable.root):
            self._globals.push(variable)
        for segment in variable.segments:
            if isinstance(segment, Variable):
                self._reference(segment, scope)

    def _visit(self, node: Node, scope: ScopeStack) -> Generator[Any, Any, None]:
        for argument in node.arguments():
            for variable in extract_variables(argument):
                self._reference(variable, scope)

        for ident in node.local_scope():
            scope.add(ident.content)
            scope.delete_alias(ident.content)
            row, col = ident.get_position()
            self._locals.push(Variable((ident.content,), Location(row, col, ident.file)))

        partial = node.partial_scope()
        if partial is None:
            bound = set(node.block_scope())
            if bound:
                scope.push(bound)
            for child in (yield node.children(self.partials, self.sync)):
                yield self._visit(child, scope)
            if bound:
                scope.pop()
            return

        key = (partial.name, partial.isolated)
        if key in self._seen:
            return
        self._seen.add(key)
        logger.debug(f"Analyzing partial {partial.name!r} (isolated={partial.isolated})")

        names: set[str] = set()
        inner = ScopeStack(names) if partial.isolated else scope.push(names)
        for entry in partial.scope:
            if isinstance(entry, str):
                names.add(entry)
                continue
            name, value = entry
            names.add(name)
            found = next(extract_variables(value), None)
            if found is not None:
                inner.set_alias(name, found.segments)
        for child in (yield node.children(self.partials, self.sync)):
            yield self._visit(child, inner)
        inner.pop()


def analyze(nodes: Iterable[Node], partials: bool = True) -> StaticAnalysis:
    """Analyze ``nodes``, reading partials synchronously."""
    return to_sync(VariableWalker(partials, sync=True).walk(nodes))


async def analyze_async(nodes: Iterable[Node], partials: bool = True) -> StaticAnalysis:
    """Analyze ``nodes``, reading partials through the async loader API."""
    return await to_async(VariableWalker(partials, sync=False).walk(nodes))
