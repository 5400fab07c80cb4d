"""Variable references found by static analysis.

A ``Variable`` is the path one output or tag argument reads, split into
segments. String and number segments are literal keys; a nested
``Variable`` is a dynamic key whose value is itself read from the
context::

    {{ user.posts[0].title }}      -> ("user", "posts", 0, "title")
    {{ product[field].label }}     -> ("product", Variable(("field",)), "label")

``str(variable)`` renders the path back in template syntax, bracketing
segments that are not plain identifiers.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sluice._types import PropertyAccessToken, RangeToken, Token
from sluice.expressions import Expression
from sluice.template.value import Value

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

Segment = Any

_IDENTIFIER = re.compile(r"^[\u0080-\uffffa-zA-Z_][\u0080-\uffffa-zA-Z0-9_-]*$")


@dataclass(frozen=True, slots=True)
class Location:
    """Where a reference appears (1-based row and column)."""

    row: int
    col: int
    file: str | None = None


@dataclass(frozen=True, slots=True)
class Variable:
    """A context path read by a template.

    Attributes:
        segments: Path segments; nested ``Variable``s are dynamic keys.
        location: Position of the reference in its source file.
    """

    segments: tuple[Segment, ...]
    location: Location = field(default_factory=lambda: Location(0, 0))

    @property
    def root(self) -> Segment:
        return self.segments[0]

    def to_array(self) -> list[Any]:
        """Segments as nested lists, dynamic keys expanded."""
        return [s.to_array() if isinstance(s, Variable) else s for s in self.segments]

    def __str__(self) -> str:
        return segments_to_string(self.segments, bracketed=True)


def segments_to_string(segments: Iterable[Segment], bracketed: bool = False) -> str:
    """Render segments as a template path.

    With ``bracketed`` a root that is not a plain identifier is written
    as ``['name']`` too.

    Example:
        >>> segments_to_string(("a", "b c", 1))
        "a['b c'][1]"
    """
    segments = list(segments)
    if not segments:
        return ""
    parts: list[str] = []
    root = segments[0]
    if isinstance(root, str):
        parts.append(root if not bracketed or _IDENTIFIER.match(root) else f"['{root}']")
    for segment in segments[1:]:
        if isinstance(segment, Variable):
            parts.append(f"[{segments_to_string(segment.segments)}]")
        elif isinstance(segment, str):
            parts.append(f".{segment}" if _IDENTIFIER.match(segment) else f"['{segment}']")
        else:
            parts.append(f"[{segment}]")
    return "".join(parts)


class VariableMap:
    """References grouped by their root segment, in first-seen order."""

    __slots__ = ("_map",)

    def __init__(self) -> None:
        self._map: dict[str, list[Variable]] = {}

    @staticmethod
    def _key(variable: Variable) -> str:
        return segments_to_string(variable.segments[:1])

    def push(self, variable: Variable) -> None:
        self._map.setdefault(self._key(variable), []).append(variable)

    def __contains__(self, variable: object) -> bool:
        return isinstance(variable, Variable) and self._key(variable) in self._map

    def as_dict(self) -> dict[str, list[Variable]]:
        return {name: list(refs) for name, refs in self._map.items()}


@dataclass(slots=True)
class _Frame:
    names: set[str]
    aliases: dict[str, tuple[Segment, ...]] = field(default_factory=dict)


class ScopeStack:
    """Names bound while walking a template, innermost frame last.

    ``assign``-style bindings always land in the bottom frame; loop
    variables and partial arguments get their own frame. An alias maps
    a partial-local name to the caller's path it was bound to.
    """

    __slots__ = ("stack",)

    def __init__(self, names: set[str] | None = None):
        self.stack: list[_Frame] = [_Frame(names if names is not None else set())]

    def has(self, name: str) -> bool:
        return any(name in frame.names for frame in self.stack)

    def push(self, names: set[str]) -> ScopeStack:
        self.stack.append(_Frame(names))
        return self

    def pop(self) -> set[str] | None:
        return self.stack.pop().names if self.stack else None

    def add(self, name: str) -> None:
        self.stack[0].names.add(name)

    def set_alias(self, name: str, segments: tuple[Segment, ...]) -> None:
        self.stack[-1].aliases[name] = segments

    def delete_alias(self, name: str) -> None:
        self.stack[-1].aliases.pop(name, None)

    def get_alias(self, name: str) -> tuple[Segment, ...] | None:
        for frame in reversed(self.stack):
            if name in frame.aliases:
                return frame.aliases[name]
            if name in frame.names:
                return None
        return None

    def alias(self, variable: Variable) -> Variable | None:
        """``variable`` rewritten onto the caller's path, if its root is an alias."""
        root = variable.root
        if not isinstance(root, str):
            return None
        target = self.get_alias(root)
        if target is None:
            return None
        return Variable((*target, *variable.segments[1:]), variable.location)


def extract_variables(value: Any) -> Iterator[Variable]:
    """Every context path read by a ``Value``, ``Expression`` or token."""
    if isinstance(value, Value):
        yield from extract_variables(value.initial)
        for call in value.filters:
            for arg in call.args:
                if isinstance(arg, tuple):
                    if arg[1] is not None:
                        yield from _from_token(arg[1])
                else:
                    yield from _from_token(arg)
    elif isinstance(value, Expression):
        for token in value.postfix:
            yield from _from_token(token)
    elif isinstance(value, Token):
        yield from _from_token(value)


def _from_token(token: Token) -> Iterator[Variable]:
    if isinstance(token, RangeToken):
        yield from _from_token(token.lhs)
        yield from _from_token(token.rhs)
    elif isinstance(token, PropertyAccessToken):
        if token.variable is None:
            yield _to_variable(token)
        else:
            yield from _from_token(token.variable)
            for prop in token.props:
                yield from _from_token(prop)


def _to_variable(token: PropertyAccessToken) -> Variable:
    segments: list[Segment] = []
    file = token.file
    root, *rest = token.props
    file = file or root.file
    if isinstance(root, PropertyAccessToken):
        segments.extend(_to_variable(root).segments)
    elif hasattr(root, "content"):
        segments.append(root.content)
    for prop in rest:
        file = file or prop.file
        if isinstance(prop, PropertyAccessToken):
            segments.append(_to_variable(prop))
        elif hasattr(prop, "content"):
            segments.append(prop.content)
    row, col = token.get_position()
    return Variable(tuple(segments), Location(row, col, file))
