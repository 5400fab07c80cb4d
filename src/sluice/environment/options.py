"""Engine configuration.

``Options`` is an immutable snapshot built once per ``Environment`` by
``normalize_options``, which fills defaults and derives dependent
settings:

- ``root`` also becomes ``partials``/``layouts`` unless those are given
- ``cache=True`` means a 1024-entry ``LRUCache``; an int is the capacity
- ``jekyll_include`` turns ``dynamic_partials`` off unless set explicitly
- ``templates={...}`` installs a ``DictLoader`` rooted at ``"."``
- ``output_escape`` names (``"escape"``, ``"json"``) become filters
- ``relative_reference`` is switched off, with a warning, for loaders
  that lack ``dirname``/``sep``

Example:
    >>> opts = normalize_options(root="views", cache=64, strict_variables=True)
    >>> opts.partials
    ('views',)
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, fields
from typing import Any

from sluice.environment.loaders import DictLoader, FileSystemLoader
from sluice.environment.registry import FilterDefinition, as_filter
from sluice.expressions import DEFAULT_OPERATORS
from sluice.utils import html
from sluice.utils.lru import LRUCache

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 1024


@dataclass(frozen=True, slots=True)
class OutputEscape:
    """The filter appended to every ``{{ }}`` whose last filter is not raw."""

    name: str
    definition: FilterDefinition


@dataclass(frozen=True, slots=True)
class Options:
    """Normalized engine options. Build with ``normalize_options``."""

    # Lookup
    root: tuple[str, ...] = (".",)
    partials: tuple[str, ...] = (".",)
    layouts: tuple[str, ...] = (".",)
    relative_reference: bool = True
    jekyll_include: bool = False
    key_value_separator: str = ":"
    cache: Any = None
    extname: str = ""
    loader: Any = field(default_factory=FileSystemLoader)
    dynamic_partials: bool = True

    # Syntax
    trim_tag_left: bool = False
    trim_tag_right: bool = False
    trim_output_left: bool = False
    trim_output_right: bool = False
    greedy: bool = True
    tag_delimiter_left: str = "{%"
    tag_delimiter_right: str = "%}"
    output_delimiter_left: str = "{{"
    output_delimiter_right: str = "}}"
    operators: Mapping[str, Callable[..., Any]] = field(
        default_factory=lambda: dict(DEFAULT_OPERATORS)
    )

    # Evaluation
    js_truthy: bool = False
    strict_filters: bool = False
    strict_variables: bool = False
    own_property_only: bool = True
    lenient_if: bool = False
    globals: Mapping[str, Any] = field(default_factory=dict)
    keep_output_type: bool = False
    output_escape: OutputEscape | None = None
    catch_all_errors: bool = False

    # Limits
    memory_limit: float = math.inf
    parse_limit: float = math.inf
    render_limit: float = math.inf


_FIELD_NAMES = frozenset(f.name for f in fields(Options))


def _as_roots(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if value is None:
        return ()
    return tuple(value)


def _as_cache(value: Any) -> Any:
    if value is None or value is False:
        return None
    if value is True:
        return LRUCache(DEFAULT_CACHE_SIZE)
    if isinstance(value, int):
        return LRUCache(value) if value > 0 else None
    for method in ("read", "write", "remove"):
        if not callable(getattr(value, method, None)):
            raise TypeError(f"cache must be a bool, an int or provide {method}()")
    return value


def _as_output_escape(value: Any) -> OutputEscape | None:
    if not value:
        return None
    if value == "escape":
        return OutputEscape("escape", FilterDefinition(html.escape, pass_context=True))
    if value == "json":
        return OutputEscape("json", FilterDefinition(html.json, pass_context=True))
    if isinstance(value, FilterDefinition):
        return OutputEscape(getattr(value.handler, "__name__", "output_escape"), value)
    if callable(value):
        return OutputEscape(getattr(value, "__name__", "output_escape"), as_filter(value))
    raise TypeError('output_escape must be "escape", "json" or a callable')


def normalize_options(**kwargs: Any) -> Options:
    """Build ``Options`` from keyword arguments.

    Raises:
        TypeError: Unknown option name or an option of the wrong kind.
    """
    unknown = set(kwargs) - _FIELD_NAMES - {"templates"}
    if unknown:
        raise TypeError(f"unknown option(s): {', '.join(sorted(unknown))}")

    opts = dict(kwargs)
    if "root" in opts:
        opts.setdefault("partials", opts["root"])
        opts.setdefault("layouts", opts["root"])
    if opts.get("jekyll_include"):
        opts.setdefault("dynamic_partials", False)
    if "cache" in opts:
        opts["cache"] = _as_cache(opts["cache"])
    if "output_escape" in opts:
        opts["output_escape"] = _as_output_escape(opts["output_escape"])
    if "operators" in opts:
        opts["operators"] = {**DEFAULT_OPERATORS, **opts["operators"]}
    if "globals" in opts and opts["globals"] is None:
        opts["globals"] = {}

    templates = opts.pop("templates", None)
    if templates is not None:
        opts["loader"] = DictLoader(dict(templates))
        opts["relative_reference"] = True
        opts["root"] = opts["partials"] = opts["layouts"] = "."

    for key in ("root", "partials", "layouts"):
        if key in opts:
            opts[key] = _as_roots(opts[key])

    loader = opts.get("loader")
    if loader is None:
        opts.pop("loader", None)
    elif opts.get("relative_reference", True) and not (
        getattr(loader, "dirname", None) and getattr(loader, "sep", None)
    ):
        logger.warning(
            "loader.dirname and loader.sep are required for relative_reference; "
            "disabling it (pass relative_reference=False to silence this warning)"
        )
        opts["relative_reference"] = False

    return Options(**opts)
