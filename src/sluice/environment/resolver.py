"""Partial and layout name resolution.

``PartialResolver.lookup`` turns a name from ``{% include %}``,
``{% render %}``, ``{% layout %}`` or ``render_file`` into a loader path.
Candidates are tried in order:

1. ``./x`` / ``../x`` relative to the including file (``relative_reference``)
2. each root configured for the lookup type
3. ``loader.fallback(name)`` when the loader defines it

Except for ``ROOT`` lookups, candidates outside their root (as judged
by ``loader.contains``) are skipped.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import TYPE_CHECKING, Any

from sluice.environment.exceptions import TemplateNotFoundError

if TYPE_CHECKING:
    from collections.abc import Generator, Iterator

    from sluice.environment.options import Options

logger = logging.getLogger(__name__)


class LookupType(Enum):
    PARTIALS = "partials"
    LAYOUTS = "layouts"
    ROOT = "root"


class PartialResolver:
    __slots__ = ("_relative", "options")

    def __init__(self, options: Options):
        self.options = options
        self._relative: re.Pattern[str] | None = None
        if options.relative_reference:
            sep = options.loader.sep
            prefixes = {f".{sep}", f"..{sep}", "./", "../"}
            self._relative = re.compile(
                "^(?:" + "|".join(re.escape(p) for p in sorted(prefixes)) + ")"
            )

    def should_load_relative(self, name: str) -> bool:
        return self._relative is not None and self._relative.match(name) is not None

    def contains(self, root: str, path: str) -> bool:
        check = getattr(self.options.loader, "contains", None)
        return True if check is None else bool(check(root, path))

    def lookup(
        self,
        name: str,
        lookup_type: LookupType,
        sync: bool,
        current_file: str | None = None,
    ) -> Generator[Any, Any, str]:
        """Return the first existing candidate path for ``name``.

        Raises:
            TemplateNotFoundError: No candidate exists.
        """
        loader = self.options.loader
        roots = self.roots(lookup_type)
        for candidate in self.candidates(
            name, roots, current_file, lookup_type is not LookupType.ROOT
        ):
            found = loader.exists(candidate) if sync else (yield loader.exists_async(candidate))
            if found:
                logger.debug(f"Resolved {lookup_type.value} {name!r} -> {candidate}")
                return candidate
        raise self.lookup_error(name, roots)

    def roots(self, lookup_type: LookupType) -> tuple[str, ...]:
        return getattr(self.options, lookup_type.value)

    def candidates(
        self,
        name: str,
        roots: tuple[str, ...] | list[str],
        current_file: str | None = None,
        check_contains: bool = True,
    ) -> Iterator[str]:
        loader = self.options.loader
        ext = self.options.extname
        if current_file and self.should_load_relative(name):
            path = loader.resolve(self.dirname(current_file), name, ext)
            for root in roots:
                if not check_contains or self.contains(root, path):
                    yield path
                    break
        for root in roots:
            path = loader.resolve(root, name, ext)
            if not check_contains or self.contains(root, path):
                yield path
        fallback = getattr(loader, "fallback", None)
        if fallback is not None:
            path = fallback(name)
            if path is not None:
                yield path

    def dirname(self, path: str) -> str:
        return self.options.loader.dirname(path)

    def lookup_error(self, name: str, roots: tuple[str, ...] | list[str]) -> TemplateNotFoundError:
        return TemplateNotFoundError(name, roots)
