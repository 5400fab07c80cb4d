"""Template loaders for the sluice environment.

A loader is the file-access collaborator of the partial resolver. It
answers existence checks and reads sources, and it knows how names map
onto paths:

- ``exists(path)`` / ``read_file(path)``: synchronous access
- ``exists_async(path)`` / ``read_file_async(path)``: awaitable access
- ``resolve(root, name, ext)``: join a search root and a name
- ``dirname(path)`` and ``sep``: needed for ``./`` and ``../`` names
- ``contains(root, path)``: optional; rejects paths escaping ``root``
- ``fallback(name)``: optional; last candidate when nothing else exists

Built-in Loaders:
- ``FileSystemLoader``: files on disk
- ``DictLoader``: in-memory mapping (tests, embedded templates, the
  ``templates=`` option)

Custom Loaders:
Implement the same methods; ``contains`` and ``fallback`` may be left out.

    ```python
    class DatabaseLoader:
        sep = "/"

        def exists(self, path):
            return db.has_template(path)

        async def exists_async(self, path):
            return await db.has_template_async(path)
        ...
    ```
"""

from __future__ import annotations

import asyncio
import os
import re
from pathlib import Path

_SLASHES = re.compile(r"/+")


def _with_ext(name: str, ext: str) -> str:
    if ext and not os.path.splitext(name)[1]:
        return name + ext
    return name


class FileSystemLoader:
    """Load templates from disk.

    Paths are absolute after ``resolve``. Async methods run the blocking
    calls in a worker thread via ``asyncio.to_thread``.

    Example:
        >>> env = Environment(root=["views/", "shared/"], extname=".liquid")
        >>> env.render_file("home", {"title": "Hi"})
    """

    __slots__ = ("encoding",)

    sep = os.sep

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def exists(self, path: str) -> bool:
        return Path(path).is_file()

    def read_file(self, path: str) -> str:
        return Path(path).read_text(self.encoding)

    async def exists_async(self, path: str) -> bool:
        return await asyncio.to_thread(self.exists, path)

    async def read_file_async(self, path: str) -> str:
        return await asyncio.to_thread(self.read_file, path)

    def resolve(self, root: str, name: str, ext: str) -> str:
        return os.path.abspath(os.path.join(root, _with_ext(name, ext)))

    def dirname(self, path: str) -> str:
        return os.path.dirname(path)

    def contains(self, root: str, path: str) -> bool:
        base = os.path.abspath(root)
        target = os.path.abspath(path)
        return target == base or target.startswith(base.rstrip(os.sep) + os.sep)

    def __repr__(self) -> str:
        return f"FileSystemLoader(encoding={self.encoding!r})"


class DictLoader:
    """Load templates from an in-memory mapping of ``path -> source``.

    Names are ``/``-separated. With root ``"."`` names are used as keys,
    so ``{"header.html": "..."}`` is found as ``header.html``.

    Example:
        >>> loader = DictLoader({"greet.liquid": "Hi {{ name }}"})
        >>> env = Environment(loader=loader, root=".", extname=".liquid")
        >>> env.render_file("greet", {"name": "Ada"})
        'Hi Ada'

    Raises:
        FileNotFoundError: From ``read_file`` for a path not in the mapping.
    """

    __slots__ = ("mapping",)

    sep = "/"

    def __init__(self, mapping: dict[str, str]):
        self.mapping = mapping

    def exists(self, path: str) -> bool:
        return self.mapping.get(path) is not None

    def read_file(self, path: str) -> str:
        source = self.mapping.get(path)
        if source is None:
            raise FileNotFoundError(f"ENOENT: {path}")
        return source

    async def exists_async(self, path: str) -> bool:
        return self.exists(path)

    async def read_file_async(self, path: str) -> str:
        return self.read_file(path)

    def dirname(self, path: str) -> str:
        return self.sep.join(path.split(self.sep)[:-1])

    def resolve(self, root: str, name: str, ext: str) -> str:
        name = _with_ext(name, ext)
        segments = [] if root in (".", "") else _SLASHES.split(root)
        for part in name.split(self.sep):
            if part in (".", ""):
                continue
            if part == "..":
                if segments and (len(segments) > 1 or segments[0] != ""):
                    segments.pop()
            else:
                segments.append(part)
        return self.sep.join(segments)

    def __repr__(self) -> str:
        return f"DictLoader({len(self.mapping)} templates)"
