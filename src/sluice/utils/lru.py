"""Bounded least-recently-used cache for parsed partials."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Any

logger = logging.getLogger(__name__)


class LRUCache:
    """Thread-safe LRU map with the ``read``/``write``/``remove``/``clear``
    interface the parser expects from a template cache.

    ``read`` refreshes recency; writing a new key past ``limit`` evicts
    the least recently used entry.

    Example:
        >>> cache = LRUCache(2)
        >>> cache.write("a", 1); cache.write("b", 2); cache.read("a")
        1
        >>> cache.write("c", 3)
        >>> cache.read("b") is None
        True
    """

    __slots__ = ("_data", "_lock", "limit")

    def __init__(self, limit: int):
        self.limit = limit
        self._data: OrderedDict[str, Any] = OrderedDict()
        self._lock = threading.Lock()

    def read(self, key: str) -> Any:
        with self._lock:
            if key not in self._data:
                return None
            self._data.move_to_end(key, last=False)
            return self._data[key]

    def write(self, key: str, value: Any) -> None:
        with self._lock:
            if key in self._data:
                self._data[key] = value
                return
            self._data[key] = value
            self._data.move_to_end(key, last=False)
            if len(self._data) > self.limit:
                evicted, _ = self._data.popitem(last=True)
                logger.debug(f"Cache evict: {evicted}")

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    @property
    def size(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"<LRUCache {len(self._data)}/{self.limit}>"
