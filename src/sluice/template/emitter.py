"""Output buffers written to by render steps."""

from __future__ import annotations

from typing import Any

from sluice.utils.values import to_str, to_value


class SimpleEmitter:
    """Collects stringified chunks; ``buffer`` joins them."""

    __slots__ = ("_chunks",)

    def __init__(self) -> None:
        self._chunks: list[str] = []

    def write(self, value: Any) -> None:
        self._chunks.append(to_str(value))

    @property
    def buffer(self) -> str:
        return "".join(self._chunks)


class KeepingTypeEmitter:
    """Keeps the native type of a lone value (``keep_output_type``).

    ``{{ 42 }}`` renders to the int ``42``; as soon as a second chunk is
    written everything collapses to a string.
    """

    __slots__ = ("_buffer",)

    def __init__(self) -> None:
        self._buffer: Any = ""

    def write(self, value: Any) -> None:
        value = to_value(value)
        if not isinstance(value, str) and self._buffer == "":
            self._buffer = value
        else:
            self._buffer = to_str(self._buffer) + to_str(value)

    @property
    def buffer(self) -> Any:
        return self._buffer


def create_emitter(keep_output_type: bool) -> SimpleEmitter | KeepingTypeEmitter:
    return KeepingTypeEmitter() if keep_output_type else SimpleEmitter()
