"""Loop drops exposed as ``forloop`` and ``tablerowloop``."""

from __future__ import annotations

from sluice.drops import Drop


class ForLoop(Drop):
    """Iteration metadata for ``{% for %}``.

    Properties:
        name: ``"<variable>-<collection source>"``
        index / index0: 1-based / 0-based position
        rindex / rindex0: Positions counted from the end
        first / last: Boundary flags
        length: Number of items after offset/limit
    """

    __slots__ = ("_i", "_length", "_name")

    def __init__(self, length: int, collection: str, variable: str) -> None:
        self._i = 0
        self._length = length
        self._name = f"{variable}-{collection}"

    def next(self) -> None:
        self._i += 1

    @property
    def name(self) -> str:
        return self._name

    @property
    def length(self) -> int:
        return self._length

    @property
    def index0(self) -> int:
        return self._i

    @property
    def index(self) -> int:
        return self._i + 1

    @property
    def first(self) -> bool:
        return self._i == 0

    @property
    def last(self) -> bool:
        return self._i == self._length - 1

    @property
    def rindex(self) -> int:
        return self._length - self._i

    @property
    def rindex0(self) -> int:
        return self._length - self._i - 1

    def __repr__(self) -> str:
        return f"<ForLoop {self.index}/{self.length}>"


class TablerowLoop(ForLoop):
    """``forloop`` plus row/column bookkeeping for ``{% tablerow %}``."""

    __slots__ = ("_cols",)

    def __init__(self, length: int, cols: int, collection: str, variable: str) -> None:
        super().__init__(length, collection, variable)
        self._cols = cols

    @property
    def row(self) -> int:
        return self._i // self._cols + 1

    @property
    def col0(self) -> int:
        return self._i % self._cols

    @property
    def col(self) -> int:
        return self.col0 + 1

    @property
    def col_first(self) -> bool:
        return self.col0 == 0

    @property
    def col_last(self) -> bool:
        return self.col == self._cols

    def __repr__(self) -> str:
        return f"<TablerowLoop row={self.row} col={self.col}>"
