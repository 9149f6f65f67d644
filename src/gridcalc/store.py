"""Cell storage used by the formula engine.

The engine reads and writes cells through the ``CellStore`` protocol.
Each cell is a dict with these fields:

- ``value``: the text or value as entered (formula text for formula cells)
- ``formula``: the formula text, or None for literal cells
- ``calculated``: last computed result of a formula
- ``error``: the error sentinel of the last result, if any

``SheetStore`` is the in-memory implementation.
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Protocol

CellKey = tuple[int, int]

CELL_FIELDS = ("value", "formula", "calculated", "error")


class CellStore(Protocol):
    """What the engine needs from a grid of cells."""

    def get_cell(self, col: int, row: int) -> dict[str, Any] | None: ...

    def write_cell(self, col: int, row: int, fields: dict[str, Any]) -> None: ...

    def clear_cell(self, col: int, row: int) -> None: ...

    def iter_cells(self) -> Iterable[tuple[CellKey, dict[str, Any]]]: ...


class SheetStore:
    """Dict-backed cell store with optional grid bounds.

    Args:
        max_rows: Number of rows in the grid, or None for unbounded.
        max_cols: Number of columns in the grid, or None for unbounded.
    """

    def __init__(self, max_rows: int | None = None, max_cols: int | None = None) -> None:
        self.max_rows = max_rows
        self.max_cols = max_cols
        self._cells: dict[CellKey, dict[str, Any]] = {}

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, key: object) -> bool:
        return key in self._cells

    def in_bounds(self, col: int, row: int) -> bool:
        if col < 0 or row < 0:
            return False
        if self.max_cols is not None and col >= self.max_cols:
            return False
        if self.max_rows is not None and row >= self.max_rows:
            return False
        return True

    def get_cell(self, col: int, row: int) -> dict[str, Any] | None:
        return self._cells.get((col, row))

    def write_cell(self, col: int, row: int, fields: dict[str, Any]) -> None:
        """Merge *fields* into the cell at ``(col, row)``, creating it if needed.

        Raises:
            IndexError: If the position is outside the grid bounds.
            KeyError: If *fields* names something other than a cell field.
        """
        if not self.in_bounds(col, row):
            raise IndexError(f"Cell ({col}, {row}) is outside the grid")
        unknown = set(fields) - set(CELL_FIELDS)
        if unknown:
            raise KeyError(f"Unknown cell fields: {sorted(unknown)}")
        cell = self._cells.setdefault((col, row), dict.fromkeys(CELL_FIELDS))
        cell.update(fields)

    def clear_cell(self, col: int, row: int) -> None:
        self._cells.pop((col, row), None)

    def iter_cells(self) -> Iterator[tuple[CellKey, dict[str, Any]]]:
        """Yield ``((col, row), cell)`` pairs in row-major order."""
        for key in sorted(self._cells, key=lambda k: (k[1], k[0])):
            yield key, self._cells[key]

    def clear(self) -> None:
        self._cells.clear()
