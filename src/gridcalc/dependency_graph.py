"""Dependency graph for formula cells with topological ordering.

Two maps are kept in sync by every mutating method:

- ``dependencies[cell]``: cells that *cell* reads from.
- ``dependents[cell]``: cells that read from *cell* (reverse edges).

Keys are ``(col, row)`` tuples.  Empty reverse sets are pruned so the
maps do not grow with cells that are no longer referenced.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, Iterator

from gridcalc.formulas.references import AXES, CellAddress, CellRange, iter_range, shift_key

logger = logging.getLogger(__name__)

CellKey = tuple[int, int]
Reference = CellAddress | CellRange | CellKey


def _reference_keys(ref: Reference) -> Iterator[CellKey]:
    if isinstance(ref, CellRange):
        for address in iter_range(ref):
            yield address.key
    elif isinstance(ref, CellAddress):
        yield ref.key
    else:
        yield (ref[0], ref[1])


class DependencyGraph:
    """Tracks which formula cells read which cells."""

    __slots__ = ("dependencies", "dependents")

    def __init__(self) -> None:
        self.dependencies: dict[CellKey, set[CellKey]] = {}
        self.dependents: dict[CellKey, set[CellKey]] = {}

    def __len__(self) -> int:
        return len(self.dependencies)

    def __contains__(self, key: object) -> bool:
        return key in self.dependencies

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def set_dependencies(self, key: CellKey, references: Iterable[Reference]) -> None:
        """Replace every edge out of *key*.

        Ranges are expanded to their individual cells, so ``A1:C1`` adds
        three edges.
        """
        self.remove_dependencies(key)
        inputs: set[CellKey] = set()
        for ref in references:
            inputs.update(_reference_keys(ref))
        if not inputs:
            return
        self.dependencies[key] = inputs
        for dep in inputs:
            self.dependents.setdefault(dep, set()).add(key)

    def remove_dependencies(self, key: CellKey) -> None:
        """Drop every edge out of *key* and the matching reverse edges."""
        inputs = self.dependencies.pop(key, None)
        if not inputs:
            return
        for dep in inputs:
            readers = self.dependents.get(dep)
            if readers is None:
                continue
            readers.discard(key)
            if not readers:
                del self.dependents[dep]

    def get_cell_dependencies(self, key: CellKey) -> set[CellKey]:
        """Direct inputs of *key* (a copy)."""
        return set(self.dependencies.get(key, ()))

    def get_direct_dependents(self, key: CellKey) -> set[CellKey]:
        """Cells that read *key* directly (a copy)."""
        return set(self.dependents.get(key, ()))

    def get_dependents(self, key: CellKey) -> set[CellKey]:
        """Every cell transitively affected by a change to *key*.

        Breadth-first over reverse edges.  *key* itself is included only
        when it sits on a cycle.
        """
        affected: set[CellKey] = set()
        queue: deque[CellKey] = deque([key])
        while queue:
            cell = queue.popleft()
            for reader in self.dependents.get(cell, ()):
                if reader not in affected:
                    affected.add(reader)
                    queue.append(reader)
        return affected

    def clear(self) -> None:
        self.dependencies.clear()
        self.dependents.clear()

    # ------------------------------------------------------------------
    # Cycles and ordering
    # ------------------------------------------------------------------

    def has_circular_reference(self, key: CellKey) -> bool:
        """True if following inputs from *key* leads back onto the current path."""
        on_path: set[CellKey] = {key}
        done: set[CellKey] = set()
        stack: list[tuple[CellKey, Iterator[CellKey]]] = [
            (key, iter(sorted(self.dependencies.get(key, ()))))
        ]
        while stack:
            cell, inputs = stack[-1]
            advanced = False
            for dep in inputs:
                if dep in on_path:
                    return True
                if dep in done:
                    continue
                on_path.add(dep)
                stack.append((dep, iter(sorted(self.dependencies.get(dep, ())))))
                advanced = True
                break
            if not advanced:
                stack.pop()
                on_path.discard(cell)
                done.add(cell)
        return False

    def get_calculation_order(self, cells: Iterable[CellKey]) -> list[CellKey] | None:
        """Order *cells* so every cell comes after the inputs it reads.

        Depth-first from each requested cell, walking through inputs that
        were not requested without emitting them.  Returns None as soon as
        a cycle is reached.

        Args:
            cells: The cells to order.

        Returns:
            The requested cells in evaluation order, each exactly once, or
            None if any of them reaches a cycle.
        """
        wanted = set(cells)
        order: list[CellKey] = []
        if not wanted:
            return order

        visiting: set[CellKey] = set()
        visited: set[CellKey] = set()
        for root in sorted(wanted):
            if root in visited:
                continue
            visiting.add(root)
            stack: list[tuple[CellKey, Iterator[CellKey]]] = [
                (root, iter(sorted(self.dependencies.get(root, ()))))
            ]
            while stack:
                cell, inputs = stack[-1]
                advanced = False
                for dep in inputs:
                    if dep in visiting:
                        logger.debug("Cycle reached at %s while ordering", dep)
                        return None
                    if dep in visited:
                        continue
                    visiting.add(dep)
                    stack.append((dep, iter(sorted(self.dependencies.get(dep, ())))))
                    advanced = True
                    break
                if not advanced:
                    stack.pop()
                    visiting.discard(cell)
                    visited.add(cell)
                    if cell in wanted:
                        order.append(cell)
        return order

    # ------------------------------------------------------------------
    # Structural edits
    # ------------------------------------------------------------------

    def update_references(self, axis: str, pivot: int, delta: int) -> None:
        """Shift every key for a row/column insert (delta > 0) or delete (delta < 0).

        Edges whose endpoint falls inside a deleted span are dropped.  Both
        maps are rebuilt from the shifted forward edges.
        """
        if axis not in AXES:
            raise ValueError(f"axis must be 'row' or 'col', got {axis!r}")
        old = self.dependencies
        self.dependencies = {}
        self.dependents = {}
        dropped = 0
        for key, inputs in old.items():
            moved = shift_key(key, axis, pivot, delta)
            if moved is None:
                dropped += len(inputs)
                continue
            shifted: list[CellKey] = []
            for dep in inputs:
                new_dep = shift_key(dep, axis, pivot, delta)
                if new_dep is None:
                    dropped += 1
                else:
                    shifted.append(new_dep)
            self.set_dependencies(moved, shifted)
        logger.debug(
            "Shifted graph on %s at %d by %d (%d edges dropped)", axis, pivot, delta, dropped
        )
