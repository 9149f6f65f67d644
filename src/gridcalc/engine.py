"""Formula engine: keeps every formula cell consistent with its inputs.

``FormulaEngine`` owns the dependency graph and a handle on the cell
store.  All edits go through its public methods:

- ``set_cell`` parses, records dependencies, evaluates and recomputes
  every transitive dependent in topological order.
- ``update_references`` shifts cells, formula text and dependency edges
  for a row/column insert or delete, then recalculates the sheet.
- ``recalculate_all`` / ``initialize_formulas`` handle full passes and
  bulk loads.

Formula problems never raise out of these methods: a syntax error shows
``#VALUE!``, a cycle shows ``#CIRC!`` on every cell it reaches.

Usage::

    engine = FormulaEngine()
    engine.set_cell(0, 0, "5")
    engine.set_cell(1, 0, "=A1*2")
    engine.get_value(1, 0)  # 10
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Iterable

from pydantic import BaseModel

from gridcalc.config import EngineConfig
from gridcalc.dependency_graph import CellKey, DependencyGraph
from gridcalc.formulas.errors import CellError, FormulaError, FormulaRangeError
from gridcalc.formulas.evaluator import evaluate_formula
from gridcalc.formulas.nodes import Node
from gridcalc.formulas.parser import extract_references, parse_formula
from gridcalc.formulas.references import (
    AXES,
    COL,
    ROW,
    CellAddress,
    CellRange,
    key_to_a1,
    rewrite_formula_refs,
    shift_key,
)
from gridcalc.formulas.values import coerce_literal
from gridcalc.logging.events import (
    CIRCULAR_DEPENDENCY,
    FORMULA_RANGE_TOO_LARGE,
    FORMULA_SYNTAX,
    EventType,
    emit_info,
    emit_warning,
    set_log_dir,
)
from gridcalc.store import CellStore, SheetStore

logger = logging.getLogger(__name__)


class CellResult(BaseModel):
    """Outcome of an edit: what the cell now displays."""

    display_value: Any = None
    is_error: bool = False


def _is_formula(text: Any) -> bool:
    return isinstance(text, str) and text.startswith("=")


class FormulaEngine:
    """Spreadsheet calculation engine over a ``CellStore``.

    Args:
        store: Cell storage; a bounded ``SheetStore`` is created when omitted.
        config: Engine settings; defaults apply when omitted.  A configured
            ``log_dir`` turns on the NDJSON event log.
    """

    def __init__(self, store: CellStore | None = None, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()
        if store is None:
            store = SheetStore(max_rows=self.config.max_rows, max_cols=self.config.max_cols)
        self.store = store
        self.graph = DependencyGraph()
        self._lock = threading.RLock()
        if self.config.log_dir is not None:
            set_log_dir(
                self.config.log_dir,
                fsync=self.config.logging_fsync,
                tail_bytes=self.config.logging_tail_bytes,
            )

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def set_cell(self, col: int, row: int, text: Any) -> CellResult:
        """Store *text* at ``(col, row)`` and recompute everything that reads it.

        Text starting with ``=`` is a formula; anything else is a literal.
        Empty text clears the cell.

        Raises:
            IndexError: If the position is outside the grid.
        """
        with self._lock:
            self._check_bounds(col, row)
            key = (col, row)
            if text is None or text == "":
                self._clear(key)
                return CellResult(display_value="")
            if not _is_formula(text):
                self.graph.remove_dependencies(key)
                self.store.write_cell(
                    col, row, {"value": text, "formula": None, "calculated": None, "error": None}
                )
                self._cascade(key)
                return self._result(key)

            try:
                node = parse_formula(text)
                references = self._references(node)
            except FormulaError as exc:
                # Old edges go with the old text.
                self.graph.remove_dependencies(key)
                self._store_formula(key, text, CellError.VALUE)
                self._report_bad_formula(key, text, exc)
                self._cascade(key)
                return self._result(key)

            self.graph.set_dependencies(key, references)
            if self.graph.has_circular_reference(key):
                self._store_formula(key, text, CellError.CIRC)
                emit_warning(
                    EventType.circular_reference,
                    f"Circular reference at {key_to_a1(key)}",
                    {"cell": key_to_a1(key), "formula": text},
                    error_code=CIRCULAR_DEPENDENCY,
                )
            else:
                self._store_formula(key, text, self._evaluate(node))
            self._cascade(key)
            return self._result(key)

    def clear_cell(self, col: int, row: int) -> None:
        """Remove the cell's content and edges, then recompute its dependents."""
        with self._lock:
            self._clear((col, row))

    def evaluate(self, text: str) -> Any:
        """Evaluate formula text against the current cells without storing it.

        Raises:
            FormulaError: If *text* does not parse or names an oversized range.
        """
        with self._lock:
            node = parse_formula(text)
            self._references(node)
            return self._evaluate(node)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_value(self, col: int, row: int) -> Any:
        """Computed result for a formula cell, the raw value otherwise."""
        with self._lock:
            cell = self.store.get_cell(col, row)
            if cell is None:
                return None
            if cell.get("formula"):
                return cell.get("calculated")
            return cell.get("value")

    def get_formula(self, col: int, row: int) -> str:
        """Text to put in the editor: the formula if there is one, else the raw value."""
        with self._lock:
            cell = self.store.get_cell(col, row)
            if cell is None:
                return ""
            if cell.get("formula"):
                return cell["formula"]
            value = cell.get("value")
            return "" if value is None else str(value)

    def get_result(self, col: int, row: int) -> CellResult:
        with self._lock:
            return self._result((col, row))

    def get_precedents(self, col: int, row: int) -> set[CellKey]:
        """Cells the formula at ``(col, row)`` reads directly."""
        with self._lock:
            return self.graph.get_cell_dependencies((col, row))

    def get_dependents(self, col: int, row: int) -> set[CellKey]:
        """Every cell that would be recomputed if ``(col, row)`` changed."""
        with self._lock:
            return self.graph.get_dependents((col, row))

    # ------------------------------------------------------------------
    # Full passes
    # ------------------------------------------------------------------

    def recalculate_all(self) -> None:
        """Re-evaluate every formula cell in one global dependency order.

        If the graph has a cycle among formula cells, every formula cell
        shows ``#CIRC!``.
        """
        with self._lock:
            started = time.perf_counter()
            formula_keys = [key for key, cell in self.store.iter_cells() if cell.get("formula")]
            order = self.graph.get_calculation_order(formula_keys)
            if order is None:
                self._mark_circular(formula_keys)
                return
            for key in order:
                self._recalculate_cell(key)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            logger.debug("Recalculated %d formula cells in %.2f ms", len(order), elapsed_ms)
            emit_info(
                EventType.recalc_completed,
                f"Recalculated {len(order)} formula cells",
                {"cells": len(order), "elapsed_ms": elapsed_ms},
            )

    def initialize_formulas(self) -> None:
        """Rebuild the dependency graph from the store, then recalculate.

        Pass one parses every formula and records its edges without
        evaluating anything, so a formula never reads a cell that has not
        been wired up yet.  Pass two is ``recalculate_all``.
        """
        with self._lock:
            self.graph.clear()
            formulas = 0
            failed = 0
            for key, cell in list(self.store.iter_cells()):
                text = cell.get("formula") or cell.get("value")
                if not _is_formula(text):
                    if cell.get("formula") is not None:
                        self.store.write_cell(key[0], key[1], {"formula": None, "calculated": None, "error": None})
                    continue
                formulas += 1
                try:
                    node = parse_formula(text)
                    self.graph.set_dependencies(key, self._references(node))
                    self.store.write_cell(key[0], key[1], {"value": text, "formula": text})
                except FormulaError as exc:
                    failed += 1
                    self._store_formula(key, text, CellError.VALUE)
                    self._report_bad_formula(key, text, exc)
            self.recalculate_all()
            emit_info(
                EventType.formulas_initialized,
                f"Initialized {formulas} formulas",
                {"formulas": formulas, "failed": failed, "edges": len(self.graph)},
            )

    # ------------------------------------------------------------------
    # Structural edits
    # ------------------------------------------------------------------

    def update_references(self, axis: str, position: int, delta: int) -> None:
        """Shift the sheet for *delta* rows/columns inserted (> 0) or deleted (< 0) at *position*.

        Cells move to their shifted positions (cells in a deleted span are
        dropped), formula text is rewritten so invalidated references read
        ``#REF!``, dependencies are re-derived from the new text and the
        sheet is recalculated.

        Raises:
            ValueError: If *axis* is not ``"row"`` or ``"col"``.
        """
        if axis not in AXES:
            raise ValueError(f"axis must be 'row' or 'col', got {axis!r}")
        with self._lock:
            if delta == 0:
                return
            self.graph.update_references(axis, position, delta)
            dropped, off_grid = self._move_cells(axis, position, delta)
            # Shifted edges of cells pushed past the grid edge point nowhere.
            for key in off_grid:
                self.graph.remove_dependencies(key)

            rewritten = 0
            for key, cell in list(self.store.iter_cells()):
                formula = cell.get("formula")
                if not formula:
                    continue
                new_text = rewrite_formula_refs(formula, axis, position, delta)
                if new_text != formula:
                    rewritten += 1
                    self.store.write_cell(key[0], key[1], {"value": new_text, "formula": new_text})
                try:
                    node = parse_formula(new_text)
                    self.graph.set_dependencies(key, self._references(node))
                except FormulaError as exc:
                    self.graph.remove_dependencies(key)
                    self._store_formula(key, new_text, CellError.VALUE)
                    self._report_bad_formula(key, new_text, exc)

            self.recalculate_all()
            emit_info(
                EventType.structural_edit,
                f"{'Inserted' if delta > 0 else 'Deleted'} {abs(delta)} {axis}(s) at {position}",
                {
                    "axis": axis,
                    "position": position,
                    "delta": delta,
                    "formulas_rewritten": rewritten,
                    "cells_dropped": dropped,
                },
            )

    def insert_rows(self, position: int, count: int = 1) -> None:
        self.update_references(ROW, *_span(position, count))

    def delete_rows(self, position: int, count: int = 1) -> None:
        position, count = _span(position, count)
        self.update_references(ROW, position, -count)

    def insert_cols(self, position: int, count: int = 1) -> None:
        self.update_references(COL, *_span(position, count))

    def delete_cols(self, position: int, count: int = 1) -> None:
        position, count = _span(position, count)
        self.update_references(COL, position, -count)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _in_bounds(self, col: int, row: int) -> bool:
        if col < 0 or row < 0:
            return False
        if self.config.max_cols is not None and col >= self.config.max_cols:
            return False
        if self.config.max_rows is not None and row >= self.config.max_rows:
            return False
        return True

    def _check_bounds(self, col: int, row: int) -> None:
        if not self._in_bounds(col, row):
            raise IndexError(f"Cell ({col}, {row}) is outside the grid")

    def _references(self, node: Node) -> list[CellAddress | CellRange]:
        limit = self.config.max_range_cells
        references = extract_references(node)
        for ref in references:
            if isinstance(ref, CellRange) and ref.size > limit:
                raise FormulaRangeError(str(ref), ref.size, limit)
        return references

    def _read_cell(self, col: int, row: int) -> Any:
        if not self._in_bounds(col, row):
            return CellError.REF
        cell = self.store.get_cell(col, row)
        if cell is None:
            return None
        if cell.get("formula"):
            return cell.get("calculated")
        return coerce_literal(cell.get("value"))

    def _read_range(self, rng: CellRange) -> list[list[Any]]:
        if rng.size > self.config.max_range_cells:
            raise FormulaRangeError(str(rng), rng.size, self.config.max_range_cells)
        return [
            [self._read_cell(col, row) for col in range(rng.start.col, rng.end.col + 1)]
            for row in range(rng.start.row, rng.end.row + 1)
        ]

    def _evaluate(self, node: Node) -> Any:
        try:
            value = evaluate_formula(node, self._read_cell, self._read_range)
        except FormulaError as exc:
            logger.debug("Evaluation failed: %s", exc)
            return CellError.VALUE
        if isinstance(value, list):
            # A bare range only has a single value when it is one cell.
            if len(value) == 1 and len(value[0]) == 1:
                value = value[0][0]
            else:
                return CellError.VALUE
        if value is None:
            return 0
        return value

    def _store_formula(self, key: CellKey, text: str, value: Any) -> None:
        self.store.write_cell(
            key[0],
            key[1],
            {
                "value": text,
                "formula": text,
                "calculated": value,
                "error": value if isinstance(value, CellError) else None,
            },
        )

    def _recalculate_cell(self, key: CellKey) -> None:
        cell = self.store.get_cell(*key)
        if cell is None or not cell.get("formula"):
            return
        text = cell["formula"]
        try:
            node = parse_formula(text)
        except FormulaError:
            self._store_formula(key, text, CellError.VALUE)
            return
        self._store_formula(key, text, self._evaluate(node))

    def _cascade(self, key: CellKey) -> None:
        affected = self.graph.get_dependents(key)
        if not affected:
            return
        order = self.graph.get_calculation_order(affected)
        if order is None:
            self._mark_circular(affected)
            return
        logger.debug("Recomputing %d dependents of %s", len(order), key_to_a1(key))
        for cell_key in order:
            self._recalculate_cell(cell_key)

    def _mark_circular(self, keys: Iterable[CellKey]) -> None:
        marked: list[str] = []
        for key in sorted(keys, key=lambda k: (k[1], k[0])):
            cell = self.store.get_cell(*key)
            if cell is None or not cell.get("formula"):
                continue
            self._store_formula(key, cell["formula"], CellError.CIRC)
            marked.append(key_to_a1(key))
        if marked:
            emit_warning(
                EventType.circular_reference,
                f"Circular reference affects {len(marked)} cells",
                {"cells": marked},
                error_code=CIRCULAR_DEPENDENCY,
            )

    def _clear(self, key: CellKey) -> None:
        self.graph.remove_dependencies(key)
        self.store.clear_cell(*key)
        self._cascade(key)

    def _move_cells(self, axis: str, position: int, delta: int) -> tuple[int, list[CellKey]]:
        """Shift every stored cell.

        Returns the number of cells dropped and the shifted keys of those
        pushed off the grid.
        """
        cells = [(key, dict(cell)) for key, cell in self.store.iter_cells()]
        for key, _ in cells:
            self.store.clear_cell(*key)
        dropped = 0
        off_grid: list[CellKey] = []
        for key, cell in cells:
            moved = shift_key(key, axis, position, delta)
            if moved is None or not self._in_bounds(*moved):
                dropped += 1
                if moved is not None:
                    off_grid.append(moved)
                continue
            self.store.write_cell(moved[0], moved[1], cell)
        return dropped, off_grid

    def _result(self, key: CellKey) -> CellResult:
        cell = self.store.get_cell(*key)
        if cell is None:
            return CellResult(display_value="")
        if cell.get("formula"):
            value = cell.get("calculated")
        else:
            value = cell.get("value")
        is_error = isinstance(coerce_literal(value), CellError)
        return CellResult(display_value=value, is_error=is_error)

    def _report_bad_formula(self, key: CellKey, text: str, exc: FormulaError) -> None:
        code = FORMULA_RANGE_TOO_LARGE if isinstance(exc, FormulaRangeError) else FORMULA_SYNTAX
        logger.debug("Bad formula at %s: %s", key_to_a1(key), exc)
        emit_warning(
            EventType.formula_parse_error,
            str(exc),
            {"cell": key_to_a1(key), "formula": text},
            error_code=code,
        )


def _span(position: int, count: int) -> tuple[int, int]:
    if position < 0:
        raise ValueError(f"position must be non-negative, got {position}")
    if count < 1:
        raise ValueError(f"count must be at least 1, got {count}")
    return position, count
