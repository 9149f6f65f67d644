"""Lookup formula functions: VLOOKUP, HLOOKUP, INDEX, MATCH, ROWS, COLUMNS.

Tables arrive as lists of rows.  A key that cannot be found yields
``#NA!``; an index outside the table yields ``#REF!``.
"""

from __future__ import annotations

from typing import Any

from gridcalc.formulas.errors import CellError
from gridcalc.formulas.evaluator import compare_values
from gridcalc.formulas.values import is_blank, is_number, to_bool
from gridcalc.functions.args import as_table, int_arg, scalar_arg, wildcard_regex
from gridcalc.functions.registry import register_function


def _same_kind(a: Any, b: Any) -> bool:
    if is_number(a) and is_number(b):
        return True
    return type(a) is type(b)


def _exact_match(candidate: Any, key: Any) -> bool:
    if isinstance(key, str) and isinstance(candidate, str):
        if any(ch in key for ch in "*?~"):
            return bool(wildcard_regex(key).match(candidate))
        return candidate.casefold() == key.casefold()
    return _same_kind(candidate, key) and candidate == key


def _find_exact(values: list[Any], key: Any) -> int:
    for i, v in enumerate(values):
        if _exact_match(v, key):
            return i
    return -1


def _find_sorted(values: list[Any], key: Any, descending: bool = False) -> int:
    """Position of the last value not past *key* in a sorted list, or -1."""
    found = -1
    for i, v in enumerate(values):
        if is_blank(v) or not _same_kind(v, key):
            continue
        order = compare_values(v, key)
        if (order > 0) if not descending else (order < 0):
            break
        found = i
        if order == 0:
            break
    return found


def _lookup(key: Any, table: Any, index: Any, approximate: Any, by_row: bool) -> Any:
    key = scalar_arg(key)
    if isinstance(key, CellError):
        return key
    rows = as_table(table)
    if not rows or not rows[0]:
        return CellError.REF
    n = int_arg(index)
    if by_row:
        keys = [row[0] for row in rows]
        width = len(rows[0])
    else:
        keys = list(rows[0])
        width = len(rows)
    if n < 1 or n > width:
        return CellError.REF

    if to_bool(scalar_arg(approximate)):
        pos = _find_sorted(keys, key)
    else:
        pos = _find_exact(keys, key)
    if pos < 0:
        return CellError.NA
    return rows[pos][n - 1] if by_row else rows[n - 1][pos]


@register_function("VLOOKUP", 3, 4)
def fn_vlookup(key: Any, table: Any, col_index: Any, approximate: Any = True) -> Any:
    """VLOOKUP(key, table, col_index, [approximate]).

    Searches the first column.  Approximate mode assumes an ascending first
    column and returns the last row whose key is not greater than *key*.
    """
    return _lookup(key, table, col_index, approximate, by_row=True)


@register_function("HLOOKUP", 3, 4)
def fn_hlookup(key: Any, table: Any, row_index: Any, approximate: Any = True) -> Any:
    """HLOOKUP(key, table, row_index, [approximate]): searches the first row."""
    return _lookup(key, table, row_index, approximate, by_row=False)


@register_function("INDEX", 2, 3)
def fn_index(table: Any, row: Any, col: Any = None) -> Any:
    """INDEX(table, row, [col]): 1-based cell of a table.

    For a single row or column, the one index addresses along it.  Zero
    selects a whole row or column.
    """
    rows = as_table(table)
    r = int_arg(row)
    c = None if col is None else int_arg(col)
    height, width = len(rows), len(rows[0]) if rows else 0
    if c is None:
        if height == 1:
            r, c = 1, r
        elif width == 1:
            c = 1
        else:
            c = 0
    if r < 0 or c < 0 or r > height or c > width:
        return CellError.REF
    if r == 0 and c == 0:
        return rows
    if r == 0:
        return [[row_values[c - 1]] for row_values in rows]
    if c == 0:
        return [list(rows[r - 1])]
    return rows[r - 1][c - 1]


@register_function("MATCH", 2, 3)
def fn_match(key: Any, lookup: Any, match_type: Any = 1) -> Any:
    """MATCH(key, array, [type]): 1-based position of *key* in a row or column.

    Type 0 is an exact match; 1 expects ascending data and finds the largest
    value not above *key*; -1 expects descending data and finds the smallest
    value not below it.
    """
    key = scalar_arg(key)
    if isinstance(key, CellError):
        return key
    rows = as_table(lookup)
    if len(rows) == 1:
        values = list(rows[0])
    elif all(len(row) == 1 for row in rows):
        values = [row[0] for row in rows]
    else:
        return CellError.NA
    kind = int_arg(match_type)
    if kind == 0:
        pos = _find_exact(values, key)
    else:
        pos = _find_sorted(values, key, descending=kind < 0)
    return CellError.NA if pos < 0 else pos + 1


@register_function("ROWS", 1, 1)
def fn_rows(table: Any) -> int:
    return len(as_table(table))


@register_function("COLUMNS", 1, 1)
def fn_columns(table: Any) -> int:
    rows = as_table(table)
    return len(rows[0]) if rows else 0
