"""A1-style cell reference codec.

Columns use bijective base-26 letters (A=0, Z=25, AA=26).  Rows are
1-based in text and 0-based everywhere else.  Either coordinate may carry
a ``$`` marking it absolute.

The single shift rule in ``shift_address`` drives both dependency-graph
rewriting and formula-text rewriting on row/column insert and delete.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Iterator

_ADDR_RE = re.compile(r"^(\$?)([A-Z]+)(\$?)(\d+)$", re.IGNORECASE)

# A reference inside formula text: not part of a longer identifier and not
# a function name.
_FORMULA_REF_RE = re.compile(
    r"(?<![A-Za-z0-9_$.])"
    r"(\$?[A-Za-z]+\$?\d+)(?::(\$?[A-Za-z]+\$?\d+))?"
    r"(?![A-Za-z0-9_(])"
)
# String literal ranges to skip refs inside "..."
_STRING_LIT_RE = re.compile(r'"(?:[^"\\]|\\.)*"')

ROW = "row"
COL = "col"
AXES = (ROW, COL)


@dataclass(frozen=True)
class CellAddress:
    """A single cell position with per-axis absolute flags."""

    col: int
    row: int
    col_absolute: bool = False
    row_absolute: bool = False

    @property
    def key(self) -> tuple[int, int]:
        return (self.col, self.row)

    def __str__(self) -> str:
        return format_address(self)


@dataclass(frozen=True)
class CellRange:
    """A rectangular block, normalized so ``start`` is the top-left corner."""

    start: CellAddress
    end: CellAddress

    @property
    def width(self) -> int:
        return self.end.col - self.start.col + 1

    @property
    def height(self) -> int:
        return self.end.row - self.start.row + 1

    @property
    def size(self) -> int:
        return self.width * self.height

    def __str__(self) -> str:
        return format_range(self)


# ---------------------------------------------------------------------------
# Columns and keys
# ---------------------------------------------------------------------------


def letters_to_col(letters: str) -> int:
    """Convert column letter(s) to 0-based index.  A=0, B=1, ..., Z=25, AA=26."""
    idx = 0
    for ch in letters.upper():
        idx = idx * 26 + (ord(ch) - ord("A") + 1)
    return idx - 1


def col_to_letters(idx: int) -> str:
    """Convert 0-based column index to letter(s).  0=A, 25=Z, 26=AA."""
    if idx < 0:
        raise ValueError(f"Column index must be non-negative: {idx}")
    result = ""
    n = idx + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        result = chr(65 + rem) + result
    return result


def cell_key(col: int, row: int) -> tuple[int, int]:
    """Map key for a cell position."""
    return (col, row)


def parse_key(key: tuple[int, int]) -> tuple[int, int]:
    """Inverse of ``cell_key``: return ``(col, row)``."""
    col, row = key
    return col, row


def key_to_a1(key: tuple[int, int]) -> str:
    """Render a cell key as a relative A1 address."""
    return format_address(CellAddress(key[0], key[1]))


# ---------------------------------------------------------------------------
# Addresses and ranges
# ---------------------------------------------------------------------------


def parse_address(text: str) -> CellAddress | None:
    """Parse ``"B3"`` / ``"$B$3"`` into a ``CellAddress``.

    Returns None on anything that is not a single A1 address.
    """
    m = _ADDR_RE.match(text.strip())
    if not m:
        return None
    row = int(m.group(4)) - 1
    if row < 0:
        return None
    return CellAddress(
        col=letters_to_col(m.group(2)),
        row=row,
        col_absolute=m.group(1) == "$",
        row_absolute=m.group(3) == "$",
    )


def format_address(address: CellAddress) -> str:
    col_mark = "$" if address.col_absolute else ""
    row_mark = "$" if address.row_absolute else ""
    return f"{col_mark}{col_to_letters(address.col)}{row_mark}{address.row + 1}"


def parse_range(text: str) -> CellRange | None:
    """Parse ``"A1:B5"`` into a normalized ``CellRange``.

    Each axis is normalized independently, so ``B5:A1`` equals ``A1:B5``.
    The absolute flag of a coordinate travels with it.
    """
    parts = text.strip().split(":")
    if len(parts) != 2:
        return None
    a = parse_address(parts[0])
    b = parse_address(parts[1])
    if a is None or b is None:
        return None
    return make_range(a, b)


def make_range(a: CellAddress, b: CellAddress) -> CellRange:
    """Build a normalized range from two corner addresses."""
    left, right = (a, b) if a.col <= b.col else (b, a)
    top, bottom = (a, b) if a.row <= b.row else (b, a)
    start = CellAddress(left.col, top.row, left.col_absolute, top.row_absolute)
    end = CellAddress(right.col, bottom.row, right.col_absolute, bottom.row_absolute)
    return CellRange(start, end)


def format_range(rng: CellRange) -> str:
    return f"{format_address(rng.start)}:{format_address(rng.end)}"


def expand_range(rng: CellRange) -> list[CellAddress]:
    """Every address in *rng*, row-major, both endpoints inclusive."""
    return list(iter_range(rng))


def iter_range(rng: CellRange) -> Iterator[CellAddress]:
    for row in range(rng.start.row, rng.end.row + 1):
        for col in range(rng.start.col, rng.end.col + 1):
            yield CellAddress(col, row)


# ---------------------------------------------------------------------------
# Structural shifting
# ---------------------------------------------------------------------------


def _check_axis(axis: str) -> None:
    if axis not in AXES:
        raise ValueError(f"axis must be 'row' or 'col', got {axis!r}")


def shift_index(index: int, pivot: int, delta: int) -> int | None:
    """Shift one coordinate for an insert (delta > 0) or delete (delta < 0).

    Returns None when the coordinate lies inside the deleted span.
    """
    if delta >= 0:
        return index + delta if index >= pivot else index
    if pivot <= index < pivot - delta:
        return None
    if index >= pivot - delta:
        return index + delta
    return index


def shift_address(
    address: CellAddress, axis: str, pivot: int, delta: int
) -> CellAddress | None:
    """Move *address* for a row/column insert or delete at *pivot*.

    A relative coordinate at or past *pivot* moves by *delta*.  On delete,
    a relative coordinate inside ``[pivot, pivot - delta)`` invalidates the
    address (None).  Absolute coordinates never move.
    """
    _check_axis(axis)
    if axis == ROW:
        if address.row_absolute:
            return address
        row = shift_index(address.row, pivot, delta)
        return None if row is None else replace(address, row=row)
    if address.col_absolute:
        return address
    col = shift_index(address.col, pivot, delta)
    return None if col is None else replace(address, col=col)


def shift_range(rng: CellRange, axis: str, pivot: int, delta: int) -> CellRange | None:
    """Shift a range; a partially deleted range shrinks, a fully deleted one is None."""
    start = shift_address(rng.start, axis, pivot, delta)
    end = shift_address(rng.end, axis, pivot, delta)
    if start is not None and end is not None:
        return CellRange(start, end)
    if delta >= 0:
        return None
    # Deleted endpoints snap to the edge of the surviving block.
    if start is None:
        start = replace(rng.start, **{axis: pivot})
    if end is None:
        end = replace(rng.end, **{axis: pivot - 1})
    if getattr(end, axis) < getattr(start, axis):
        return None
    return CellRange(start, end)


def shift_key(key: tuple[int, int], axis: str, pivot: int, delta: int) -> tuple[int, int] | None:
    """Shift a bare cell key (cell positions have no absolute flags)."""
    moved = shift_address(CellAddress(key[0], key[1]), axis, pivot, delta)
    return None if moved is None else moved.key


# ---------------------------------------------------------------------------
# Formula text rewriting
# ---------------------------------------------------------------------------


def _find_string_ranges(formula: str) -> list[tuple[int, int]]:
    """Return list of (start, end) index ranges for string literals in formula."""
    return [(m.start(), m.end()) for m in _STRING_LIT_RE.finditer(formula)]


def _in_string(pos: int, string_ranges: list[tuple[int, int]]) -> bool:
    """Check if position falls inside any string literal range."""
    for s, e in string_ranges:
        if s <= pos < e:
            return True
    return False


def _rewrite(formula: str, replace_ref) -> str:
    string_ranges = _find_string_ranges(formula)
    result_parts: list[str] = []
    last_end = 0
    for m in _FORMULA_REF_RE.finditer(formula):
        if _in_string(m.start(), string_ranges):
            continue
        replacement = replace_ref(m.group(1), m.group(2))
        if replacement is None:
            continue
        result_parts.append(formula[last_end:m.start()])
        result_parts.append(replacement)
        last_end = m.end()
    result_parts.append(formula[last_end:])
    return "".join(result_parts)


def rewrite_formula_refs(formula: str, axis: str, pivot: int, delta: int) -> str:
    """Rewrite references in formula text after a row/column insert or delete.

    Uses ``shift_address`` / ``shift_range``.  An invalidated reference
    becomes the literal text ``#REF!``.  Text inside string literals is left
    alone.

    Args:
        formula: The formula string (with leading '=').
        axis: "row" or "col".
        pivot: 0-based index where insertion/deletion starts.
        delta: Positive for insert, negative for delete.
    """
    _check_axis(axis)
    if not formula or not formula.startswith("=") or delta == 0:
        return formula

    def replace_ref(first: str, second: str | None) -> str | None:
        if second is None:
            address = parse_address(first)
            if address is None:
                return None
            moved = shift_address(address, axis, pivot, delta)
            return "#REF!" if moved is None else format_address(moved)
        a = parse_address(first)
        b = parse_address(second)
        if a is None or b is None:
            return None
        moved_range = shift_range(make_range(a, b), axis, pivot, delta)
        return "#REF!" if moved_range is None else format_range(moved_range)

    return _rewrite(formula, replace_ref)


def adjust_formula_refs(formula: str, col_delta: int, row_delta: int) -> str:
    """Offset relative references for copy/fill by (*col_delta*, *row_delta*).

    Absolute coordinates stay put.  A reference pushed off the top or left
    edge becomes ``#REF!``.
    """
    if not formula or not formula.startswith("="):
        return formula

    def offset(address: CellAddress) -> CellAddress | None:
        col = address.col if address.col_absolute else address.col + col_delta
        row = address.row if address.row_absolute else address.row + row_delta
        if col < 0 or row < 0:
            return None
        return replace(address, col=col, row=row)

    def replace_ref(first: str, second: str | None) -> str | None:
        a = parse_address(first)
        if a is None:
            return None
        moved_a = offset(a)
        if second is None:
            return "#REF!" if moved_a is None else format_address(moved_a)
        b = parse_address(second)
        if b is None:
            return None
        moved_b = offset(b)
        if moved_a is None or moved_b is None:
            return "#REF!"
        return f"{format_address(moved_a)}:{format_address(moved_b)}"

    return _rewrite(formula, replace_ref)


# ---------------------------------------------------------------------------
# Reference-mode editing
# ---------------------------------------------------------------------------


def toggle_absolute(text: str) -> str:
    """Cycle ``A1 -> $A$1 -> A$1 -> $A1 -> A1``.  Malformed input is returned unchanged."""
    address = parse_address(text)
    if address is None:
        return text
    col_abs, row_abs = address.col_absolute, address.row_absolute
    if not col_abs and not row_abs:
        nxt = (True, True)
    elif col_abs and row_abs:
        nxt = (False, True)
    elif row_abs:
        nxt = (True, False)
    else:
        nxt = (False, False)
    return format_address(replace(address, col_absolute=nxt[0], row_absolute=nxt[1]))
